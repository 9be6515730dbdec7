# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Transcription provider registry.

Providers are looked up by name from the config's `transcription.provider`.
"""

from collections.abc import Callable

from ..transcription_provider import ModelInfo, TranscriptionProvider
from .vosk_provider import VoskProvider, join_cjk_words

PROVIDER_REGISTRY: dict[str, type[TranscriptionProvider]] = {
    "vosk": VoskProvider,
}


def get_provider_class(provider_name: str) -> type[TranscriptionProvider]:
    """
    Look up a registered provider.

    Raises:
        ValueError: If provider_name is not registered
    """
    try:
        return PROVIDER_REGISTRY[provider_name]
    except KeyError:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Available providers: {', '.join(PROVIDER_REGISTRY)}"
        ) from None


def create_provider(
    provider_name: str, model_id: str, sample_rate: int = 16000
) -> TranscriptionProvider:
    """Instantiate a provider with a model id or model path (loads the model)."""
    return get_provider_class(provider_name)(model_id, sample_rate)


def get_all_available_models() -> list[ModelInfo]:
    """Models offered by every registered provider."""
    return [
        model
        for provider_class in PROVIDER_REGISTRY.values()
        for model in provider_class.get_available_models()
    ]


def is_model_downloaded(provider_name: str, model_id: str) -> bool:
    """Whether a known model is already in the local cache."""
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    return provider_class is not None and provider_class.is_downloaded(model_id)


def download_model_with_progress(
    provider_name: str,
    model_id: str,
    progress_callback: Callable[[str, int], None] | None = None
) -> str:
    """Download a model into the cache and return its directory."""
    return get_provider_class(provider_name).download_model(
        model_id, progress_callback=progress_callback)


__all__ = [
    "PROVIDER_REGISTRY",
    "VoskProvider",
    "create_provider",
    "download_model_with_progress",
    "get_all_available_models",
    "get_provider_class",
    "is_model_downloaded",
    "join_cjk_words",
]
