# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Threaded wrapper for LineTracker that serializes all tracker calls.

LineTracker has no internal locking. This wrapper gives it a single worker
thread fed by one queue, so transcript snapshots from the recognizer and
navigation requests from the UI never run concurrently.
"""

import logging
import queue
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .tracker import DisplayLines, LineTracker, TrackerPosition

logger = logging.getLogger(__name__)


@dataclass
class TrackingRequest:
    """A request to update tracking position from a transcript snapshot."""
    transcription: str
    timestamp: float
    request_id: int


@dataclass
class TrackingResult:
    """Result from a tracking update or control command."""
    position: TrackerPosition
    display: DisplayLines
    line_count: int
    request_id: int
    processing_time: float


@dataclass
class ControlCommand:
    """Control command for the worker thread."""
    # 'configure', 'reset', 'jump_to_line', 'advance_line',
    # 'retreat_line', 'update_display_settings', 'shutdown'
    command: str
    param: Any = None


class ThreadedTracker:
    """
    Thread-safe wrapper around LineTracker.

    Features:
    - Non-blocking submit_transcription() that queues snapshots
    - Throttling of snapshot updates (max 1 per 50ms by default)
    - Backpressure handling (older snapshots are dropped, since every
      snapshot is complete on its own)
    - Cached latest result for immediate access

    Usage:
        tracker = ThreadedTracker(lines)
        tracker.submit_transcription(text)
        result = tracker.get_latest_result(timeout=0.1)
        if result:
            send_to_ui(result.position)
    """

    def __init__(
        self,
        lines: Sequence[str] | None = None,
        update_throttle_ms: int = 50,
        max_queue_size: int = 10,
        past_lines: int = 1,
        future_lines: int = 1,
        **tracker_kwargs: Any
    ):
        """
        Initialize the threaded tracker.

        Args:
            lines: Script lines to track (may be configured later)
            update_throttle_ms: Minimum time between snapshot updates
            max_queue_size: Maximum queue size before backpressure kicks in
            past_lines: Lines before the current one included in results
            future_lines: Lines after the current one included in results
            **tracker_kwargs: Passed to LineTracker
        """
        self.lines: list[str] = list(lines) if lines is not None else []
        self.tracker_kwargs = tracker_kwargs
        self.update_throttle_ms = update_throttle_ms
        self.max_queue_size = max_queue_size

        self.request_queue: queue.Queue[TrackingRequest | ControlCommand] = queue.Queue(
            maxsize=max_queue_size
        )
        self.result_queue: queue.Queue[TrackingResult] = queue.Queue(
            maxsize=max_queue_size
        )

        self.worker_thread: threading.Thread | None = None
        self.shutdown_flag = threading.Event()
        self.started = threading.Event()

        # Cached state (thread-safe with lock)
        self.state_lock = threading.Lock()
        self.latest_result: TrackingResult | None = None
        self.request_counter = 0
        self.last_update_time = 0.0

        self.past_lines = past_lines
        self.future_lines = future_lines

        self._start_worker()

        self.started.wait(timeout=5.0)
        if not self.started.is_set():
            raise RuntimeError("Worker thread failed to start")

    def _start_worker(self) -> None:
        """Start the worker thread."""
        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            name="LineTrackerWorker",
            daemon=True
        )
        self.worker_thread.start()

    def _worker_loop(self) -> None:
        """Main loop for the worker thread."""
        try:
            # The tracker lives entirely on the worker thread
            tracker = LineTracker(self.lines, **self.tracker_kwargs)

            logger.info("ThreadedTracker worker started")
            self.started.set()

            while not self.shutdown_flag.is_set():
                try:
                    item = self.request_queue.get(timeout=0.1)

                    if isinstance(item, ControlCommand):
                        self._handle_control_command(tracker, item)
                    elif isinstance(item, TrackingRequest):
                        self._handle_tracking_request(tracker, item)

                except queue.Empty:
                    continue
                except Exception as e:
                    logger.error("Error in worker loop: %s", e, exc_info=True)

        finally:
            logger.info("ThreadedTracker worker stopped")

    def _handle_control_command(self, tracker: LineTracker, cmd: ControlCommand) -> None:
        """Handle control commands."""
        start_time = time.time()

        if cmd.command == 'configure':
            tracker.configure(cmd.param)
            logger.debug("Tracker configured with %d lines", tracker.line_count)

        elif cmd.command == 'reset':
            tracker.reset()
            logger.debug("Tracker reset")

        elif cmd.command == 'jump_to_line':
            tracker.jump_to_line(cmd.param)
            logger.debug("Tracker jumped to line %d", tracker.current_line_index)

        elif cmd.command == 'advance_line':
            tracker.advance_line()

        elif cmd.command == 'retreat_line':
            tracker.retreat_line()

        elif cmd.command == 'update_display_settings':
            past_lines, future_lines = cmd.param
            with self.state_lock:
                self.past_lines = past_lines
                self.future_lines = future_lines
            logger.debug("Display settings updated: past=%d, future=%d",
                         past_lines, future_lines)

        elif cmd.command == 'shutdown':
            self.shutdown_flag.set()
            return

        else:
            logger.warning("Unknown tracker command: %s", cmd.command)
            return

        self._publish(tracker, request_id=0, start_time=start_time)

    def _handle_tracking_request(self, tracker: LineTracker, req: TrackingRequest) -> None:
        """Handle a tracking update request."""
        start_time = time.time()
        tracker.update(req.transcription)
        self._publish(tracker, request_id=req.request_id, start_time=start_time)

    def _publish(self, tracker: LineTracker, request_id: int, start_time: float) -> None:
        """Cache the tracker's state and push it to the result queue."""
        with self.state_lock:
            past_lines = self.past_lines
            future_lines = self.future_lines

        result = TrackingResult(
            position=tracker.current_position,
            display=tracker.get_display_lines(
                past_lines=past_lines, future_lines=future_lines),
            line_count=tracker.line_count,
            request_id=request_id,
            processing_time=time.time() - start_time
        )

        with self.state_lock:
            self.latest_result = result

        # Put result in queue (non-blocking to avoid deadlock)
        try:
            self.result_queue.put_nowait(result)
        except queue.Full:
            # Drop oldest result and try again
            try:
                self.result_queue.get_nowait()
                self.result_queue.put_nowait(result)
            except (queue.Empty, queue.Full):
                pass

    def submit_transcription(self, transcription: str, force: bool = False) -> bool:
        """
        Submit a transcript snapshot for tracking (non-blocking).

        Args:
            transcription: Full text recognized so far
            force: Bypass throttling (e.g. for final results)

        Returns:
            True if the snapshot was queued, False if it was dropped
        """
        current_time = time.time()

        if not force:
            time_since_last = (current_time - self.last_update_time) * 1000
            if time_since_last < self.update_throttle_ms:
                return False
        self.last_update_time = current_time

        with self.state_lock:
            self.request_counter += 1
            request_id = self.request_counter

        request = TrackingRequest(
            transcription=transcription,
            timestamp=current_time,
            request_id=request_id
        )

        try:
            self.request_queue.put_nowait(request)
            return True
        except queue.Full:
            pass

        # Queue is full - drop older snapshots, keep control commands
        dropped = 0
        kept: list[TrackingRequest | ControlCommand] = []
        while True:
            try:
                old_item = self.request_queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(old_item, TrackingRequest):
                dropped += 1
            else:
                kept.append(old_item)

        for item in kept:
            try:
                self.request_queue.put_nowait(item)
            except queue.Full:
                logger.warning("Backpressure: dropping command %s", item)

        try:
            self.request_queue.put_nowait(request)
            logger.warning("Backpressure: dropped %d old snapshots", dropped)
            return True
        except queue.Full:
            logger.warning("Backpressure: dropping current snapshot")
            return False

    def get_latest_result(self, timeout: float = 0) -> TrackingResult | None:
        """
        Get the next tracking result from the queue.

        Args:
            timeout: How long to wait for a result (0 = don't wait)

        Returns:
            Result or None if no result available
        """
        try:
            if timeout > 0:
                return self.result_queue.get(timeout=timeout)
            return self.result_queue.get_nowait()
        except queue.Empty:
            return None

    def get_cached_result(self) -> TrackingResult | None:
        """Get the cached latest result without consuming from queue."""
        with self.state_lock:
            return self.latest_result

    def _send_command(self, command: str, param: Any = None) -> None:
        """Queue a control command."""
        try:
            self.request_queue.put(ControlCommand(command=command, param=param), timeout=1.0)
        except queue.Full:
            logger.warning("Failed to queue %s command (queue full)", command)

    def configure(self, lines: Sequence[str]) -> None:
        """Replace the script and restart from the first line."""
        self.lines = list(lines)
        self._send_command('configure', list(lines))

    def reset(self) -> None:
        """Reset tracker to the beginning."""
        self._send_command('reset')

    def jump_to_line(self, line_index: int) -> None:
        """Jump to the start of a line (clamped to the script)."""
        self._send_command('jump_to_line', line_index)

    def advance_line(self) -> None:
        """Move to the next line."""
        self._send_command('advance_line')

    def retreat_line(self) -> None:
        """Move to the previous line."""
        self._send_command('retreat_line')

    def update_display_settings(self, past_lines: int, future_lines: int) -> None:
        """Update how many surrounding lines results include."""
        with self.state_lock:
            self.past_lines = past_lines
            self.future_lines = future_lines
        self._send_command('update_display_settings', (past_lines, future_lines))

    def shutdown(self) -> None:
        """Shutdown the worker thread."""
        try:
            self.request_queue.put(ControlCommand(command='shutdown'), timeout=1.0)
        except queue.Full:
            pass

        self.shutdown_flag.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=2.0)

    def __del__(self) -> None:
        """Cleanup on deletion."""
        self.shutdown()
