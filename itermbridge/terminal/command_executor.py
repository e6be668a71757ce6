# file: itermbridge/itermbridge/terminal/command_executor.py
"""
Submits commands to an iTerm2 session and waits for them to finish.

iTerm2 gives no exit status and only a racy "is processing" flag, so
completion is decided in two phases:

  A. Poll the processing flag until it clears. A hard deadline; timing out
     here aborts the call.
  B. Poll the foreground process on the session's tty until there is none,
     or until its CPU usage has stayed under a threshold for a debounce
     window. Inspector failures count as idle.

After a short settle delay the scroll buffer is re-read and compared with
the buffer captured before submission.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from itermbridge.config import config
from itermbridge.terminal.applescript import encode_command
from itermbridge.terminal.control_channel import ITermControlChannel
from itermbridge.terminal.errors import CaptureFailedError, PhaseTimeoutError
from itermbridge.terminal.output_reader import TtyOutputReader, tail_lines
from itermbridge.terminal.process_inspector import ProcessActivityInspector
from itermbridge.terminal.types import CommandExecutionResult, NOT_REQUESTED

logger = logging.getLogger(__name__)

MIN_TIMEOUT_SECONDS = 1.0


@dataclass
class IdleDetectionSettings:
    """Tunable thresholds for completion detection."""
    processing_poll_interval: float = config.PROCESSING_POLL_INTERVAL
    idle_poll_interval: float = config.IDLE_POLL_INTERVAL
    idle_cpu_threshold: float = config.IDLE_CPU_THRESHOLD
    idle_debounce: float = config.IDLE_DEBOUNCE_SECONDS
    settle_delay: float = config.SETTLE_DELAY
    processing_budget_share: float = 0.25
    completion_budget_share: float = 0.70
    completion_remaining_share: float = 0.93
    min_completion_budget: float = 1.0


def clamp_timeout(timeout_seconds: Optional[float]) -> float:
    """Timeout in seconds, defaulted and clamped to the supported range."""
    try:
        value = float(timeout_seconds) if timeout_seconds is not None else 0.0
    except (TypeError, ValueError):
        value = 0.0
    if value <= 0:
        value = config.DEFAULT_TIMEOUT_SECONDS
    return min(max(value, MIN_TIMEOUT_SECONDS), config.MAX_TIMEOUT_SECONDS)


def _count_lines(buffer: str) -> int:
    return len(buffer.split("\n"))


class CommandExecutor:
    """Stateless: every call is an independent orchestration over the channel."""

    def __init__(self, channel: ITermControlChannel,
                 inspector: Optional[ProcessActivityInspector] = None,
                 settings: Optional[IdleDetectionSettings] = None):
        self._channel = channel
        self._inspector = inspector or ProcessActivityInspector()
        self._settings = settings or IdleDetectionSettings()
        self._reader = TtyOutputReader(channel)

    @property
    def settings(self) -> IdleDetectionSettings:
        return self._settings

    async def execute_command(self, window_id: str, command: str, timeout_seconds: Optional[float] = 30,
                              return_output_lines: int = 0,
                              tab_index: Optional[int] = None) -> CommandExecutionResult:
        """
        Writes `command` into the session, presses enter and waits for completion.

        Args:
            window_id: The iTerm2 window to target.
            command: Text to submit; may span several lines.
            timeout_seconds: Overall budget, clamped to [1, 120] seconds.
            return_output_lines: When positive, the last N+1 buffer lines are returned.
            tab_index: 0-based tab; the window's current tab when None.

        Raises:
            PhaseTimeoutError: If either completion phase exceeds its budget.
            InvalidWindowError: If the window or tab no longer exists.
            ChannelError: For any other AppleScript failure.
        """
        settings = self._settings
        timeout = clamp_timeout(timeout_seconds)
        start = time.monotonic()

        before_buffer = await self._reader.retrieve_buffer(window_id, tab_index)
        before_lines = _count_lines(before_buffer)

        await self._channel.write_text(window_id, encode_command(command), tab_index, press_enter=True)
        logger.debug(f"Submitted command to window {window_id} (tab {tab_index}): {command!r}")

        processing_budget = timeout * settings.processing_budget_share
        try:
            await asyncio.wait_for(self._wait_for_processing_complete(window_id, tab_index), processing_budget)
        except asyncio.TimeoutError:
            raise PhaseTimeoutError(
                "processing",
                processing_budget,
                f"Command timed out waiting for processing to complete ({processing_budget:g}s)",
            )

        elapsed = time.monotonic() - start
        remaining = max(timeout - elapsed, settings.min_completion_budget)
        completion_budget = max(
            min(remaining * settings.completion_remaining_share, timeout * settings.completion_budget_share),
            settings.min_completion_budget,
        )

        tty_path = await self._channel.get_tty(window_id, tab_index)
        try:
            await asyncio.wait_for(self._wait_for_user_input_ready(tty_path), completion_budget)
        except asyncio.TimeoutError:
            raise PhaseTimeoutError(
                "completion",
                completion_budget,
                f"Command timed out waiting for completion ({completion_budget:g}s of {timeout:g}s total timeout exceeded)",
            )

        await asyncio.sleep(settings.settle_delay)

        after_buffer = await self._reader.retrieve_buffer(window_id, tab_index)
        new_line_count = max(_count_lines(after_buffer) - before_lines, 0)
        execution_time_ms = int((time.monotonic() - start) * 1000)

        captured = NOT_REQUESTED
        if return_output_lines and return_output_lines > 0:
            try:
                captured = self._capture_tail(after_buffer, return_output_lines)
            except CaptureFailedError as e:
                logger.warning(f"Failed to capture output lines: {e}")
                captured = None

        logger.info(
            f"Command in window {window_id} completed in {execution_time_ms}ms with {new_line_count} new lines"
        )
        return CommandExecutionResult(
            new_line_count=new_line_count,
            execution_time_ms=execution_time_ms,
            captured_output=captured,
        )

    def _capture_tail(self, buffer: str, lines: int) -> str:
        try:
            return tail_lines(buffer, int(lines))
        except (TypeError, ValueError, AttributeError) as e:
            raise CaptureFailedError(str(e)) from e

    async def _wait_for_processing_complete(self, window_id: str, tab_index: Optional[int]) -> None:
        while await self._channel.is_processing(window_id, tab_index):
            await asyncio.sleep(self._settings.processing_poll_interval)

    async def _wait_for_user_input_ready(self, tty_path: str) -> None:
        """Returns once the tty's foreground is gone or has been quiet long enough."""
        settings = self._settings
        below_threshold = 0.0

        while True:
            try:
                active = await self._inspector.get_active_process(tty_path)
            except Exception as e:
                # Treated as idle so a monitoring failure cannot hang the call.
                logger.warning(f"Process inspection failed for {tty_path}, treating as idle: {e}")
                return

            if active is None:
                return

            if active.metrics.total_cpu_percent < settings.idle_cpu_threshold:
                below_threshold += settings.idle_poll_interval
                if below_threshold >= settings.idle_debounce:
                    logger.debug(f"Foreground process {active.name} ({active.pid}) on {tty_path} is idle")
                    return
            else:
                below_threshold = 0.0

            await asyncio.sleep(settings.idle_poll_interval)
