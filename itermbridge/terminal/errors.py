"""
Exceptions raised by the terminal control layer.

Existence checks never raise these; creation and execution paths raise them
with enough context (client id, window id, tab identifier) to act on.
"""

import re
from typing import Optional


class TerminalControlError(Exception):
    """Base exception class for terminal control errors."""
    pass


class CreationFailedError(TerminalControlError):
    """Raised when iTerm2 could not produce a window or tab."""


class ChannelError(TerminalControlError):
    """Raised when the AppleScript bridge reports a failure."""


class InvalidWindowError(ChannelError):
    """Raised when the targeted window or tab no longer exists."""

    def __init__(self, window_id: str, detail: Optional[str] = None):
        self.window_id = window_id
        self.detail = detail
        message = f"Invalid window ID {window_id}: window may have been closed or doesn't exist"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PhaseTimeoutError(TerminalControlError):
    """Raised when a completion-detection phase exceeds its budget."""

    def __init__(self, phase: str, budget_seconds: float, message: str):
        self.phase = phase
        self.budget_seconds = budget_seconds
        super().__init__(message)


class TabNotFoundError(TerminalControlError):
    """Raised when a tab identifier does not resolve to an index."""

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"Tab not found: {identifier}")


class SessionNotFoundError(TerminalControlError):
    """Raised when a client has no registered session."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"No session found for client {client_id}")


class CaptureFailedError(TerminalControlError):
    """Raised when the requested output tail cannot be extracted."""


class ProcessInspectionError(TerminalControlError):
    """Raised when the processes attached to a tty cannot be inspected."""


# Fragments of osascript error text meaning the window/tab reference is dead.
_INVALID_WINDOW_PATTERNS = re.compile(
    r"Invalid key form|doesn[’']t understand|Can[’']t get (window|tab)|Invalid index",
)


def classify_channel_error(message: str, window_id: Optional[str] = None) -> ChannelError:
    """Maps raw osascript error text onto InvalidWindowError or ChannelError."""
    if window_id is not None and _INVALID_WINDOW_PATTERNS.search(message):
        return InvalidWindowError(window_id, detail=message.strip())
    if "got an error" in message:
        return ChannelError(f"iTerm2 AppleScript error: {message.strip()}")
    return ChannelError(message.strip())
