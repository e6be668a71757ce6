# file: itermbridge/itermbridge/terminal/types.py
"""
Data types shared by the session, tab and command execution layers.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


class _NotRequested:
    """Sentinel for an output capture that was never asked for."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_REQUESTED"

    def __bool__(self) -> bool:
        return False


NOT_REQUESTED = _NotRequested()


@dataclass
class SessionTabInfo:
    """The tab a client last focused inside its window."""
    window_id: str
    tab_index: int
    tab_name: Optional[str] = None


@dataclass
class ClientSession:
    """One logical client's terminal window."""
    client_id: str
    window_id: str
    working_path: Optional[str] = None
    current_tab: Optional[SessionTabInfo] = None


@dataclass
class TabRecord:
    """A tab as listed from a window; only the alias outlives a listing."""
    window_id: str
    index: int
    name: str
    session_id: str
    tty: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class ProcessMetrics:
    total_cpu_percent: float
    process_count: int = 1


@dataclass(frozen=True)
class ActiveProcess:
    """Foreground process found on a terminal device."""
    pid: int
    name: str
    metrics: ProcessMetrics


@dataclass(frozen=True)
class CommandExecutionResult:
    """
    Outcome of a single submitted command.

    captured_output is NOT_REQUESTED when no tail was asked for, None when
    the tail was asked for but could not be extracted, otherwise the text.
    """
    new_line_count: int
    execution_time_ms: int
    captured_output: Union[str, None, _NotRequested] = NOT_REQUESTED

    @property
    def output_requested(self) -> bool:
        return self.captured_output is not NOT_REQUESTED

    def __str__(self) -> str:
        summary = f"{self.new_line_count} lines were output after sending the command to the terminal."
        if self.captured_output is NOT_REQUESTED:
            return f"{summary} Read the last lines of terminal contents to orient yourself."
        if self.captured_output is None:
            return f"{summary} Output capture was requested but failed."
        return f"{summary}\n\nCaptured output:\n{self.captured_output}"


@dataclass(frozen=True)
class OperationResult:
    """Success flag plus a message; used where failures must not raise."""
    success: bool
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class WriteResult:
    """Caller-facing outcome of a write, including the timed-out case."""
    message: str
    timed_out: bool = False
    result: Optional[CommandExecutionResult] = None
    tab_index: Optional[int] = None
    notes: list = field(default_factory=list)

    def __str__(self) -> str:
        if not self.notes:
            return self.message
        return " ".join([self.message, *self.notes])
