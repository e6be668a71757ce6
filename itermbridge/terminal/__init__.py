"""
Terminal control package.

Drives iTerm2 windows and tabs through AppleScript: per-client session
management, tab aliases, and command submission with completion detection.
"""

from itermbridge.terminal.types import (
    ActiveProcess,
    ClientSession,
    CommandExecutionResult,
    NOT_REQUESTED,
    OperationResult,
    ProcessMetrics,
    SessionTabInfo,
    TabRecord,
    WriteResult,
)
from itermbridge.terminal.errors import (
    CaptureFailedError,
    ChannelError,
    CreationFailedError,
    InvalidWindowError,
    PhaseTimeoutError,
    ProcessInspectionError,
    SessionNotFoundError,
    TabNotFoundError,
    TerminalControlError,
)
from itermbridge.terminal.control_channel import ITermControlChannel
from itermbridge.terminal.process_inspector import ProcessActivityInspector
from itermbridge.terminal.output_reader import TtyOutputReader
from itermbridge.terminal.tab_registry import TabRegistry
from itermbridge.terminal.session_registry import SessionRegistry
from itermbridge.terminal.command_executor import CommandExecutor, IdleDetectionSettings
from itermbridge.terminal.terminal_service import TerminalService

__all__ = [
    # Types
    "ActiveProcess",
    "ClientSession",
    "CommandExecutionResult",
    "NOT_REQUESTED",
    "OperationResult",
    "ProcessMetrics",
    "SessionTabInfo",
    "TabRecord",
    "WriteResult",
    # Errors
    "CaptureFailedError",
    "ChannelError",
    "CreationFailedError",
    "InvalidWindowError",
    "PhaseTimeoutError",
    "ProcessInspectionError",
    "SessionNotFoundError",
    "TabNotFoundError",
    "TerminalControlError",
    # Components
    "ITermControlChannel",
    "ProcessActivityInspector",
    "TtyOutputReader",
    "TabRegistry",
    "SessionRegistry",
    "CommandExecutor",
    "IdleDetectionSettings",
    "TerminalService",
]
