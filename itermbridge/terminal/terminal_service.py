# file: itermbridge/itermbridge/terminal/terminal_service.py
"""
Caller-facing terminal operations.

Resolves which window a request targets (the default client or a
path-addressed project session), optionally focuses a tab, and hands off
to the command executor or output reader.
"""

import logging
from typing import Optional, Sequence, Tuple, Union

from itermbridge.config import config
from itermbridge.terminal.command_executor import CommandExecutor, clamp_timeout
from itermbridge.terminal.control_channel import ITermControlChannel
from itermbridge.terminal.errors import (
    CreationFailedError,
    PhaseTimeoutError,
    TerminalControlError,
)
from itermbridge.terminal.output_reader import TtyOutputReader
from itermbridge.terminal.process_inspector import ProcessActivityInspector
from itermbridge.terminal.session_registry import SessionRegistry
from itermbridge.terminal.tab_registry import TabIdentifier, parse_numeric_identifier
from itermbridge.terminal.types import OperationResult, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "default"


def _describe_tab(tab: TabIdentifier) -> str:
    return f"index {tab}" if isinstance(tab, int) else f'"{tab}"'


class TerminalService:
    """Entry point for transports; owns one session registry per process."""

    def __init__(self, channel: Optional[ITermControlChannel] = None,
                 registry: Optional[SessionRegistry] = None,
                 executor: Optional[CommandExecutor] = None,
                 inspector: Optional[ProcessActivityInspector] = None):
        self._channel = channel or ITermControlChannel()
        self._registry = registry or SessionRegistry(self._channel)
        self._executor = executor or CommandExecutor(self._channel, inspector)
        self._reader = TtyOutputReader(self._channel)

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def _resolve_window(self, session_root_path: Optional[str]) -> Tuple[str, str, bool]:
        """Returns (client_id, window_id, managed) for a request.

        `managed` is False when the default client had to borrow the active
        window; the registry knows nothing about that window's tabs.
        """
        if session_root_path:
            # No active-window fallback here: a named project must not land in an unrelated window.
            window_id = await self._registry.focus_or_create_session_for_path(session_root_path)
            client_id = self._registry.find_session_by_path(session_root_path)
            return client_id, window_id, True

        try:
            window_id = await self._registry.refresh_session(DEFAULT_CLIENT_ID)
        except CreationFailedError as e:
            active_window_id = await self._registry.get_active_window_id()
            if not active_window_id:
                raise CreationFailedError(f"Failed to create or find valid iTerm2 window: {e}") from e
            logger.warning(f"Using active window {active_window_id} as fallback for client {DEFAULT_CLIENT_ID}")
            return DEFAULT_CLIENT_ID, active_window_id, False
        return DEFAULT_CLIENT_ID, window_id, True

    async def _resolve_tab(self, client_id: str, tab: Optional[TabIdentifier], managed: bool) -> Optional[int]:
        if tab is None:
            if not managed:
                return None
            # No tab given: keep typing into the tab the client last focused.
            tab_info = self._registry.get_session_tab_info(client_id)
            return tab_info.tab_index if tab_info else None
        if not managed:
            # Fallback window: the registry does not own it, so only numeric tabs make sense.
            index = parse_numeric_identifier(tab)
            if index is None:
                raise TerminalControlError(f"Cannot resolve tab {_describe_tab(tab)} without a managed session")
            return index
        return await self._registry.focus_or_create_tab(client_id, tab)

    async def write(self, command: str, timeout: Optional[float] = None, return_output_lines: int = 0,
                    tab: Optional[TabIdentifier] = None, tab_alias: Optional[str] = None,
                    session_root_path: Optional[str] = None) -> WriteResult:
        timeout_seconds = clamp_timeout(timeout)
        client_id, window_id, managed = await self._resolve_window(session_root_path)

        try:
            tab_index = await self._resolve_tab(client_id, tab, managed)
        except TerminalControlError as e:
            return WriteResult(message=f"Failed to focus or create tab: {e}")

        try:
            result = await self._executor.execute_command(
                window_id, command, timeout_seconds, max(int(return_output_lines or 0), 0), tab_index
            )
        except PhaseTimeoutError as e:
            logger.warning(f"Command timed out in window {window_id}: {e}")
            return WriteResult(
                message=(
                    f"Command timed out after {timeout_seconds:g} seconds. The command may still be running "
                    f"in the background. Use read_terminal_output to check the current terminal state."
                ),
                timed_out=True,
                tab_index=tab_index,
            )

        message = f"Command completed within {timeout_seconds:g}s timeout. {result}"
        if tab is not None:
            message += f" (executed in tab {_describe_tab(tab)})"
        message += " Never assume that the command was executed or that it was successful."
        write_result = WriteResult(message=message, result=result, tab_index=tab_index)

        if tab_alias and not managed:
            write_result.notes.append(
                f'Warning: Failed to set tab alias "{tab_alias}": window {window_id} is not a managed session'
            )
        elif tab_alias:
            try:
                alias_target = tab_index if tab_index is not None else 0
                await self._registry.set_tab_alias(client_id, alias_target, tab_alias)
                write_result.notes.append(f'Tab alias "{tab_alias}" set for current tab.')
            except TerminalControlError as e:
                write_result.notes.append(f'Warning: Failed to set tab alias "{tab_alias}": {e}')
        return write_result

    async def read(self, lines_of_output: Optional[int] = None, tab: Optional[TabIdentifier] = None,
                   session_root_path: Optional[str] = None) -> str:
        lines = int(lines_of_output) if lines_of_output else config.DEFAULT_READ_LINES
        client_id, window_id, managed = await self._resolve_window(session_root_path)
        tab_index = await self._resolve_tab(client_id, tab, managed)
        return await self._reader.read(window_id, lines, tab_index)

    async def focus_terminal_window(self, session_root_path: Optional[str] = None,
                                    tab: Optional[TabIdentifier] = None) -> str:
        client_id, window_id, managed = await self._resolve_window(session_root_path)

        if tab is not None:
            try:
                tab_index = await self._resolve_tab(client_id, tab, managed)
            except TerminalControlError as e:
                return f"Failed to focus or create tab: {e}"
            response = f"Focused iTerm window {window_id}, tab {_describe_tab(tab)} (index {tab_index})"
        elif not managed:
            response = f"Focused iTerm window {window_id}"
        else:
            try:
                tabs = await self._registry.list_session_tabs(client_id)
                listing = ", ".join(
                    f"{t.index}: {t.name}" + (f" (alias: {t.alias})" if t.alias else "") for t in tabs
                )
                response = f"Focused iTerm window {window_id}. Available tabs: [{listing}]"
            except TerminalControlError:
                response = f"Focused iTerm window {window_id}"

        try:
            await self._channel.select_window(window_id)
        except TerminalControlError as e:
            return f"Failed to focus window: {e}"

        if session_root_path:
            response += f" for path {session_root_path}"
        return response

    async def focus_or_create_session_for_path(self, path: str) -> str:
        return await self._registry.focus_or_create_session_for_path(path)

    async def end_session_by_path(self, path: str) -> OperationResult:
        return await self._registry.end_session_by_path(path)

    async def close_tabs(self, session_root_path: str,
                         tabs: Union[str, Sequence[TabIdentifier]]) -> OperationResult:
        if not session_root_path:
            return OperationResult(False, "Error: session_root_path parameter is required for close_tabs")
        if tabs is None or (not isinstance(tabs, int) and len(tabs) == 0):
            return OperationResult(False, "Error: tabs parameter is required for close_tabs")
        return await self._registry.close_tabs_by_path(session_root_path, tabs)

    async def shutdown(self) -> None:
        logger.info("Shutting down and cleaning up sessions...")
        await self._registry.end_all_sessions()
