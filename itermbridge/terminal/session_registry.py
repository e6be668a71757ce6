# file: itermbridge/itermbridge/terminal/session_registry.py
"""
Maps logical clients and project paths onto iTerm2 windows.

Each client gets its own window so that clients never type into each
other's shells. A client can be addressed by an explicit id or by a
working-directory path, from which a stable id is derived.
"""

import hashlib
import logging
import os
from typing import Dict, List, Optional, Sequence, Union

from itermbridge.terminal.control_channel import ITermControlChannel
from itermbridge.terminal.errors import (
    ChannelError,
    CreationFailedError,
    SessionNotFoundError,
    TerminalControlError,
)
from itermbridge.terminal.tab_registry import (
    TabIdentifier,
    TabRegistry,
    parse_numeric_identifier,
)
from itermbridge.terminal.types import (
    ClientSession,
    OperationResult,
    SessionTabInfo,
    TabRecord,
)

logger = logging.getLogger(__name__)

CLOSE_ALL_TABS = "all"


def normalize_path(path: str) -> str:
    """Absolute path with `.`, `..` and trailing separators resolved."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(path)))


class SessionRegistry:
    """
    Owns the client → window table and the path → client index.

    Existence checks (validate_window, get_active_window_id) never raise.
    Creation raises CreationFailedError. Ending a session never raises and
    always drops local state.
    """

    def __init__(self, channel: Optional[ITermControlChannel] = None,
                 tab_registry: Optional[TabRegistry] = None):
        self._channel = channel or ITermControlChannel()
        self._tabs = tab_registry or TabRegistry(self._channel)
        self._sessions: Dict[str, ClientSession] = {}
        self._path_index: Dict[str, str] = {}

    @property
    def tab_registry(self) -> TabRegistry:
        return self._tabs

    # Identity

    def get_client_id_from_path(self, path: str) -> str:
        normalized = normalize_path(path)
        digest = hashlib.md5(normalized.encode("utf-8")).hexdigest()[:8]
        return f"path_{digest}"

    def find_session_by_path(self, path: str) -> Optional[str]:
        return self._path_index.get(normalize_path(path))

    def get_window_id(self, client_id: str) -> Optional[str]:
        session = self._sessions.get(client_id)
        return session.window_id if session else None

    def get_session_path(self, client_id: str) -> Optional[str]:
        session = self._sessions.get(client_id)
        return session.working_path if session else None

    def get_session(self, client_id: str) -> Optional[ClientSession]:
        return self._sessions.get(client_id)

    def has_session(self, client_id: str) -> bool:
        return client_id in self._sessions

    def get_active_clients(self) -> List[str]:
        return list(self._sessions.keys())

    # Window lifecycle

    async def create_session(self, client_id: str, working_path: Optional[str] = None) -> str:
        """
        Opens a new window for the client.

        The working path is recorded for later lookups only; the shell's
        directory is left untouched.
        """
        try:
            window_id = (await self._channel.create_window()).strip()
        except ChannelError as e:
            raise CreationFailedError(f"Failed to create iTerm2 window for client {client_id}: {e}") from e
        if not window_id:
            raise CreationFailedError(
                f"Failed to create iTerm2 window for client {client_id}: no window ID returned"
            )

        normalized = normalize_path(working_path) if working_path else None
        self._bind(client_id, window_id, normalized)

        if normalized:
            logger.info(f"Created session for client {client_id} in window {window_id} associated with path {normalized}")
        else:
            logger.info(f"Created session for client {client_id} in window {window_id}")
        return window_id

    def _bind(self, client_id: str, window_id: str, working_path: Optional[str]) -> None:
        previous = self._sessions.get(client_id)
        if previous and previous.working_path and previous.working_path != working_path:
            self._path_index.pop(previous.working_path, None)

        if working_path:
            other_client = self._path_index.get(working_path)
            if other_client and other_client != client_id:
                # A path maps to exactly one client.
                other = self._sessions.get(other_client)
                if other:
                    other.working_path = None
                logger.warning(f"Path {working_path} moved from client {other_client} to client {client_id}")
            self._path_index[working_path] = client_id

        self._sessions[client_id] = ClientSession(
            client_id=client_id,
            window_id=window_id,
            working_path=working_path,
        )

    def _forget(self, client_id: str) -> Optional[ClientSession]:
        session = self._sessions.pop(client_id, None)
        if session is None:
            return None
        if session.working_path and self._path_index.get(session.working_path) == client_id:
            del self._path_index[session.working_path]
        self._tabs.clear_window_aliases(session.window_id)
        return session

    async def validate_window(self, window_id: str) -> bool:
        try:
            return await self._channel.window_exists(window_id)
        except Exception as e:
            logger.debug(f"Window {window_id} failed validation: {e}")
            return False

    async def get_active_window_id(self) -> Optional[str]:
        try:
            window_id = await self._channel.get_active_window_id()
        except Exception as e:
            logger.debug(f"No active iTerm2 window available: {e}")
            return None
        return window_id.strip() or None

    async def refresh_session(self, client_id: str) -> str:
        """Returns the client's window, replacing it first if it has gone stale."""
        session = self._sessions.get(client_id)
        working_path = session.working_path if session else None

        if session:
            if await self.validate_window(session.window_id):
                return session.window_id
            logger.info(f"Window {session.window_id} for client {client_id} is no longer valid, creating new session")
            self._tabs.clear_window_aliases(session.window_id)
            session.current_tab = None

        # Binding the new window replaces the stale entry in place.
        return await self.create_session(client_id, working_path)

    async def focus_or_create_session_for_path(self, path: str) -> str:
        normalized = normalize_path(path)
        existing_client = self.find_session_by_path(normalized)

        if existing_client:
            window_id = self.get_window_id(existing_client)
            if window_id and await self.validate_window(window_id):
                logger.info(f"Found existing session for path {normalized}, focusing window {window_id}")
                return window_id
            logger.info(f"Existing session for path {normalized} is stale, will create new session")
            self._forget(existing_client)

        client_id = self.get_client_id_from_path(normalized)
        logger.info(f"Creating new session for path {normalized} with client ID {client_id}")
        return await self.create_session(client_id, normalized)

    async def end_session(self, client_id: str) -> OperationResult:
        session = self._sessions.get(client_id)
        if session is None:
            logger.info(f"No session found for client {client_id}.")
            return OperationResult(False, f"No session found for client {client_id}")

        window_id = session.window_id
        try:
            await self._channel.close_window(window_id)
        except Exception as e:
            # The window may have been closed by hand; local state goes regardless.
            logger.error(f"Could not close window for client {client_id}: {e}")
            self._forget(client_id)
            return OperationResult(False, f"Could not close window {window_id} for client {client_id}: {e}")

        self._forget(client_id)
        logger.info(f"Ended session for client {client_id}, closed window {window_id}")
        return OperationResult(True, f"Ended session for client {client_id} (window {window_id})")

    async def end_session_by_path(self, path: str) -> OperationResult:
        normalized = normalize_path(path)
        client_id = self.find_session_by_path(normalized)
        if not client_id:
            return OperationResult(False, f"No active session found for path: {normalized}")

        window_id = self.get_window_id(client_id)
        result = await self.end_session(client_id)
        if not result.success:
            return OperationResult(False, f"Failed to close session for path {normalized}: {result.message}")
        suffix = f" (window {window_id})" if window_id else ""
        return OperationResult(True, f"Successfully closed session for path: {normalized}{suffix}")

    async def end_all_sessions(self) -> List[OperationResult]:
        results = []
        for client_id in self.get_active_clients():
            results.append(await self.end_session(client_id))
        return results

    # Tabs

    def get_session_tab_info(self, client_id: str) -> Optional[SessionTabInfo]:
        session = self._sessions.get(client_id)
        return session.current_tab if session else None

    def set_session_tab_info(self, client_id: str, tab_info: Optional[SessionTabInfo]) -> None:
        session = self._require_session(client_id)
        session.current_tab = tab_info

    def _require_session(self, client_id: str) -> ClientSession:
        session = self._sessions.get(client_id)
        if session is None:
            raise SessionNotFoundError(client_id)
        return session

    async def focus_or_create_tab(self, client_id: str, tab_identifier: Optional[TabIdentifier] = None) -> int:
        """
        Selects a tab in the client's window, creating a named tab if needed.

        Without an identifier the client's last-focused tab is reused, or tab 0.
        """
        session = self._require_session(client_id)
        window_id = session.window_id

        if tab_identifier is None:
            tab_index = session.current_tab.tab_index if session.current_tab else 0
            await self._tabs.select_tab(window_id, tab_index)
            if session.current_tab is None:
                session.current_tab = SessionTabInfo(window_id=window_id, tab_index=0)
            return tab_index

        tab_name = None
        tab_index = parse_numeric_identifier(tab_identifier)
        if tab_index is None:
            tab_index = self._tabs.get_tab_index_by_alias(window_id, tab_identifier)
        if tab_index is None:
            tab_name = str(tab_identifier)
            tab_index = await self._tabs.ensure_tab(window_id, tab_name)

        await self._tabs.select_tab(window_id, tab_index)
        session.current_tab = SessionTabInfo(window_id=window_id, tab_index=tab_index, tab_name=tab_name)
        return tab_index

    async def list_session_tabs(self, client_id: str) -> List[TabRecord]:
        session = self._require_session(client_id)
        return await self._tabs.list_tabs(session.window_id)

    async def close_session_tab(self, client_id: str, tab_identifier: TabIdentifier) -> int:
        session = self._require_session(client_id)
        tab_index = await self._tabs.resolve_tab_index(session.window_id, tab_identifier)
        await self._close_tab_index(session, tab_index)
        return tab_index

    async def _close_tab_index(self, session: ClientSession, tab_index: int) -> None:
        window_id = session.window_id
        await self._tabs.close_tab(window_id, tab_index)

        current = session.current_tab
        if current is None:
            return
        if current.tab_index > tab_index:
            session.current_tab = SessionTabInfo(window_id, current.tab_index - 1, current.tab_name)
        elif current.tab_index == tab_index:
            try:
                remaining = await self._tabs.list_tabs(window_id)
            except TerminalControlError:
                remaining = []
            session.current_tab = SessionTabInfo(window_id, 0) if remaining else None

    async def get_session_tab_tty(self, client_id: str) -> str:
        session = self._require_session(client_id)
        if session.current_tab is None:
            return await self._channel.get_tty(session.window_id)
        return await self._tabs.get_tab_tty(session.current_tab.window_id, session.current_tab.tab_index)

    async def set_tab_alias(self, client_id: str, tab_identifier: TabIdentifier, alias: str) -> int:
        session = self._require_session(client_id)
        tab_index = await self._tabs.resolve_tab_index(session.window_id, tab_identifier)
        self._tabs.set_tab_alias(session.window_id, tab_index, alias)
        return tab_index

    async def close_tabs(self, client_id: str, tabs: Union[str, Sequence[TabIdentifier]]) -> OperationResult:
        """Closes the given tabs, or the whole window when tabs is "all"."""
        session = self._sessions.get(client_id)
        if session is None:
            return OperationResult(False, f"No session found for client {client_id}")

        if isinstance(tabs, str) and tabs.strip().lower() == CLOSE_ALL_TABS:
            result = await self.end_session(client_id)
            if result.success:
                return OperationResult(True, f"Successfully closed entire window for client {client_id}")
            return OperationResult(False, f"Failed to close window: {result.message}")

        identifiers = [tabs] if isinstance(tabs, (str, int)) else list(tabs)
        resolved: Dict[int, str] = {}
        failed: List[str] = []

        # Resolve everything before closing anything; indices shift on close.
        for identifier in identifiers:
            try:
                tab_index = await self._tabs.resolve_tab_index(session.window_id, identifier)
            except TerminalControlError as e:
                failed.append(f"{identifier}: {e}")
                continue
            resolved.setdefault(tab_index, str(identifier))

        closed: List[str] = []
        for tab_index in sorted(resolved, reverse=True):
            identifier = resolved[tab_index]
            try:
                await self._close_tab_index(session, tab_index)
                closed.append(identifier)
            except TerminalControlError as e:
                failed.append(f"{identifier}: {e}")

        closed.reverse()
        parts = []
        if closed:
            parts.append(f"Closed tabs: {', '.join(closed)}")
        if failed:
            parts.append(f"Failed to close: {'; '.join(failed)}")
        return OperationResult(bool(closed), ". ".join(parts) or "No tabs were processed")

    async def close_tabs_by_path(self, path: str, tabs: Union[str, Sequence[TabIdentifier]]) -> OperationResult:
        normalized = normalize_path(path)
        client_id = self.find_session_by_path(normalized)
        if not client_id:
            return OperationResult(False, f"No active session found for path: {normalized}")
        return await self.close_tabs(client_id, tabs)
