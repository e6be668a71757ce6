# file: itermbridge/itermbridge/terminal/tab_registry.py
"""
Tab management within iTerm2 windows.

Tab listings are re-read from iTerm2 on every call. Aliases are the only
state kept here, keyed by window id and tab index.
"""

import logging
from typing import Dict, List, Optional, Union

from itermbridge.terminal.control_channel import (
    ITermControlChannel,
    TAB_FIELD_SEPARATOR,
    TAB_RECORD_SEPARATOR,
)
from itermbridge.terminal.errors import (
    ChannelError,
    CreationFailedError,
    TabNotFoundError,
)
from itermbridge.terminal.types import TabRecord

logger = logging.getLogger(__name__)

TabIdentifier = Union[int, str]


def parse_numeric_identifier(identifier: TabIdentifier) -> Optional[int]:
    """Returns the index for ints and numeric strings, None otherwise."""
    if isinstance(identifier, bool):
        return None
    if isinstance(identifier, int):
        return identifier
    stripped = str(identifier).strip()
    if stripped.lstrip("-").isdigit():
        return int(stripped)
    return None


def _parse_tab_record(window_id: str, raw: str) -> Optional[TabRecord]:
    fields = raw.split(TAB_FIELD_SEPARATOR)
    if len(fields) < 4:
        logger.warning(f"Skipping malformed tab record from window {window_id}: '{raw}'")
        return None
    index_str, session_id, tty = fields[0], fields[-2], fields[-1]
    # Names may themselves contain the separator.
    name = TAB_FIELD_SEPARATOR.join(fields[1:-2])
    try:
        index = int(index_str.strip())
    except ValueError:
        logger.warning(f"Skipping tab record with non-numeric index from window {window_id}: '{raw}'")
        return None
    return TabRecord(
        window_id=window_id,
        index=index,
        name=name or f"Tab {index + 1}",
        session_id=session_id.strip(),
        tty=tty.strip(),
    )


class TabRegistry:
    """Creates, resolves and closes tabs, and owns the per-window alias table."""

    def __init__(self, channel: ITermControlChannel):
        self._channel = channel
        self._aliases: Dict[str, Dict[int, str]] = {}

    async def create_tab(self, window_id: str, profile: Optional[str] = None, name: Optional[str] = None) -> int:
        try:
            output = await self._channel.create_tab(window_id, profile, name)
        except ChannelError as e:
            raise CreationFailedError(f"Failed to create tab in window {window_id}: {e}") from e

        try:
            tab_index = int(output.strip())
        except ValueError:
            raise CreationFailedError(
                f"Failed to get new tab index from iTerm2 for window {window_id} (got '{output}')"
            )
        logger.info(f"Created tab {tab_index} in window {window_id}" + (f" named '{name}'" if name else ""))
        return tab_index

    async def select_tab(self, window_id: str, tab_index: int) -> None:
        await self._channel.select_tab(window_id, tab_index)

    async def close_tab(self, window_id: str, tab_index: int) -> None:
        await self._channel.close_tab(window_id, tab_index)
        self._reindex_aliases_after_close(window_id, tab_index)
        logger.info(f"Closed tab {tab_index} in window {window_id}")

    async def list_tabs(self, window_id: str) -> List[TabRecord]:
        output = await self._channel.list_tabs(window_id)
        if not output.strip():
            return []

        tabs: List[TabRecord] = []
        for raw in output.split(TAB_RECORD_SEPARATOR):
            if not raw.strip():
                continue
            record = _parse_tab_record(window_id, raw)
            if record is None:
                continue
            record.alias = self.get_tab_alias(window_id, record.index)
            tabs.append(record)
        return tabs

    async def get_tab_index(self, window_id: str, tab_name: str) -> Optional[int]:
        for tab in await self.list_tabs(window_id):
            if tab.name == tab_name:
                return tab.index
        return None

    async def get_tab_tty(self, window_id: str, tab_index: int) -> str:
        return await self._channel.get_tty(window_id, tab_index)

    async def resolve_tab_index(self, window_id: str, identifier: TabIdentifier) -> int:
        """Resolves an identifier by numeric literal, then alias, then tab name."""
        numeric = parse_numeric_identifier(identifier)
        if numeric is not None:
            return numeric

        alias_index = self.get_tab_index_by_alias(window_id, identifier)
        if alias_index is not None:
            return alias_index

        name_index = await self.get_tab_index(window_id, identifier)
        if name_index is None:
            raise TabNotFoundError(identifier)
        return name_index

    async def ensure_tab(self, window_id: str, tab_name: str, profile: Optional[str] = None) -> int:
        existing = await self.get_tab_index(window_id, tab_name)
        if existing is not None:
            return existing
        return await self.create_tab(window_id, profile, tab_name)

    # Aliases

    def set_tab_alias(self, window_id: str, tab_index: int, alias: str) -> None:
        window_aliases = self._aliases.setdefault(window_id, {})
        for index, existing in list(window_aliases.items()):
            if existing == alias and index != tab_index:
                logger.debug(f"Moving alias '{alias}' from tab {index} to tab {tab_index} in window {window_id}")
                del window_aliases[index]
        window_aliases[tab_index] = alias

    def get_tab_alias(self, window_id: str, tab_index: int) -> Optional[str]:
        return self._aliases.get(window_id, {}).get(tab_index)

    def remove_tab_alias(self, window_id: str, tab_index: int) -> None:
        window_aliases = self._aliases.get(window_id)
        if window_aliases is not None:
            window_aliases.pop(tab_index, None)

    def get_tab_index_by_alias(self, window_id: str, alias: str) -> Optional[int]:
        for tab_index, tab_alias in self._aliases.get(window_id, {}).items():
            if tab_alias == alias:
                return tab_index
        return None

    def clear_window_aliases(self, window_id: str) -> None:
        self._aliases.pop(window_id, None)

    def _reindex_aliases_after_close(self, window_id: str, closed_index: int) -> None:
        window_aliases = self._aliases.get(window_id)
        if not window_aliases:
            return
        shifted: Dict[int, str] = {}
        for index, alias in window_aliases.items():
            if index < closed_index:
                shifted[index] = alias
            elif index > closed_index:
                shifted[index - 1] = alias
        self._aliases[window_id] = shifted
