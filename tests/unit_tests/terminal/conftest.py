# file: itermbridge/tests/unit_tests/terminal/conftest.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from itermbridge.terminal.command_executor import IdleDetectionSettings
from itermbridge.terminal.errors import ChannelError, InvalidWindowError


@dataclass
class FakeTab:
    name: str
    session_id: str
    tty: str
    contents: str = ""


@dataclass
class FakeWindow:
    window_id: str
    tabs: List[FakeTab] = field(default_factory=list)
    selected_tab: int = 0


class FakeITermChannel:
    """In-memory stand-in for the AppleScript bridge."""

    def __init__(self):
        self.windows: Dict[str, FakeWindow] = {}
        self.calls: List[tuple] = []
        self.written: List[tuple] = []
        self.active_window_id: Optional[str] = None
        self.fail_create_window = False
        self.fail_close_window = False
        self.fail_exists_check = False
        self.fail_active_window = False
        self.create_tab_output: Optional[str] = None
        self._next_window = 1000
        self._next_tty = 1

    # Test helpers

    def _new_tab(self, name: str) -> FakeTab:
        tty = f"/dev/ttys{self._next_tty:03d}"
        self._next_tty += 1
        return FakeTab(name=name, session_id=f"session-{self._next_tty}", tty=tty)

    def add_tab(self, window_id: str, name: str) -> int:
        window = self.windows[window_id]
        window.tabs.append(self._new_tab(name))
        return len(window.tabs) - 1

    def kill_window(self, window_id: str) -> None:
        """Simulates the user closing a window by hand."""
        self.windows.pop(window_id, None)

    def _window(self, window_id: str) -> FakeWindow:
        if window_id not in self.windows:
            raise InvalidWindowError(window_id)
        return self.windows[window_id]

    def _tab(self, window_id: str, tab_index: Optional[int]) -> FakeTab:
        window = self._window(window_id)
        index = window.selected_tab if tab_index is None else tab_index
        if index < 0 or index >= len(window.tabs):
            raise InvalidWindowError(window_id, detail=f"Invalid index {index}")
        return window.tabs[index]

    def open_window(self) -> str:
        self._next_window += 1
        window_id = str(self._next_window)
        self.windows[window_id] = FakeWindow(window_id, tabs=[self._new_tab("zsh")])
        self.active_window_id = window_id
        return window_id

    # Channel interface

    async def create_window(self) -> str:
        self.calls.append(("create_window",))
        if self.fail_create_window:
            raise ChannelError("iTerm2 got an error: Application isn't running.")
        return self.open_window()

    async def close_window(self, window_id: str) -> None:
        self.calls.append(("close_window", window_id))
        if self.fail_close_window:
            raise ChannelError("iTerm2 got an error: can't close window")
        self._window(window_id)
        del self.windows[window_id]

    async def select_window(self, window_id: str) -> None:
        self.calls.append(("select_window", window_id))
        self._window(window_id)

    async def window_exists(self, window_id: str) -> bool:
        self.calls.append(("window_exists", window_id))
        if self.fail_exists_check:
            raise ChannelError("osascript: connection invalid")
        return window_id in self.windows

    async def get_active_window_id(self) -> str:
        if self.fail_active_window:
            raise ChannelError("iTerm2 got an error: Can't get current window.")
        return self.active_window_id or ""

    async def create_tab(self, window_id: str, profile: Optional[str] = None, name: Optional[str] = None) -> str:
        self.calls.append(("create_tab", window_id, profile, name))
        if self.create_tab_output is not None:
            return self.create_tab_output
        index = self.add_tab(window_id, name or "zsh")
        return str(index)

    async def select_tab(self, window_id: str, tab_index: int) -> None:
        self.calls.append(("select_tab", window_id, tab_index))
        self._tab(window_id, tab_index)
        self.windows[window_id].selected_tab = tab_index

    async def close_tab(self, window_id: str, tab_index: int) -> None:
        self.calls.append(("close_tab", window_id, tab_index))
        self._tab(window_id, tab_index)
        window = self.windows[window_id]
        del window.tabs[tab_index]
        window.selected_tab = 0
        if not window.tabs:
            del self.windows[window_id]

    async def list_tabs(self, window_id: str) -> str:
        window = self._window(window_id)
        return "\n".join(
            f"{i}|{tab.name}|{tab.session_id}|{tab.tty}" for i, tab in enumerate(window.tabs)
        )

    async def get_tty(self, window_id: str, tab_index: Optional[int] = None) -> str:
        return self._tab(window_id, tab_index).tty

    async def is_processing(self, window_id: str, tab_index: Optional[int] = None) -> bool:
        self._tab(window_id, tab_index)
        return False

    async def write_text(self, window_id: str, expression: str, tab_index: Optional[int] = None,
                         press_enter: bool = True) -> None:
        self._tab(window_id, tab_index)
        self.written.append((window_id, tab_index, expression, press_enter))

    async def get_contents(self, window_id: str, tab_index: Optional[int] = None) -> str:
        return self._tab(window_id, tab_index).contents


@pytest.fixture
def fake_channel():
    return FakeITermChannel()


@pytest.fixture
def fast_settings():
    """Detection settings shrunk so tests finish in milliseconds."""
    return IdleDetectionSettings(
        processing_poll_interval=0.01,
        idle_poll_interval=0.01,
        idle_cpu_threshold=1.0,
        idle_debounce=0.03,
        settle_delay=0.0,
    )
