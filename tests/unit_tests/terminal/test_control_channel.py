"""
Unit tests for control_channel.py
"""

import pytest

from itermbridge.terminal import control_channel
from itermbridge.terminal.control_channel import ITermControlChannel
from itermbridge.terminal.errors import ChannelError, InvalidWindowError


class MockOsascriptProcess:
    def __init__(self, stdout: str = "", stderr: str = "", returncode: int = 0):
        self._stdout = stdout.encode("utf-8")
        self._stderr = stderr.encode("utf-8")
        self.returncode = returncode

    async def communicate(self):
        return self._stdout, self._stderr


@pytest.fixture
def osascript(monkeypatch):
    """Captures every shell command and replies with the queued results."""
    state = {"commands": [], "replies": []}

    async def fake_create_subprocess_shell(command, stdout=None, stderr=None):
        state["commands"].append(command)
        if state["replies"]:
            reply = state["replies"].pop(0)
        else:
            reply = MockOsascriptProcess()
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(control_channel.asyncio, "create_subprocess_shell", fake_create_subprocess_shell)
    return state


@pytest.fixture
def channel():
    return ITermControlChannel(app_name="iTerm2", osascript_path="osascript")


class TestITermControlChannel:
    """Unit tests for ITermControlChannel."""

    @pytest.mark.asyncio
    async def test_create_window_returns_stripped_id(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(stdout="12345\n"))

        window_id = await channel.create_window()

        assert window_id == "12345"
        command = osascript["commands"][0]
        assert command.startswith("osascript -e '")
        assert "create window with default profile" in command

    @pytest.mark.asyncio
    async def test_window_exists(self, channel, osascript):
        osascript["replies"].extend([MockOsascriptProcess(stdout="true\n"), MockOsascriptProcess(stdout="false\n")])

        assert await channel.window_exists("42") is True
        assert await channel.window_exists("42") is False
        assert 'tell window id "42" to get exists' in osascript["commands"][0]

    @pytest.mark.asyncio
    async def test_tab_scripts_use_one_based_indices(self, channel, osascript):
        await channel.select_tab("42", 0)
        await channel.close_tab("42", 2)

        assert "tell tab 1 to select" in osascript["commands"][0]
        assert "tell tab 3 to close" in osascript["commands"][1]

    @pytest.mark.asyncio
    async def test_write_text_targets_session(self, channel, osascript):
        await channel.write_text("42", '"ls -la"')
        await channel.write_text("42", '"q"', tab_index=1, press_enter=False)

        assert 'tell window id "42" to tell current session to write text "ls -la" newline YES' in osascript["commands"][0]
        assert 'tell tab 2 to tell current session to write text "q" newline NO' in osascript["commands"][1]

    @pytest.mark.asyncio
    async def test_is_processing(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(stdout="true"))

        assert await channel.is_processing("42", 0) is True
        assert "get is processing" in osascript["commands"][0]

    @pytest.mark.asyncio
    async def test_create_tab_with_name_and_profile(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(stdout="2\n"))

        output = await channel.create_tab("42", profile="Dev", name="server")

        assert output == "2"
        command = osascript["commands"][0]
        assert 'create tab with profile "Dev"' in command
        assert 'set name to "server"' in command

    @pytest.mark.asyncio
    async def test_dead_window_raises_invalid_window(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(
            stderr="execution error: iTerm2 got an error: Can't get window id \"42\". (-1728)",
            returncode=1,
        ))

        with pytest.raises(InvalidWindowError) as exc_info:
            await channel.get_contents("42")
        assert exc_info.value.window_id == "42"

    @pytest.mark.asyncio
    async def test_other_failure_raises_channel_error(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(
            stderr="execution error: iTerm2 got an error: AppleEvent timed out. (-1712)",
            returncode=1,
        ))

        with pytest.raises(ChannelError, match="iTerm2 AppleScript error") as exc_info:
            await channel.get_tty("42")
        assert not isinstance(exc_info.value, InvalidWindowError)

    @pytest.mark.asyncio
    async def test_silent_nonzero_exit(self, channel, osascript):
        osascript["replies"].append(MockOsascriptProcess(returncode=2))

        with pytest.raises(ChannelError, match="exited with code 2"):
            await channel.get_active_window_id()

    @pytest.mark.asyncio
    async def test_spawn_failure_raises_channel_error(self, channel, osascript):
        osascript["replies"].append(FileNotFoundError("osascript"))

        with pytest.raises(ChannelError, match="Failed to invoke osascript"):
            await channel.create_window()
