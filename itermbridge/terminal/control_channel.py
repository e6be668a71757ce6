"""
AppleScript bridge to iTerm2.

Every call spawns `osascript` through the shell and waits for it; the
returned stdout is stripped. Failures surface as ChannelError (or
InvalidWindowError when the error text shows the target window is gone).
"""

import asyncio
import logging
from typing import Optional

from itermbridge.config import config
from itermbridge.terminal.applescript import quote, session_target
from itermbridge.terminal.errors import ChannelError, classify_channel_error

logger = logging.getLogger(__name__)

# Separator between records returned by the tab listing script.
TAB_RECORD_SEPARATOR = "\n"
TAB_FIELD_SEPARATOR = "|"


class ITermControlChannel:
    """Synchronous-per-call command/query interface to the iTerm2 application."""

    def __init__(self, app_name: Optional[str] = None, osascript_path: Optional[str] = None):
        self._app_name = app_name or config.ITERM_APP_NAME
        self._osascript_path = osascript_path or config.OSASCRIPT_PATH

    @property
    def app_name(self) -> str:
        return self._app_name

    async def _run_script(self, script: str, window_id: Optional[str] = None) -> str:
        command = f"{self._osascript_path} -e '{script}'"
        logger.debug(f"Running AppleScript: {script.strip()}")
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise ChannelError(f"Failed to invoke osascript: {e}") from e

        stdout_text = stdout.decode("utf-8", errors="replace") if stdout else ""
        stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""

        if process.returncode != 0:
            error_text = stderr_text.strip() or f"osascript exited with code {process.returncode}"
            raise classify_channel_error(error_text, window_id)

        return stdout_text.strip()

    def _tell_window(self, window_id: str, clause: str) -> str:
        return f'tell application "{self._app_name}" to tell window id "{window_id}" to {clause}'

    # Windows

    async def create_window(self) -> str:
        script = f"""
      tell application "{self._app_name}"
        create window with default profile
        tell the current window
          return id as string
        end tell
      end tell
    """
        return await self._run_script(script)

    async def close_window(self, window_id: str) -> None:
        await self._run_script(self._tell_window(window_id, "close"), window_id)

    async def select_window(self, window_id: str) -> None:
        await self._run_script(self._tell_window(window_id, "select"), window_id)

    async def window_exists(self, window_id: str) -> bool:
        output = await self._run_script(self._tell_window(window_id, "get exists"), window_id)
        return output == "true"

    async def get_active_window_id(self) -> str:
        script = f'tell application "{self._app_name}" to tell current window to get id as string'
        return await self._run_script(script)

    # Tabs

    async def create_tab(self, window_id: str, profile: Optional[str] = None, name: Optional[str] = None) -> str:
        profile_clause = f"with profile {quote(profile)}" if profile else "with default profile"
        name_clause = (
            f"tell tab (tabIndex + 1) to tell current session to set name to {quote(name)}"
            if name else ""
        )
        script = f"""
      tell application "{self._app_name}"
        tell window id "{window_id}"
          create tab {profile_clause}
          set tabIndex to (count of tabs) - 1
          {name_clause}
          return tabIndex
        end tell
      end tell
    """
        return await self._run_script(script, window_id)

    async def select_tab(self, window_id: str, tab_index: int) -> None:
        await self._run_script(self._tell_window(window_id, f"tell tab {tab_index + 1} to select"), window_id)

    async def close_tab(self, window_id: str, tab_index: int) -> None:
        await self._run_script(self._tell_window(window_id, f"tell tab {tab_index + 1} to close"), window_id)

    async def list_tabs(self, window_id: str) -> str:
        """Returns one `index|name|session id|tty` record per line."""
        script = f"""
      tell application "{self._app_name}"
        tell window id "{window_id}"
          set tabList to {{}}
          repeat with i from 1 to count of tabs
            tell tab i
              tell current session
                set end of tabList to ((i - 1) as string) & "{TAB_FIELD_SEPARATOR}" & name & "{TAB_FIELD_SEPARATOR}" & id & "{TAB_FIELD_SEPARATOR}" & tty
              end tell
            end tell
          end repeat
          set AppleScript's text item delimiters to linefeed
          return tabList as string
        end tell
      end tell
    """
        return await self._run_script(script, window_id)

    # Sessions

    async def get_tty(self, window_id: str, tab_index: Optional[int] = None) -> str:
        return await self._run_script(
            self._tell_window(window_id, f"{session_target(tab_index)} to get tty"), window_id
        )

    async def is_processing(self, window_id: str, tab_index: Optional[int] = None) -> bool:
        output = await self._run_script(
            self._tell_window(window_id, f"{session_target(tab_index)} to get is processing"), window_id
        )
        return output == "true"

    async def write_text(self, window_id: str, expression: str, tab_index: Optional[int] = None,
                         press_enter: bool = True) -> None:
        """Writes an already-encoded AppleScript string expression into a session."""
        newline = "YES" if press_enter else "NO"
        await self._run_script(
            self._tell_window(window_id, f"{session_target(tab_index)} to write text {expression} newline {newline}"),
            window_id,
        )

    async def get_contents(self, window_id: str, tab_index: Optional[int] = None) -> str:
        return await self._run_script(
            self._tell_window(window_id, f"{session_target(tab_index)} to get contents"), window_id
        )
