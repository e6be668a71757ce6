"""
Reads a session's scroll buffer.
"""

import logging
from typing import Optional

from itermbridge.terminal.control_channel import ITermControlChannel

logger = logging.getLogger(__name__)


def tail_lines(buffer: str, lines_of_output: int) -> str:
    """Last `lines_of_output + 1` lines of the buffer.

    The extra line keeps the prompt line that follows the requested output.
    """
    lines = buffer.split("\n")
    return "\n".join(lines[-lines_of_output - 1:])


class TtyOutputReader:
    def __init__(self, channel: ITermControlChannel):
        self._channel = channel

    async def retrieve_buffer(self, window_id: str, tab_index: Optional[int] = None) -> str:
        contents = await self._channel.get_contents(window_id, tab_index)
        return contents.strip()

    async def read(self, window_id: str, lines_of_output: Optional[int] = None,
                   tab_index: Optional[int] = None) -> str:
        buffer = await self.retrieve_buffer(window_id, tab_index)
        if not lines_of_output:
            return buffer
        return tail_lines(buffer, lines_of_output)
