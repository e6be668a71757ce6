"""
AppleScript encoding helpers.

Scripts are handed to the shell as `osascript -e '<script>'`, so text
embedded in a script has to survive two layers of quoting: the AppleScript
string literal and the surrounding single-quoted shell word.
"""

import re
from typing import List, Optional

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E]")


def _unicode_escape(match: "re.Match") -> str:
    code_point = ord(match.group(0))
    if code_point > 0xFFFF:
        # Astral characters are written as a UTF-16 surrogate pair.
        code_point -= 0x10000
        high = 0xD800 + (code_point >> 10)
        low = 0xDC00 + (code_point & 0x3FF)
        return f"\\u{high:04x}\\u{low:04x}"
    return "\\u" + format(code_point, "04x")


def encode_literal(text: str) -> str:
    """
    Encodes single-line text for use inside a double-quoted AppleScript literal.

    Backslashes and double quotes are escaped, single quotes break out of the
    enclosing shell quoting, and anything outside printable ASCII becomes a
    \\uXXXX escape. The surrounding double quotes are not included.
    """
    text = text.replace("\\", "\\\\")
    text = text.replace('"', '\\"')
    text = text.replace("'", "'\\''")
    return _NON_PRINTABLE_RE.sub(_unicode_escape, text)


def _escape_block_line(line: str) -> str:
    return line.replace("\\", "\\\\").replace('"', '\\"').replace("\t", "\\t")


def encode_concatenated_block(text: str) -> str:
    """
    Encodes multi-line text as an AppleScript concatenation expression.

    Raw line breaks cannot sit inside an AppleScript literal passed through
    `osascript -e`, so each line becomes its own literal and the lines are
    joined with the `return` constant:

        "line one" & return & "line two"
    """
    lines: List[str] = text.split("\n")
    return " & return & ".join(f'"{_escape_block_line(line)}"' for line in lines)


def encode_command(text: str) -> str:
    """Returns a complete AppleScript string expression for `text`."""
    if "\n" in text:
        return f"({encode_concatenated_block(text)})"
    return f'"{encode_literal(text)}"'


def quote(text: str) -> str:
    """Quoted AppleScript literal for names and profiles."""
    return f'"{encode_literal(text)}"'


def session_target(tab_index: Optional[int] = None) -> str:
    """Clause addressing the current session of a tab, or of the active tab."""
    if tab_index is None:
        return "tell current session"
    return f"tell tab {tab_index + 1} to tell current session"
