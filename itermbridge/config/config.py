from dotenv import load_dotenv
import os

load_dotenv()


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


class Config:
    ITERM_APP_NAME = os.getenv("ITERM_APP_NAME", "iTerm2")
    OSASCRIPT_PATH = os.getenv("OSASCRIPT_PATH", "/usr/bin/osascript")

    DEFAULT_TIMEOUT_SECONDS = _get_float("ITERM_DEFAULT_TIMEOUT_SECONDS", 30.0)
    MAX_TIMEOUT_SECONDS = _get_float("ITERM_MAX_TIMEOUT_SECONDS", 120.0)

    # Completion detection heuristics
    PROCESSING_POLL_INTERVAL = _get_float("ITERM_PROCESSING_POLL_INTERVAL", 0.1)
    IDLE_POLL_INTERVAL = _get_float("ITERM_IDLE_POLL_INTERVAL", 0.35)
    IDLE_CPU_THRESHOLD = _get_float("ITERM_IDLE_CPU_THRESHOLD", 1.0)
    IDLE_DEBOUNCE_SECONDS = _get_float("ITERM_IDLE_DEBOUNCE_SECONDS", 1.0)
    SETTLE_DELAY = _get_float("ITERM_SETTLE_DELAY", 0.2)
    CPU_SAMPLE_INTERVAL = _get_float("ITERM_CPU_SAMPLE_INTERVAL", 0.1)

    DEFAULT_READ_LINES = int(_get_float("ITERM_DEFAULT_READ_LINES", 25))

config = Config()
