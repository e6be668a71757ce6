"""
itermbridge: drive iTerm2 windows and tabs as remote-controllable shells.
"""

__version__ = "0.1.0"
