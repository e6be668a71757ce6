from itermbridge.config.config import Config, config

__all__ = ["Config", "config"]
