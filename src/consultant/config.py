"""Configuration constants for the consultant engine.

Centralizes magic numbers and defaults shared across modules.
"""

import logging


class LogLevel:
    """Names accepted by `--log-level` and CONSULTANT_LOG_LEVEL."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


# Session defaults
DEFAULT_SESSION_KEY = "global"  # Logical key used when a surface names none
DEFAULT_SESSION_TITLE = "New Conversation"
ARCHIVE_LIMIT = 200  # Maximum sessions fetched for the archive view

# Browsing context
BROWSING_HISTORY_LIMIT = 20  # Most recent products kept for request context

# Content parsing
TRUNCATION_THRESHOLD = 280  # Characters before a line becomes collapsible
TRUNCATION_SUFFIX = "..."

# Attachments
MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB

# Streaming
REQUEST_TIMEOUT_SECONDS = 120.0
DEFAULT_PREFERENCES = {"mode": "reseller", "require_user_initiation": True}
