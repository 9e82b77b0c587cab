"""Centralized symbols for consistent log output."""


class LogSymbols:
    """Unicode symbols for log messages."""

    SUCCESS = "✓"
    ERROR = "✗"
    ERROR_BOLD = "❌"     # U+274C - Cross mark (bold error for summaries)
    WARNING = "⚠️"
    SKIPPED = "○"
    DOWNLOADING = "⬇"    # U+2B07 - Download indicator
    RETRY = "↻"          # U+21BB - Failed attempt, retried in the fallback pass

    # List and formatting
    BULLET = "•"         # U+2022 - Bullet point for lists
    MOVED = "↪"          # U+21AA - Moved into quarantine
    SEPARATOR = "─"      # U+2500 - Box drawing light horizontal (line separator)
