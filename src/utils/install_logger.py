"""Log sink shared by the installer components.

Components receive a ``log_callback(message, **levels)`` instead of a global
logger. InstallLogger is the default callable: it timestamps each message,
appends it to the log file and echoes it to the console. Worker threads log
concurrently, so writes are serialised with a lock.
"""

import sys
import threading
from datetime import datetime
from pathlib import Path


class InstallLogger:
    """Callable logger with the ``log(message, error=..., info=...)`` signature."""

    LEVELS = ('DEBUG', 'INFO')

    def __init__(self, log_file=None, log_level='INFO', stream=None):
        self.log_file = Path(log_file) if log_file else None
        self.log_level = log_level if log_level in self.LEVELS else 'INFO'
        self.stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, message, error=False, info=False, warning=False, debug=False, success=False):
        self.log(message, error=error, info=info, warning=warning, debug=debug, success=success)

    def _format_log_entry(self, message, error=False, info=False, warning=False, debug=False, success=False):
        """Format a log entry with timestamp and level prefix.

        Returns:
            tuple: (formatted_entry: str, tag: str)
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        if error:
            prefix, tag = 'ERROR: ', 'error'
        elif warning:
            prefix, tag = 'WARN: ', 'warning'
        elif info:
            prefix, tag = 'INFO: ', 'info'
        elif debug:
            prefix, tag = 'DEBUG: ', 'debug'
        elif success:
            prefix, tag = '', 'success'
        else:
            prefix, tag = '', 'normal'

        log_entry = f"[{timestamp}] {prefix}{message}\n"
        return (log_entry, tag)

    def _write_log_to_file(self, log_entry):
        if not self.log_file:
            return
        with open(self.log_file, 'a', encoding='utf-8') as f:
            f.write(log_entry)

    def log(self, message, error=False, info=False, warning=False, debug=False, success=False):
        """Append a message to the log file and the console.

        Args:
            message: Message to log
            error: Failure that the user must see
            info: Informational message
            warning: Degraded but recoverable condition
            debug: Verbose detail, dropped unless log_level is DEBUG
            success: Completed step
        """
        if debug and self.log_level != 'DEBUG':
            return

        log_entry, _tag = self._format_log_entry(message, error=error, info=info, warning=warning,
                                                 debug=debug, success=success)
        with self._lock:
            try:
                self._write_log_to_file(log_entry)
            except OSError as e:
                self.stream.write(f"Could not write to log file {self.log_file}: {e}\n")
                self.log_file = None
            self.stream.write(log_entry)
            self.stream.flush()
