"""
Mod download progress tracking and reporting.
Shared by all download workers, so every mutation takes the lock.
"""

import threading
import time
from datetime import datetime

from model_types import DownloadOutcome, DownloadStatus
from utils.symbols import LogSymbols


class DownloadReport:
    """Tracks per-URL outcomes of a download run for detailed reporting."""

    def __init__(self, total=0):
        self.total = total
        self.downloaded = []
        self.skipped = []
        self.errors = []
        self.attempts = 0
        self.start_time = time.time()
        self._lock = threading.Lock()

    def next_attempt(self):
        """Increment the shared attempt counter and return the new value."""
        with self._lock:
            self.attempts += 1
            return self.attempts

    def add_downloaded(self, url, filename):
        with self._lock:
            self.downloaded.append(DownloadOutcome(url, filename, DownloadStatus.SUCCEEDED))

    def add_skipped(self, url, filename, reason):
        with self._lock:
            self.skipped.append(DownloadOutcome(url, filename, DownloadStatus.SKIPPED, reason))

    def add_error(self, url, filename, error_msg):
        """Record a failed attempt. A URL may fail once per pass."""
        with self._lock:
            self.errors.append({
                'outcome': DownloadOutcome(url, filename, DownloadStatus.FAILED, error_msg),
                'timestamp': datetime.now().strftime('%H:%M:%S')
            })

    def get_duration(self):
        return time.time() - self.start_time

    def generate_summary(self, failed_urls=()):
        """Generate a formatted summary report."""
        duration = self.get_duration()
        minutes, seconds = divmod(int(duration), 60)

        summary = [
            "\n" + LogSymbols.SEPARATOR * 60,
            f"{LogSymbols.SUCCESS} Mod downloads finished ({minutes}m {seconds}s)",
            LogSymbols.SEPARATOR * 60,
            f"{LogSymbols.SUCCESS} {len(self.downloaded)} downloaded | "
            f"{LogSymbols.SKIPPED} {len(self.skipped)} skipped | "
            f"{LogSymbols.RETRY} {len(self.errors)} failed attempt(s) | "
            f"{LogSymbols.ERROR} {len(failed_urls)} failed"
        ]

        if self.skipped:
            summary.append("\nSkipped:")
            for item in self.skipped:
                summary.append(f"  {LogSymbols.SKIPPED} {item.filename}: {item.error}")

        if self.has_errors():
            summary.append("\nFailed attempts:")
            for item in self.errors:
                outcome = item['outcome']
                summary.append(f"  {LogSymbols.RETRY} [{item['timestamp']}] {outcome.filename}: {outcome.error}")

        if failed_urls:
            summary.append("\nFailed to download:")
            for url in failed_urls:
                summary.append(f"  {LogSymbols.ERROR} {url}")

        return "\n".join(summary)

    def has_errors(self):
        return len(self.errors) > 0
