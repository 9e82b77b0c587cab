"""Parallel mod downloads with a single fallback pass for failures."""

import re
import threading
import concurrent.futures
from pathlib import Path

import requests

from .constants import MAX_DOWNLOAD_WORKERS, MODS_DIR_NAME
from .download_report import DownloadReport
from utils.network_utils import download_to_file, filename_from_url
from utils.path_matcher import glob_to_regex
from utils.symbols import LogSymbols
from utils.error_messages import suggest_fix_for_error, get_user_friendly_error


# Per-URL failures; anything else is a bug and propagates
DOWNLOAD_ERRORS = (requests.exceptions.RequestException, ValueError, OSError)


def ignore_patterns_from_files(ignore_files, log_callback=None):
    """Filename patterns from the ``mods/...`` entries of ignoreFiles.

    The text after the last ``/`` is a full-match regex. Entries that are not
    valid regexes are read as globs (``mods/*-client.jar``); entries that are
    neither are logged and dropped.
    """
    prefix = f"{MODS_DIR_NAME}/"
    patterns = []
    for entry in ignore_files or ():
        if not entry.startswith(prefix):
            continue
        name = entry[entry.rfind('/') + 1:]
        if not name:
            continue
        try:
            patterns.append(re.compile(name))
            continue
        except re.error:
            pass
        try:
            patterns.append(re.compile(glob_to_regex(name)))
        except (re.error, ValueError) as e:
            if log_callback:
                log_callback(f"  {LogSymbols.ERROR} Ignoring invalid ignoreFiles entry {entry!r}: {e}", error=True)
    return patterns


class ModDownloader:
    """Downloads mod URLs into the server's mods folder.

    Phase 1 fetches every URL on a bounded thread pool; URLs that fail are
    retried once, sequentially. Failures never raise: they are returned and
    logged so the caller can decide whether the install failed.
    """

    def __init__(self, log_callback, fetch=None, max_workers=None):
        self.log = log_callback
        self.fetch = fetch or download_to_file
        self.max_workers = max_workers or MAX_DOWNLOAD_WORKERS
        self.report = None
        self._fallback_lock = threading.Lock()

    def download_all(self, urls, ignore_patterns, mods_dir):
        """Download every URL; return those still failing after the retry pass."""
        urls = list(urls)
        mods_dir = Path(mods_dir)
        mods_dir.mkdir(parents=True, exist_ok=True)
        self.report = DownloadReport(total=len(urls))

        if not urls:
            self.log("  No mods to download", info=True)
            return []

        self.log(f"Downloading {len(urls)} mod(s) with {min(self.max_workers, len(urls))} worker(s)...")

        fallback = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._process_single_mod, url, ignore_patterns, mods_dir, fallback)
                       for url in urls]
            for future in concurrent.futures.as_completed(futures):
                # Surfaces programming errors; download errors are caught per URL
                future.result()

        failed = []
        if fallback:
            self.log(f"Retrying {len(fallback)} failed download(s)...", warning=True)
            for url in fallback:
                self._process_single_mod(url, ignore_patterns, mods_dir, failed)

        if failed:
            self.log(f"{LogSymbols.WARNING} Failed to download (a) mod(s):", warning=True)
            for url in failed:
                self.log(f"\t{url}", warning=True)

        self.log(self.report.generate_summary(failed))
        return failed

    def _process_single_mod(self, url, ignore_patterns, mods_dir, fallback_list):
        total = self.report.total
        try:
            mod_name = filename_from_url(url)

            for pattern in ignore_patterns:
                if pattern.fullmatch(mod_name):
                    count = self.report.next_attempt()
                    self.log(f"  [{count:3d}/{total}] {LogSymbols.SKIPPED} Skipped ignored mod: {mod_name}")
                    self.report.add_skipped(url, mod_name, f"matches {pattern.pattern}")
                    return

            self.fetch(url, mods_dir / mod_name)
            count = self.report.next_attempt()
            self.log(f"  [{count:3d}/{total}] {LogSymbols.DOWNLOADING} Downloaded mod: {mod_name}")
            self.report.add_downloaded(url, mod_name)

        except DOWNLOAD_ERRORS as e:
            count = self.report.next_attempt()
            self.log(f"  [{count:3d}/{total}] {LogSymbols.ERROR} Failed to download {url}: {e}", error=True)
            error_type = suggest_fix_for_error(e)
            if error_type:
                self.log(f"\n{get_user_friendly_error(error_type)}", debug=True)
            self.report.add_error(url, url.rsplit('/', 1)[-1], str(e))
            with self._fallback_lock:
                fallback_list.append(url)
