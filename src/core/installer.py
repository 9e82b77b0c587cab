import os
import tempfile
from pathlib import Path

import requests

from .constants import (
    REQUEST_TIMEOUT, CHUNK_SIZE, MAX_RETRIES, RETRY_DELAY, BACKOFF_MULTIPLIER,
    MANIFEST_FILE_NAME, MODS_DIR_NAME,
)
from .errors import InstallerError, PackDownloadError
from .pack_extractor import PackExtractor
from .manifest_parser import ManifestParser
from .download_filter import filter_downloads
from .mod_downloader import ModDownloader, ignore_patterns_from_files
from model_types import InstallResult
from utils.network_utils import retry_with_backoff
from utils.path_matcher import compile_path_matchers
from utils.symbols import LogSymbols
from utils.error_messages import suggest_fix_for_error, get_user_friendly_error


PACK_DOWNLOAD_NAME = "modpack-download.mrpack"


class ModpackInstaller:
    """Prepares a server folder from a Modrinth modpack.

    Runs the steps in order: fetch the pack, apply it to the server folder,
    read its manifest, then download the listed mods.
    """

    def __init__(self, settings, log_callback, fetch=None, max_workers=None):
        self.settings = settings
        self.log = log_callback
        self.base_path = Path(settings.base_install_path)
        self.extractor = PackExtractor(log_callback)
        self.parser = ManifestParser(log_callback)
        self.downloader = ModDownloader(log_callback, fetch=fetch, max_workers=max_workers)

    def install(self) -> InstallResult:
        """Run a full install. Mod download failures are reported, not raised.

        Raises:
            InstallerError: pack unavailable, unreadable, or its manifest is malformed.
        """
        self.log(f"Installing modpack into {self.base_path.resolve()}")
        self.log(LogSymbols.SEPARATOR * 60)

        pack_path = self.resolve_pack()
        self.extractor.extract(pack_path, self.base_path, compile_path_matchers(self.settings.ignore_files))
        return self.install_mods()

    def resolve_pack(self) -> Path:
        """Local pack file when configured, otherwise download modpackUrl."""
        if self.settings.modpack_file:
            pack_path = Path(self.settings.modpack_file)
            if not pack_path.is_file():
                raise InstallerError(f"Modpack file not found: {pack_path}")
            self.log(f"  Using local modpack {pack_path}", info=True)
            return pack_path

        if self.settings.modpack_url:
            return self.download_pack(self.settings.modpack_url, self.base_path / PACK_DOWNLOAD_NAME)

        raise InstallerError("No modpackFile or modpackUrl configured")

    def install_mods(self) -> InstallResult:
        """Parse the extracted manifest and download its mods."""
        manifest = self.parser.parse(self.base_path / MANIFEST_FILE_NAME,
                                     mc_version=self.settings.mc_version,
                                     loader_version=self.settings.loader_version)
        if manifest.skip_reason:
            return InstallResult(manifest, [])

        urls = filter_downloads(manifest.mods, self.settings.ignore_projects, self.log)
        failed = self.downloader.download_all(urls,
                                              ignore_patterns_from_files(self.settings.ignore_files, self.log),
                                              self.base_path / MODS_DIR_NAME)
        if failed:
            self.log(f"{LogSymbols.WARNING} {len(failed)} mod(s) could not be downloaded", warning=True)
        else:
            self.log(f"{LogSymbols.SUCCESS} All mods installed", success=True)
        return InstallResult(manifest, failed, self.downloader.report)

    def download_pack(self, url, target) -> Path:
        """Download the pack archive to ``target`` with retry and backoff."""
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.log(f"  Downloading modpack from {url}...")

        def attempt_download():
            temp_fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix='.tmp_modpack_', suffix='.part')
            try:
                with os.fdopen(temp_fd, 'wb') as f:
                    with requests.get(url, stream=True, timeout=REQUEST_TIMEOUT) as response:
                        response.raise_for_status()
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            if chunk:
                                f.write(chunk)
                os.replace(temp_path, target)
            finally:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
            return target

        try:
            path = retry_with_backoff(attempt_download, max_retries=MAX_RETRIES,
                                      delay=RETRY_DELAY, backoff=BACKOFF_MULTIPLIER)
        except requests.exceptions.RequestException as e:
            self.log(f"  {LogSymbols.ERROR} Download failed after {MAX_RETRIES} attempts: {type(e).__name__}",
                     error=True)
            error_type = suggest_fix_for_error(e)
            if error_type:
                self.log(f"\n{get_user_friendly_error(error_type)}", error=True)
            raise PackDownloadError(f"Could not download modpack from {url}: {e}") from e
        except OSError as e:
            self.log(f"  {LogSymbols.ERROR} Could not save modpack to {target}: {e}", error=True)
            error_type = suggest_fix_for_error(e)
            if error_type:
                self.log(f"\n{get_user_friendly_error(error_type)}", error=True)
            raise PackDownloadError(f"Could not save modpack to {target}: {e}") from e

        self.log(f"  {LogSymbols.SUCCESS} Modpack downloaded to {path}")
        return path
