"""Type definitions for better code clarity and IDE support."""
from typing import NamedTuple, Optional, List, Any


class ModDescriptor(NamedTuple):
    """A mod file listed in the manifest. IDs are empty for non-Modrinth URLs."""
    project_id: str
    file_id: str
    download_url: str


class ManifestResult(NamedTuple):
    """Result of parsing modrinth.index.json.

    A non-empty skip_reason means mod downloads must not run.
    """
    loader_version: str
    mc_version: str
    mods: List[ModDescriptor]
    skip_reason: Optional[str] = None


class ExtractionStats(NamedTuple):
    """Counters collected while applying a pack archive to the server tree."""
    files_written: int
    skipped: int
    quarantined: int


class DownloadStatus:
    """Outcome tags for a single mod download attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class DownloadOutcome(NamedTuple):
    """Result of one attempt to fetch a mod URL."""
    url: str
    filename: str
    status: str
    error: Optional[str] = None


class InstallSettings(NamedTuple):
    """Typed view of the "install" section of the installer config."""
    base_install_path: str
    modpack_url: str
    modpack_file: str
    mc_version: str
    loader_version: str
    ignore_files: List[str]
    ignore_projects: List[str]


class InstallResult(NamedTuple):
    """Result of a full pack installation."""
    manifest: Optional[ManifestResult]
    failed_urls: List[str]
    report: Optional[Any] = None
