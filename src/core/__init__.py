"""Modpack installation pipeline: extraction, manifest parsing and mod downloads."""

from .constants import MAX_DOWNLOAD_WORKERS
from .errors import InstallerError, PackExtractionError, ManifestError, PackDownloadError

__all__ = [
    'MAX_DOWNLOAD_WORKERS',
    'InstallerError',
    'PackExtractionError',
    'ManifestError',
    'PackDownloadError',
]
