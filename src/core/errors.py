"""Exceptions raised by the pack installation pipeline."""


class InstallerError(Exception):
    """Base class for installer failures that abort the whole operation."""


class PackExtractionError(InstallerError, OSError):
    """Archive is unreadable, unsafe, or extraction was interrupted."""


class ManifestError(InstallerError, ValueError):
    """modrinth.index.json is malformed or missing a required field."""


class PackDownloadError(InstallerError):
    """The modpack archive could not be downloaded after all retries."""
