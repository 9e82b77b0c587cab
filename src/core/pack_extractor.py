import shutil
import zipfile
from pathlib import Path

from .constants import MANIFEST_FILE_NAME, OVERRIDES_PREFIX, MODS_DIR_NAME, QUARANTINE_DIR_NAME
from .errors import PackExtractionError
from model_types import ExtractionStats
from utils.path_matcher import matches_any
from utils.symbols import LogSymbols
from utils.error_messages import suggest_fix_for_error, get_user_friendly_error


class PackExtractor:
    """Applies a modpack archive (manifest + overrides/) to a server folder.

    Content the archive would overwrite is moved to the quarantine folder
    instead of being deleted, so a previous install can be recovered.
    """

    def __init__(self, log_callback):
        self.log = log_callback

    def extract(self, archive, destination_root, ignore_matchers=()):
        """Extract ``archive`` (path or binary file object) into ``destination_root``.

        Raises:
            PackExtractionError: archive unreadable, unsafe entry, or I/O failure.
        """
        destination_root = Path(destination_root)
        quarantine_dir = destination_root / QUARANTINE_DIR_NAME

        try:
            destination_root.mkdir(parents=True, exist_ok=True)
            self._reset_quarantine(quarantine_dir)

            # The archive is not guaranteed to redefine every mod
            mods_dir = destination_root / MODS_DIR_NAME
            if mods_dir.exists():
                self._quarantine(mods_dir, quarantine_dir / MODS_DIR_NAME)
                self.log(f"  {LogSymbols.MOVED} Moved the mods folder to {QUARANTINE_DIR_NAME}/{MODS_DIR_NAME}", info=True)

            self.log("Starting to unzip files...")
            with zipfile.ZipFile(archive, 'r') as zip_ref:
                stats = self._apply_entries(zip_ref, destination_root, quarantine_dir, ignore_matchers)
        except zipfile.BadZipFile as e:
            self.log(f"  {LogSymbols.ERROR} Could not read modpack archive: {e}", error=True)
            self.log(f"\n{get_user_friendly_error('corrupted_archive')}", error=True)
            raise PackExtractionError(f"Unreadable modpack archive: {e}") from e
        except PackExtractionError:
            raise
        except OSError as e:
            self.log(f"  {LogSymbols.ERROR} Could not unzip files: {e}", error=True)
            error_type = suggest_fix_for_error(e)
            if error_type:
                self.log(f"\n{get_user_friendly_error(error_type)}", error=True)
            raise PackExtractionError(f"Extraction interrupted: {e}") from e

        self.log(f"  {LogSymbols.SUCCESS} Done unzipping the files "
                 f"({stats.files_written} written, {stats.skipped} ignored, {stats.quarantined} moved)")
        return stats

    def _apply_entries(self, zip_ref, destination_root, quarantine_dir, ignore_matchers):
        written = skipped = quarantined = 0
        root_resolved = destination_root.resolve()
        # Files written by this run and every folder above them
        written_files = set()
        touched_dirs = set()

        for info in zip_ref.infolist():
            name = info.filename
            self.log(f"  Entry in zip: {name}", debug=True)

            if name == MANIFEST_FILE_NAME:
                self._copy_entry(zip_ref, info, destination_root / MANIFEST_FILE_NAME)
                self._mark_written(root_resolved / MANIFEST_FILE_NAME, root_resolved, written_files, touched_dirs)
                written += 1
                continue

            if not name.startswith(OVERRIDES_PREFIX):
                continue

            relative = name[len(OVERRIDES_PREFIX):]
            if not relative:
                continue

            if matches_any(ignore_matchers, relative):
                self.log(f"  {LogSymbols.SKIPPED} Skipping {relative} as it is on the ignore list", debug=True)
                skipped += 1
                continue

            target = self._safe_target(root_resolved, relative)

            if not info.is_dir():
                self.log(f"  Copying zip entry to {target}", debug=True)
                target.parent.mkdir(parents=True, exist_ok=True)
                self._copy_entry(zip_ref, info, target)
                self._mark_written(target, root_resolved, written_files, touched_dirs)
                written += 1
            elif target.exists():
                # Directories are recreated implicitly by the file writes that follow
                moved = self._displace(target, quarantine_dir / relative.rstrip('/'), written_files, touched_dirs)
                if moved:
                    self.log(f"  {LogSymbols.MOVED} Folder moved: {target}", debug=True)
                    quarantined += 1

        return ExtractionStats(written, skipped, quarantined)

    @staticmethod
    def _mark_written(target, root_resolved, written_files, touched_dirs):
        written_files.add(target)
        parent = target.parent
        while parent != root_resolved and parent not in touched_dirs:
            touched_dirs.add(parent)
            parent = parent.parent

    def _displace(self, source, quarantine_target, written_files, touched_dirs):
        """Quarantine what ``source`` held before this run; returns the number of moves."""
        if source in written_files:
            return 0
        if source in touched_dirs:
            moved = 0
            for child in sorted(source.iterdir()):
                moved += self._displace(child, quarantine_target / child.name, written_files, touched_dirs)
            return moved
        self._quarantine(source, quarantine_target)
        return 1

    def _safe_target(self, root_resolved, relative):
        # Zip-slip protection: the target must stay inside the server folder
        target = (root_resolved / relative).resolve()
        try:
            target.relative_to(root_resolved)
        except ValueError:
            self.log(f"  {LogSymbols.ERROR} Security: Attempted path traversal detected in archive (blocked)",
                     error=True)
            raise PackExtractionError(f"Unsafe path in archive: {relative}")
        if target == root_resolved:
            raise PackExtractionError(f"Unsafe path in archive: {relative}")
        return target

    @staticmethod
    def _copy_entry(zip_ref, info, target):
        with zip_ref.open(info) as src, open(target, 'wb') as dst:
            shutil.copyfileobj(src, dst)

    def _reset_quarantine(self, quarantine_dir):
        if quarantine_dir.exists():
            shutil.rmtree(quarantine_dir)
            self.log(f"  Cleared previous {QUARANTINE_DIR_NAME} folder", debug=True)

    def _quarantine(self, source, target):
        """Move ``source`` to ``target``, merging folders. Quarantined content is never deleted."""
        if not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(target))
            return

        if source.is_dir() and target.is_dir():
            for child in sorted(source.iterdir()):
                self._quarantine(child, target / child.name)
            source.rmdir()
            return

        raise PackExtractionError(f"{QUARANTINE_DIR_NAME} already holds {target}")
