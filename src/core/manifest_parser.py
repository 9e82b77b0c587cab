import json
from pathlib import Path
from typing import List

from .constants import MODRINTH_URL_REGEX, MODRINTH_MODLOADERS, MODS_DIR_NAME
from .errors import ManifestError
from model_types import ModDescriptor, ManifestResult
from utils.symbols import LogSymbols


class ManifestParser:
    """Reads modrinth.index.json into versions and a flat list of mod downloads."""

    def __init__(self, log_callback):
        self.log = log_callback

    def parse(self, manifest_path, mc_version: str = "", loader_version: str = "") -> ManifestResult:
        """Parse the manifest extracted from the pack.

        Pinned ``mc_version``/``loader_version`` win over the manifest values.
        A missing manifest or an unresolvable loader is reported through
        ``skip_reason`` instead of raising.

        Raises:
            ManifestError: malformed JSON or a required field is missing.
        """
        manifest_path = Path(manifest_path)

        if not manifest_path.exists():
            reason = "No Modrinth index json found. Skipping mod downloads"
            self.log(f"{LogSymbols.ERROR} {reason}", error=True)
            return ManifestResult(loader_version, mc_version, [], reason)

        try:
            with open(manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Malformed {manifest_path.name}: {e}") from e

        self.log(f"  Manifest JSON object: {data}", debug=True)

        if not isinstance(data, dict):
            raise ManifestError(f"{manifest_path.name} must contain a JSON object")

        dependencies = self._require(data, 'dependencies', dict)

        if not mc_version:
            mc_version = self._require(dependencies, 'minecraft', str)

        if not loader_version:
            loader_version = self._resolve_loader(dependencies)
            if not loader_version:
                reason = "No valid loader found in dependencies. Skipping mod downloads"
                self.log(f"{LogSymbols.ERROR} {reason}", error=True)
                return ManifestResult("", mc_version, [], reason)

        mods = self._collect_mods(self._require(data, 'files', list))
        self.log(f"  Minecraft {mc_version}, loader {loader_version}, {len(mods)} mod(s) listed", info=True)
        return ManifestResult(loader_version, mc_version, mods)

    @staticmethod
    def _resolve_loader(dependencies) -> str:
        for loader in MODRINTH_MODLOADERS:
            version = dependencies.get(loader)
            if version:
                return str(version)
        return ""

    def _collect_mods(self, files) -> List[ModDescriptor]:
        mods = []
        for entry in files:
            if not isinstance(entry, dict):
                raise ManifestError(f"Invalid files entry: {entry!r}")

            path = self._require(entry, 'path', str)
            if not path.startswith(f"{MODS_DIR_NAME}/"):
                continue

            env = entry.get('env')
            if isinstance(env, dict) and env.get('server') == 'unsupported':
                self.log(f"  {LogSymbols.SKIPPED} Not supported on servers: {path}", debug=True)
                continue

            downloads = self._require(entry, 'downloads', list)
            if not downloads:
                raise ManifestError(f"No downloads listed for {path}")
            download = str(downloads[0])

            match = MODRINTH_URL_REGEX.fullmatch(download)
            project_id, file_id = (match.group(1), match.group(2)) if match else ("", "")
            mods.append(ModDescriptor(project_id, file_id, download))

        return mods

    @staticmethod
    def _require(obj, key, expected_type):
        value = obj.get(key)
        if value is None:
            raise ManifestError(f"Missing required field '{key}'")
        if not isinstance(value, expected_type):
            raise ManifestError(f"Field '{key}' must be a {expected_type.__name__}")
        return value
