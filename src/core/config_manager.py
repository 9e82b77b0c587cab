"""Installer configuration file management with atomic writes to prevent corruption."""
import copy
import json
import tempfile
import os

from .constants import CONFIG_FILE
from model_types import InstallSettings


DEFAULT_CONFIG = {
    "install": {
        "baseInstallPath": "server/",
        "modpackUrl": "",
        "modpackFile": "",
        "mcVersion": "",
        "loaderVersion": "",
        "ignoreFiles": [],
        "formatSpecific": {
            "ignoreProject": []
        }
    }
}


class ConfigManager:
    """Loads and saves the installer configuration."""

    def __init__(self, log_callback=None, config_file=None):
        self.config_file = config_file or CONFIG_FILE
        self.log_callback = log_callback

    def _log(self, message, **kwargs):
        if self.log_callback:
            self.log_callback(message, **kwargs)

    def _atomic_save_json(self, file_path, data, indent=2, ensure_ascii=False):
        """Atomic write: temp file + replace to prevent corruption on crash."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=file_path.parent,
                prefix=f'.tmp_{file_path.stem}_',
                suffix='.json'
            )
            try:
                with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii)
                os.replace(temp_path, file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            self._log(f"Error saving {file_path.name}: {e}", error=True)

    def load_config(self):
        """Load installer config, returns default if missing/corrupt."""
        if not self.config_file.exists():
            return self.reset_to_default()
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            self._log(f"Error loading config: {e}", error=True)
            return copy.deepcopy(DEFAULT_CONFIG)

        if not isinstance(data, dict) or not isinstance(data.get("install"), dict):
            self._log("Config has no 'install' section, using defaults", warning=True)
            return copy.deepcopy(DEFAULT_CONFIG)
        return data

    def save_config(self, data):
        """Save installer config atomically."""
        self._atomic_save_json(self.config_file, data, ensure_ascii=False)

    def reset_to_default(self):
        """Reset config to default and save."""
        default_config = copy.deepcopy(DEFAULT_CONFIG)
        self.save_config(default_config)
        return default_config

    def load_settings(self) -> InstallSettings:
        """Typed view of the "install" section."""
        return settings_from_config(self.load_config())


def settings_from_config(config) -> InstallSettings:
    install = config.get("install") or {}
    format_specific = install.get("formatSpecific") or {}

    def as_str(key):
        value = install.get(key)
        return str(value) if value else ""

    ignore_projects = format_specific.get("ignoreProject") or []

    return InstallSettings(
        base_install_path=as_str("baseInstallPath") or DEFAULT_CONFIG["install"]["baseInstallPath"],
        modpack_url=as_str("modpackUrl"),
        modpack_file=as_str("modpackFile"),
        mc_version=as_str("mcVersion"),
        loader_version=as_str("loaderVersion"),
        ignore_files=[f for f in install.get("ignoreFiles") or [] if isinstance(f, str)],
        ignore_projects=[p for p in ignore_projects if isinstance(p, str)],
    )
