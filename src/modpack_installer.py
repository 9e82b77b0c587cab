"""
Modrinth modpack server installer - Entry point
Reads config/installer_config.json and prepares the server folder.
"""

import sys

from core.config_manager import ConfigManager
from core.constants import LOG_FILE
from core.errors import InstallerError
from core.installer import ModpackInstaller
from utils.install_logger import InstallLogger


def main():
    """Main entry point for the installer. Returns the process exit code."""
    log = InstallLogger(LOG_FILE)
    settings = ConfigManager(log).load_settings()

    try:
        result = ModpackInstaller(settings, log).install()
    except InstallerError as e:
        log(f"Installation aborted: {e}", error=True)
        return 1

    return 1 if result.failed_urls else 0


if __name__ == "__main__":
    sys.exit(main())
