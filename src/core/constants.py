# -*- coding: utf-8 -*-
"""Installer constants: paths, pack layout names, network and pool settings."""
import os
import re
import sys
from pathlib import Path


# Base directory resolution (script vs PyInstaller bundle)
if hasattr(sys, '_MEIPASS'):
    BASE_DIR = Path(sys.executable).resolve().parent
else:
    # Script mode: project root (3 levels up from src/core/constants.py)
    BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Paths
CONFIG_FILE = BASE_DIR / "config" / "installer_config.json"
LOG_FILE = BASE_DIR / "modpack_installer.log"

# Pack layout
MANIFEST_FILE_NAME = "modrinth.index.json"
OVERRIDES_PREFIX = "overrides/"
MODS_DIR_NAME = "mods"
QUARANTINE_DIR_NAME = "OLD_TO_DELETE"

# Modrinth CDN: https://cdn.modrinth.com/data/<project>/versions/<file>/<name>
MODRINTH_URL_REGEX = re.compile(r"https://cdn\.modrinth\.com/data/([a-zA-Z0-9]+)/versions/([a-zA-Z0-9]+)/(.+)")

# Preference order when probing manifest dependencies for a loader
MODRINTH_MODLOADERS = ("fabric-loader", "forge", "neoforge", "quilt-loader")

# Network timeouts & download
REQUEST_TIMEOUT = 30
CHUNK_SIZE = 8192

# Retry & backoff (pack download only; mods get a single fallback pass)
MAX_RETRIES = 3
RETRY_DELAY = 2
BACKOFF_MULTIPLIER = 2

# Thread pools
MAX_DOWNLOAD_WORKERS = min(os.cpu_count() or 1, 16)
