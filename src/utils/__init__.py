"""Utility modules for the modpack installer."""

from .install_logger import InstallLogger

__all__ = ['InstallLogger']
