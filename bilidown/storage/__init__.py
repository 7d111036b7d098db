"""
Storage Layer.

This package handles data persistence, currently the INI configuration file.
"""

from .config_manager import ConfigManager, get_config_dir

__all__ = ["ConfigManager", "get_config_dir"]
