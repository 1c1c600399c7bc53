"""
PageComposer - Utils Package

Utility modules for the application.
"""

from pagecomposer.utils.config_manager import ConfigManager, get_config_manager
from pagecomposer.utils.i18n import _
from pagecomposer.utils.logger import logger

__all__ = [
    "logger",
    "_",
    "ConfigManager",
    "get_config_manager",
]
