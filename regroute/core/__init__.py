"""
regroute core module.

Settings, logging setup and background task lifecycle shared by the
provider and the command line.
"""

from .config import CatalogProviderSettings
from .logging import configure_logging
from .task_manager import KeyedTaskManager

__all__ = ["CatalogProviderSettings", "KeyedTaskManager", "configure_logging"]
