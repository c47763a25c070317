"""
Infrastructure module - configuration, logging, and trigger notifications.
"""

from .config import EngineSettings, load_settings, get_project_root
from .logging_config import setup_logging, shutdown_logging
