"""
Application-level logging utilities for localdb-sync
"""

import os
import json
import logging
from datetime import datetime
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_BASE = 'logs'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def get_log_base() -> str:
    """Root directory for JSON log records (LOG_BASE, default ./logs)"""
    return os.environ.get('LOG_BASE', DEFAULT_LOG_BASE)


def get_app_log_dir() -> str:
    return os.path.join(get_log_base(), 'app')


def configure_logging(level: str = 'INFO'):
    """
    Configure root logging for command-line entry points.

    Args:
        level: Level name such as DEBUG, INFO or WARNING

    Raises:
        ValueError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, force=True)


def ensure_app_log_dir() -> bool:
    """Ensure the application log directory exists"""
    app_log_dir = get_app_log_dir()
    try:
        os.makedirs(app_log_dir, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Failed to create app log directory {app_log_dir}: {e}")
        return False


def log_application_event(event_type: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an application-level event to daily log files.

    Args:
        event_type (str): Type of event (sync.start, sync.complete, error, ...)
        message (str): Human-readable message
        details (dict, optional): Additional event details
    """
    if not ensure_app_log_dir():
        return

    timestamp = datetime.now()
    date_str = timestamp.strftime('%Y%m%d')
    log_filepath = os.path.join(get_app_log_dir(), f"app_log_{date_str}.json")

    log_entry = {
        "timestamp": timestamp.isoformat(),
        "event_type": event_type,
        "message": message
    }

    if details:
        log_entry["details"] = details

    try:
        log_entries = []
        if os.path.exists(log_filepath):
            with open(log_filepath, 'r') as f:
                log_entries = json.load(f)

        log_entries.append(log_entry)

        with open(log_filepath, 'w') as f:
            json.dump(log_entries, f, indent=2, default=str)

        logger.debug(f"Application event logged to: {log_filepath}")

    except (OSError, ValueError) as e:
        logger.error(f"Failed to log application event: {e}")


def log_error(error_type: str, error_message: str, details: Optional[Dict[str, Any]] = None):
    """Log an application error"""
    log_application_event(f"error.{error_type}", error_message, details)

