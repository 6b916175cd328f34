"""
Environment-backed configuration.

Values come from the process environment (a .env file is loaded first by
python-dotenv). Call-time settings for update checks are passed explicitly
as CheckSettings rather than read from shared storage.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'instance'))
DEBUG_LOGGING = _env_bool('DEBUG_LOGGING', 'false')

HOST = os.environ.get('HOST', '127.0.0.1')
PORT = int(os.environ.get('PORT', '5000'))
DEBUG = _env_bool('FLASK_DEBUG', 'false')

# Update checking
UPDATE_BATCH_SIZE = int(os.environ.get('UPDATE_BATCH_SIZE', '3'))
UPDATE_BATCH_DELAY = float(os.environ.get('UPDATE_BATCH_DELAY', '1.0'))
UPDATE_MAX_SOURCES = int(os.environ.get('UPDATE_MAX_SOURCES', '3'))
NOTIFICATION_CHECK_INTERVAL_HOURS = float(os.environ.get('NOTIFICATION_CHECK_INTERVAL_HOURS', '3'))


@dataclass
class CheckSettings:
    """Explicit settings for one update-check run."""
    enabled_notification_sources: Optional[List[str]] = None  # None = every provider
    check_only_source_manga: bool = False
    batch_size: int = UPDATE_BATCH_SIZE
    batch_delay: float = UPDATE_BATCH_DELAY
    max_sources: int = UPDATE_MAX_SOURCES
