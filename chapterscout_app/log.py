import os
import sys
import time
import queue
import json
import logging
from logging.handlers import RotatingFileHandler

from .config import BASE_DIR, DEBUG_LOGGING, LOG_DIR

# Thread-safe message queue for real-time logging
msg_queue: queue.Queue = queue.Queue()

# Package logger; chapterscout_app.* module loggers propagate here
logger = logging.getLogger("chapterscout_app")
logger.setLevel(logging.INFO)

os.makedirs(LOG_DIR, exist_ok=True)
LOG_FILE = os.path.join(LOG_DIR, 'chapterscout.log')

if not any(getattr(h, "baseFilename", None) == LOG_FILE for h in logger.handlers):
    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s'))
    logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter('%(message)s'))  # Keep stdout clean
    logger.addHandler(stream_handler)

# Debug logging (local-only file)
DEBUG_LOG_DIR = os.path.join(BASE_DIR, 'debugging')
DEBUG_LOG_FILE = os.path.join(DEBUG_LOG_DIR, 'debug.log')

debug_logger = logging.getLogger("chapterscout_app.debug")
debug_logger.setLevel(logging.INFO)
debug_logger.propagate = False
if DEBUG_LOGGING:
    os.makedirs(DEBUG_LOG_DIR, exist_ok=True)
    if not any(getattr(h, "baseFilename", None) == DEBUG_LOG_FILE for h in debug_logger.handlers):
        debug_handler = RotatingFileHandler(DEBUG_LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=10)
        debug_handler.setFormatter(logging.Formatter('%(message)s'))
        debug_logger.addHandler(debug_handler)
else:
    debug_logger.disabled = True


def log(msg: str) -> None:
    """Log a message to console, file, and message queue."""
    logger.info(msg)

    # Add to queue for the UI
    timestamp = time.strftime("[%H:%M:%S]")
    msg_queue.put(f"{timestamp} {msg}")


def drain_messages(limit: int = 200) -> list:
    """Pop up to limit queued UI messages."""
    messages = []
    while len(messages) < limit:
        try:
            messages.append(msg_queue.get_nowait())
        except queue.Empty:
            break
    return messages


def debug_log_event(event: dict) -> None:
    """Write structured debug events to a local file."""
    if debug_logger.disabled:
        return
    try:
        debug_logger.info(json.dumps(event, ensure_ascii=True, separators=(',', ':'), default=str))
    except (TypeError, ValueError) as exc:
        logger.info(f"Debug log failure: {exc}")
