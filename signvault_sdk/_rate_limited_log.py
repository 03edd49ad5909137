"""
Thread-safe rate-limited logging utilities.

Used to surface recurring conditions, such as bridge transfers that stay
unconfirmed for a long time, without repeating the same line on every poll.
"""
import logging
import threading
import time
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# At most 1000 distinct messages; entries older than a day are forgotten
_log_cache: TTLCache = TTLCache(maxsize=1000, ttl=86400)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 3600,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message unless the same message was logged recently.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical logs in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_cache_lock:
        now = time.monotonic()
        last_time = _log_cache.get(key)
        if last_time is not None and now - last_time < interval:
            return False
        log_method(message)
        _log_cache[key] = now
        return True


def reset_rate_limits() -> None:
    """Forget every suppressed message"""
    with _log_cache_lock:
        _log_cache.clear()
