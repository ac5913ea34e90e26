"""
Central logging configuration for eventmap.

Suppresses verbose debug logs from third-party HTTP and calendar libraries while
keeping eventmap's own diagnostics at the requested level.
"""

import logging
import os
from typing import Optional

# Third-party loggers that flood DEBUG output during fetch and geocode cycles
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "charset_normalizer": logging.WARNING,
    "icalendar": logging.INFO,
}

EVENTMAP_MODULES = [
    "eventmap",
    "eventmap.calendar",
    "eventmap.geocoding",
    "eventmap.domain",
    "eventmap.map",
]


LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for eventmap.

    Args:
        debug_mode: Whether to enable debug logging for eventmap modules
        force_debug: Override debug mode setting (None to use env var detection)
        level: Configured level name (the ``log_level`` config key), used when
            debug is off; EVENTMAP_LOG_LEVEL still takes precedence

    Environment Variables:
        EVENTMAP_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENTMAP_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("EVENTMAP_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("EVENTMAP_LOG_LEVEL", "").upper()
    configured_level = (level or "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.INFO
    if final_debug:
        root_level = logging.DEBUG
    elif configured_level in LEVEL_NAMES:
        root_level = getattr(logging, configured_level)
    if env_log_level in LEVEL_NAMES:
        root_level = getattr(logging, env_log_level)

    # Keep the colorlog handler installed by the package, if any
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config = dict(NOISY_LOGGERS)
    module_level = logging.DEBUG if final_debug else root_level
    for module in EVENTMAP_MODULES:
        logger_config[module] = module_level

    for logger_name, logger_level in logger_config.items():
        logging.getLogger(logger_name).setLevel(logger_level)

    if final_debug:
        root_logger.info("Debug logging enabled for eventmap modules")
    else:
        root_logger.debug("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["eventmap", "httpx", "httpcore", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
