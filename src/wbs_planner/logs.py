import logging
import os
import sys

LOG_LEVEL_ENV = "WBS_PLANNER_LOG_LEVEL"
DEBUG_ENV = "WBS_PLANNER_DEBUG"


def resolve_level() -> int:
    """Pick the console log level from the environment (default WARNING)."""
    env_level = os.getenv(LOG_LEVEL_ENV, "").upper()
    is_debug = os.getenv(DEBUG_ENV, "").lower() in ("1", "true", "yes")

    if is_debug:
        return logging.DEBUG
    if env_level:
        level = getattr(logging, env_level, None)
        # logging also exposes non-level attributes such as BASIC_FORMAT.
        if isinstance(level, int):
            return level
    return logging.WARNING


def setup_logging(level: int | None = None) -> logging.Logger:
    """Set up console logging for the wbs_planner package."""
    if level is None:
        level = resolve_level()

    is_debug = level <= logging.DEBUG
    formatter = logging.Formatter(
        "%(levelname)-8s [%(name)s] %(message)s" if is_debug else "%(levelname)s: %(message)s"
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)

    logger = logging.getLogger("wbs_planner")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance for a specific module."""
    if name:
        return logging.getLogger(f"wbs_planner.{name}")
    return logging.getLogger("wbs_planner")
