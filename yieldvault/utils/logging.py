"""Logging configuration for YieldVault.

Engine modules log through ``get_logger(__name__)``; entry points call
``setup_logging`` (or ``setup_logging_from_config``) once. Records go to
stdout so simulations can be piped and replayed, and optionally to a file
for long-running keepers.
"""

import logging
import sys
from pathlib import Path
from typing import Any

# Fixed-width level column
DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Third-party loggers capped at WARNING unless the engine runs at DEBUG
QUIET_LOGGERS = ("apscheduler",)


def resolve_level(level: str | int) -> int:
    """Turn a level name or number into a logging level.

    Unknown names fall back to INFO.

    Example:
        >>> resolve_level("debug")
        10
    """
    if isinstance(level, int):
        return level
    resolved = getattr(logging, str(level).upper(), None)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: str | int = "INFO",
    log_format: str | None = None,
    log_file: str | Path | None = None,
) -> None:
    """Configure the root logger for the engine.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL) or number
        log_format: Custom format string. If None, uses ``DEFAULT_FORMAT``.
        log_file: Optional path that receives a copy of every record. Parent
            directories are created.

    Example:
        >>> from yieldvault.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG", log_file="logs/keeper.log")
    """
    numeric_level = resolve_level(level)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=numeric_level,
        format=log_format or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    quiet_level = logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log a message with structured context.

    Context is appended to the message in key=value format, in the order
    the keywords were given. Nothing is formatted when the level is
    disabled.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(
        ...     logger, "info", "Batch executed",
        ...     tier="low", aggregate=5000, entries=5
        ... )
        # Logs: "Batch executed | tier=low aggregate=5000 entries=5"
    """
    numeric_level = resolve_level(level)
    if not logger.isEnabledFor(numeric_level):
        return

    if context:
        context_str = " ".join(f"{k}={v}" for k, v in context.items())
        message = f"{message} | {context_str}"
    logger.log(numeric_level, message)


def setup_logging_from_config(config) -> None:
    """Configure logging from the ``logging`` section of a Config.

    Reads ``logging.level``, ``logging.format`` and ``logging.file``;
    missing keys fall back to the setup_logging defaults.

    Args:
        config: Config instance (or anything with a dot-notation ``get``)
    """
    setup_logging(
        level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format"),
        log_file=config.get("logging.file"),
    )
