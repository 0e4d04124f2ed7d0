"""Logging setup for the automerge bot."""

import logging

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
    format_string: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure the ``pr_automerge`` logger.

    Args:
        level: Log level, as a number or a name such as ``"DEBUG"``
        handler: Handler to use (default: StreamHandler to stderr)
        format_string: Format of each record

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    logger = logging.getLogger("pr_automerge")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    # Keep records from reaching the root logger twice
    logger.propagate = False
    return logger
