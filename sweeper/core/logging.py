"""
Logging Configuration Module
============================

Provides centralized logging configuration for Account Sweeper.

Every event is written to two places:

- the console, through Rich
- an audit file, one line per event as ``[timestamp] [LEVEL] message``

A ``SUCCESS`` level (between INFO and WARNING) marks completed deletions so
they stand out in both streams.

Functions
---------
setup_logging
    Configure application-wide logging.
get_logger
    Get a logger for a specific module.
log_success
    Emit a message at the SUCCESS level.
default_log_path
    Timestamped log file name in the working directory.

Example
-------
>>> from sweeper.core.logging import setup_logging, get_logger, log_success
>>>
>>> setup_logging(level="INFO", log_file="sweeper.log")
>>> logger = get_logger(__name__)
>>> log_success(logger, "Deleted role build-runner")

See Also
--------
logging : Python standard library logging module.
rich.logging : Rich library's logging handler.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

DEFAULT_FORMAT = "%(message)s"
FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def default_log_path(now: Optional[datetime] = None) -> str:
    """
    Build the default audit log path.

    Parameters
    ----------
    now : datetime, optional
        Timestamp to embed (defaults to the current local time).

    Returns
    -------
    str
        ``sweeper-YYYYmmdd-HHMMSS.log`` in the working directory.
    """
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return str(Path.cwd() / f"sweeper-{stamp}.log")


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
) -> None:
    """
    Configure application-wide logging.

    Sets up a Rich console handler and, when ``log_file`` is given, a plain
    file handler for the audit trail. Should be called once at startup;
    existing root handlers are replaced.

    Parameters
    ----------
    level : str or int, default="INFO"
        Logging level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL).
    log_file : str, optional
        Path to the audit log file.
    rich_tracebacks : bool, default=True
        Whether to use Rich for exception tracebacks.
    console : Console, optional
        Rich Console instance. If not provided, creates one on stderr.

    Examples
    --------
    >>> setup_logging(level="INFO")
    >>> setup_logging(level="DEBUG", log_file="sweeper.log")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    rich_console = console or Console(stderr=True)
    console_handler = RichHandler(
        console=rich_console,
        show_time=True,
        show_path=False,
        rich_tracebacks=rich_tracebacks,
        tracebacks_show_locals=False,
        markup=False,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)
        )
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    root_logger.debug(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"file={log_file or 'None'}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__`` of the calling module).

    Returns
    -------
    logging.Logger
        Logger instance.
    """
    return logging.getLogger(name)


def log_success(logger: logging.Logger, msg: str, *args: Any, **kwargs: Any) -> None:
    """Log ``msg`` at the SUCCESS level."""
    logger.log(SUCCESS, msg, *args, **kwargs)
