import logging
import sys
from pathlib import Path
from typing import Any, cast

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Third-party loggers that are chatty at DEBUG.
NOISY_LOGGERS = ("httpcore", "hpack", "h2")


class InterceptHandler(logging.Handler):
    """Routes standard `logging` records (httpx, httpcore, Qt) into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so Loguru reports it.
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = cast(Any, frame.f_back)
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Path | None = None,
) -> None:
    """Configures the application-wide Loguru logger.

    Replaces the default handler with a colourised console sink, optionally
    adds a daily rotated file sink that writes one JSON object per line, and
    intercepts standard library logging.

    Args:
        console_level: The minimum log level for console output.
        file_level: The minimum log level for file output.
        log_dir: Directory to store log files. If None, file logging is disabled.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level.upper(),
        format=CONSOLE_FORMAT,
        colorize=True,
    )

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "coinlist_{time:YYYY-MM-DD}.log",
            level=file_level.upper(),
            serialize=True,
            rotation="00:00",
            retention="7 days",
            compression="zip",
            enqueue=True,  # Network callbacks log from worker threads.
            backtrace=False,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    logger.info("Logging configured successfully.")
