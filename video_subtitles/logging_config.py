"""Logging configuration shared by the web app and the process entry point."""

import logging
import sys

PACKAGE_LOGGER = "video_subtitles"

THIRD_PARTY_LOGGERS = ["botocore", "awscrt", "asyncio", "multipart", "python_multipart"]


class PortFilter(logging.Filter):
    """Stamps every record with the port the process listens on."""

    def __init__(self, port: int) -> None:
        super().__init__()
        self.port = port

    def filter(self, record: logging.LogRecord) -> bool:
        record.port = self.port
        return True


def setup_logging(level: str, port: int) -> logging.Logger:
    """
    Configure the package logger and uvicorn's loggers to write to stdout.

    Args:
        level: Log level name (e.g. 'DEBUG', 'INFO')
        port: Listening port, attached to each record as context

    Returns:
        The configured package logger
    """
    level_value = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_value)
    handler.addFilter(PortFilter(port))
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - port=%(port)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level_value)
    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
