import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every request or frame at INFO/DEBUG
LIBRARY_LOGGERS = ("httpx", "httpcore", "websockets")


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None):
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=stream or sys.stderr,
        force=True,  # Overwrite any existing logging config
    )
    library_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
