# logs.py
import logging
import os
import sys

from .settings import Settings

LOGGER_NAME = "pages_deployer"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(settings: Settings) -> logging.Logger:
    """Attach stdout and file handlers to the service logger.

    Safe to call more than once; existing handlers are replaced so repeated app
    construction (tests, reloads) does not duplicate output.
    """
    log_dir = os.path.dirname(settings.LOG_FILE_PATH)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    file_handler = logging.FileHandler(settings.LOG_FILE_PATH, mode="a", encoding="utf-8")
    console_handler.setFormatter(fmt)
    file_handler.setFormatter(fmt)

    for h in logger.handlers:
        h.close()
    logger.handlers = []
    logger.setLevel(logging.INFO)
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.propagate = False
    return logger


def flush_logs():
    sys.stdout.flush()
    sys.stderr.flush()
    for h in logger.handlers:
        h.flush()


def tail_log(path: str, lines: int) -> str:
    """Return the last ``lines`` lines of ``path`` without reading the whole file."""
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        file_size = f.tell()
        chunks = []
        newlines = 0
        block_size = 1024
        # Read from end until we have enough lines or hit the start
        while file_size > 0 and newlines <= lines:
            read_size = min(block_size, file_size)
            file_size -= read_size
            f.seek(file_size)
            block = f.read(read_size)
            chunks.append(block)
            newlines += block.count(b"\n")
    text = b"".join(reversed(chunks)).decode(errors="ignore").splitlines()
    return "\n".join(text[-lines:])
