import contextvars
import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

LOGGER_NAME = "PromoEngine"

# Client libraries that log every request at INFO.
CHATTY_LOGGERS = ("httpx", "openai", "urllib3")

_current_job: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("promo_job_id", default=None)


class JobContextFilter(logging.Filter):
    """Stamps each record with the id of the generation job being run, or '-'."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = _current_job.get() or "-"
        return True


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Tag every log line emitted inside the block (tasks included) with `job_id`."""
    token = _current_job.set(job_id)
    try:
        yield
    finally:
        _current_job.reset(token)


def setup_logging(level: str = "INFO", logger_name: str = LOGGER_NAME) -> logging.Logger:
    """
    Configures and returns the application logger.
    Idempotent: will not add duplicate handlers.
    """
    logger = logging.getLogger(logger_name)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(JobContextFilter())
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(job_id)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(handler)
        logger.propagate = False

    if numeric_level > logging.DEBUG:
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
