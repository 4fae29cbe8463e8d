# studio/utils/logger.py
# File-backed event/error loggers for the preview lifecycle.
# Keyword fields are attached as record attributes, so the JSON formatter
# (studio.observability.logger) emits them as top-level keys.

import logging
import traceback
import os

from studio import config

os.makedirs(config.LOGS_PATH, exist_ok=True)

events_log_file = os.path.join(config.LOGS_PATH, "events.log")
error_log_file = os.path.join(config.LOGS_PATH, "error.log")

formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")

EVENTS_LOGGER = "preview.events"
ERRORS_LOGGER = "preview.errors"


def setup_logger(name, log_file, level):
    """A helper function to set up a logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs in parent loggers

    # Avoid adding handlers if they already exist (e.g., during autoreload)
    if not logger.handlers:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


events_logger = setup_logger(EVENTS_LOGGER, events_log_file, logging.INFO)
error_logger = setup_logger(ERRORS_LOGGER, error_log_file, logging.ERROR)


def log_info(message: str, **fields) -> None:
    """Lifecycle event, e.g. log_info("session ready", session_id=..., schema=...)."""
    events_logger.info(message, extra=fields or None)


def log_exception(e: BaseException, context: str = "", **fields) -> None:
    # Outside an except block format_exc() has nothing; use the exception's own traceback.
    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    error_logger.error(f"Exception in {context}:\n{tb}", extra={"context": context, **fields})
