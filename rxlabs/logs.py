import logging
import os

LOG_LEVEL_ENV_VAR = "RXLABS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def get_logger(name: str) -> logging.Logger:
    """Return the module logger with its level taken from the environment.

    No handlers are attached; output goes wherever the host application (or
    the test runner's log capture) routes the root logger.
    """

    log_level = os.getenv(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL).strip().upper()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level, logging.WARNING))
    return logger
