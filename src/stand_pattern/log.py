import logging

LOGGER_NAME = "stand_pattern"

logger = logging.getLogger(LOGGER_NAME)

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(name)s] %(levelname)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Child logger of the package logger (``stand_pattern.<name>``)."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logger.getChild(name)


def set_debug(enabled: bool) -> None:
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)
