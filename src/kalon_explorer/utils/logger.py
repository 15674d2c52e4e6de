import logging
from typing import Optional

PACKAGE_LOGGER = "kalon_explorer"

def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Create a logger with the given name and level"""
    logger = logging.getLogger(name)
    package_logger = logging.getLogger(PACKAGE_LOGGER)

    if not package_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    if level is not None:
        logger.setLevel(level)
    elif not package_logger.level:  # Only set default level if none is set
        package_logger.setLevel(logging.WARNING)

    return logger


def set_level(level: int) -> None:
    """Set the level shared by all explorer loggers"""
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
