# File: src/kalon_explorer/monitoring/logging_config.py

import logging
import logging.handlers
import os
from datetime import datetime
from typing import List

from ..utils.logger import PACKAGE_LOGGER

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class LogConfig:
    """Rotating file logging for long running explorer sessions (watch)."""

    def __init__(
        self,
        log_dir: str = "logs",
        max_size: int = 5 * 1024 * 1024,  # 5MB
        backup_count: int = 3,
        console_level: int = logging.WARNING,
        prefix: str = "kalon_explorer"
    ):
        self.log_dir = log_dir
        self.max_size = max_size
        self.backup_count = backup_count
        self.console_level = console_level
        self.prefix = prefix
        self._handlers: List[logging.Handler] = []

        os.makedirs(log_dir, exist_ok=True)

    @property
    def log_file(self) -> str:
        day = datetime.now().strftime("%Y%m%d")
        return os.path.join(self.log_dir, f'{self.prefix}_{day}.log')

    def setup_logging(self) -> logging.Logger:
        """Route every explorer logger to the log file and a quieter console."""
        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file, maxBytes=self.max_size, backupCount=self.backup_count
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.setLevel(self.console_level)

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
        package_logger.setLevel(logging.DEBUG)

        self._handlers = [file_handler, console_handler]
        for handler in self._handlers:
            package_logger.addHandler(handler)
        return package_logger

    def teardown(self):
        """Detach and close the handlers added by setup_logging."""
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in self._handlers:
            package_logger.removeHandler(handler)
            handler.close()
        self._handlers = []
        package_logger.setLevel(logging.WARNING)
