import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

# Default logging configuration
DEFAULT_CONFIG = {
    "LOG_LEVEL": "INFO",
    "ENVIRONMENT": "development",
}


class LogConfig:
    """Logging Configuration"""

    # Log levels mapping
    LEVEL_MAP = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    def __init__(self, settings=None):
        if settings is None:
            from casbin_sql_adapter.core.config import settings

        self.environment = getattr(
            settings, "ENVIRONMENT", DEFAULT_CONFIG["ENVIRONMENT"]
        )
        log_level = getattr(settings, "LOG_LEVEL", DEFAULT_CONFIG["LOG_LEVEL"])

        # File logging only when a directory is configured
        self.log_dir = getattr(settings, "LOG_DIR", None)
        self.log_file = (
            os.path.join(self.log_dir, "casbin_sql_adapter.log")
            if self.log_dir
            else None
        )
        self.max_bytes = 10 * 1024 * 1024  # 10MB
        self.backup_count = 5

        # Logging format based on environment
        self.log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if self.environment == "production":
            self.log_format = (
                '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
                '"logger": "%(name)s", "message": "%(message)s"}'
            )

        self.log_level = self.LEVEL_MAP.get(log_level.upper(), logging.INFO)

    def ensure_log_directory(self) -> None:
        """Ensure log directory exists"""
        try:
            os.makedirs(self.log_dir, exist_ok=True)
        except OSError as e:
            sys.stderr.write(f"Error creating log directory: {str(e)}\n")
            raise

    def get_file_handler(self) -> RotatingFileHandler:
        """Configure and return file handler"""
        self.ensure_log_directory()
        handler = RotatingFileHandler(
            filename=self.log_file,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(self.log_level)
        handler.setFormatter(logging.Formatter(self.log_format))
        return handler

    def get_console_handler(self) -> logging.StreamHandler:
        """Configure and return console handler"""
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(self.log_level)
        handler.setFormatter(logging.Formatter(self.log_format))
        return handler


def setup_logger(name: Optional[str] = None, settings=None) -> logging.Logger:
    """
    Set up and return a logger instance

    Args:
        name: Logger name (optional)
        settings: Settings to read level, environment and log directory from

    Returns:
        logging.Logger: Configured logger instance
    """
    config = LogConfig(settings)

    logger = logging.getLogger(name or "")
    logger.setLevel(config.log_level)

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(config.get_console_handler())
    if config.log_file:
        logger.addHandler(config.get_file_handler())

    # Prevent propagation to root logger
    if name:
        logger.propagate = False

    return logger