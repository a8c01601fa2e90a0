"""
Logging configuration for httpbuilder

Provides structured logging with optional file output and console output.
Library code only ever asks for module loggers; applications opt into
handlers through setup_logging().
"""

import logging
import sys
from pathlib import Path


class HttpBuilderLogger:
    """Centralized logger for the library"""

    def __init__(
        self,
        name: str = "httpbuilder",
        log_file: Path | None = None,
        console_output: bool = True,
        level: int = logging.INFO,
    ):
        """
        Initialize logger

        Args:
            name: Logger name (usually "httpbuilder" for the package logger)
            log_file: Path to log file (optional)
            console_output: Whether to print to console
            level: Level for the console handler
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # Clear existing handlers
        self.logger.handlers = []

        # Format: timestamp - module - level - message
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def get_logger(self) -> logging.Logger:
        """Get the underlying logger instance"""
        return self.logger


def setup_logging(
    log_file: Path | None = None, verbose: bool = False, console_output: bool = True
) -> logging.Logger:
    """
    Setup logging for applications using httpbuilder

    Args:
        log_file: Optional file receiving DEBUG and above
        verbose: Show DEBUG messages on the console instead of INFO and above
        console_output: Whether to print to console at all

    Returns:
        Configured package logger
    """
    logger_wrapper = HttpBuilderLogger(
        name="httpbuilder",
        log_file=log_file,
        console_output=console_output,
        level=logging.DEBUG if verbose else logging.INFO,
    )
    return logger_wrapper.get_logger()


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Get logger for a specific module

    Args:
        module_name: Name of the module (e.g., 'client', 'tls')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"httpbuilder.{module_name}")
