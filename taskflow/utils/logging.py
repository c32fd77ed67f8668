"""Logging configuration for the TaskFlow application."""

import logging
import logging.handlers
import sys

from ..config import Settings

# Marks handlers installed by setup_logging so a second call replaces them
# without touching handlers owned by someone else (e.g. pytest's caplog).
_HANDLER_FLAG = "_taskflow_handler"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors for console output."""
        if record.levelname in self.COLORS:
            # Color a copy so other handlers see the plain level name.
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = (
                f"{self.COLORS[record.levelname]}{record.levelname}"
                f"{self.COLORS['RESET']}"
            )

        return super().format(record)


def _level(settings: Settings) -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def setup_logging(settings: Settings) -> None:
    """Setup logging for the application.

    Installs a colored console handler and, when ``settings.log_dir`` is set,
    rotating ``app.log`` and ``error.log`` files in that directory.

    Args:
        settings: Application settings containing logging configuration
    """
    level = _level(settings)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handlers = [console_handler]

    if settings.log_dir is not None:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # File handler for all logs
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_dir / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

        # Error file handler for errors and above
        error_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_dir / "error.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        handlers.append(error_handler)

    for handler in handlers:
        setattr(handler, _HANDLER_FLAG, True)
        root_logger.addHandler(handler)

    configure_module_loggers(settings)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {settings.log_level.upper()}")
    if settings.log_dir is not None:
        logger.info(f"Log files will be written to: {settings.log_dir.absolute()}")


def configure_module_loggers(settings: Settings) -> None:
    """Configure logging levels for specific modules.

    Args:
        settings: Application settings
    """
    logging.getLogger("taskflow").setLevel(_level(settings))

    # Third-party library loggers (usually more verbose)
    third_party_loggers = {
        'uvicorn': logging.INFO,
        'uvicorn.access': logging.WARNING,
        'fastapi': logging.INFO,
        'httpx': logging.WARNING,
    }

    for logger_name, level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(level)

    # Suppress overly verbose loggers in production
    if settings.environment == "production":
        for logger_name in ('uvicorn.access', 'httpx'):
            logging.getLogger(logger_name).setLevel(logging.ERROR)


def log_startup_info(settings: Settings) -> None:
    """Log application startup information.

    Args:
        settings: Application settings
    """
    logger = logging.getLogger("taskflow.startup")

    logger.info("=" * 60)
    logger.info("TaskFlow Starting")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level.upper()}")
    logger.info(f"Storage File: {settings.storage_path}")
    logger.info(f"Save Delay: {settings.save_delay}s")
    logger.info(f"Reminder Window: {settings.reminder_window}")
    logger.info("=" * 60)


def log_shutdown_info() -> None:
    """Log application shutdown information."""
    logger = logging.getLogger("taskflow.shutdown")

    logger.info("=" * 60)
    logger.info("TaskFlow Shutting Down")
    logger.info("=" * 60)


__all__ = [
    'ColoredFormatter',
    'setup_logging',
    'configure_module_loggers',
    'log_startup_info',
    'log_shutdown_info',
]
