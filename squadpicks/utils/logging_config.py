"""
Logging configuration for Squad Picks
Console output plus rotating application, error and scheduler log files
"""

import logging
import logging.handlers
import os
from logging import Filter

from flask import has_request_context, request

SCHEDULER_LOGGER = "squadpicks.services.scheduler_service"


class RequestContextFilter(Filter):
    """Add request context to log records"""

    def filter(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
            record.method = request.method
            record.user_agent = request.headers.get("User-Agent", "Unknown")
        else:
            record.url = "N/A"
            record.remote_addr = "N/A"
            record.method = "N/A"
            record.user_agent = "N/A"
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset_color = self.COLORS["RESET"]

        # Color a copy so file handlers sharing the record keep plain level names
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{reset_color}"

        return super().format(record)


def _rotating_handler(path, level, formatter, max_bytes, backup_count):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(app):
    """
    Setup logging for the Flask application

    Args:
        app: Flask application instance
    """

    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper())

    logging.basicConfig(level=log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    scheduler_logger = logging.getLogger(SCHEDULER_LOGGER)
    for handler in scheduler_logger.handlers[:]:
        scheduler_logger.removeHandler(handler)

    if app.config.get("LOG_TO_CONSOLE", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        if app.debug:
            console_formatter = ColoredFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                "[%(filename)s:%(lineno)d]",
                datefmt="%H:%M:%S",
            )
        else:
            console_formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        console_handler.setFormatter(console_formatter)
        console_handler.addFilter(RequestContextFilter())
        root_logger.addHandler(console_handler)

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        # Application log
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "squadpicks.log"),
                log_level,
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                    "[%(url)s] [%(remote_addr)s] [%(method)s] [%(user_agent)s]",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                max_bytes=10 * 1024 * 1024,  # 10MB
                backup_count=5,
            )
        )

        # Errors and above
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"),
                logging.ERROR,
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                    "[%(pathname)s:%(lineno)d] [%(url)s] [%(remote_addr)s]",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                max_bytes=5 * 1024 * 1024,  # 5MB
                backup_count=3,
            )
        )

        # Background jobs only
        scheduler_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "scheduler.log"),
                logging.INFO,
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                max_bytes=5 * 1024 * 1024,  # 5MB
                backup_count=3,
            )
        )

    # Configure third-party loggers
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("flask_limiter").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)

    # APScheduler is chatty at INFO (one line per job run)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(log_level)}")
