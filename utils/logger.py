"""Centralized logging with rotation suitable for audit trails."""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s"

# Library loggers that share the application's handlers.
SHARED_LOGGERS = ("core", "client")


def build_handlers(level: int, log_dir: str | None) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = []

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "swm_portal.log"), maxBytes=5_000_000, backupCount=5, encoding="utf-8"
        )
        handlers.append(file_handler)

    handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def init_logging(app) -> logging.Logger:
    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    log_dir = app.config.get("LOG_DIR")
    handlers = build_handlers(level, log_dir)

    logger = logging.getLogger(app.name)
    logger.setLevel(level)
    logger.handlers = list(handlers)
    logger.propagate = False

    for name in SHARED_LOGGERS:
        shared = logging.getLogger(name)
        shared.setLevel(level)
        shared.handlers = list(handlers)
        shared.propagate = False

    # Flask's built-in logger
    app.logger.handlers = logger.handlers
    app.logger.setLevel(level)

    logger.info("Logging initialized", extra={"log_dir": log_dir or None, "level": level_name})
    return logger
