"""
Logging setup shared by the API process and the sync job runner
"""
from logging.handlers import RotatingFileHandler
from typing import Optional
import logging
import os

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "apscheduler",
    "httpx",
    "httpcore",
)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None):
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE
    
    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # 10MB per file, keep 5
        handlers.append(RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"))
    
    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    
    # Quiet library loggers before the root logger is configured
    if not settings.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    
    logging.basicConfig(level=level, handlers=handlers, force=True)
