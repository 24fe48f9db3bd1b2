#!/usr/bin/env python3
"""
Logging setup for the CI runner.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rita_ci.utils.file_utils import ensure_directory

LOGGER_NAME = "rita_ci"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[int] = None,
                  log_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the package logger.
    
    Module loggers under rita_ci propagate here. A console handler is added
    once; a timestamped file handler is added when log_dir is given.
    
    Args:
        level: Logging level, None keeps a level set earlier (INFO by default)
        log_dir: Directory for the run log, None for console only
        
    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)
    
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        
    if log_dir and not get_log_file(logger):
        ensure_directory(log_dir)
        log_file = Path(log_dir) / f"ci_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        
    return logger


def get_log_file(logger: logging.Logger) -> str:
    """Path of the first file handler on logger, empty if none"""
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return handler.baseFilename
    return ""
