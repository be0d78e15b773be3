"""
Logging Setup for vgif
Initializes logging from the `logging` section of the YAML config
"""

import os
import copy
import logging
import logging.config
from typing import Any, Dict, Optional

from colorama import init, Fore, Style

# Initialize colorama for Windows compatibility
init(autoreset=True)

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'detailed': {
            'format': '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'console': {
            'format': '%(asctime)s | %(levelname)-8s | %(message)s',
            'datefmt': '%H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'console',
            'stream': 'ext://sys.stdout'
        }
    },
    'loggers': {
        'vgif': {
            'level': 'DEBUG',
            'handlers': ['console'],
            'propagate': False
        }
    },
    'root': {
        'level': 'WARNING',
        'handlers': ['console']
    }
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to console output"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record see a plain level name
        record = copy.copy(record)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
        return super().format(record)


def setup_logging(logging_config: Optional[Dict[str, Any]] = None, verbose: bool = False,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Apply a dictConfig logging setup and colorize the console handler

    Args:
        logging_config: dictConfig mapping, usually ConfigManager.get_logging_config()
        verbose: lower the console handler to DEBUG
        log_file: optional path for a DEBUG-level file handler
    """
    config = copy.deepcopy(logging_config or DEFAULT_LOGGING_CONFIG)
    handlers = config.setdefault('handlers', {})

    if verbose and 'console' in handlers:
        handlers['console']['level'] = 'DEBUG'

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.FileHandler',
            'level': 'DEBUG',
            'formatter': 'detailed' if 'detailed' in config.get('formatters', {}) else None,
            'filename': log_file,
            'mode': 'a',
            'encoding': 'utf-8',
        }
        if handlers['file']['formatter'] is None:
            del handlers['file']['formatter']
        vgif_logger = config.setdefault('loggers', {}).setdefault('vgif', {'level': 'DEBUG'})
        vgif_logger.setdefault('handlers', []).append('file')

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as config_error:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format='%(asctime)s | %(levelname)-8s | %(message)s',
            datefmt='%H:%M:%S'
        )
        logger = logging.getLogger('vgif')
        logger.error(f"Failed to apply logging configuration: {config_error}")
        logger.info("Using basic logging configuration as fallback")
        return logger

    logger = logging.getLogger('vgif')

    console_format = config.get('formatters', {}).get('console', {})
    for handler in logger.handlers + logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setFormatter(ColoredFormatter(
                fmt=console_format.get('format', '%(asctime)s | %(levelname)-8s | %(message)s'),
                datefmt=console_format.get('datefmt', '%H:%M:%S')
            ))

    logger.debug("Logging initialized")
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance"""
    if name:
        return logging.getLogger(f'vgif.{name}')
    return logging.getLogger('vgif')
