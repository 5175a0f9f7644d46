"""
Logging configuration for the messenger bridge and assistant proxy.
"""

import logging
import sys


def setup_logging(name: str = "messenger_bot") -> logging.Logger:
    """Setup logging with proper format and handlers."""

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


# Global logger instances
bot_logger = setup_logging("messenger_bot")
assistant_logger = setup_logging("assistant")
