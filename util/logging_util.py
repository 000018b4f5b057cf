import logging
import sys
from typing import TextIO

# Configure logging format
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, level=logging.INFO, stream: TextIO = None) -> logging.Logger:
    """
    Sets up a logger with consistent formatting.

    Args:
        name: Name of the logger (typically __name__ from the calling module)
        level: Logging level (default: INFO)
        stream: Where the handler writes (default: stderr, stdout belongs to
            the agent reading our output)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(level)

        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    return logger


def set_log_level(level) -> None:
    """
    Changes the level of every logger (and its handlers) created through setup_logger.

    Used by the CLI's --debug flag, after the modules have already set up their loggers.
    """
    for logger in logging.Logger.manager.loggerDict.values():
        if not isinstance(logger, logging.Logger) or not logger.handlers:
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def log_message_sent(logger: logging.Logger, channel: str, session_id: str, text: str):
    """
    Logs an outbound relay message.

    Args:
        logger: Logger instance to use
        channel: SMS or WhatsApp
        session_id: Session assigned by the server
        text: Message text
    """
    logger.info(f"📤 {channel} Message Sent - Session: {session_id}")
    logger.debug(f"  Text: {text[:200]}{'...' if len(text) > 200 else ''}")


def log_reply_received(logger: logging.Logger, session_id: str, sender: str, text: str):
    """
    Logs a reply that arrived on the event stream.

    Args:
        logger: Logger instance to use
        session_id: Session the reply belongs to
        sender: Origin label of the reply (channel or "web")
        text: Reply text
    """
    logger.info(f"📥 Reply Received - Session: {session_id}, From: {sender}")
    logger.debug(f"  Text: {text[:200]}{'...' if len(text) > 200 else ''}")
