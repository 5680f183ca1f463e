# marketplace/logger.py
import logging
import os

from rich.logging import RichHandler


class PaddedNameFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so far so messages line up."""

    longest_name_length = 10

    def format(self, record):
        PaddedNameFormatter.longest_name_length = max(
            PaddedNameFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.ljust(PaddedNameFormatter.longest_name_length)
        return super().format(record)


def get_logger(name=None) -> logging.Logger:
    """
    Returns a logger that writes through a RichHandler.
    Level is INFO, or DEBUG when the DEBUG environment variable is set.
    """
    if name is None:
        name = 'marketplace'
    logger = logging.getLogger(name)
    log_level = logging.DEBUG if os.getenv('DEBUG') else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format='[%X]',
        )
        handler.setFormatter(PaddedNameFormatter('[%(name)s]  %(message)s'))
        handler.setLevel(log_level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
