"""
Project logger with colored console output.
"""

import logging
import sys

from colorama import Fore, Style, init

init(autoreset=True)


class ColorFormatter(logging.Formatter):

    COLORS = {
        logging.DEBUG: Fore.WHITE,
        logging.INFO: Fore.CYAN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    PREFIXES = {
        logging.DEBUG: '[.]',
        logging.INFO: '[*]',
        logging.WARNING: '[!]',
        logging.ERROR: '[-]',
        logging.CRITICAL: '[x]',
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, '')
        prefix = self.PREFIXES.get(record.levelno, '[*]')
        message = super().format(record)
        return f"{color}{prefix}{Style.RESET_ALL} {message}"


logger = logging.getLogger('pronet')

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(ColorFormatter('%(message)s'))
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def set_verbose(enabled: bool = True):
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)


def set_silent(enabled: bool = True):
    logger.setLevel(logging.ERROR if enabled else logging.INFO)
