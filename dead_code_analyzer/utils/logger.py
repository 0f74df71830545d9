"""Logging setup and terminal-safe text for the analyzer's console output.

Log records go through rich's RichHandler on the shared console. On
terminals that cannot encode UTF-8, the few Unicode icons the reports use
are replaced with ASCII equivalents.
"""
import locale
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    '✓': '[OK]',      # check mark
    '✗': '[FAIL]',    # ballot x
    '⚠': '[WARN]',    # warning sign
    '→': '->',        # right arrow
    '←': '<-',        # left arrow
    '…': '...',       # ellipsis
    '•': '*',         # bullet
    '─': '-',         # box drawing horizontal
    '│': '|',         # box drawing vertical
}

LOGGER_NAME = "dead_code_analyzer"


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding.

    Returns:
        str: Lowercased encoding name ('utf-8', 'cp1252', 'ascii', ...)
    """
    if getattr(sys.stdout, 'encoding', None):
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (AttributeError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if the terminal lacks UTF-8.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Text safe for the current terminal
    """
    if is_utf8_capable():
        return text

    for unicode_char, ascii_replacement in ICON_MAP.items():
        text = text.replace(unicode_char, ascii_replacement)
    return text


class TerminalSafeFormatter(logging.Formatter):
    """Formatter whose output goes through sanitize_for_terminal()."""

    def format(self, record: logging.LogRecord) -> str:
        return sanitize_for_terminal(super().format(record))


def configure_logging(trace: bool = False, quiet: bool = False,
                      console: Optional[Console] = None) -> logging.Logger:
    """Route the package's log records to a RichHandler.

    Trace mode only changes how much diagnostic output is shown; it never
    affects analysis results.

    Args:
        trace: Show DEBUG records (per-file decisions, unresolved imports)
        quiet: Show only errors
        console: Console the handler writes to, normally the CLI's SafeConsole
            (a plain stderr Console by default)

    Returns:
        The package logger
    """
    if quiet:
        level = logging.ERROR
    elif trace:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=trace,
        show_path=trace,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(TerminalSafeFormatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return package_logger
