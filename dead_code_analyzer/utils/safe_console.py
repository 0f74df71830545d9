"""Terminal-safe Console for the analyzer's reports.

Wraps rich's Console so report icons degrade to ASCII on terminals that
cannot encode UTF-8.
"""
from typing import Any

from rich.console import Console

from .logger import is_utf8_capable, sanitize_for_terminal


class SafeConsole(Console):
    """Console that sanitizes string output on non-UTF-8 terminals."""

    def __init__(self, *args, **kwargs):
        """All arguments are passed through to rich's Console."""
        self._needs_sanitization = not is_utf8_capable()
        if self._needs_sanitization:
            kwargs.setdefault('legacy_windows', True)
        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        if self._needs_sanitization:
            objects = tuple(
                sanitize_for_terminal(obj) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)

    def status(self, *args, **kwargs):
        """Status spinner, ASCII-only where needed."""
        if self._needs_sanitization:
            kwargs['spinner'] = 'line'
        return super().status(*args, **kwargs)
