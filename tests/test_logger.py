"""Tests for logging setup and terminal sanitizing."""
import io
import logging

from rich.console import Console
from rich.logging import RichHandler

from dead_code_analyzer.utils import logger as logger_module
from dead_code_analyzer.utils.logger import configure_logging, sanitize_for_terminal


def test_sanitize_on_ascii_terminal(monkeypatch):
    """Icons become ASCII when the terminal cannot encode UTF-8."""
    monkeypatch.setattr(logger_module, "is_utf8_capable", lambda: False)
    assert sanitize_for_terminal("✓ moved → trash") == "[OK] moved -> trash"


def test_sanitize_on_utf8_terminal(monkeypatch):
    """UTF-8 terminals get the text unchanged."""
    monkeypatch.setattr(logger_module, "is_utf8_capable", lambda: True)
    assert sanitize_for_terminal("✓ done") == "✓ done"


class TestConfigureLogging:
    def test_levels(self):
        """Quiet wins over trace; the default shows warnings."""
        console = Console(file=None, stderr=True)

        assert configure_logging(console=console).level == logging.WARNING
        assert configure_logging(trace=True, console=console).level == logging.DEBUG
        assert configure_logging(trace=True, quiet=True, console=console).level == logging.ERROR

    def test_handler_replaced_not_stacked(self):
        """Reconfiguring swaps the RichHandler instead of adding a second one."""
        configure_logging()
        package_logger = configure_logging(trace=True)

        rich_handlers = [h for h in package_logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert package_logger.propagate is False

    def test_log_icons_sanitized(self, monkeypatch):
        """Log records get the same ASCII fallback as report output."""
        monkeypatch.setattr(logger_module, "is_utf8_capable", lambda: False)
        stream = io.StringIO()
        package_logger = configure_logging(console=Console(file=stream, width=120))

        package_logger.warning("✓ moved → trash")

        output = stream.getvalue()
        assert "[OK] moved -> trash" in output
        assert "✓" not in output
