"""Tests for the console, JSON and report-file reporters."""
import json
from datetime import datetime

import pytest
from rich.console import Console

from dead_code_analyzer.config import __version__
from dead_code_analyzer.reporters.console_reporter import ConsoleReporter
from dead_code_analyzer.reporters.file_reporter import FileReporter, ReportStyle
from dead_code_analyzer.reporters.json_reporter import write_json_report

FILES = {
    "lib/a.dart": "class Active {}\nclass Shared {}\n// class Retired {}\n",
    "lib/b.dart": "import 'a.dart';\n\nfinal s = Shared();\n",
}


def render(result, root, **options):
    console = Console(record=True, width=200, color_system=None)
    ConsoleReporter(console, root, **options).report(result)
    return console.export_text()


class TestConsoleReporter:
    def test_unused_and_commented_tables(self, make_project, analyze):
        """Summary, unused and commented tables are always printed."""
        root = make_project(FILES)
        output = render(analyze(root), root)

        assert "Analysis Summary" in output
        assert "Unused Classes" in output
        assert "Active" in output
        assert "Commented-out Classes" in output
        assert "Retired" in output
        assert "Used Only Externally" not in output

    def test_trace_adds_usage_tables(self, make_project, analyze):
        """Trace mode adds the usage buckets with consuming files."""
        root = make_project(FILES)
        output = render(analyze(root), root, trace=True)

        assert "Classes Used Only Externally" in output
        assert "lib/b.dart (1)" in output

    def test_limit(self, make_project, analyze):
        """The unused table is cut to the configured limit."""
        root = make_project({"lib/a.dart": "class One {}\nclass Two {}\nclass Three {}\n"})
        output = render(analyze(root), root, limit=2)

        assert "showing 2 of 3" in output


class TestJsonReporter:
    def test_written_document(self, make_project, analyze, tmp_path):
        """The JSON file carries the version, the entity records and the buckets."""
        root = make_project(FILES)
        path = write_json_report(analyze(root), tmp_path / "reports" / "dead.json")
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["version"] == __version__
        assert data["files_analyzed"] == 2
        assert data["classes"]["Shared"]["external_usages"] == {str(root / "lib/b.dart"): 1}
        assert data["classes"]["Shared"]["total_usages"] == 1
        assert data["class_categories"]["unused"] == ["Active"]


class TestFileReporter:
    """Full txt / md / html reports saved to disk."""

    GENERATED_AT = datetime(2026, 1, 2, 3, 4, 5)

    @pytest.fixture
    def analyzed(self, make_project, analyze):
        root = make_project(FILES)
        return FileReporter(root, generated_at=self.GENERATED_AT), analyze(root)

    def test_text_report(self, analyzed):
        """Every bucket is listed with lib-relative paths and usage counts."""
        reporter, result = analyzed
        text = reporter.generate_text_report(result)

        assert text.startswith("Dead Code Analysis - 2026-01-02 03:04:05")
        assert "Total classes: 3" in text
        assert "  Unused: 1 (33.3%)" in text
        assert "- Active (in a.dart:1, internal: 0, external: 0, total: 0)" in text
        assert "- Shared (in a.dart:2, internal: 0, external: 1, total: 1) [b.dart (1 references)]" in text
        assert "- Retired (in a.dart:3" in text

    def test_markdown_report(self, analyzed):
        """Markdown has a summary table and one table per non-empty bucket."""
        reporter, result = analyzed
        markdown = reporter.generate_markdown_report(result)

        assert markdown.startswith("# Dead Code Analysis")
        assert "| Unused | 1 |" in markdown
        assert "## Classes" in markdown
        assert "### Used only externally" in markdown
        assert "| `Shared` | a.dart:2 | 0 | 1 | b.dart (1 references) |" in markdown
        assert "### Used internally and externally" not in markdown
        assert "## Functions" not in markdown

    def test_html_report(self, analyzed):
        """The HTML page holds a table row per entity."""
        reporter, result = analyzed
        page = reporter.generate_html_report(result)

        assert page.startswith("<!DOCTYPE html>")
        assert "<h2>Classes</h2>" in page
        assert "<h3>Unused (1)</h3>" in page
        assert "<tr><td>Active</td><td>a.dart:1</td>" in page

    @pytest.mark.parametrize("style", list(ReportStyle))
    def test_save_report(self, analyzed, tmp_path, style):
        """The saved file is timestamped and named after its style."""
        reporter, result = analyzed

        path = reporter.save_report(result, tmp_path / "reports", style)

        assert path == tmp_path / "reports" / f"dead_code_report_2026-01-02_03-04-05.{style.value}"
        assert "Active" in path.read_text(encoding="utf-8")
