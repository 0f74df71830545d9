"""CLI tests driven through typer's CliRunner."""
import json
import logging

import pytest
from rich.logging import RichHandler
from typer.testing import CliRunner

from dead_code_analyzer.config import __version__
from dead_code_analyzer.main import app
from dead_code_analyzer.utils.logger import LOGGER_NAME
from dead_code_analyzer.utils.safe_console import SafeConsole

runner = CliRunner()


@pytest.fixture
def project(make_project):
    return make_project({
        "lib/main.dart": "import 'used.dart';\n\nvoid main() {\n  Used();\n}\n",
        "lib/used.dart": "class Used {}\n",
        "lib/dead.dart": "class Active {}\n",
    })


class TestAudit:
    def test_json_report(self, project, tmp_path):
        """--json writes the entity tables and buckets."""
        report = tmp_path / "out" / "report.json"

        result = runner.invoke(app, ["audit", str(project), "--quiet", "--no-funcs", "--json", str(report)])

        assert result.exit_code == 0, result.output
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["version"] == __version__
        assert data["class_categories"]["unused"] == ["Active"]
        assert data["class_categories"]["external_only"] == ["Used"]
        assert "functions" not in data

    def test_functions_flag(self, project, tmp_path):
        """--funcs adds the function table; main is an entry point."""
        report = tmp_path / "report.json"

        result = runner.invoke(app, ["audit", str(project), "-q", "--funcs", "--json", str(report)])

        assert result.exit_code == 0, result.output
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["function_categories"]["entry_point"] == ["main"]
        assert data["functions"]["main"]["is_entry_point"] is True

    def test_coexist_policy_option(self, make_project, tmp_path):
        """--redeclaration coexist keeps both records of a duplicated name."""
        root = make_project({"lib/a.dart": "class Dup {}\n", "lib/b.dart": "class Dup {}\n"})
        report = tmp_path / "report.json"

        result = runner.invoke(app, ["audit", str(root), "-q", "--redeclaration", "coexist", "--json", str(report)])

        assert result.exit_code == 0, result.output
        assert len(json.loads(report.read_text(encoding="utf-8"))["classes"]) == 2

    @pytest.mark.parametrize("style", ["txt", "md", "html"])
    def test_report_file(self, project, tmp_path, style):
        """--out/--style save a full report file in the chosen format."""
        out_dir = tmp_path / "reports"

        result = runner.invoke(app, ["audit", str(project), "-q", "--out", str(out_dir), "--style", style])

        assert result.exit_code == 0, result.output
        written = list(out_dir.iterdir())
        assert [path.suffix for path in written] == [f".{style}"]
        assert "Active" in written[0].read_text(encoding="utf-8")
        assert "Report saved to" in result.output

    def test_logs_go_to_safe_console(self, project):
        """Log records are rendered by the terminal-safe console."""
        result = runner.invoke(app, ["audit", str(project), "-q"])

        assert result.exit_code == 0, result.output
        handlers = [h for h in logging.getLogger(LOGGER_NAME).handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1
        assert isinstance(handlers[0].console, SafeConsole)
        assert handlers[0].console.stderr

    def test_missing_project(self, tmp_path):
        """A missing project root exits with status 1."""
        result = runner.invoke(app, ["audit", str(tmp_path / "nowhere"), "--quiet"])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_version(self):
        """--version prints the package version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestCleanAndRestore:
    def test_dry_run_keeps_files(self, project):
        """--dry-run lists candidates without moving them."""
        result = runner.invoke(app, ["clean", str(project), "--dry-run", "--quiet"])

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert (project / "lib/dead.dart").exists()

    def test_declined_confirmation(self, project):
        """Answering no at the prompt leaves the files alone."""
        result = runner.invoke(app, ["clean", str(project), "--quiet"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled." in result.output
        assert (project / "lib/dead.dart").exists()

    def test_clean_then_restore(self, project, tmp_path):
        """A cleaned file comes back byte for byte through its deletion ID."""
        trash = tmp_path / "trash"
        dead = project / "lib/dead.dart"

        result = runner.invoke(app, ["clean", str(project), "--yes", "--quiet", "--trash", str(trash)])

        assert result.exit_code == 0, result.output
        assert not dead.exists()
        assert (project / "lib/used.dart").exists()
        deletions = json.loads((trash / "manifest.json").read_text(encoding="utf-8"))["deletions"]
        assert [d["entities"] for d in deletions] == [["Active"]]

        result = runner.invoke(app, ["restore", deletions[0]["id"], "--trash", str(trash)])

        assert result.exit_code == 0, result.output
        assert dead.read_text(encoding="utf-8") == "class Active {}\n"

    def test_restore_unknown_id(self, project, tmp_path):
        """An unknown deletion ID is reported as an error."""
        trash = tmp_path / "trash"
        trash.mkdir()

        result = runner.invoke(app, ["restore", "nope", "--trash", str(trash)])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_nothing_to_clean(self, make_project):
        """A project with no dead files is left untouched."""
        root = make_project({"lib/main.dart": "void main() {}\n"})

        result = runner.invoke(app, ["clean", str(root), "--yes", "--quiet"])

        assert result.exit_code == 0
        assert "No dead files found." in result.output
