"""Shared fixtures: throwaway Dart projects written into tmp_path."""
from pathlib import Path
from textwrap import dedent

import pytest

from dead_code_analyzer.config import AnalysisConfig, RedeclarationPolicy
from dead_code_analyzer.analyzer.project_analyzer import analyze_project


@pytest.fixture
def make_project(tmp_path):
    """Write ``{relative_path: source}`` under tmp_path and return the project root."""
    def _make(files, package_name="sample_app"):
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        (root / "pubspec.yaml").write_text(f"name: {package_name}\n", encoding="utf-8")
        for relative, source in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(source).lstrip("\n"), encoding="utf-8")
        return root.resolve()
    return _make


@pytest.fixture
def analyze():
    """Run the full two-phase analysis over a project root."""
    def _analyze(root: Path, include_functions=False, policy=RedeclarationPolicy.LAST_WINS, workers=2):
        config = AnalysisConfig(
            project_path=root,
            include_functions=include_functions,
            redeclaration_policy=policy,
            max_workers=workers,
        )
        return analyze_project(config)
    return _analyze
