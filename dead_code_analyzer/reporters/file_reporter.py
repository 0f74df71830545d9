"""Report files (plain text, Markdown or HTML) for an analysis run.

Unlike the console report, files list every entity in every bucket.
"""
import html
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..analyzer.categorizer import CategorizedEntities
from ..analyzer.extractor import Entity
from ..analyzer.project_analyzer import AnalysisResult


class ReportStyle(str, Enum):
    TXT = "txt"
    MD = "md"
    HTML = "html"


SECTIONS = (
    ('unused', "Unused"),
    ('commented', "Commented-out"),
    ('internal_only', "Used only internally"),
    ('external_only', "Used only externally"),
    ('mixed', "Used internally and externally"),
    ('entry_point', "Entry points"),
    ('framework_lifecycle', "Framework lifecycle"),
    ('empty_lifecycle', "Empty lifecycle"),
)


class FileReporter:
    """Generate and save full usage reports in the supported styles."""

    def __init__(self, project_path: str | Path, generated_at: Optional[datetime] = None):
        self.project_path = Path(project_path)
        self.generated_at = generated_at or datetime.now()

    def display_path(self, file_path: str) -> str:
        """Path relative to ``lib/`` when the file lives there, else to the project root."""
        path = Path(file_path)
        for base in (self.project_path / "lib", self.project_path):
            try:
                return path.relative_to(base).as_posix()
            except ValueError:
                continue
        return file_path

    def consumers(self, entity: Entity) -> str:
        ordered = sorted(entity.external_usages.items(), key=lambda item: (-item[1], item[0]))
        return ", ".join(f"{self.display_path(path)} ({count} references)" for path, count in ordered)

    def _kinds(self, result: AnalysisResult) -> Iterator[Tuple[str, int, CategorizedEntities]]:
        yield "Classes", len(result.classes), result.class_categories
        if result.functions is not None and result.function_categories is not None:
            yield "Functions", len(result.functions), result.function_categories

    @staticmethod
    def _percentage(count: int, total: int) -> str:
        return f"{count / (total or 1) * 100:.1f}%"

    def generate_text_report(self, result: AnalysisResult) -> str:
        """
        Generate text report

        Args:
            result: Finished analysis

        Returns:
            Formatted text report
        """
        lines = [
            f"Dead Code Analysis - {self.generated_at:%Y-%m-%d %H:%M:%S}",
            "=" * 50,
            f"Project: {self.project_path}",
            f"Files analyzed: {len(result.files)}",
            "",
            "Summary",
            "-" * 7,
        ]
        for kind, total, categories in self._kinds(result):
            lines.append(f"Total {kind.lower()}: {total}")
            for bucket, title in SECTIONS:
                count = len(getattr(categories, bucket))
                lines.append(f"  {title}: {count} ({self._percentage(count, total)})")
        lines.append("")

        for kind, _, categories in self._kinds(result):
            lines.extend([kind, "=" * len(kind), ""])
            for bucket, title in SECTIONS:
                lines.extend([title, "-" * len(title)])
                entities: List[Entity] = getattr(categories, bucket)
                if not entities:
                    lines.append("None.")
                for entity in entities:
                    entry = (
                        f"- {entity.qualified_name} (in {self.display_path(entity.file_path)}:{entity.line}, "
                        f"internal: {entity.internal_usage_count}, external: {entity.total_external_usages}, "
                        f"total: {entity.total_usages})"
                    )
                    if entity.external_usages:
                        entry += f" [{self.consumers(entity)}]"
                    lines.append(entry)
                lines.append("")

        if result.skipped_files:
            lines.extend(["Skipped files", "-" * 13])
            for file_path, reason in sorted(result.skipped_files.items()):
                lines.append(f"- {self.display_path(file_path)}: {reason}")
            lines.append("")

        return "\n".join(lines)

    def generate_markdown_report(self, result: AnalysisResult) -> str:
        """
        Generate Markdown report

        Args:
            result: Finished analysis

        Returns:
            Markdown string
        """
        lines = [
            "# Dead Code Analysis",
            "",
            f"- **Project**: `{self.project_path}`",
            f"- **Generated**: {self.generated_at:%Y-%m-%d %H:%M:%S}",
            f"- **Files analyzed**: {len(result.files)}",
            "",
            "## Summary",
            "",
        ]
        kinds = list(self._kinds(result))
        lines.append("| Bucket | " + " | ".join(kind for kind, _, _ in kinds) + " |")
        lines.append("|---" * (len(kinds) + 1) + "|")
        for bucket, title in SECTIONS:
            counts = [str(len(getattr(categories, bucket))) for _, _, categories in kinds]
            lines.append(f"| {title} | " + " | ".join(counts) + " |")
        lines.append("")

        for kind, _, categories in kinds:
            lines.extend([f"## {kind}", ""])
            for bucket, title in SECTIONS:
                entities = getattr(categories, bucket)
                if not entities:
                    continue
                lines.extend([
                    f"### {title}",
                    "",
                    "| Name | Location | Internal | External | Used from |",
                    "|---|---|---|---|---|",
                ])
                for entity in entities:
                    lines.append(
                        f"| `{entity.qualified_name}` | {self.display_path(entity.file_path)}:{entity.line} "
                        f"| {entity.internal_usage_count} | {entity.total_external_usages} | {self.consumers(entity)} |"
                    )
                lines.append("")

        return "\n".join(lines)

    def generate_html_report(self, result: AnalysisResult) -> str:
        """Standalone HTML page with one table per non-empty bucket."""
        parts = [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '<meta charset="utf-8">',
            "<title>Dead Code Analysis</title>",
            "<style>table{border-collapse:collapse}td,th{border:1px solid #ccc;padding:2px 8px}</style>",
            "</head>",
            "<body>",
            "<h1>Dead Code Analysis</h1>",
            f"<p>{html.escape(str(self.project_path))}: {len(result.files)} files, "
            f"generated {self.generated_at:%Y-%m-%d %H:%M:%S}</p>",
        ]
        for kind, total, categories in self._kinds(result):
            parts.append(f"<h2>{kind}</h2>")
            parts.append(f"<p>Total: {total}</p>")
            for bucket, title in SECTIONS:
                entities = getattr(categories, bucket)
                if not entities:
                    continue
                parts.append(f"<h3>{title} ({len(entities)})</h3>")
                parts.append("<table>")
                parts.append("<tr><th>Name</th><th>Location</th><th>Internal</th><th>External</th><th>Used from</th></tr>")
                for entity in entities:
                    location = f"{self.display_path(entity.file_path)}:{entity.line}"
                    parts.append(
                        f"<tr><td>{html.escape(entity.qualified_name)}</td><td>{html.escape(location)}</td>"
                        f"<td>{entity.internal_usage_count}</td><td>{entity.total_external_usages}</td>"
                        f"<td>{html.escape(self.consumers(entity))}</td></tr>"
                    )
                parts.append("</table>")
        parts.extend(["</body>", "</html>", ""])
        return "\n".join(parts)

    def save_report(self, result: AnalysisResult, output_dir: str | Path,
                    style: ReportStyle = ReportStyle.TXT) -> Path:
        """Write a timestamped report into ``output_dir``.

        Returns:
            The path written
        """
        if style == ReportStyle.MD:
            content = self.generate_markdown_report(result)
        elif style == ReportStyle.HTML:
            content = self.generate_html_report(result)
        else:
            content = self.generate_text_report(result)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"dead_code_report_{self.generated_at:%Y-%m-%d_%H-%M-%S}.{style.value}"
        output_path.write_text(content, encoding="utf-8")
        return output_path
