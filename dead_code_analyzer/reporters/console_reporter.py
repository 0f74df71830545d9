"""Rich console report for an analysis run."""
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..analyzer.categorizer import CategorizedEntities
from ..analyzer.extractor import Entity
from ..analyzer.project_analyzer import AnalysisResult


class ConsoleReporter:
    """Print summary and bucket tables for classes and functions."""

    def __init__(self, console: Console, project_path: Path, limit: int = 10, trace: bool = False):
        self.console = console
        self.project_path = Path(project_path)
        self.limit = limit
        self.trace = trace

    def display_path(self, file_path: str) -> str:
        try:
            return str(Path(file_path).relative_to(self.project_path))
        except ValueError:
            return file_path

    def report(self, result: AnalysisResult) -> None:
        self.console.print(self._summary_table(result))
        self.console.print()

        self._report_kind("Classes", result.class_categories)
        if result.function_categories is not None:
            self._report_kind("Functions", result.function_categories)

        if result.skipped_files:
            self.console.print(f"[bold yellow]Skipped {len(result.skipped_files)} unreadable file(s):[/bold yellow]")
            for file_path, reason in sorted(result.skipped_files.items()):
                self.console.print(f"  {escape(self.display_path(file_path))}: {escape(reason)}")

    def _summary_table(self, result: AnalysisResult) -> Table:
        table = Table(title="Analysis Summary", show_header=True, header_style="bold magenta")
        table.add_column("Bucket", style="cyan")
        table.add_column("Classes", justify="right", style="green")
        if result.function_categories is not None:
            table.add_column("Functions", justify="right", style="green")

        class_summary = result.class_categories.summary()
        function_summary = result.function_categories.summary() if result.function_categories else None
        for bucket in CategorizedEntities.BUCKETS:
            row = [bucket.replace('_', ' ').title(), str(class_summary[bucket])]
            if function_summary is not None:
                row.append(str(function_summary[bucket]))
            table.add_row(*row)
        return table

    def _report_kind(self, kind: str, categories: CategorizedEntities) -> None:
        if categories.unused:
            shown = categories.unused[:self.limit] if self.limit > 0 else categories.unused
            title = f"Unused {kind}"
            if len(shown) < len(categories.unused):
                title += f" (showing {len(shown)} of {len(categories.unused)})"
            self.console.print(self._entity_table(title, shown, usage=False))
        else:
            self.console.print(f"[bold green]No unused {kind.lower()} found![/bold green]")

        if categories.commented:
            self.console.print(self._entity_table(f"Commented-out {kind}", categories.commented, usage=False))

        if self.trace:
            for bucket, title in (
                ('internal_only', f"{kind} Used Only Internally"),
                ('external_only', f"{kind} Used Only Externally"),
                ('mixed', f"{kind} Used Internally and Externally"),
                ('entry_point', f"Entry-point {kind}"),
                ('framework_lifecycle', f"Framework Lifecycle {kind}"),
                ('empty_lifecycle', f"Empty Lifecycle {kind}"),
            ):
                entities = getattr(categories, bucket)
                if entities:
                    self.console.print(self._entity_table(title, entities, usage=True))
        self.console.print()

    def _entity_table(self, title: str, entities: List[Entity], usage: bool) -> Table:
        table = Table(title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Category", style="yellow")
        table.add_column("File", style="magenta", no_wrap=False)
        table.add_column("Line", style="green", justify="right")
        if usage:
            table.add_column("Internal", justify="right")
            table.add_column("External", justify="right")
            table.add_column("Used From", no_wrap=False)

        for entity in entities:
            row = [
                escape(entity.qualified_name),
                entity.category.value,
                escape(self.display_path(entity.file_path)),
                str(entity.line),
            ]
            if usage:
                row.extend([
                    str(entity.internal_usage_count),
                    str(entity.total_external_usages),
                    escape(self._consumers(entity)),
                ])
            table.add_row(*row)
        return table

    def _consumers(self, entity: Entity, max_files: Optional[int] = 3) -> str:
        consumers = sorted(entity.external_usages.items(), key=lambda item: (-item[1], item[0]))
        parts = [f"{self.display_path(path)} ({count})" for path, count in consumers[:max_files]]
        if max_files is not None and len(consumers) > max_files:
            parts.append(f"+{len(consumers) - max_files} more")
        return ", ".join(parts)
