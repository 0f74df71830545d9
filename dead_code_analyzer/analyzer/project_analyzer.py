"""Two-phase project analysis: collect every declaration, then resolve references.

Collection (and directive parsing) must finish for all files before any
file is scanned for references; within each phase files are processed on a
thread pool and results are merged on the calling thread in path order.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..config import AnalysisConfig
from .categorizer import CategorizedEntities, categorize
from .entity_table import EntityTable
from .extractor import Entity, EntityCollector
from .graph_builder import ImportDirective, VisibilityGraph, VisibilityGraphBuilder, parse_directives
from .lexer import discover_dart_files
from .reference_tracker import Reference, ReferenceTracker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class ProjectRootError(ValueError):
    """The project root is missing or not a directory."""


@dataclass
class AnalysisResult:
    """Everything one run produces for reporters and the cleanup step."""
    project_path: Path
    files: List[str]
    classes: EntityTable
    functions: Optional[EntityTable]
    graph: VisibilityGraph
    class_categories: CategorizedEntities
    function_categories: Optional[CategorizedEntities]
    skipped_files: Dict[str, str] = field(default_factory=dict)
    references: List[Reference] = field(default_factory=list)

    def entities(self) -> List[Entity]:
        entities = list(self.classes)
        if self.functions is not None:
            entities.extend(self.functions)
        return entities

    def entities_in_file(self, file_path: str) -> List[Entity]:
        return [entity for entity in self.entities() if entity.file_path == file_path]

    def to_dict(self) -> dict:
        """Serializable form: entity key -> record, plus buckets."""
        data = {
            'project_path': str(self.project_path),
            'files_analyzed': len(self.files),
            'skipped_files': dict(self.skipped_files),
            'classes': self.classes.to_dict(),
            'class_categories': self.class_categories.to_dict(),
        }
        if self.functions is not None and self.function_categories is not None:
            data['functions'] = self.functions.to_dict()
            data['function_categories'] = self.function_categories.to_dict()
        return data


@dataclass
class _FileDeclarations:
    file_path: str
    text: Optional[str]
    entities: List[Entity]
    directives: List[ImportDirective]
    error: Optional[str] = None


class ProjectAnalyzer:
    """Run collection, graph building, resolution and categorization over a project."""

    def __init__(self, config: AnalysisConfig, progress: Optional[ProgressCallback] = None):
        """Initialize analyzer.

        Args:
            config: Per-run settings
            progress: Optional callback(phase description, completed, total)
        """
        self.config = config
        self.project_path = Path(config.project_path).resolve()
        self.progress = progress
        self.collector = EntityCollector(include_functions=config.include_functions)

    def run(self) -> AnalysisResult:
        """Analyze the project.

        Returns:
            AnalysisResult with counted entity tables and buckets

        Raises:
            ProjectRootError: If the project root cannot be read
        """
        if not self.project_path.is_dir():
            raise ProjectRootError(f"Project path is not a readable directory: {self.project_path}")

        try:
            files = [str(path) for path in discover_dart_files(self.project_path, self.config.excluded_dirs)]
        except OSError as e:
            raise ProjectRootError(f"Cannot walk project root {self.project_path}: {e}") from e

        logger.info("Analyzing %d Dart files in %s", len(files), self.project_path)

        classes, functions, graph, sources, skipped = self._collect(files)
        references = self._resolve(classes, functions, graph, sources)

        result = AnalysisResult(
            project_path=self.project_path,
            files=sorted(sources),
            classes=classes,
            functions=functions,
            graph=graph,
            class_categories=categorize(classes),
            function_categories=categorize(functions) if functions is not None else None,
            skipped_files=skipped,
            references=references,
        )
        logger.info("Unused classes: %d", len(result.class_categories.unused))
        if result.function_categories is not None:
            logger.info("Unused functions: %d", len(result.function_categories.unused))
        return result

    def _collect(self, files: List[str]) -> Tuple[EntityTable, Optional[EntityTable], VisibilityGraph,
                                                   Dict[str, str], Dict[str, str]]:
        """Phase 1: declarations and directives for every file."""
        policy = self.config.redeclaration_policy
        classes = EntityTable(policy)
        functions = EntityTable(policy) if self.config.include_functions else None
        builder = VisibilityGraphBuilder(self.project_path, self.config.excluded_dirs)
        sources: Dict[str, str] = {}
        skipped: Dict[str, str] = {}

        description = "Phase 1/2: Collecting declarations..."
        self._report(description, 0, len(files))
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            for completed, scanned in enumerate(executor.map(self._scan_declarations, files), start=1):
                if scanned.error is not None:
                    skipped[scanned.file_path] = scanned.error
                else:
                    sources[scanned.file_path] = scanned.text
                    for entity in scanned.entities:
                        table = functions if entity.is_function else classes
                        table.add(entity)
                    builder.add_file(scanned.file_path, scanned.directives)
                self._report(description, completed, len(files))

        graph = builder.graph
        unresolved = graph.unresolved()
        if unresolved:
            logger.debug("%d directives did not resolve to project files", len(unresolved))
        for cycle in graph.export_cycles():
            logger.debug("Export cycle: %s", " -> ".join(cycle))

        return classes, functions, graph, sources, skipped

    def _scan_declarations(self, file_path: str) -> _FileDeclarations:
        try:
            text = Path(file_path).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable file %s: %s", file_path, e)
            return _FileDeclarations(file_path, None, [], [], error=str(e))

        return _FileDeclarations(
            file_path=file_path,
            text=text,
            entities=self.collector.collect(file_path, text),
            directives=parse_directives(file_path, text),
        )

    def _resolve(self, classes: EntityTable, functions: Optional[EntityTable],
                 graph: VisibilityGraph, sources: Dict[str, str]) -> List[Reference]:
        """Phase 2: count references; tallies are merged on this thread."""
        tracker = ReferenceTracker(classes, functions, graph, trace=self.config.trace)
        paths = sorted(sources)
        references: List[Reference] = []

        description = "Phase 2/2: Resolving references..."
        self._report(description, 0, len(paths))
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            tallies = executor.map(tracker.scan_file, paths, [sources[path] for path in paths])
            for completed, tally in enumerate(tallies, start=1):
                tracker.apply(tally)
                references.extend(tally.references)
                self._report(description, completed, len(paths))

        return references

    def _report(self, description: str, completed: int, total: int) -> None:
        if self.progress is not None:
            self.progress(description, completed, total)


def analyze_project(config: AnalysisConfig, progress: Optional[ProgressCallback] = None) -> AnalysisResult:
    """Shared analysis entry point for the audit and clean commands."""
    return ProjectAnalyzer(config, progress).run()
