"""Import/export visibility graph built with NetworkX.

Nodes are absolute file paths. An edge (A, B) carries the list of directives
in A whose resolved target is B; unresolved directives stay on A's node.
"""
import logging
import re
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import networkx as nx

from .lexer import DART_FILE_SUFFIX, MaskedSource

logger = logging.getLogger(__name__)


class DirectiveKind(str, Enum):
    IMPORT = "import"
    EXPORT = "export"
    PART = "part"
    PART_OF = "part_of"


@dataclass
class ImportDirective:
    """One import, export or part directive in a file."""
    owner_file: str
    target_raw: str
    kind: DirectiveKind
    line: int
    resolved_target: Optional[str] = None
    alias: Optional[str] = None
    shown_names: Optional[Tuple[str, ...]] = None  # None means no show combinator
    hidden_names: Tuple[str, ...] = ()

    @property
    def is_export(self) -> bool:
        return self.kind == DirectiveKind.EXPORT

    @property
    def is_wildcard_export(self) -> bool:
        return self.is_export and self.shown_names is None and not self.hidden_names

    @property
    def is_resolved(self) -> bool:
        return self.resolved_target is not None

    def accepts(self, name: str) -> bool:
        """Check the show/hide filter for ``name``."""
        if self.shown_names is not None:
            return name in self.shown_names
        return name not in self.hidden_names


_DIRECTIVE_START = re.compile(r'^\s*(?:import|export|part|library)\b')
_LIBRARY = re.compile(r'^\s*library(?:\s+[\w$.]+)?\s*;')
_URI_DIRECTIVE = re.compile(
    r"""^\s*(?P<kind>import|export)\s+(?P<quote>['"])(?P<uri>[^'"]+)(?P=quote)(?P<rest>[^;]*);"""
)
_PART = re.compile(r"""^\s*part\s+(?P<quote>['"])(?P<uri>[^'"]+)(?P=quote)\s*;""")
_PART_OF = re.compile(r"""^\s*part\s+of\s+(?:(?P<quote>['"])(?P<uri>[^'"]+)(?P=quote)|(?P<library>[\w$.]+))\s*;""")
_CONFIGURATION = re.compile(r"""\bif\s*\([^)]*\)\s*['"][^'"]*['"]""")
_ALIAS = re.compile(r'\bas\s+(?P<alias>[A-Za-z_$][\w$]*)')
_COMBINATOR = re.compile(r'\b(?P<kind>show|hide)\s+(?P<names>(?:[\w$]+\s*,\s*)*[\w$]+)')
_PUBSPEC_NAME = re.compile(r'^name:\s*["\']?(?P<name>[A-Za-z_][\w]*)', re.MULTILINE)

# A directive statement may wrap across several lines
_MAX_DIRECTIVE_LINES = 10


def parse_directives(file_path: str, text: str) -> List[ImportDirective]:
    """Extract import/export/part directives from one file (unresolved).

    Args:
        file_path: Absolute path of the owning file
        text: File contents

    Returns:
        Directives in source order
    """
    source = MaskedSource.from_text(text)
    directives = []

    for first, _, statement in _candidate_statements(source):
        if _LIBRARY.match(statement):
            continue
        directive = _parse_statement(file_path, statement, first + 1)
        if directive is None:
            logger.debug("Unparsed directive in %s:%d: %s", file_path, first + 1, statement)
            continue
        directives.append(directive)

    return directives


def directive_lines(source: MaskedSource) -> Set[int]:
    """Indices of the lines taken up by real directive statements.

    A line starting with ``part`` or ``library`` may just as well be code
    using a variable of that name, so only statements that parse count.
    """
    covered = set()
    for first, last, statement in _candidate_statements(source):
        if _LIBRARY.match(statement) or _parse_statement("", statement, first + 1) is not None:
            covered.update(range(first, last + 1))
    return covered


def _candidate_statements(source: MaskedSource) -> Iterator[Tuple[int, int, str]]:
    """Yield (first line, last line, joined raw text) for lines opening like a directive."""
    for index, masked in enumerate(source.masked):
        if source.starts_in_string[index] or not _DIRECTIVE_START.match(masked):
            continue

        last = index
        for offset in range(_MAX_DIRECTIVE_LINES):
            if index + offset >= len(source.lines):
                break
            last = index + offset
            if ';' in source.masked[last]:
                break
        yield index, last, ' '.join(line.strip() for line in source.lines[index:last + 1])


def _parse_statement(file_path: str, statement: str, line: int) -> Optional[ImportDirective]:
    part_of = _PART_OF.match(statement)
    if part_of:
        target = part_of.group('uri') or part_of.group('library')
        return ImportDirective(file_path, target, DirectiveKind.PART_OF, line)

    part = _PART.match(statement)
    if part:
        return ImportDirective(file_path, part.group('uri'), DirectiveKind.PART, line)

    match = _URI_DIRECTIVE.match(statement)
    if not match:
        return None

    rest = _CONFIGURATION.sub(' ', match.group('rest'))
    alias_match = _ALIAS.search(rest)
    alias = alias_match.group('alias') if alias_match else None

    shown, hidden = None, []
    for combinator in _COMBINATOR.finditer(rest):
        names = [name.strip() for name in combinator.group('names').split(',') if name.strip()]
        if combinator.group('kind') == 'show':
            shown = names if shown is None else [name for name in shown if name in names]
        else:
            hidden.extend(names)

    # Fold show+hide into a single show list
    if shown is not None and hidden:
        shown = [name for name in shown if name not in hidden]
        hidden = []

    return ImportDirective(
        owner_file=file_path,
        target_raw=match.group('uri'),
        kind=DirectiveKind(match.group('kind')),
        line=line,
        alias=alias,
        shown_names=tuple(shown) if shown is not None else None,
        hidden_names=tuple(hidden),
    )


class DirectiveResolver:
    """Resolve directive URIs to absolute Dart files inside the project."""

    def __init__(self, project_root: str | Path, excluded_dirs: Iterable[str] = ()):
        """Initialize resolver.

        Args:
            project_root: Root directory of the project
            excluded_dirs: Directory names skipped when looking for pubspec.yaml files
        """
        self.project_root = Path(project_root).resolve()
        self.package_roots = self._discover_packages(set(excluded_dirs))

    def _discover_packages(self, excluded: set) -> Dict[str, Path]:
        """Map each pubspec.yaml ``name:`` in the project to its lib/ directory."""
        packages = {}
        for pubspec in sorted(self.project_root.rglob('pubspec.yaml')):
            relative_parts = pubspec.relative_to(self.project_root).parts[:-1]
            if any(part in excluded for part in relative_parts):
                continue
            try:
                content = pubspec.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Could not read %s: %s", pubspec, e)
                continue
            match = _PUBSPEC_NAME.search(content)
            if match:
                packages.setdefault(match.group('name'), pubspec.parent / 'lib')
        logger.debug("Project packages: %s", ', '.join(sorted(packages)) or '(none)')
        return packages

    def resolve(self, owner_file: str | Path, uri: str) -> Optional[Path]:
        """Resolve ``uri`` as written in ``owner_file``.

        Tries the path as absolute or relative (to the owning file, then to the
        project root), then as a package URI of a package declared in this
        project. SDK and third-party URIs resolve to None.
        """
        if not uri or uri.startswith('dart:'):
            return None

        if uri.startswith('package:'):
            package_name, _, relative = uri[len('package:'):].partition('/')
            package_root = self.package_roots.get(package_name)
            if package_root is None or not relative:
                return None
            return self._existing(package_root / relative)

        path = Path(uri)
        if path.is_absolute():
            return self._existing(path)
        return self._existing(Path(owner_file).parent / path) or self._existing(self.project_root / path)

    @staticmethod
    def _existing(candidate: Path) -> Optional[Path]:
        if candidate.suffix != DART_FILE_SUFFIX:
            candidate = candidate.with_name(candidate.name + DART_FILE_SUFFIX)
        candidate = candidate.resolve()
        return candidate if candidate.is_file() else None


class VisibilityGraph:
    """Directed graph of import/export/part relationships between files."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._cache: Dict[tuple, bool] = {}

    def add_file(self, file_path: str) -> None:
        if file_path not in self.graph:
            self.graph.add_node(file_path, directives=[])

    def add_directive(self, directive: ImportDirective) -> None:
        self.add_file(directive.owner_file)
        self.graph.nodes[directive.owner_file]['directives'].append(directive)
        if directive.resolved_target is None:
            return
        self.add_file(directive.resolved_target)
        if not self.graph.has_edge(directive.owner_file, directive.resolved_target):
            self.graph.add_edge(directive.owner_file, directive.resolved_target, directives=[])
        self.graph.edges[directive.owner_file, directive.resolved_target]['directives'].append(directive)

    def directives_of(self, file_path: str) -> List[ImportDirective]:
        if file_path not in self.graph:
            return []
        return list(self.graph.nodes[file_path]['directives'])

    def unresolved(self) -> List[ImportDirective]:
        return [
            directive
            for _, directives in self.graph.nodes(data='directives')
            for directive in directives or ()
            if not directive.is_resolved
        ]

    def library_scopes(self, file_path: str) -> List[str]:
        """The file itself plus the libraries it is a part of."""
        scopes = [file_path]
        for directive in self.directives_of(file_path):
            if directive.kind == DirectiveKind.PART_OF and directive.resolved_target:
                scopes.append(directive.resolved_target)
        return scopes

    def is_visible(self, consumer_file: str, declaring_file: str, name: str,
                   qualifier: Optional[str] = None, member_access: bool = False) -> bool:
        """Decide whether ``name`` declared in ``declaring_file`` is in scope in ``consumer_file``.

        Args:
            consumer_file: File containing the occurrence
            declaring_file: File declaring the entity
            name: Entity name as written
            qualifier: Identifier immediately before ``.name`` at the use site, if any
            member_access: True when the entity is a member reached through ``x.name``

        Returns:
            True if some import (directly or through export hops) accepts the name
        """
        cache_key = (consumer_file, declaring_file, name, qualifier, member_access)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        visible = self._compute_visibility(consumer_file, declaring_file, name, qualifier, member_access)
        self._cache[cache_key] = visible
        return visible

    def _compute_visibility(self, consumer_file: str, declaring_file: str, name: str,
                            qualifier: Optional[str], member_access: bool) -> bool:
        private = name.startswith('_')
        for scope in self.library_scopes(consumer_file):
            if scope == declaring_file and scope != consumer_file:
                return True
            for directive in self.directives_of(scope):
                if not directive.is_resolved or directive.is_export:
                    continue
                # Parts share one library scope, private names included
                if directive.kind in (DirectiveKind.PART, DirectiveKind.PART_OF):
                    if self._reaches(directive.resolved_target, declaring_file, name, follow_exports=False):
                        return True
                    continue
                if private or not directive.accepts(name):
                    continue
                if directive.alias and not member_access and qualifier != directive.alias:
                    continue
                if self._reaches(directive.resolved_target, declaring_file, name):
                    return True
        return False

    def _reaches(self, start: str, declaring_file: str, name: str, follow_exports: bool = True) -> bool:
        """Breadth-first walk over export/part edges; each file is expanded once."""
        visited = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current == declaring_file:
                return True
            for _, target, directives in self.graph.out_edges(current, data='directives'):
                if target in visited:
                    continue
                for directive in directives:
                    if directive.kind == DirectiveKind.PART or (
                        follow_exports and directive.is_export and directive.accepts(name)
                    ):
                        visited.add(target)
                        queue.append(target)
                        break
        return False

    def export_cycles(self) -> List[List[str]]:
        """Cycles formed by export edges alone."""
        export_edges = [
            (source, target)
            for source, target, directives in self.graph.edges(data='directives')
            if any(directive.is_export for directive in directives)
        ]
        return [list(cycle) for cycle in nx.simple_cycles(nx.DiGraph(export_edges))]


class VisibilityGraphBuilder:
    """Build a VisibilityGraph from per-file directive lists."""

    def __init__(self, project_root: str | Path, excluded_dirs: Iterable[str] = ()):
        self.project_root = Path(project_root).resolve()
        self.resolver = DirectiveResolver(self.project_root, excluded_dirs)
        self.graph = VisibilityGraph()

    def add_file(self, file_path: str, directives: List[ImportDirective]) -> None:
        """Resolve a file's directives and add them to the graph."""
        self.graph.add_file(file_path)
        for directive in directives:
            target = self.resolver.resolve(file_path, directive.target_raw)
            if target is not None:
                directive.resolved_target = str(target)
            else:
                logger.debug(
                    "Unresolved %s '%s' in %s:%d",
                    directive.kind.value, directive.target_raw, file_path, directive.line,
                )
            self.graph.add_directive(directive)

    def build(self, sources: Dict[str, str]) -> VisibilityGraph:
        """Parse and resolve directives for every file.

        Args:
            sources: Mapping of absolute file path to contents

        Returns:
            The populated VisibilityGraph
        """
        for file_path in sorted(sources):
            self.add_file(file_path, parse_directives(file_path, sources[file_path]))
        return self.graph
