"""Reference tracker: count and attribute usages of collected entities.

Every file is rescanned after collection has finished. Each identifier token
outside comments and strings that matches a known entity name is counted as
internal (same file), external (visible through the import graph) or ignored.

Known limitation: a class constructor written with the class name (``Foo(...)``)
matches the class itself, so explicit constructor signatures add to the
class's internal count.
"""
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..config import RedeclarationPolicy
from .entity_table import EntityTable
from .extractor import Entity
from .graph_builder import VisibilityGraph, directive_lines
from .lexer import IDENTIFIER, MaskedSource

logger = logging.getLogger(__name__)

CLASSES = "classes"
FUNCTIONS = "functions"

_STATE_GENERIC = re.compile(r'\bextends\s+State\s*<\s*$')
_CLASS_KEYWORD = re.compile(r'\bclass\b')
_DECLARING_KEYWORD = re.compile(r'\b(?:class|enum|mixin|extension|typedef)\s+$')
_LABEL_CONTEXT = ('(', ',', '{')


@dataclass
class Reference:
    """One counted occurrence of an entity (kept only in trace mode)."""
    entity_key: str
    file_path: str
    line_number: int
    reference_type: str  # 'internal' or 'external'


@dataclass
class UsageTally:
    """Usage counts produced by scanning a single file.

    Keys are ``(table, entity_key)`` pairs so a class and its unnamed
    constructor can share a name.
    """
    file_path: str
    internal: Counter = field(default_factory=Counter)
    external: Counter = field(default_factory=Counter)
    ignored: int = 0
    references: List[Reference] = field(default_factory=list)


@dataclass
class _Occurrence:
    name: str
    line_number: int
    qualifier: Optional[str]
    member_access: bool
    outer_qualifier: Optional[str]


class ReferenceTracker:
    """Resolve identifier occurrences against finished entity tables."""

    def __init__(self, classes: EntityTable, functions: Optional[EntityTable],
                 graph: VisibilityGraph, trace: bool = False):
        """Initialize tracker.

        Args:
            classes: Collected type declarations
            functions: Collected functions, or None when function analysis is off
            graph: Import/export visibility graph
            trace: Keep every counted Reference on the tally for diagnostics
        """
        self.tables = {CLASSES: classes}
        if functions is not None:
            self.tables[FUNCTIONS] = functions
        self.graph = graph
        self.trace = trace
        self._names = {table_id: table.names for table_id, table in self.tables.items()}

    def scan_file(self, file_path: str, text: str) -> UsageTally:
        """Count references in one file without touching the tables.

        Args:
            file_path: Absolute path of the scanned file
            text: File contents

        Returns:
            UsageTally to be merged with apply()
        """
        tally = UsageTally(file_path)
        source = MaskedSource.from_text(text)

        # Names listed in show/hide combinators are not uses
        skipped = directive_lines(source)
        for index, masked in enumerate(source.masked):
            if index in skipped or not masked.strip():
                continue
            for token in IDENTIFIER.finditer(masked):
                name = token.group()
                start = token.start()
                qualifier, member_access, qualifier_start = self._qualifier(masked, start)

                matches = self._candidates(name, qualifier)
                if not matches:
                    continue
                if self._is_false_positive(masked, start, token.end()):
                    continue

                outer_qualifier = None
                if qualifier is not None:
                    outer_qualifier = self._qualifier(masked, qualifier_start)[0]
                occurrence = _Occurrence(name, index + 1, qualifier, member_access, outer_qualifier)

                for table_id, entity in matches:
                    self._count(tally, table_id, entity, occurrence)

        if tally.ignored:
            logger.debug("%s: %d same-spelling occurrences without visible import", file_path, tally.ignored)
        return tally

    def apply(self, tally: UsageTally) -> None:
        """Merge a file's tally into the entity tables."""
        for (table_id, key), count in tally.internal.items():
            self.tables[table_id].record_internal(key, count)
        for (table_id, key), count in tally.external.items():
            self.tables[table_id].record_external(key, tally.file_path, count)

    def _candidates(self, name: str, qualifier: Optional[str]) -> List[Tuple[str, Entity]]:
        matches = []
        for table_id, table in self.tables.items():
            names = self._names[table_id]
            lookups = [name]
            if qualifier is not None and table_id == FUNCTIONS:
                lookups.append(f"{qualifier}.{name}")
            for lookup in lookups:
                if lookup in names:
                    matches.extend((table_id, entity) for entity in self._consulted(table, lookup))
        return matches

    @staticmethod
    def _consulted(table: EntityTable, name: str) -> Iterable[Entity]:
        """Records an occurrence is resolved against; commented records never are."""
        if table.policy == RedeclarationPolicy.COEXIST:
            return [entity for entity in table.candidates(name) if not entity.commented_out]
        entity = table.lookup(name)
        return [entity] if entity is not None else []

    def _count(self, tally: UsageTally, table_id: str, entity: Entity, occurrence: _Occurrence) -> None:
        file_path = tally.file_path
        if entity.file_path == file_path and entity.line == occurrence.line_number:
            return

        if entity.file_path == file_path:
            tally.internal[(table_id, entity.key)] += 1
            self._remember(tally, entity, occurrence, 'internal')
            return

        # Named constructors are filtered and aliased through their class name
        if '.' in entity.name:
            visible_name = entity.name.split('.', 1)[0]
            qualifier = occurrence.outer_qualifier
            member_access = False
        else:
            visible_name = entity.name
            qualifier = occurrence.qualifier
            member_access = occurrence.member_access and bool(entity.enclosing_class)

        if self.graph.is_visible(file_path, entity.file_path, visible_name, qualifier, member_access):
            tally.external[(table_id, entity.key)] += 1
            self._remember(tally, entity, occurrence, 'external')
        else:
            tally.ignored += 1

    def _remember(self, tally: UsageTally, entity: Entity, occurrence: _Occurrence, reference_type: str) -> None:
        if self.trace:
            tally.references.append(Reference(entity.key, tally.file_path, occurrence.line_number, reference_type))

    @staticmethod
    def _qualifier(line: str, start: int) -> Tuple[Optional[str], bool, int]:
        """Find the identifier written before ``.name`` / ``?.name``.

        Returns:
            (qualifier or None, whether the token follows a dot, qualifier start column)
        """
        j = start - 1
        if j < 0 or line[j] != '.':
            return None, False, start
        k = j - 1
        if k >= 0 and line[k] == '.':
            # Cascade: receiver is an expression, not a name
            return None, True, start
        if k >= 0 and line[k] == '?':
            k -= 1
        end = k + 1
        while k >= 0 and (line[k].isalnum() or line[k] in '_$'):
            k -= 1
        qualifier = line[k + 1:end]
        if not qualifier or qualifier[0].isdigit():
            return None, True, start
        return qualifier, True, k + 1

    @staticmethod
    def _is_false_positive(line: str, start: int, end: int) -> bool:
        """Occurrences that spell an entity name without referring to it."""
        before = line[:start]
        after = line[end:].lstrip()

        # Named-argument or map label: `(name: value`, `, name:`, or a label opening a line
        previous = before.rstrip()
        if after.startswith(':') and (not previous or previous[-1] in _LABEL_CONTEXT):
            return True

        # `class _FooState extends State<Foo>` names the widget, not a use of it
        if _STATE_GENERIC.search(before) and _CLASS_KEYWORD.search(before):
            return True

        # The name being declared by some other declaration
        if _DECLARING_KEYWORD.search(before):
            return True

        return False
