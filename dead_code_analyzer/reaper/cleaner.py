"""Decide which Dart files can be deleted outright.

A file is eligible only when every entity it declares is unused or
commented out, and nothing else in it (a top-level variable, getter or, when
function analysis was off, a function) could still be in use.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from ..analyzer.extractor import Entity, EntityCollector
from ..analyzer.lexer import MaskedSource
from ..analyzer.project_analyzer import AnalysisResult

logger = logging.getLogger(__name__)

_NON_VARIABLE_STARTS = re.compile(
    r'^(?:import|export|part|library|typedef|class|enum|mixin|extension|'
    r'abstract|sealed|base|interface|final\s+class|show|hide|as|deferred)\b'
)
_TOP_LEVEL_VARIABLE = re.compile(
    r'^(?:@[\w$.]+(?:\([^)]*\))?\s+)*'
    r'(?:(?:external|static|late|final|const|var)\s+)*'
    r'(?:[\w$.]+(?:<[^=;]*>)?\??\s+)?'
    r'[A-Za-z_$][\w$]*\s*(?:=(?!>)|;)'
)
_TOP_LEVEL_GETTER = re.compile(r'\bget\s+[A-Za-z_$][\w$]*\s*(?:=>|\{|async\b)')


@dataclass
class DeletableFile:
    """A file whose every declaration is dead."""
    file_path: str
    entities: List[Entity]

    @property
    def entity_keys(self) -> List[str]:
        return [entity.key for entity in self.entities]


def is_dead(entity: Entity) -> bool:
    if entity.commented_out:
        return True
    return entity.total_usages == 0 and not entity.is_entry_point


def has_live_top_level_declaration(text: str) -> bool:
    """Top-level variables or getters the entity tables do not track."""
    source = MaskedSource.from_text(text)
    depth = 0
    for masked in source.masked:
        stripped = masked.strip()
        if depth == 0 and stripped and not _NON_VARIABLE_STARTS.match(stripped):
            if _TOP_LEVEL_VARIABLE.match(stripped) or _TOP_LEVEL_GETTER.search(stripped):
                return True
        depth = max(0, depth + masked.count('{') - masked.count('}'))
    return False


def find_deletable_files(result: AnalysisResult) -> List[DeletableFile]:
    """Apply the eligibility policy to every analyzed file.

    Args:
        result: Finished analysis

    Returns:
        Eligible files in path order
    """
    by_file: Dict[str, List[Entity]] = {}
    for entity in result.entities():
        by_file.setdefault(entity.file_path, []).append(entity)

    function_scan = EntityCollector(include_functions=True) if result.functions is None else None
    deletable = []
    for file_path in sorted(by_file):
        entities = by_file[file_path]
        if not all(is_dead(entity) for entity in entities):
            continue

        try:
            text = Path(file_path).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot re-read %s, keeping it: %s", file_path, e)
            continue

        if has_live_top_level_declaration(text):
            logger.debug("Keeping %s: live top-level variable or getter", file_path)
            continue
        if function_scan is not None and any(
            entity.is_function and not entity.commented_out for entity in function_scan.collect(file_path, text)
        ):
            logger.debug("Keeping %s: functions were not analyzed", file_path)
            continue

        deletable.append(DeletableFile(file_path, entities))

    return deletable
