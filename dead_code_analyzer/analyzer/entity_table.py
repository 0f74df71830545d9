"""Name-keyed entity table with disambiguated keys.

Live declarations are stored under their plain name. Commented-out
declarations (and, under the coexist policy, re-declarations) are stored
under ``name@file:line:offset`` so nothing is silently lost.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Set

from ..config import RedeclarationPolicy
from .extractor import Entity

logger = logging.getLogger(__name__)


class EntityTable:
    """Entities of one kind (types or functions) collected during a run."""

    def __init__(self, policy: RedeclarationPolicy = RedeclarationPolicy.LAST_WINS):
        self.policy = policy
        self._records: Dict[str, Entity] = {}
        self._keys_by_name: Dict[str, List[str]] = defaultdict(list)
        self._latest_live: Dict[str, str] = {}

    @staticmethod
    def located_key(entity: Entity) -> str:
        return f"{entity.name}@{entity.file_path}:{entity.line}:{entity.offset}"

    def add(self, entity: Entity) -> str:
        """Insert an entity and return the key it was stored under."""
        if entity.commented_out:
            key = self.located_key(entity)
        elif entity.name not in self._records:
            key = entity.name
        elif self.policy == RedeclarationPolicy.LAST_WINS:
            replaced = self._records[entity.name]
            logger.debug(
                "Re-declaration of %s in %s:%d replaces %s:%d",
                entity.name, entity.file_path, entity.line, replaced.file_path, replaced.line,
            )
            self._keys_by_name[entity.name].remove(entity.name)
            key = entity.name
        else:
            key = self.located_key(entity)

        entity.key = key
        self._records[key] = entity
        self._keys_by_name[entity.name].append(key)
        if not entity.commented_out:
            self._latest_live[entity.name] = key
        return key

    def get(self, key: str) -> Optional[Entity]:
        return self._records.get(key)

    def lookup(self, name: str) -> Optional[Entity]:
        """Most recently added live record with this plain name."""
        key = self._latest_live.get(name)
        return self._records.get(key) if key else None

    def candidates(self, name: str) -> List[Entity]:
        """Every record (live or commented) declared with this plain name."""
        return [self._records[key] for key in self._keys_by_name.get(name, ())]

    @property
    def names(self) -> Set[str]:
        return {name for name, keys in self._keys_by_name.items() if keys}

    def in_file(self, file_path: str) -> List[Entity]:
        return [entity for entity in self._records.values() if entity.file_path == file_path]

    def record_internal(self, key: str, count: int) -> None:
        if count < 0:
            raise ValueError("usage counts only grow")
        self._records[key].internal_usage_count += count

    def record_external(self, key: str, consumer_file: str, count: int) -> None:
        if count < 0:
            raise ValueError("usage counts only grow")
        usages = self._records[key].external_usages
        usages[consumer_file] = usages.get(consumer_file, 0) + count

    def to_dict(self) -> Dict[str, dict]:
        return {key: entity.to_dict() for key, entity in self._records.items()}

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records
