"""Classify finished entities into report buckets."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .extractor import Entity


@dataclass
class CategorizedEntities:
    """Report buckets for one entity kind.

    ``unused``, ``commented``, ``internal_only``, ``external_only`` and
    ``mixed`` are mutually exclusive. ``entry_point``, ``framework_lifecycle``,
    ``override`` and ``empty_lifecycle`` are tags: an exempt entity with
    usages also appears in its usage bucket.
    """
    unused: List[Entity] = field(default_factory=list)
    commented: List[Entity] = field(default_factory=list)
    internal_only: List[Entity] = field(default_factory=list)
    external_only: List[Entity] = field(default_factory=list)
    mixed: List[Entity] = field(default_factory=list)
    entry_point: List[Entity] = field(default_factory=list)
    framework_lifecycle: List[Entity] = field(default_factory=list)
    override: List[Entity] = field(default_factory=list)
    empty_lifecycle: List[Entity] = field(default_factory=list)

    BUCKETS = (
        'unused', 'commented', 'internal_only', 'external_only', 'mixed',
        'entry_point', 'framework_lifecycle', 'override', 'empty_lifecycle',
    )

    def summary(self) -> Dict[str, int]:
        return {bucket: len(getattr(self, bucket)) for bucket in self.BUCKETS}

    def to_dict(self) -> Dict[str, List[str]]:
        return {bucket: [entity.key for entity in getattr(self, bucket)] for bucket in self.BUCKETS}


def is_exempt(entity: Entity) -> bool:
    """Entities presumed used even with zero counted references."""
    return entity.is_entry_point or entity.is_lifecycle_member or entity.is_override


def categorize(entities: Iterable[Entity]) -> CategorizedEntities:
    """Place every entity in exactly one usage bucket plus any exemption tags.

    Pure and deterministic: buckets are ordered by total usages (descending),
    then by key.
    """
    result = CategorizedEntities()
    ordered = sorted(entities, key=lambda entity: (-entity.total_usages, entity.key))

    for entity in ordered:
        if entity.commented_out:
            result.commented.append(entity)
            continue

        if entity.is_entry_point:
            result.entry_point.append(entity)
        if entity.is_lifecycle_member:
            result.framework_lifecycle.append(entity)
            if entity.has_empty_body:
                result.empty_lifecycle.append(entity)
        if entity.is_override:
            result.override.append(entity)

        internal = entity.internal_usage_count
        external = entity.total_external_usages
        if internal == 0 and external == 0:
            if not is_exempt(entity):
                result.unused.append(entity)
        elif external == 0:
            result.internal_only.append(entity)
        elif internal == 0:
            result.external_only.append(entity)
        else:
            result.mixed.append(entity)

    return result
