"""Trash manifest: one JSON record per Dart file moved out by ``clean``."""
import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

MANIFEST_VERSION = "1.0"
MANIFEST_NAME = "manifest.json"


@dataclass
class TrashRecord:
    """A trashed file and the dead entities that made it eligible."""
    id: str
    original_path: str
    trash_path: str
    file_hash: str
    entities: List[str] = field(default_factory=list)
    deleted_at: str = field(default_factory=lambda: datetime.now().isoformat())
    restored: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "TrashRecord":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


def sha256_of(path: str | Path) -> str:
    """Hex SHA-256 of a file's bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


class Manifest:
    """Records kept in ``<trash_dir>/manifest.json``."""

    def __init__(self, trash_dir: str | Path):
        self.trash_dir = Path(trash_dir)
        self.path = self.trash_dir / MANIFEST_NAME
        self.trash_dir.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._save([])

    def records(self) -> List[TrashRecord]:
        """All records, oldest first. A missing or corrupt manifest reads as empty."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return [TrashRecord.from_dict(entry) for entry in data.get("deletions", [])]

    def pending(self) -> List[TrashRecord]:
        return [record for record in self.records() if not record.restored]

    def find(self, deletion_id: str) -> Optional[TrashRecord]:
        return next((record for record in self.records() if record.id == deletion_id), None)

    def append(self, record: TrashRecord) -> None:
        self._save(self.records() + [record])

    def mark_restored(self, deletion_id: str) -> None:
        records = self.records()
        for record in records:
            if record.id == deletion_id:
                record.restored = True
        self._save(records)

    def _save(self, records: List[TrashRecord]) -> None:
        # Write-then-rename keeps the previous manifest intact if the write fails
        payload = {"version": MANIFEST_VERSION, "deletions": [asdict(record) for record in records]}
        staging = self.path.with_suffix(".tmp")
        staging.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        staging.replace(self.path)
