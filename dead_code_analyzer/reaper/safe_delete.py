"""Move dead Dart files into a trash directory and bring them back on request."""
import logging
import secrets
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .manifest import Manifest, TrashRecord, sha256_of

logger = logging.getLogger(__name__)


class SafeDeleter:
    """Files are only ever moved, never unlinked, so every clean is reversible."""

    def __init__(self, trash_dir: str | Path = ".dead_code_trash"):
        self.trash_dir = Path(trash_dir)
        self.trash_dir.mkdir(parents=True, exist_ok=True)
        self.manifest = Manifest(self.trash_dir)

    def delete(self, file_path: str | Path, entities: Optional[Sequence[str]] = None) -> str:
        """Trash one file.

        Args:
            file_path: Dart file to move
            entities: Keys of the dead entities it declares, kept for the record

        Returns:
            Deletion ID accepted by restore()

        Raises:
            FileNotFoundError: If ``file_path`` is not a file
            OSError: If the move fails
        """
        source = Path(file_path).resolve()
        if not source.is_file():
            raise FileNotFoundError(f"File not found: {source}")

        deletion_id = self._new_deletion_id()
        target = self.trash_dir / deletion_id / source.name
        target.parent.mkdir(parents=True, exist_ok=True)

        file_hash = sha256_of(source)
        shutil.move(str(source), str(target))
        self.manifest.append(TrashRecord(
            id=deletion_id,
            original_path=str(source),
            trash_path=str(target),
            file_hash=file_hash,
            entities=list(entities or ()),
        ))
        logger.debug("Trashed %s as %s", source, deletion_id)
        return deletion_id

    def delete_multiple(self, files: Dict[str, List[str]]) -> Dict[str, Optional[str]]:
        """Trash several files; a failed move is logged and reported as None."""
        outcome: Dict[str, Optional[str]] = {}
        for file_path, entities in files.items():
            try:
                outcome[file_path] = self.delete(file_path, entities)
            except OSError as e:
                logger.warning("Failed to delete %s: %s", file_path, e)
                outcome[file_path] = None
        return outcome

    def restore(self, deletion_id: str) -> Path:
        """Move a trashed file back where it came from.

        Raises:
            ValueError: Unknown deletion ID
            FileNotFoundError: The trashed copy is gone
            FileExistsError: Something already occupies the original path
        """
        record = self.manifest.find(deletion_id)
        if record is None:
            raise ValueError(f"Deletion ID not found: {deletion_id}")

        original = Path(record.original_path)
        if record.restored:
            return original

        trashed = Path(record.trash_path)
        if not trashed.exists():
            raise FileNotFoundError(f"File not found in trash: {trashed}")
        if original.exists():
            raise FileExistsError(f"Refusing to overwrite existing file: {original}")

        original.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(trashed), str(original))
        self.manifest.mark_restored(deletion_id)
        logger.debug("Restored %s from %s", original, deletion_id)
        return original

    def get_trash_info(self) -> dict:
        records = self.manifest.records()
        pending = self.manifest.pending()
        return {
            "trash_dir": str(self.trash_dir),
            "total_deletions": len(records),
            "restored_count": len(records) - len(pending),
            "unrestored_count": len(pending),
            "unrestored": [(record.id, record.original_path) for record in pending],
        }

    @staticmethod
    def _new_deletion_id() -> str:
        """``YYYYMMDD_HHMMSS_<6 hex>``; sortable by time, unique within a second."""
        return f"{datetime.now():%Y%m%d_%H%M%S}_{secrets.token_hex(3)}"
