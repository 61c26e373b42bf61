import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from harvester.adapters.base import Record
from harvester.errors import CheckpointReadFailure, CheckpointWriteFailure, ExtractionIncomplete

logger = logging.getLogger(__name__)


@dataclass
class CheckpointState:
    unsaved_count: int = 0
    last_flush_at: Optional[datetime] = None


@dataclass(frozen=True)
class FlushResult:
    ok: bool
    path: Path
    record_count: int
    error: Optional[CheckpointWriteFailure] = None


class CheckpointWriter:
    """
    Persists the whole harvested collection as one JSON document.

    Every flush writes a temp file next to the target, fsyncs it and renames it
    over the target, so readers only ever see the previous complete document or
    the new complete document. The document has no timestamps: flushing an
    unchanged collection twice gives byte-identical files.
    """

    def __init__(self, path: Union[str, Path], batch_save_size: int = 10):
        self.path = Path(path)
        self.batch_save_size = batch_save_size
        self.state = CheckpointState()
        self._due_at = batch_save_size
        self.flushes = 0
        self.failures = 0

    def note_accepted(self, count: int = 1) -> None:
        self.state.unsaved_count += count

    @property
    def due(self) -> bool:
        return self.state.unsaved_count >= self._due_at

    @property
    def dirty(self) -> bool:
        return self.state.unsaved_count > 0

    @staticmethod
    def render(records: Iterable[Record]) -> bytes:
        doc = [r.to_dict() for r in records]
        return (json.dumps(doc, ensure_ascii=False, indent=2) + "\n").encode("utf-8")

    def flush(self, records: Iterable[Record]) -> FlushResult:
        records = list(records)
        try:
            self._write_atomic(self.render(records))
        except (OSError, TypeError, ValueError) as e:
            self.failures += 1
            # retried at the next threshold crossing
            self._due_at = self.state.unsaved_count + self.batch_save_size
            error = CheckpointWriteFailure(f"could not write {self.path}: {e}")
            error.__cause__ = e
            logger.warning(
                "[SAVE] Checkpoint failed, %d unsaved records kept in memory: %s",
                self.state.unsaved_count, e,
            )
            return FlushResult(ok=False, path=self.path, record_count=len(records), error=error)

        self.state.unsaved_count = 0
        self._due_at = self.batch_save_size
        self.state.last_flush_at = datetime.now(timezone.utc)
        self.flushes += 1
        logger.info("[SAVE] %d records -> %s", len(records), self.path)
        return FlushResult(ok=True, path=self.path, record_count=len(records))

    def _write_atomic(self, payload: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def load(self) -> List[Record]:
        """Records from the last complete checkpoint, or [] if there is none yet."""
        if not self.path.exists():
            return []
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CheckpointReadFailure(f"could not read {self.path}: {e}") from e
        if not isinstance(doc, list):
            raise CheckpointReadFailure(f"{self.path} is not a record list")

        records: List[Record] = []
        for i, item in enumerate(doc):
            if not isinstance(item, dict):
                raise CheckpointReadFailure(f"{self.path}: entry {i} is not an object")
            try:
                records.append(Record.from_dict(item))
            except ExtractionIncomplete as e:
                raise CheckpointReadFailure(f"{self.path}: entry {i} has no identity key") from e
        return records
