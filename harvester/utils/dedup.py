import threading
from typing import Iterable, Optional, Set


class DedupIndex:
    """Append-only set of identity keys seen during one harvest run."""

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._seen: Set[str] = set(keys or ())
        # accept() is check-and-insert; keep it atomic if extraction ever fans out
        self._lock = threading.Lock()

    def accept(self, key: str) -> bool:
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def __contains__(self, key: object) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)
