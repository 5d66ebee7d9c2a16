import logging
import threading
from typing import List, Optional, Tuple

from conversation_analysis.contracts.analysis_record import AnalysisRecord
from conversation_analysis.contracts.serialization import (
    HistoryFormatError,
    dumps_history,
    loads_history,
)
from conversation_analysis.core.errors import StorageError
from conversation_analysis.core.storage.port import KeyValueStorage


logger = logging.getLogger(__name__)


DEFAULT_CAPACITY = 50
DEFAULT_HISTORY_KEY = "analysis_history"


class HistoryStore:
    """
    Bounded, most-recent-first history of analysis records.

    - loaded once from storage on construction
    - every mutation rewrites the whole list under one key
    - storage failures are logged, the in-memory state stays authoritative

    Mutation and its persistence run under a single lock.
    Independent processes sharing the key are not coordinated
    (last writer wins).
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        capacity: int = DEFAULT_CAPACITY,
        key: str = DEFAULT_HISTORY_KEY,
    ):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"History capacity must be a positive integer, got {capacity!r}")

        self.storage = storage
        self.capacity = capacity
        self.key = key

        self._lock = threading.Lock()
        self._records: List[AnalysisRecord] = self._load()

    def _load(self) -> List[AnalysisRecord]:
        try:
            raw = self.storage.get(self.key)
        except StorageError as e:
            logger.warning("Could not load history '%s': %s", self.key, e)
            return []

        if raw is None:
            return []

        try:
            records = loads_history(raw)
        except HistoryFormatError as e:
            logger.warning("Discarding unreadable history '%s': %s", self.key, e)
            return []

        if len(records) > self.capacity:
            records = records[:self.capacity]

        logger.debug("Loaded %d history records", len(records))
        return records

    def _persist(self) -> None:
        try:
            if self._records:
                self.storage.set(self.key, dumps_history(self._records))
            else:
                self.storage.clear(self.key)
        except StorageError as e:
            logger.warning("History change kept in memory only: %s", e)

    def add(self, record: AnalysisRecord) -> None:
        with self._lock:
            records = [record] + self._records
            self._records = records[:self.capacity]
            self._persist()

    def remove(self, record_id: str) -> None:
        with self._lock:
            for index, record in enumerate(self._records):
                if record.id == record_id:
                    self._records = self._records[:index] + self._records[index + 1:]
                    self._persist()
                    return

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self._persist()

    def list(self) -> Tuple[AnalysisRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def get(self, record_id: str) -> Optional[AnalysisRecord]:
        with self._lock:
            for record in self._records:
                if record.id == record_id:
                    return record
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
