"""In-memory TraceStore, for tests and short-lived processes."""

from __future__ import annotations

from pydantic import BaseModel

from prompt_tracker.storage.base import RECORD_TYPES, TraceStore


class MemoryTraceStore(TraceStore):
    """Keeps records in per-kind dicts. Nothing survives the process."""

    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, dict[str, BaseModel]] = {kind: {} for kind in RECORD_TYPES}

    def _load(self, kind: str, record_id: str) -> BaseModel | None:
        return self._records[kind].get(record_id)

    def _save(self, kind: str, record: BaseModel) -> None:
        self._records[kind][record.id] = record

    def _remove(self, kind: str, record_id: str) -> bool:
        return self._records[kind].pop(record_id, None) is not None

    def _all(self, kind: str) -> list[BaseModel]:
        return list(self._records[kind].values())

    def clear(self) -> None:
        with self._lock:
            for records in self._records.values():
                records.clear()
