"""JSON file storage for traces, spans and generations.

Each record is one JSON file under the storage directory, grouped by
kind. Writes are atomic (write to .tmp, then replace) so a crash never
leaves a partial record behind.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

from pydantic import BaseModel

from prompt_tracker.storage.base import RECORD_TYPES, TraceStore

_KIND_DIRS: dict[str, str] = {
    "trace": "traces",
    "span": "spans",
    "generation": "generations",
}

# File-name-safe ids: no path separators, no leading dot.
_SAFE_ID = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


class JsonTraceStore(TraceStore):
    """Persist records as JSON files in .prompt_tracker/.

    File layout:
        .prompt_tracker/
            traces/{trace-id}.json
            spans/{span-id}.json
            generations/{generation-id}.json
    """

    def __init__(self, project_root: Path, storage_dir: str | None = None) -> None:
        super().__init__()
        effective_dir = storage_dir or ".prompt_tracker"
        self.storage_root = Path(project_root) / effective_dir

    def ensure_dirs(self) -> None:
        """Create one directory per record kind."""
        for dirname in _KIND_DIRS.values():
            (self.storage_root / dirname).mkdir(parents=True, exist_ok=True)

    def _path(self, kind: str, record_id: str) -> Path:
        if not isinstance(record_id, str) or not _SAFE_ID.fullmatch(record_id):
            raise ValueError(f"Invalid {kind} id for file storage: {record_id!r}")
        return self.storage_root / _KIND_DIRS[kind] / f"{record_id}.json"

    def _load(self, kind: str, record_id: str) -> BaseModel | None:
        path = self._path(kind, record_id)
        if not path.exists():
            return None
        return RECORD_TYPES[kind].model_validate_json(path.read_text(encoding="utf-8"))

    def _save(self, kind: str, record: BaseModel) -> None:
        self.ensure_dirs()
        data = record.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False)

        # Atomic write: write to .tmp then replace
        target = self._path(kind, record.id)
        tmp_file = target.with_name(f"{target.name}.tmp")
        tmp_file.write_text(content, encoding="utf-8")
        tmp_file.replace(target)

    def _remove(self, kind: str, record_id: str) -> bool:
        path = self._path(kind, record_id)
        existed = path.exists()
        if existed:
            path.unlink()
        return existed

    def _all(self, kind: str) -> list[BaseModel]:
        directory = self.storage_root / _KIND_DIRS[kind]
        if not directory.exists():
            return []
        record_type = RECORD_TYPES[kind]
        return [
            record_type.model_validate_json(f.read_text(encoding="utf-8"))
            for f in sorted(directory.glob("*.json"))
        ]
