"""
Record Store Implementations.

FileRecordStore is the default for local use:
- One pretty-printed JSON file per memory, easy to inspect by hand
- Atomic replace on write so a crash never leaves half a record
- Corrupt files are skipped (and logged) instead of failing a full load

InMemoryRecordStore keeps everything in a dict, for tests and
throwaway sessions.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from .base import RecordStore, match_filter
from .errors import StorageError

logger = logging.getLogger("recollect.memory.store")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class FileRecordStore(RecordStore):
    """
    Filesystem implementation of the record store.

    Records live in `base_path` as `<id>.json`. Ids with characters outside
    [a-zA-Z0-9_-] are sanitised and get a short hash of the raw id appended,
    so "a.b" and "a_b" land in different files.
    """

    def __init__(self, base_path: str = "./data/memories"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileRecordStore configured with directory: {base_path}")

    def _file_path(self, id: str) -> Path:
        safe_id = _UNSAFE_CHARS.sub("_", id)
        if safe_id != id:
            safe_id = f"{safe_id}-{hashlib.sha256(id.encode()).hexdigest()[:8]}"
        return self.base_path / f"{safe_id}.json"

    def _record_files(self) -> list[Path]:
        if not self.base_path.exists():
            return []
        return sorted(self.base_path.glob("*.json"))

    async def initialize(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(self, id: str, data: dict[str, Any]) -> None:
        """Write a record atomically (temp file + rename)."""
        path = self._file_path(id)
        tmp_name = None
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.base_path, prefix=f".{path.stem}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save record {id}: {e}")
            raise StorageError(f"Failed to save record {id}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(f"Saved record {id} to {path}")

    async def get(self, id: str) -> Optional[dict[str, Any]]:
        path = self._file_path(id)
        if not path.exists():
            logger.debug(f"Record not found: {id}")
            return None

        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Record {id} is corrupt: {e}")
            return None

    async def delete(self, id: str) -> None:
        path = self._file_path(id)
        try:
            path.unlink()
            logger.debug(f"Deleted record {id}")
        except FileNotFoundError:
            logger.debug(f"Record {id} already absent, nothing to delete")
        except OSError as e:
            logger.error(f"Failed to delete record {id}: {e}")
            raise StorageError(f"Failed to delete record {id}: {e}") from e

    async def list(self) -> list[dict[str, Any]]:
        """Load every record, skipping files that cannot be parsed."""
        records = []
        for path in self._record_files():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable record file {path.name}: {e}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Skipping record file {path.name}: not a JSON object")
                continue
            records.append(data)

        logger.debug(f"Listed {len(records)} records from {self.base_path}")
        return records

    async def query(self, filter: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        records = await self.list()
        return [r for r in records if match_filter(r, filter)]

    async def clear(self) -> None:
        files = self._record_files()
        try:
            for path in files:
                path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to clear records: {e}")
            raise StorageError(f"Failed to clear records: {e}") from e

        logger.info(f"Cleared {len(files)} records from {self.base_path}")


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store. Nothing survives the process."""

    def __init__(self):
        self._records: dict[str, dict[str, Any]] = {}

    async def save(self, id: str, data: dict[str, Any]) -> None:
        # Round-trip through JSON so callers can't mutate stored state
        try:
            self._records[id] = json.loads(json.dumps(data))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record {id} is not serializable: {e}") from e

    async def get(self, id: str) -> Optional[dict[str, Any]]:
        data = self._records.get(id)
        return json.loads(json.dumps(data)) if data is not None else None

    async def delete(self, id: str) -> None:
        self._records.pop(id, None)

    async def list(self) -> list[dict[str, Any]]:
        return [json.loads(json.dumps(r)) for r in self._records.values()]

    async def query(self, filter: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        return [r for r in await self.list() if match_filter(r, filter)]

    async def clear(self) -> None:
        self._records.clear()
