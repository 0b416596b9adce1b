"""JSON-file backed mapping table (directory group id -> cohort id)."""
from __future__ import annotations
import datetime
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Hashable

from cohortsync.core.interfaces import MappingStore
from cohortsync.core.models import Mapping


class MappingStoreError(Exception):
    """Mapping table could not be read or written."""
    pass


class JsonMappingStore(MappingStore):
    """Mapping table persisted as a single JSON document.

    Writes go to a temp file that replaces the original, so a crash never
    leaves a half-written table. Mutations are serialized with a lock.

    Usage:
        store = JsonMappingStore(".runtime/cohortsync/mappings.json")
        store.add("graph-group-id", "keycloak-group-id")
    """

    def __init__(self, path: str | os.PathLike):
        """Initialize store.

        Args:
            path: JSON file location (created on first write)
        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def list_mappings(self) -> list[Mapping]:
        return [
            Mapping(row["external_group_id"], row["local_group_id"])
            for row in self._read_rows()
        ]

    def get(self, external_group_id: str) -> list[Mapping]:
        """Return mappings for one directory group."""
        return [m for m in self.list_mappings() if m.external_group_id == external_group_id]

    def add(self, external_group_id: str, local_group_id: Hashable) -> bool:
        """Insert a mapping; an existing pair is left untouched."""
        if not external_group_id or local_group_id is None or local_group_id == "":
            return False
        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if row["external_group_id"] == external_group_id and row["local_group_id"] == local_group_id:
                    return True
            rows.append({
                "external_group_id": external_group_id,
                "local_group_id": local_group_id,
                "created_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            })
            self._write_rows(rows)
        return True

    def delete_by_pair(self, external_group_id: str, local_group_id: Hashable) -> bool:
        """Delete a mapping; succeeds even if the pair is already gone."""
        with self._lock:
            rows = self._read_rows()
            kept = [
                row for row in rows
                if not (row["external_group_id"] == external_group_id and row["local_group_id"] == local_group_id)
            ]
            if len(kept) != len(rows):
                self._write_rows(kept)
        return True

    def _read_rows(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            document = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise MappingStoreError(f"Cannot read mapping table {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise MappingStoreError(f"Malformed mapping table {self.path}: top level is not an object")
        rows = document.get("mappings", [])
        if not isinstance(rows, list):
            raise MappingStoreError(f"Malformed mapping table {self.path}: 'mappings' is not a list")
        for index, row in enumerate(rows):
            if not isinstance(row, dict) or "external_group_id" not in row or "local_group_id" not in row:
                raise MappingStoreError(f"Malformed mapping table {self.path}: row {index} lacks group ids")
        return rows

    def _write_rows(self, rows: list[dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".mappings-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({"mappings": rows}, f, indent=2, ensure_ascii=False)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise MappingStoreError(f"Cannot write mapping table {self.path}: {e}") from e
