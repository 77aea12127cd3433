"""JSON-file store for connections, field mappings and sync status records.

A keyed collection with last-write-wins semantics: the whole file is read on
every call and rewritten on every save. No locking, no transactions.
"""

import json
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from spec_bridge.parser.base import Connection, _new_id, _now

SyncDirection = Literal["salesforce_to_external", "external_to_salesforce", "bidirectional"]
SyncMode = Literal["create", "update", "upsert", "delete", "full_sync"]
TransformationType = Literal[
    "uppercase", "lowercase", "trim", "format_date", "format_number", "concat", "split", "lookup", "formula", "custom"
]

CONNECTIONS_KEY = "connections"
MAPPINGS_KEY = "mappings"
SYNC_STATUS_KEY = "sync_statuses"


class Transformation(BaseModel):
    type: TransformationType
    config: dict[str, Any] = Field(default_factory=dict)


class FieldMap(BaseModel):
    """One platform field paired with one external field."""

    id: str = Field(default_factory=_new_id)
    salesforce_field: str
    salesforce_field_type: str = "string"
    external_field: str
    external_field_type: str = "string"
    direction: SyncDirection = "bidirectional"
    transformation: Transformation | None = None
    default_value: str | None = None
    required: bool = False
    is_key: bool = False
    confidence: float | None = None  # set when the pair came from a suggestion


class FieldMapping(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    connection_id: str
    salesforce_object: str
    external_entity: str
    mappings: list[FieldMap] = Field(default_factory=list)
    sync_direction: SyncDirection = "bidirectional"
    sync_mode: SyncMode = "upsert"
    filter_condition: str | None = None
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class SyncStatus(BaseModel):
    connection_id: str
    status: Literal["success", "error", "running", "pending"] = "pending"
    last_sync_time: str | None = None
    records_processed: int | None = None
    records_failed: int | None = None
    error_message: str | None = None
    duration: int | None = None  # ms


class JsonStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    # -- connections ----------------------------------------------------------

    def get_connections(self) -> list[Connection]:
        return [Connection.model_validate(c) for c in self._read(CONNECTIONS_KEY)]

    def get_connection(self, connection_id: str) -> Connection | None:
        return next((c for c in self.get_connections() if c.id == connection_id), None)

    def save_connection(self, connection: Connection) -> None:
        self._upsert(CONNECTIONS_KEY, "id", connection)

    def delete_connection(self, connection_id: str) -> None:
        self._delete(CONNECTIONS_KEY, "id", connection_id)

    # -- field mappings -------------------------------------------------------

    def get_mappings(self) -> list[FieldMapping]:
        return [FieldMapping.model_validate(m) for m in self._read(MAPPINGS_KEY)]

    def get_mapping(self, mapping_id: str) -> FieldMapping | None:
        return next((m for m in self.get_mappings() if m.id == mapping_id), None)

    def get_mappings_by_connection(self, connection_id: str) -> list[FieldMapping]:
        return [m for m in self.get_mappings() if m.connection_id == connection_id]

    def save_mapping(self, mapping: FieldMapping) -> None:
        self._upsert(MAPPINGS_KEY, "id", mapping)

    def delete_mapping(self, mapping_id: str) -> None:
        self._delete(MAPPINGS_KEY, "id", mapping_id)

    # -- sync status (one record per connection) ------------------------------

    def get_sync_statuses(self) -> list[SyncStatus]:
        return [SyncStatus.model_validate(s) for s in self._read(SYNC_STATUS_KEY)]

    def get_sync_status(self, connection_id: str) -> SyncStatus | None:
        return next((s for s in self.get_sync_statuses() if s.connection_id == connection_id), None)

    def save_sync_status(self, status: SyncStatus) -> None:
        self._upsert(SYNC_STATUS_KEY, "connection_id", status)

    # -- bulk -----------------------------------------------------------------

    def export_data(self) -> dict[str, list[dict]]:
        data = self._load()
        return {key: data.get(key, []) for key in (CONNECTIONS_KEY, MAPPINGS_KEY, SYNC_STATUS_KEY)}

    def import_data(self, data: dict[str, list[dict]]) -> None:
        """Replace each collection present in ``data``; absent ones are kept."""
        current = self._load()
        for key in (CONNECTIONS_KEY, MAPPINGS_KEY, SYNC_STATUS_KEY):
            if key in data:
                current[key] = data[key]
        self._dump(current)

    def clear_all(self) -> None:
        self._dump({CONNECTIONS_KEY: [], MAPPINGS_KEY: [], SYNC_STATUS_KEY: []})

    # -- file access ----------------------------------------------------------

    def _load(self) -> dict[str, list[dict]]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        return json.loads(text) if text.strip() else {}

    def _dump(self, data: dict[str, list[dict]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Wrote store {}", self.path)

    def _read(self, key: str) -> list[dict]:
        return self._load().get(key, [])

    def _upsert(self, key: str, id_field: str, record: BaseModel) -> None:
        data = self._load()
        records = data.get(key, [])
        dumped = record.model_dump(mode="json")
        for i, existing in enumerate(records):
            if existing.get(id_field) == dumped[id_field]:
                records[i] = dumped
                break
        else:
            records.append(dumped)
        data[key] = records
        self._dump(data)

    def _delete(self, key: str, id_field: str, value: str) -> None:
        data = self._load()
        data[key] = [r for r in data.get(key, []) if r.get(id_field) != value]
        self._dump(data)
