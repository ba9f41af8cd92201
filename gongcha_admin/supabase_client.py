"""
Supabase document store adapter for the Gong Cha admin service.

Every collection is a table with an ``id text`` primary key and a ``data jsonb``
document. Reads go through PostgREST; writes that must be atomic (merge,
array-union, increment, compare-and-set) go through the Postgres functions
defined in ``supabase/migrations`` so they run under a row lock.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional

import supabase as _supabase
from postgrest.exceptions import APIError

from gongcha_admin.config import SUPABASE_TABLE_PREFIX


# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"

# PostgREST caps every response at its max-rows setting (1000 by default).
PAGE_SIZE = 1000


class DocumentExistsError(Exception):
    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} already exists")


class DocumentNotFoundError(Exception):
    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")


class PreconditionFailedError(Exception):
    """A conditional write found the document in an unexpected state."""

    def __init__(self, collection: str, doc_id: str, current: dict) -> None:
        self.collection = collection
        self.doc_id = doc_id
        self.current = current
        super().__init__(f"{collection}/{doc_id} does not match the expected state")


def _serialize(value: Any) -> Any:
    """Convert datetimes (also nested) to ISO 8601 strings for JSON storage."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


def _full_table(collection: str) -> str:
    return f"{SUPABASE_TABLE_PREFIX}{collection}"


def _field_column(field: str) -> str:
    if field == "id":
        return "id"
    return f"data->>{field}"


def _filter_value(value: Any) -> Any:
    # ->> extracts text, so compare against the JSON text rendering.
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class Document:
    """Read-only document snapshot with attribute and mapping access."""
    __slots__ = ("_collection", "_id", "_data")

    def __init__(self, collection: str, doc_id: str, data: Optional[dict]) -> None:
        object.__setattr__(self, "_collection", collection)
        object.__setattr__(self, "_id", doc_id)
        object.__setattr__(self, "_data", dict(data or {}))

    @property
    def id(self) -> str:
        return object.__getattribute__(self, "_id")

    @property
    def collection(self) -> str:
        return object.__getattribute__(self, "_collection")

    def __getattr__(self, name: str) -> Any:
        data = object.__getattribute__(self, "_data")
        if name in data:
            return data[name]
        raise AttributeError(f"Document '{self.collection}/{self.id}' has no field '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Documents are read-only; write through SupabaseDB")

    def get(self, key: str, default: Any = None) -> Any:
        return object.__getattribute__(self, "_data").get(key, default)

    @property
    def data(self) -> dict:
        return dict(object.__getattribute__(self, "_data"))

    def to_dict(self) -> dict:
        return {"id": self.id, **self.data}

    def __repr__(self) -> str:
        return f"Document({self.collection}/{self.id}, {object.__getattribute__(self, '_data')})"


class DocumentQuery:
    """Chainable query builder over one collection."""

    def __init__(self, db: "SupabaseDB", collection: str) -> None:
        self._db = db
        self._collection = collection
        self._full_table = _full_table(collection)
        self._conditions: list[tuple] = []
        self._order_cols: list[str] = []
        self._limit_val: Optional[int] = None

    def filter(self, *conditions: tuple) -> "DocumentQuery":
        """AND conditions on document fields: filter(("role", "=", "admin"), ("isActive", "=", True))"""
        self._conditions.extend(conditions)
        return self

    def order_by(self, *cols: str) -> "DocumentQuery":
        """order_by("name ASC"); "created" orders by insertion time."""
        self._order_cols.extend(cols)
        return self

    def limit(self, n: int) -> "DocumentQuery":
        self._limit_val = n
        return self

    def _apply(self, q):
        for col, op, val in self._conditions:
            column = _field_column(col)
            if op == "=":
                q = q.eq(column, _filter_value(val))
            elif op == "!=":
                q = q.neq(column, _filter_value(val))
            elif op == "IN":
                q = q.in_(column, [_filter_value(v) for v in val])
            else:
                raise ValueError(f"Unsupported filter operator: {op}")

        for order_str in self._order_cols:
            parts = order_str.strip().split()
            col = parts[0]
            desc = len(parts) > 1 and parts[1].upper() == "DESC"
            column = "created_at" if col == "created" else _field_column(col)
            q = q.order(column, desc=desc)

        if self._limit_val is not None:
            q = q.limit(self._limit_val)

        return q

    def _wrap(self, row: dict) -> Document:
        return Document(self._collection, row["id"], row.get("data"))

    def all(self) -> list[Document]:
        """Fetch every match, paging past the server row cap unless a limit is set."""
        if self._limit_val is not None:
            q = self._db.client.table(self._full_table).select("id,data")
            result = self._apply(q).execute()
            return [self._wrap(row) for row in result.data]

        docs: list[Document] = []
        start = 0
        while True:
            q = self._db.client.table(self._full_table).select("id,data")
            q = self._apply(q).order("id").range(start, start + PAGE_SIZE - 1)
            rows = q.execute().data or []
            docs.extend(self._wrap(row) for row in rows)
            if len(rows) < PAGE_SIZE:
                return docs
            start += PAGE_SIZE

    def first(self) -> Optional[Document]:
        q = self._db.client.table(self._full_table).select("id,data")
        q = self._apply(q).limit(1)
        result = q.execute()
        if not result.data:
            return None
        return self._wrap(result.data[0])

    def count(self) -> int:
        q = self._db.client.table(self._full_table).select("id", count="exact").limit(0)
        result = self._apply(q).execute()
        return result.count or 0


class SupabaseDB:
    """
    Document store over supabase-py, using the service role key.
    One instance is created at startup and shared by all requests.
    """

    def __init__(self, url: str, service_role_key: str) -> None:
        self.client = _supabase.create_client(url, service_role_key)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        full = _full_table(collection)
        result = self.client.table(full).select("id,data").eq("id", doc_id).limit(1).execute()
        if not result.data:
            return None
        return Document(collection, doc_id, result.data[0].get("data"))

    def query(self, collection: str) -> DocumentQuery:
        return DocumentQuery(self, collection)

    def create(self, collection: str, doc_id: str, data: dict) -> Document:
        """Insert a new document; fails with DocumentExistsError if the id is taken."""
        full = _full_table(collection)
        try:
            result = self.client.table(full).insert({"id": doc_id, "data": _serialize(data)}).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DocumentExistsError(collection, doc_id) from exc
            raise
        row = result.data[0] if result.data else {"data": data}
        return Document(collection, doc_id, row.get("data"))

    def set(self, collection: str, doc_id: str, data: dict) -> Document:
        """Create or fully replace a document."""
        full = _full_table(collection)
        result = self.client.table(full).upsert({"id": doc_id, "data": _serialize(data)}).execute()
        row = result.data[0] if result.data else {"data": data}
        return Document(collection, doc_id, row.get("data"))

    def update(
        self,
        collection: str,
        doc_id: str,
        patch: dict,
        *,
        expect: Optional[dict] = None,
    ) -> Document:
        """
        Shallow-merge ``patch`` into the document.

        With ``expect`` the merge only happens while the document still
        contains those field values (compare-and-set).
        """
        outcome = self._rpc("doc_merge", {
            "p_table": _full_table(collection),
            "p_id": doc_id,
            "p_patch": _serialize(patch),
            "p_expect": _serialize(expect or {}),
        })
        return self._outcome(collection, doc_id, outcome)

    def increment(self, collection: str, doc_id: str, deltas: dict, patch: Optional[dict] = None) -> Document:
        """Atomically add numeric ``deltas`` to fields, merging ``patch`` in the same write."""
        outcome = self._rpc("doc_increment", {
            "p_table": _full_table(collection),
            "p_id": doc_id,
            "p_deltas": deltas,
            "p_patch": _serialize(patch or {}),
        })
        return self._outcome(collection, doc_id, outcome)

    def array_union(self, collection: str, doc_id: str, field: str, items: list, patch: Optional[dict] = None) -> Document:
        """Atomically append ``items`` not already present in the array ``field``."""
        outcome = self._rpc("doc_array_union", {
            "p_table": _full_table(collection),
            "p_id": doc_id,
            "p_field": field,
            "p_items": _serialize(list(items)),
            "p_patch": _serialize(patch or {}),
        })
        return self._outcome(collection, doc_id, outcome)

    def delete(self, collection: str, doc_id: str) -> bool:
        full = _full_table(collection)
        result = self.client.table(full).delete().eq("id", doc_id).execute()
        return bool(result.data)

    def _rpc(self, fn: str, params: dict) -> dict:
        result = self.client.rpc(fn, params).execute()
        return result.data or {}

    @staticmethod
    def _outcome(collection: str, doc_id: str, outcome: dict) -> Document:
        if not outcome.get("found"):
            raise DocumentNotFoundError(collection, doc_id)
        if not outcome.get("matched"):
            raise PreconditionFailedError(collection, doc_id, outcome.get("data") or {})
        return Document(collection, doc_id, outcome.get("data"))

    def close(self) -> None:
        pass  # supabase-py manages its own HTTP client
