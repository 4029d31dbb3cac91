"""SQLite-backed substitute for the hosted profile document database."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from account_portal.core.errors import DocumentStoreError


class DocumentStore(Protocol):
    """Collection/document operations used by the profile layer."""

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    async def update_document(
        self, collection: str, doc_id: str, fields: Dict[str, Any]
    ) -> None:
        ...

    async def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    async def list_documents(self, collection: str) -> list[Dict[str, Any]]:
        ...


def _default_json_serializer(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Type {type(value)!r} not serializable")


class SQLiteDocumentStore:
    """Document store keeping one JSON row per (collection, doc_id)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, doc_id)
                )
                """
            )

    def _read(self, conn: sqlite3.Connection, collection: str, doc_id: str) -> Optional[dict]:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        ).fetchone()
        if not row:
            return None
        return json.loads(row["data"])

    def _write(
        self, conn: sqlite3.Connection, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> None:
        conn.execute(
            """
            INSERT INTO documents (collection, doc_id, data)
            VALUES (?, ?, ?)
            ON CONFLICT(collection, doc_id) DO UPDATE SET data = excluded.data
            """,
            (collection, doc_id, json.dumps(data, default=_default_json_serializer)),
        )

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        def _execute_get() -> Optional[Dict[str, Any]]:
            with self._connect() as conn:
                return self._read(conn, collection, doc_id)

        return await asyncio.to_thread(_execute_get)

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        def _execute_set() -> None:
            with self._connect() as conn:
                self._write(conn, collection, doc_id, data)

        await asyncio.to_thread(_execute_set)

    async def update_document(
        self, collection: str, doc_id: str, fields: Dict[str, Any]
    ) -> None:
        """Merge ``fields`` into an existing document."""

        def _execute_update() -> None:
            with self._connect() as conn:
                current = self._read(conn, collection, doc_id)
                if current is None:
                    raise DocumentStoreError(f"Document {collection}/{doc_id} does not exist.")
                current.update(fields)
                self._write(conn, collection, doc_id, current)

        await asyncio.to_thread(_execute_update)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        def _execute_delete() -> None:
            with self._connect() as conn:
                conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                )

        await asyncio.to_thread(_execute_delete)

    async def list_documents(self, collection: str) -> list[Dict[str, Any]]:
        def _execute_list() -> list[sqlite3.Row]:
            with self._connect() as conn:
                return conn.execute(
                    "SELECT data FROM documents WHERE collection = ? ORDER BY doc_id",
                    (collection,),
                ).fetchall()

        rows = await asyncio.to_thread(_execute_list)
        return [json.loads(row["data"]) for row in rows]


__all__ = ["DocumentStore", "SQLiteDocumentStore"]
