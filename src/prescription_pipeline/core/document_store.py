# ============================================================================
# src/prescription_pipeline/core/document_store.py
# ============================================================================
"""
Document Store

Keyed, namespaced storage for prescriptions and their artifacts.
Documents live at (collection_path, document_id); every save replaces the
whole document, so writes are atomic per document.

Two backends:
- InMemoryDocumentStore: tests and ephemeral runs
- SQLiteDocumentStore: raw sqlite3, JSON payload column, same pattern as audit.py
"""

from abc import ABC, abstractmethod
import asyncio
import copy
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Async document store interface."""

    @abstractmethod
    async def save(self, collection_path: str, document_id: str, payload: Dict[str, Any]) -> None:
        """Create or replace one document."""
        pass

    @abstractmethod
    async def get(self, collection_path: str, document_id: str) -> Optional[Dict[str, Any]]:
        """Return the document, or None if it does not exist."""
        pass


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store.

    Payloads are deep-copied on the way in and out so callers can never
    mutate stored state.
    """

    def __init__(self):
        self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self.save_count = 0

    async def save(self, collection_path: str, document_id: str, payload: Dict[str, Any]) -> None:
        async with self._lock:
            self._documents[(collection_path, document_id)] = copy.deepcopy(payload)
            self.save_count += 1

    async def get(self, collection_path: str, document_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            payload = self._documents.get((collection_path, document_id))
            return copy.deepcopy(payload) if payload is not None else None

    def paths(self) -> List[str]:
        return sorted(f"{collection}/{doc_id}" for collection, doc_id in self._documents)


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-backed document store.

    One row per document; blocking sqlite3 calls run in a worker thread.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or base_settings.DOCUMENT_DB_PATH
        self._init_database()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        cur = conn.cursor()

        cur.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                collection_path TEXT NOT NULL,
                document_id     TEXT NOT NULL,
                updated_at      TEXT NOT NULL,
                payload         TEXT NOT NULL,
                PRIMARY KEY (collection_path, document_id)
            )
        """)

        conn.commit()
        conn.close()
        logger.info(f"Document store initialized: {self.db_path}")

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def _save_sync(self, collection_path: str, document_id: str, payload: Dict[str, Any]) -> None:
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.execute("""
                INSERT OR REPLACE INTO documents
                    (collection_path, document_id, updated_at, payload)
                VALUES (?, ?, ?, ?)
            """, (
                collection_path,
                document_id,
                datetime.now().isoformat(),
                json.dumps(payload, default=str),
            ))
            conn.commit()
        finally:
            conn.close()

    async def save(self, collection_path: str, document_id: str, payload: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._save_sync, collection_path, document_id, payload)
        logger.debug(f"Saved {collection_path}/{document_id}")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def _get_sync(self, collection_path: str, document_id: str) -> Optional[Dict[str, Any]]:
        conn = sqlite3.connect(str(self.db_path))
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT payload FROM documents WHERE collection_path = ? AND document_id = ?",
                (collection_path, document_id),
            )
            row = cur.fetchone()
        finally:
            conn.close()
        if row:
            return json.loads(row[0])
        return None

    async def get(self, collection_path: str, document_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_sync, collection_path, document_id)

    def count(self, collection_path: Optional[str] = None) -> int:
        """Count documents, optionally within one collection."""
        conn = sqlite3.connect(str(self.db_path))
        cur = conn.cursor()
        if collection_path:
            cur.execute("SELECT COUNT(*) FROM documents WHERE collection_path = ?", (collection_path,))
        else:
            cur.execute("SELECT COUNT(*) FROM documents")
        n = cur.fetchone()[0]
        conn.close()
        return n
