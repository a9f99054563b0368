# ============================================================================
# tests/unit/test_document_store.py
# ============================================================================
"""
Tests for the document store implementations
"""

import pytest

from prescription_pipeline.core.document_store import InMemoryDocumentStore, SQLiteDocumentStore


@pytest.fixture(params=["memory", "sqlite"])
def doc_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SQLiteDocumentStore(db_path=tmp_path / "documents.db")


class TestDocumentStore:

    @pytest.mark.asyncio
    async def test_missing_document(self, doc_store):
        assert await doc_store.get("prescriptions", "nope") is None

    @pytest.mark.asyncio
    async def test_save_and_get(self, doc_store):
        await doc_store.save("prescriptions", "rx-1", {"id": "rx-1", "medications": [{"name": "A"}]})

        assert await doc_store.get("prescriptions", "rx-1") == {"id": "rx-1", "medications": [{"name": "A"}]}

    @pytest.mark.asyncio
    async def test_save_replaces_whole_document(self, doc_store):
        await doc_store.save("prescriptions", "rx-1", {"status": "extracted", "extra": True})
        await doc_store.save("prescriptions", "rx-1", {"status": "scheduled"})

        assert await doc_store.get("prescriptions", "rx-1") == {"status": "scheduled"}

    @pytest.mark.asyncio
    async def test_collections_are_separate(self, doc_store):
        await doc_store.save("prescriptions/rx-1/flags", "flags", {"flags": []})

        assert await doc_store.get("prescriptions/rx-2/flags", "flags") is None

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, doc_store):
        payload = {"items": [1]}
        await doc_store.save("c", "d", payload)
        payload["items"].append(2)

        loaded = await doc_store.get("c", "d")
        loaded["items"].append(3)

        assert await doc_store.get("c", "d") == {"items": [1]}


def test_sqlite_store_persists_across_instances(tmp_path):
    import asyncio

    db_path = tmp_path / "documents.db"
    asyncio.run(SQLiteDocumentStore(db_path).save("prescriptions", "rx-1", {"id": "rx-1"}))

    reopened = SQLiteDocumentStore(db_path)

    assert asyncio.run(reopened.get("prescriptions", "rx-1")) == {"id": "rx-1"}
    assert reopened.count("prescriptions") == 1
