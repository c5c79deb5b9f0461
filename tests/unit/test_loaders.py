"""
Unit tests for document stores, BatchWriter and DocumentLoader
"""

import json
import os
import pytest
from unittest.mock import AsyncMock, patch
from core.database import dispose_engines, resolve_store_url
from core.exceptions import (
    BatchOverflowError,
    CommitError,
    ConfigurationError,
    DocumentTooLargeError,
    RunCancelledError,
)
from ingestion.cancellation import CancellationToken
from ingestion.loaders.batch_writer import BatchWriter, document_size
from ingestion.loaders.document_loader import DocumentLoader
from ingestion.loaders.document_store import (
    BatchEntry,
    LocalFileStore,
    SQLDocumentStore,
    create_document_store,
    parse_document_path,
)
from models.base import DetailStatus, Destination
from schemas.etl import TransformedDocument


def docs(count, prefix="colecao"):
    return [
        TransformedDocument(path=f"{prefix}/{i}", payload={"n": i})
        for i in range(count)
    ]


class TestDocumentPath:
    def test_splits_collection_and_id(self):
        assert parse_document_path("a/b/c/1") == ("a/b/c", "1")
        assert parse_document_path("perfis/5012") == ("perfis", "5012")

    @pytest.mark.parametrize("path", ["a/b/c", "perfis", "a/b/c/d/e"])
    def test_odd_segment_count_is_rejected(self, path):
        with pytest.raises(ConfigurationError):
            parse_document_path(path)

    @pytest.mark.parametrize("path", ["", "/a/b/c", "a//c/d", "a/b/c/"])
    def test_empty_segment_is_rejected(self, path):
        with pytest.raises(ConfigurationError):
            parse_document_path(path)

    @pytest.mark.parametrize("path", ["../b", "a/../c/d", "a/./c/d", "a/b/c/.."])
    def test_relative_segment_is_rejected(self, path):
        with pytest.raises(ConfigurationError):
            parse_document_path(path)

    @pytest.mark.parametrize("collection_path, document_id", [
        ("senado/perfis", "1"),
        ("perfis", "1/2"),
        ("a/b", "c/d"),
        ("..", "1"),
    ])
    def test_batch_entry_rejects_invalid_address(self, collection_path, document_id):
        with pytest.raises(ConfigurationError):
            BatchEntry(collection_path, document_id, {})

    @pytest.mark.asyncio
    async def test_local_store_cannot_escape_base_dir(self, tmp_path):
        store = LocalFileStore(str(tmp_path / "export"))

        with pytest.raises(ConfigurationError):
            await store.get("../outside")

        assert not (tmp_path / "outside.json").exists()

    def test_batch_entry_from_path(self):
        entry = BatchEntry.from_path("comissoes/cpis/itens/2606", {"x": 1})
        assert entry.collection_path == "comissoes/cpis/itens"
        assert entry.document_id == "2606"
        assert entry.path == "comissoes/cpis/itens/2606"


class TestSQLDocumentStore:
    @pytest.mark.asyncio
    async def test_commit_and_get(self, sqlite_store):
        await sqlite_store.commit([BatchEntry("perfis", "1", {"nome": "Ana"})])

        assert await sqlite_store.get("perfis/1") == {"nome": "Ana"}
        assert await sqlite_store.get("perfis/2") is None

    @pytest.mark.asyncio
    async def test_rewriting_a_path_replaces_the_payload(self, sqlite_store):
        await sqlite_store.commit([BatchEntry("perfis", "1", {"v": 1})])
        await sqlite_store.commit([BatchEntry("perfis", "1", {"v": 2})])

        assert await sqlite_store.get("perfis/1") == {"v": 2}
        assert await sqlite_store.count() == 1

    @pytest.mark.asyncio
    async def test_duplicate_path_in_one_batch_keeps_last(self, sqlite_store):
        await sqlite_store.commit([
            BatchEntry("perfis", "1", {"v": 1}),
            BatchEntry("perfis", "2", {"v": 1}),
            BatchEntry("perfis", "1", {"v": 3}),
        ])

        assert await sqlite_store.get("perfis/1") == {"v": 3}
        assert await sqlite_store.count() == 2

    @pytest.mark.asyncio
    async def test_count_by_collection(self, sqlite_store):
        await sqlite_store.commit([
            BatchEntry("perfis", "1", {}),
            BatchEntry("perfis", "2", {}),
            BatchEntry("votacoes", "1", {}),
        ])

        assert await sqlite_store.count("perfis") == 2
        assert await sqlite_store.count("votacoes") == 1

    @pytest.mark.asyncio
    async def test_auto_create_schema(self, sqlite_engine):
        store = SQLDocumentStore(sqlite_engine, Destination.EMULATOR, auto_create_schema=True)

        await store.commit([BatchEntry("perfis", "1", {"ok": True})])

        assert await store.get("perfis/1") == {"ok": True}


class TestLocalFileStore:
    @pytest.mark.asyncio
    async def test_writes_one_json_file_per_document(self, tmp_path):
        store = LocalFileStore(str(tmp_path))

        await store.commit([
            BatchEntry("senado/perfis/itens", "1", {"nome": "Ana"}),
            BatchEntry("senado/perfis/itens", "2", {"nome": "Bruno"}),
        ])

        target = tmp_path / "senado" / "perfis" / "itens" / "1.json"
        assert json.loads(target.read_text(encoding="utf-8")) == {"nome": "Ana"}
        assert await store.get("senado/perfis/itens/2") == {"nome": "Bruno"}
        assert not list(tmp_path.rglob("*.tmp"))

    @pytest.mark.asyncio
    async def test_overwrite(self, tmp_path):
        store = LocalFileStore(str(tmp_path))

        await store.commit([BatchEntry("perfis", "1", {"v": 1})])
        await store.commit([BatchEntry("perfis", "1", {"v": 2})])

        assert await store.get("perfis/1") == {"v": 2}

    @pytest.mark.asyncio
    async def test_missing_document(self, tmp_path):
        assert await LocalFileStore(str(tmp_path)).get("perfis/9") is None


class TestStoreFactory:
    def test_local_file(self, tmp_path):
        store = create_document_store(Destination.LOCAL_FILE, str(tmp_path))
        assert isinstance(store, LocalFileStore)

    @pytest.mark.asyncio
    async def test_emulator_uses_configured_url(self, tmp_path, monkeypatch):
        url = f"sqlite+aiosqlite:///{tmp_path / 'emulator.db'}"
        monkeypatch.setenv("STORE_EMULATOR_URL", url)

        store = create_document_store(Destination.EMULATOR, str(tmp_path))
        try:
            assert isinstance(store, SQLDocumentStore)
            assert store.destination == Destination.EMULATOR
            await store.commit([BatchEntry("perfis", "1", {"v": 1})])
            assert await store.get("perfis/1") == {"v": 1}
        finally:
            await dispose_engines()

    def test_emulator_default_is_exported(self, monkeypatch):
        monkeypatch.setenv("STORE_EMULATOR_URL", "")

        with patch("core.database.settings") as mock_settings:
            mock_settings.STORE_EMULATOR_URL = None
            mock_settings.STORE_EMULATOR_DEFAULT_URL = "sqlite+aiosqlite:///./default.db"
            url = resolve_store_url("emulator")

        assert url == "sqlite+aiosqlite:///./default.db"
        assert os.environ["STORE_EMULATOR_URL"] == url

    def test_destination_without_database(self):
        with pytest.raises(ConfigurationError):
            resolve_store_url("local-file")


class TestBatchWriter:
    def test_limit_must_fit_the_store(self, make_store):
        store = make_store(max_batch_size=500)
        with pytest.raises(ValueError):
            BatchWriter(store, max_entries=501)
        with pytest.raises(ValueError):
            BatchWriter(store, max_entries=0)
        assert BatchWriter(store).max_entries == 500

    def test_overflow(self, memory_store):
        writer = BatchWriter(memory_store, max_entries=2)
        writer.set("perfis", "1", {})
        writer.set("perfis", "2", {})

        assert writer.full
        with pytest.raises(BatchOverflowError):
            writer.set("perfis", "3", {})
        assert writer.pending == 2

    def test_invalid_address(self, memory_store):
        writer = BatchWriter(memory_store)
        with pytest.raises(ConfigurationError):
            writer.set("a/b", "c", {})

    def test_document_too_large(self, memory_store):
        payload = {"texto": "x" * 50}
        writer = BatchWriter(memory_store, max_document_bytes=document_size(payload) - 1)

        with pytest.raises(DocumentTooLargeError):
            writer.set("perfis", "1", payload)
        assert writer.pending == 0

    def test_document_size_counts_utf8_bytes(self):
        assert document_size({"a": "é"}) == len('{"a": "é"}'.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_commit_and_reset(self, memory_store):
        writer = BatchWriter(memory_store)
        writer.set("perfis", "1", {"v": 1})
        writer.set("perfis", "2", {"v": 2})

        outcome = await writer.commit_and_reset()

        assert outcome.succeeded == 2
        assert writer.pending == 0
        assert memory_store.documents == {"perfis/1": {"v": 1}, "perfis/2": {"v": 2}}

    @pytest.mark.asyncio
    async def test_empty_commit_is_a_no_op(self, memory_store):
        outcome = await BatchWriter(memory_store).commit_and_reset()
        assert outcome.succeeded == 0
        assert memory_store.commits == []

    @pytest.mark.asyncio
    async def test_failed_commit_resets_buffer(self, make_store):
        store = make_store(fail_on_commits={0})
        writer = BatchWriter(store)
        writer.set("perfis", "1", {})
        writer.set("perfis", "2", {})

        with pytest.raises(CommitError) as exc_info:
            await writer.commit_and_reset()

        assert writer.pending == 0
        assert store.documents == {}
        assert exc_info.value.context["batch_size"] == 2
        assert exc_info.value.context["first_path"] == "perfis/1"
        assert isinstance(exc_info.value.original_exception, RuntimeError)

    @pytest.mark.asyncio
    async def test_cancelled_before_commit(self, memory_store):
        token = CancellationToken()
        writer = BatchWriter(memory_store, cancel_token=token)
        writer.set("perfis", "1", {})
        token.cancel("stop")

        with pytest.raises(RunCancelledError):
            await writer.commit_and_reset()

        assert memory_store.commits == []
        assert writer.pending == 0


class TestDocumentLoader:
    @pytest.mark.asyncio
    async def test_commits_in_batches(self, memory_store):
        progress = []
        loader = DocumentLoader(memory_store, batch_size=3, on_progress=lambda done, total: progress.append((done, total)))

        result = await loader.load(docs(7))

        assert [len(c) for c in memory_store.commits] == [3, 3, 1]
        assert (result.total, result.processed, result.succeeded, result.failed) == (7, 7, 7, 0)
        assert [d.id for d in result.details] == [f"colecao/{i}" for i in range(7)]
        assert progress == [(3, 7), (6, 7), (7, 7)]

    @pytest.mark.asyncio
    async def test_empty_input(self, memory_store):
        result = await DocumentLoader(memory_store).load([])
        assert result.total == 0
        assert memory_store.commits == []

    @pytest.mark.asyncio
    async def test_invalid_path_fails_before_any_write(self, memory_store):
        documents = docs(3) + [TransformedDocument(path="sem/par/impar", payload={})]

        with pytest.raises(ConfigurationError):
            await DocumentLoader(memory_store, batch_size=2).load(documents)

        assert memory_store.commits == []

    @pytest.mark.asyncio
    async def test_oversized_document_is_reported_and_skipped(self, memory_store):
        documents = docs(3)
        documents[1] = TransformedDocument(path="colecao/1", payload={"texto": "x" * 200})

        result = await DocumentLoader(memory_store, max_document_bytes=100).load(documents)

        assert (result.total, result.succeeded, result.failed) == (3, 2, 1)
        failed = [d for d in result.details if d.status == DetailStatus.FAILED]
        assert failed[0].id == "colecao/1"
        assert "colecao/1" not in memory_store.documents

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_earlier_batches(self, make_store):
        store = make_store(fail_on_commits={1})
        loader = DocumentLoader(store, batch_size=3)

        with pytest.raises(CommitError) as exc_info:
            await loader.load(docs(8))

        error = exc_info.value
        assert error.batch_index == 1
        assert error.context["batch_index"] == 1
        partial = error.partial_result
        assert (partial.total, partial.processed, partial.succeeded, partial.failed) == (8, 6, 3, 3)
        assert len(store.documents) == 3
        assert len(store.commits) == 2

    @pytest.mark.asyncio
    async def test_pauses_between_batches_only(self, memory_store):
        loader = DocumentLoader(memory_store, batch_size=2, pause_between_batches=0.5)

        with patch.object(loader, "_pause", AsyncMock()) as pause:
            await loader.load(docs(5))

        assert pause.await_count == 2
