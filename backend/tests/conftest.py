import asyncio

import pytest
from fastapi.testclient import TestClient

from studydeck import app
from studydeck.config import settings
from studydeck.db import init_all_databases
from studydeck.db import sqlite as sqlite_db
from studydeck.models.book import BookCreate, MaterialCreate
from studydeck.services import ingestion, task_registry
from studydeck.services.pdf_extractor import PageText, PdfExtraction

SAMPLE_TEXT = (
    "Photosynthesis converts light energy into chemical energy. "
    "Chlorophyll absorbs light mostly in the blue and red wavelengths. "
    "The Calvin cycle fixes carbon dioxide into sugars using ATP and NADPH. "
) * 12


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    monkeypatch.setattr(settings, "ai_api_key", "test-key")
    monkeypatch.setattr(settings, "chunk_size", 200)
    monkeypatch.setattr(settings, "chunk_overlap", 20)
    return settings.data_dir


@pytest.fixture
def no_background(monkeypatch):
    """Swallow ingestion tasks fired by the upload endpoint."""
    started = []

    def fake_start_task(material_id, coro):
        coro.close()
        started.append(material_id)

    monkeypatch.setattr(task_registry, "start_task", fake_start_task)
    return started


@pytest.fixture
def fake_pdf(monkeypatch):
    """Replace PDF extraction with fixed pages of SAMPLE_TEXT."""
    extraction = PdfExtraction(
        author="",
        page_count=3,
        pages=[PageText(page_number=1, text=SAMPLE_TEXT)],
    )
    monkeypatch.setattr(ingestion, "extract_pdf", lambda path: extraction)
    return extraction


@pytest.fixture
def fake_embeddings(monkeypatch):
    calls = []

    async def fake_fetch(text):
        calls.append(text)
        return [0.1, 0.2, 0.3]

    monkeypatch.setattr(ingestion, "fetch_embedding", fake_fetch)
    return calls


@pytest.fixture
def client(data_dir, no_background):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def run_db(data_dir):
    """Run ``fn(db)`` against a freshly initialised database."""

    def _run(fn):
        async def _main():
            await init_all_databases(data_dir)
            async for db in sqlite_db.get_db():
                return await fn(db)

        return asyncio.run(_main())

    return _run


@pytest.fixture
def seed_material():
    """Async helper creating a book with one material row."""

    async def _seed(db, text=SAMPLE_TEXT, storage_path="/nonexistent.pdf"):
        book = await sqlite_db.create_book(db, BookCreate(title="Biology", author="Campbell"))
        material = await sqlite_db.create_material(
            db,
            MaterialCreate(
                book_id=book.id,
                filename="bio.pdf",
                storage_path=storage_path,
                file_hash="abc123",
                file_size=len(text),
            ),
        )
        return book, material

    return _seed
