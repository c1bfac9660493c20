from __future__ import annotations

import asyncio
import logging
import traceback
from pathlib import Path

import aiosqlite

from studydeck.config import settings
from studydeck.db.chromadb_ import add_chunk_embedding, delete_material_embeddings
from studydeck.db.sqlite import (
    delete_chunks_for_material,
    get_book,
    get_db,
    get_material,
    insert_chunks,
    mark_chunk_embedded,
    update_book,
    update_material,
)
from studydeck.models.book import BookUpdate, MaterialStatus
from studydeck.services.chunker import chunk_text
from studydeck.services.embeddings import fetch_embedding
from studydeck.services.pdf_extractor import extract_pdf

logger = logging.getLogger(__name__)


class MaterialNotFoundError(LookupError):
    pass


class NoDocumentTextError(ValueError):
    """Raised when a PDF yields no extractable text (scanned or empty)."""


async def process_material(db: aiosqlite.Connection, material_id: str) -> int:
    """Ingestion pipeline: extract → chunk → embed (best-effort).

    Updates material status at each stage and returns the number of chunks
    created. Re-running replaces the material's previous chunks.
    """
    material = await get_material(db, material_id)
    if material is None:
        raise MaterialNotFoundError(material_id)

    # --- Step 1: Extract ---
    await update_material(db, material_id, status=MaterialStatus.EXTRACTING.value)
    extraction = await asyncio.to_thread(extract_pdf, Path(material.storage_path))
    await update_material(db, material_id, pages=extraction.page_count)

    if extraction.author:
        book = await get_book(db, material.book_id)
        if book is not None and not book.author:
            await update_book(db, book.id, BookUpdate(author=extraction.author))

    text = extraction.text
    if extraction.needs_ocr or not text.strip():
        await update_material(db, material_id, status=MaterialStatus.NEEDS_OCR.value)
        logger.warning(
            "Material %s has no extractable text (%d pages)",
            material_id,
            extraction.page_count,
        )
        raise NoDocumentTextError(
            "No text could be extracted from this PDF. Scanned documents are not supported."
        )

    # --- Step 2: Chunk ---
    await update_material(db, material_id, status=MaterialStatus.CHUNKING.value)

    removed = await delete_chunks_for_material(db, material_id)
    if removed:
        logger.info("Replacing %d existing chunks for material %s", removed, material_id)
    try:
        await asyncio.to_thread(delete_material_embeddings, material_id)
    except Exception as e:
        logger.warning("Could not clear embeddings for material %s: %s", material_id, e)

    chunks = chunk_text(text, settings.chunk_size, settings.chunk_overlap)
    chunk_ids = await insert_chunks(db, material, chunks)

    # --- Step 3: Embed (sequential, best-effort) ---
    await update_material(db, material_id, status=MaterialStatus.EMBEDDING.value)

    embedded = 0
    for chunk_id, chunk in zip(chunk_ids, chunks):
        embedding = await fetch_embedding(chunk.text)
        if embedding is None:
            continue
        try:
            await asyncio.to_thread(
                add_chunk_embedding,
                chunk_id,
                embedding,
                chunk.text,
                {
                    "material_id": material_id,
                    "book_id": material.book_id,
                    "chunk_index": chunk.chunk_index,
                    "page_from": chunk.page_from,
                },
            )
        except Exception as e:
            logger.warning("Vector store write failed for chunk %s: %s", chunk_id, e)
            continue
        await mark_chunk_embedded(db, chunk_id)
        embedded += 1

    await update_material(
        db,
        material_id,
        status=MaterialStatus.READY.value,
        chunk_count=len(chunks),
    )
    logger.info(
        "Material %s processed: %d pages, %d chunks, %d embedded",
        material_id,
        extraction.page_count,
        len(chunks),
        embedded,
    )
    return len(chunks)


async def run_ingestion(material_id: str) -> None:
    """Background wrapper around process_material(); never raises."""
    try:
        async for db in get_db():
            await process_material(db, material_id)
    except NoDocumentTextError:
        logger.info("Material %s left in needs_ocr", material_id)
    except Exception:
        logger.error("Ingestion failed for %s:\n%s", material_id, traceback.format_exc())
        try:
            async for db in get_db():
                await update_material(db, material_id, status=MaterialStatus.ERROR.value)
        except Exception:
            logger.error("Failed to set error status for %s", material_id)
