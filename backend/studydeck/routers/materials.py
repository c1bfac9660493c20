import asyncio
import logging
from pathlib import Path

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from studydeck.db.chromadb_ import delete_material_embeddings
from studydeck.db.sqlite import (
    delete_material,
    get_db,
    get_material,
    list_chunks_for_material,
    update_material,
)
from studydeck.models.book import Material, MaterialStatus, ProcessResult
from studydeck.models.chunk import ChunkList
from studydeck.services.ingestion import NoDocumentTextError, process_material
from studydeck.services.task_registry import is_processing

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{material_id}", response_model=Material)
async def get_one(material_id: str, db: aiosqlite.Connection = Depends(get_db)):
    material = await get_material(db, material_id)
    if not material:
        raise HTTPException(404, "Material not found")
    return material


@router.post("/{material_id}/process", response_model=ProcessResult)
async def process(material_id: str, db: aiosqlite.Connection = Depends(get_db)):
    """Run the ingestion pipeline inline and report how many chunks it produced."""
    if not await get_material(db, material_id):
        raise HTTPException(404, "Material not found")
    if is_processing(material_id):
        raise HTTPException(409, "Material is already being processed")

    try:
        created = await process_material(db, material_id)
    except NoDocumentTextError as e:
        raise HTTPException(422, str(e)) from e
    except Exception:
        await update_material(db, material_id, status=MaterialStatus.ERROR.value)
        raise
    return ProcessResult(success=True, chunks_created=created)


@router.get("/{material_id}/chunks", response_model=ChunkList)
async def list_chunks(
    material_id: str,
    offset: int = 0,
    limit: int = 50,
    db: aiosqlite.Connection = Depends(get_db),
):
    if not await get_material(db, material_id):
        raise HTTPException(404, "Material not found")
    chunks, total = await list_chunks_for_material(db, material_id, offset, limit)
    return ChunkList(items=chunks, total=total, offset=offset, limit=limit)


@router.delete("/{material_id}", status_code=204)
async def delete(material_id: str, db: aiosqlite.Connection = Depends(get_db)):
    material = await get_material(db, material_id)
    if not material:
        raise HTTPException(404, "Material not found")

    try:
        await asyncio.to_thread(delete_material_embeddings, material_id)
    except Exception as e:
        logger.warning("Could not delete embeddings for material %s: %s", material_id, e)

    await delete_material(db, material_id)
    Path(material.storage_path).unlink(missing_ok=True)
