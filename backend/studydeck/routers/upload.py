import hashlib
import uuid
from pathlib import Path

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, UploadFile

from studydeck.config import settings
from studydeck.db.sqlite import (
    create_material,
    find_material_by_hash,
    get_book,
    get_db,
    list_materials_for_book,
)
from studydeck.models.book import Material, MaterialCreate, MaterialList

router = APIRouter()


@router.post("/{book_id}/materials", response_model=Material, status_code=201)
async def upload_material(
    book_id: str,
    file: UploadFile,
    db: aiosqlite.Connection = Depends(get_db),
):
    if not await get_book(db, book_id):
        raise HTTPException(404, "Book not found")

    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(400, "Only PDF files are supported")

    content = await file.read()
    if not content:
        raise HTTPException(400, "Uploaded file is empty")
    file_hash = hashlib.sha256(content).hexdigest()

    existing = await find_material_by_hash(db, book_id, file_hash)
    if existing:
        raise HTTPException(409, f"Duplicate file. Existing material: {existing.id}")

    files_dir = settings.data_dir / settings.files_dirname / book_id
    files_dir.mkdir(parents=True, exist_ok=True)
    dest = files_dir / f"{uuid.uuid4().hex}{Path(file.filename).suffix.lower()}"
    dest.write_bytes(content)

    material = await create_material(
        db,
        MaterialCreate(
            book_id=book_id,
            filename=file.filename,
            storage_path=str(dest),
            file_hash=file_hash,
            file_size=len(content),
        ),
    )

    # Fire background processing
    from studydeck.services.ingestion import run_ingestion
    from studydeck.services.task_registry import start_task

    start_task(material.id, run_ingestion(material.id))

    return material


@router.get("/{book_id}/materials", response_model=MaterialList)
async def list_materials(book_id: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await get_book(db, book_id):
        raise HTTPException(404, "Book not found")
    items = await list_materials_for_book(db, book_id)
    return MaterialList(items=items, total=len(items))
