import asyncio
import logging
import shutil

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from studydeck.config import settings
from studydeck.db.chromadb_ import delete_book_embeddings
from studydeck.db.sqlite import (
    create_book,
    delete_book,
    get_book,
    get_db,
    list_books,
    list_decks,
    update_book,
)
from studydeck.models.book import Book, BookCreate, BookList, BookUpdate
from studydeck.models.card import DeckList

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=Book, status_code=201)
async def create(body: BookCreate, db: aiosqlite.Connection = Depends(get_db)):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Book title is required")
    return await create_book(db, body)


@router.get("/", response_model=BookList)
async def list_all(
    offset: int = 0, limit: int = 50, db: aiosqlite.Connection = Depends(get_db)
):
    items, total = await list_books(db, offset, limit)
    return BookList(items=items, total=total, offset=offset, limit=limit)


@router.get("/{book_id}", response_model=Book)
async def get_one(book_id: str, db: aiosqlite.Connection = Depends(get_db)):
    book = await get_book(db, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.patch("/{book_id}", response_model=Book)
async def update(
    book_id: str, body: BookUpdate, db: aiosqlite.Connection = Depends(get_db)
):
    book = await update_book(db, book_id, body)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.delete("/{book_id}", status_code=204)
async def delete(book_id: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await get_book(db, book_id):
        raise HTTPException(status_code=404, detail="Book not found")

    try:
        await asyncio.to_thread(delete_book_embeddings, book_id)
    except Exception as e:
        logger.warning("Could not delete embeddings for book %s: %s", book_id, e)

    await delete_book(db, book_id)
    shutil.rmtree(settings.data_dir / settings.files_dirname / book_id, ignore_errors=True)


@router.get("/{book_id}/decks", response_model=DeckList)
async def decks(book_id: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await get_book(db, book_id):
        raise HTTPException(status_code=404, detail="Book not found")
    items = await list_decks(db, book_id)
    return DeckList(items=items, total=len(items))
