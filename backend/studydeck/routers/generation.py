"""
AI generation endpoints.

  POST /books/{id}/flashcards  — generate flashcards into a deck
  POST /books/{id}/mcqs        — generate multiple-choice questions into a deck
  POST /books/{id}/concepts    — regenerate the key-concept map
  GET  /books/{id}/concepts    — concept map as a two-level tree
"""
from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from studydeck.db.sqlite import get_book, get_db, list_concepts
from studydeck.models.card import GenerateRequest, GenerateResult
from studydeck.models.concept import ConceptGenerateResult, ConceptTree
from studydeck.services.card_generator import (
    NoContentError,
    generate_flashcards,
    generate_mcqs,
)
from studydeck.services.concept_extractor import build_concept_tree, generate_concepts
from studydeck.services.llm_service import LLMError, LLMUnavailableError

logger = logging.getLogger(__name__)
router = APIRouter()


def _generation_error(e: Exception) -> HTTPException:
    if isinstance(e, NoContentError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, LLMUnavailableError):
        return HTTPException(status_code=503, detail=str(e))
    logger.error("AI generation failed: %s", e)
    return HTTPException(status_code=502, detail=str(e))


async def _require_book(db: aiosqlite.Connection, book_id: str) -> None:
    if not await get_book(db, book_id):
        raise HTTPException(status_code=404, detail="Book not found")


@router.post("/{book_id}/flashcards", response_model=GenerateResult)
async def create_flashcards(
    book_id: str,
    body: GenerateRequest | None = None,
    db: aiosqlite.Connection = Depends(get_db),
) -> GenerateResult:
    body = body or GenerateRequest()
    await _require_book(db, book_id)
    try:
        deck, cards = await generate_flashcards(db, book_id, body.count, body.topic)
    except (NoContentError, LLMError) as e:
        raise _generation_error(e) from e
    return GenerateResult(success=True, deck_id=deck.id, cards=cards)


@router.post("/{book_id}/mcqs", response_model=GenerateResult)
async def create_mcqs(
    book_id: str,
    body: GenerateRequest | None = None,
    db: aiosqlite.Connection = Depends(get_db),
) -> GenerateResult:
    body = body or GenerateRequest()
    await _require_book(db, book_id)
    try:
        deck, cards = await generate_mcqs(db, book_id, body.count, body.topic)
    except (NoContentError, LLMError) as e:
        raise _generation_error(e) from e
    return GenerateResult(success=True, deck_id=deck.id, cards=cards)


@router.post("/{book_id}/concepts", response_model=ConceptGenerateResult)
async def create_concepts(
    book_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> ConceptGenerateResult:
    await _require_book(db, book_id)
    try:
        count = await generate_concepts(db, book_id)
    except (NoContentError, LLMError) as e:
        raise _generation_error(e) from e
    return ConceptGenerateResult(success=True, concept_count=count)


@router.get("/{book_id}/concepts", response_model=ConceptTree)
async def get_concepts(
    book_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> ConceptTree:
    await _require_book(db, book_id)
    items = build_concept_tree(await list_concepts(db, book_id))
    return ConceptTree(book_id=book_id, items=items, total=len(items))
