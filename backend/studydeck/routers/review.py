"""
Cards & spaced-repetition review.

Endpoints:
  GET    /decks/{id}/cards      — cards in a deck (optionally by type)
  GET    /cards/{id}            — single card
  DELETE /cards/{id}            — delete card (and its reviews)
  POST   /cards/{id}/review     — grade 0–4, append a review
  POST   /cards/{id}/answer     — answer an MCQ, append a review
  GET    /cards/{id}/reviews    — review history, oldest first
  GET    /cards/{id}/state      — current scheduling state
  GET    /review/due            — cards due now
  GET    /review/stats          — summary stats
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from studydeck.db.sqlite import (
    delete_card,
    get_card,
    get_db,
    get_deck,
    get_due_cards,
    get_review_stats,
    list_cards,
    list_reviews,
)
from studydeck.models.card import (
    AnswerRequest,
    AnswerResult,
    Card,
    CardList,
    CardState,
    CardType,
    Review,
    ReviewList,
    ReviewRequest,
    ReviewStats,
)
from studydeck.services.review import (
    CardNotFoundError,
    NotMultipleChoiceError,
    current_state,
    record_quiz_answer,
    record_review,
)
from studydeck.services.scheduler import InvalidGradeError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/decks/{deck_id}/cards", response_model=CardList)
async def deck_cards(
    deck_id: str,
    type: CardType | None = Query(default=None),
    db: aiosqlite.Connection = Depends(get_db),
) -> CardList:
    if not await get_deck(db, deck_id):
        raise HTTPException(status_code=404, detail="Deck not found")
    items = await list_cards(db, deck_id, type)
    return CardList(items=items, total=len(items))


@router.get("/review/due", response_model=CardList)
async def due_cards(
    limit: int = Query(default=20, ge=1, le=100),
    deck_id: str | None = Query(default=None),
    book_id: str | None = Query(default=None),
    db: aiosqlite.Connection = Depends(get_db),
) -> CardList:
    """Cards due for review now, oldest due first."""
    items = await get_due_cards(
        db, datetime.now(timezone.utc), limit=limit, deck_id=deck_id, book_id=book_id
    )
    return CardList(items=items, total=len(items))


@router.get("/review/stats", response_model=ReviewStats)
async def review_stats(db: aiosqlite.Connection = Depends(get_db)) -> ReviewStats:
    return await get_review_stats(db, datetime.now(timezone.utc))


@router.get("/cards/{card_id}", response_model=Card)
async def get_one(card_id: str, db: aiosqlite.Connection = Depends(get_db)) -> Card:
    card = await get_card(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


@router.delete("/cards/{card_id}", status_code=204)
async def remove(card_id: str, db: aiosqlite.Connection = Depends(get_db)) -> None:
    deleted = await delete_card(db, card_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Card not found")


@router.post("/cards/{card_id}/review", response_model=Review, status_code=201)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> Review:
    """Grade a card on the 0–4 scale and schedule its next review."""
    try:
        return await record_review(db, card_id, body.grade)
    except InvalidGradeError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except CardNotFoundError as e:
        raise HTTPException(status_code=404, detail="Card not found") from e


@router.post("/cards/{card_id}/answer", response_model=AnswerResult, status_code=201)
async def answer_card(
    card_id: str,
    body: AnswerRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> AnswerResult:
    if not body.selected.strip():
        raise HTTPException(status_code=422, detail="Please select an answer")
    try:
        return await record_quiz_answer(db, card_id, body.selected)
    except CardNotFoundError as e:
        raise HTTPException(status_code=404, detail="Card not found") from e
    except NotMultipleChoiceError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/cards/{card_id}/reviews", response_model=ReviewList)
async def card_reviews(
    card_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> ReviewList:
    if not await get_card(db, card_id):
        raise HTTPException(status_code=404, detail="Card not found")
    items = await list_reviews(db, card_id)
    return ReviewList(items=items, total=len(items))


@router.get("/cards/{card_id}/state", response_model=CardState)
async def card_state(
    card_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> CardState:
    try:
        return await current_state(db, card_id)
    except CardNotFoundError as e:
        raise HTTPException(status_code=404, detail="Card not found") from e
