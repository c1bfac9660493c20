from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, StrictInt


class CardType(str, Enum):
    FLASHCARD = "flashcard"
    MCQ = "mcq"


class Deck(BaseModel):
    id: str
    book_id: str
    title: str
    created_at: str


class DeckList(BaseModel):
    items: list[Deck]
    total: int


class Card(BaseModel):
    id: str
    deck_id: str
    book_id: str
    type: CardType
    question: str
    answer: str
    distractors: list[str] = Field(default_factory=list)
    difficulty: int             # 1 (recall) – 5 (synthesis)
    source_chunk_ids: list[str] = Field(default_factory=list)
    created_at: str


class CardList(BaseModel):
    items: list[Card]
    total: int


class GenerateRequest(BaseModel):
    count: int = Field(default=10, ge=1, le=50)
    topic: str | None = None


class GenerateResult(BaseModel):
    success: bool
    deck_id: str
    cards: list[Card]


class Review(BaseModel):
    id: str
    card_id: str
    grade: int
    due_at: str
    interval_days: int
    ease_factor: float
    reviewed_at: str


class ReviewList(BaseModel):
    items: list[Review]
    total: int


class ReviewRequest(BaseModel):
    grade: StrictInt | None = None  # 0–4; >= 3 counts as recalled


class AnswerRequest(BaseModel):
    selected: str


class AnswerResult(BaseModel):
    correct: bool
    correct_answer: str
    review: Review


class CardState(BaseModel):
    """Scheduling state of a card, taken from its most recent review."""

    card_id: str
    grade: int | None
    interval_days: int
    ease_factor: float
    due_at: str | None      # None = never reviewed, due immediately


class DeckStats(BaseModel):
    deck_id: str
    title: str
    book_id: str
    total: int
    due: int


class ReviewStats(BaseModel):
    total_cards: int
    due_now: int
    total_reviews: int
    per_deck: list[DeckStats]
