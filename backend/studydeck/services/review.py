from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite

from studydeck.db.sqlite import get_card, get_latest_review, insert_review
from studydeck.models.card import AnswerResult, CardState, CardType, Review
from studydeck.services.scheduler import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INTERVAL_DAYS,
    schedule_quiz_answer,
    schedule_review,
    validate_grade,
)

logger = logging.getLogger(__name__)


class CardNotFoundError(LookupError):
    pass


class NotMultipleChoiceError(ValueError):
    pass


async def record_review(
    db: aiosqlite.Connection,
    card_id: str,
    grade: int | None,
    now: datetime | None = None,
) -> Review:
    """Grade a card and append the resulting review."""
    grade = validate_grade(grade)
    if await get_card(db, card_id) is None:
        raise CardNotFoundError(card_id)

    now = now or datetime.now(timezone.utc)
    schedule = schedule_review(grade, now)
    review = await insert_review(db, card_id, schedule, reviewed_at=now)
    logger.info(
        "Card %s graded %d: due in %d day(s)", card_id, grade, schedule.interval_days
    )
    return review


async def record_quiz_answer(
    db: aiosqlite.Connection,
    card_id: str,
    selected: str,
    now: datetime | None = None,
) -> AnswerResult:
    card = await get_card(db, card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    if card.type != CardType.MCQ:
        raise NotMultipleChoiceError("Only multiple-choice cards can be answered")

    now = now or datetime.now(timezone.utc)
    correct = selected.strip() == card.answer.strip()
    review = await insert_review(db, card_id, schedule_quiz_answer(correct, now), reviewed_at=now)
    return AnswerResult(correct=correct, correct_answer=card.answer, review=review)


async def current_state(db: aiosqlite.Connection, card_id: str) -> CardState:
    if await get_card(db, card_id) is None:
        raise CardNotFoundError(card_id)

    latest = await get_latest_review(db, card_id)
    if latest is None:
        return CardState(
            card_id=card_id,
            grade=None,
            interval_days=DEFAULT_INTERVAL_DAYS,
            ease_factor=DEFAULT_EASE_FACTOR,
            due_at=None,
        )
    return CardState(
        card_id=card_id,
        grade=latest.grade,
        interval_days=latest.interval_days,
        ease_factor=latest.ease_factor,
        due_at=latest.due_at,
    )
