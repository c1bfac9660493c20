"""
Spaced-repetition scheduling.

A simplified SM-2: every grading event starts from the default interval
and ease, so a recalled card (grade >= 3) is always due in
ceil(1 * 2.5) = 3 days and a lapse in 1 day. The ease factor is never
adjusted.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

MIN_GRADE = 0
MAX_GRADE = 4
PASS_GRADE = 3

DEFAULT_INTERVAL_DAYS = 1
DEFAULT_EASE_FACTOR = 2.5

# Multiple-choice answers skip the grading scale.
QUIZ_CORRECT_GRADE = 4
QUIZ_WRONG_GRADE = 1
QUIZ_CORRECT_INTERVAL_DAYS = 7
QUIZ_WRONG_INTERVAL_DAYS = 1


class InvalidGradeError(ValueError):
    """Raised when a grade is missing or outside 0–4."""


@dataclass(frozen=True)
class ReviewSchedule:
    grade: int
    interval_days: int
    due_at: datetime
    ease_factor: float


def validate_grade(grade: object) -> int:
    # bool is an int subclass; True/False are not grades
    if grade is None or isinstance(grade, bool) or not isinstance(grade, int):
        raise InvalidGradeError("grade is required and must be an integer from 0 to 4")
    if not MIN_GRADE <= grade <= MAX_GRADE:
        raise InvalidGradeError(f"grade must be between {MIN_GRADE} and {MAX_GRADE}")
    return grade


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def schedule_review(grade: int, now: datetime | None = None) -> ReviewSchedule:
    grade = validate_grade(grade)
    now = now or _utcnow()

    interval = DEFAULT_INTERVAL_DAYS
    ease = DEFAULT_EASE_FACTOR
    if grade >= PASS_GRADE:
        interval = math.ceil(interval * ease)

    return ReviewSchedule(
        grade=grade,
        interval_days=interval,
        due_at=now + timedelta(days=interval),
        ease_factor=ease,
    )


def schedule_quiz_answer(correct: bool, now: datetime | None = None) -> ReviewSchedule:
    now = now or _utcnow()
    if correct:
        grade, interval = QUIZ_CORRECT_GRADE, QUIZ_CORRECT_INTERVAL_DAYS
    else:
        grade, interval = QUIZ_WRONG_GRADE, QUIZ_WRONG_INTERVAL_DAYS
    return ReviewSchedule(
        grade=grade,
        interval_days=interval,
        due_at=now + timedelta(days=interval),
        ease_factor=DEFAULT_EASE_FACTOR,
    )
