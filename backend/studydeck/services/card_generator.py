"""
Flashcard and multiple-choice question generation.

Both generators:
  1. Get or create the target deck for (book, topic)
  2. Load up to settings.max_source_chunks chunks of the book
  3. Call the AI gateway via llm_service.chat_json()
  4. Normalise the returned items and insert them as cards

Unlike ingestion, failures here are not soft: the caller asked for cards,
so gateway and parsing errors propagate to the router.
"""
from __future__ import annotations

import logging
import re

import aiosqlite

from studydeck.config import settings
from studydeck.db.sqlite import get_or_create_deck, insert_cards, list_chunks_for_book
from studydeck.models.card import Card, CardType, Deck
from studydeck.models.chunk import Chunk
from studydeck.services.llm_service import InvalidAIResponseError, chat_json

logger = logging.getLogger(__name__)

DEFAULT_FLASHCARD_DECK = "Generated Flashcards"
DEFAULT_QUIZ_DECK = "Generated Quiz"
DEFAULT_DIFFICULTY = 3

_UUID = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)

FLASHCARD_SYSTEM_PROMPT = """You are an expert educational content creator. Generate flashcards from the provided text.
Each flashcard should:
- Have a clear, focused question
- Provide a concise but complete answer
- Be based on key concepts from the text
- Include the source chunk IDs for citation

Return ONLY valid JSON in this exact format:
{
  "flashcards": [
    {
      "question": "What is...",
      "answer": "...",
      "difficulty": 3,
      "sourceChunkIds": ["chunk-id-1", "chunk-id-2"]
    }
  ]
}"""

MCQ_SYSTEM_PROMPT = """You are an expert educational assessment designer writing multiple-choice questions.

Generate MCQs that:
1. Test genuine understanding, not just memorization
2. Have ONE clearly correct answer based on the content
3. Include three plausible but incorrect distractors that represent common
   misconceptions, match the correct answer in length and complexity, and do
   not overlap or contradict each other
4. Use clear, unambiguous language and avoid negative phrasing
5. Avoid "all of the above" or "none of the above"

Difficulty scale:
- 1-2: Basic recall and comprehension
- 3: Application of concepts
- 4-5: Analysis, evaluation, and synthesis

Return ONLY valid JSON in this exact format:
{
  "mcqs": [
    {
      "question": "Clear, specific question testing understanding",
      "answer": "The single correct answer",
      "distractors": ["Wrong answer 1", "Wrong answer 2", "Wrong answer 3"],
      "difficulty": 3,
      "sourceChunkIds": ["chunk-id-1"]
    }
  ]
}"""


class NoContentError(LookupError):
    """Raised when a book has no processed chunks to generate from."""


def extract_uuids(ids: object) -> list[str]:
    """Pull the first UUID out of each string; the model often decorates ids."""
    if not isinstance(ids, list):
        return []
    result = []
    for value in ids:
        if not isinstance(value, str):
            continue
        match = _UUID.search(value)
        if match:
            result.append(match.group(0))
    return result


def _difficulty(value: object) -> int:
    try:
        difficulty = int(value) if value else DEFAULT_DIFFICULTY  # type: ignore[arg-type]
    except (TypeError, ValueError):
        difficulty = DEFAULT_DIFFICULTY
    return max(1, min(5, difficulty))


def _build_context(chunks: list[Chunk]) -> str:
    return "\n\n".join(f"[Chunk {c.id}]: {c.text}" for c in chunks)


def normalize_cards(items: object, with_distractors: bool) -> list[dict]:
    if not isinstance(items, list):
        return []
    cards: list[dict] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        answer = str(item.get("answer") or "").strip()
        if not question or not answer:
            continue
        distractors: list[str] = []
        if with_distractors:
            raw = item.get("distractors") or []
            if isinstance(raw, list):
                distractors = [str(d).strip() for d in raw if str(d).strip()]
        cards.append(
            {
                "question": question,
                "answer": answer,
                "difficulty": _difficulty(item.get("difficulty")),
                "distractors": distractors,
                "source_chunk_ids": extract_uuids(item.get("sourceChunkIds")),
            }
        )
    return cards


async def _load_chunks(db: aiosqlite.Connection, book_id: str) -> list[Chunk]:
    chunks = await list_chunks_for_book(db, book_id, limit=settings.max_source_chunks)
    if not chunks:
        raise NoContentError("No content found. Please upload and process a PDF first.")
    logger.info("Found %d chunks to work with for book %s", len(chunks), book_id)
    return chunks


async def generate_flashcards(
    db: aiosqlite.Connection,
    book_id: str,
    count: int = 10,
    topic: str | None = None,
) -> tuple[Deck, list[Card]]:
    chunks = await _load_chunks(db, book_id)
    deck = await get_or_create_deck(db, book_id, topic or DEFAULT_FLASHCARD_DECK)

    result = await chat_json(
        FLASHCARD_SYSTEM_PROMPT,
        f"Generate {count} flashcards from this content:\n\n{_build_context(chunks)}",
        model=settings.flashcard_model,
    )
    if not isinstance(result, dict) or not isinstance(result.get("flashcards"), list):
        raise InvalidAIResponseError("Invalid AI response format")

    cards = await insert_cards(
        db, deck, CardType.FLASHCARD, normalize_cards(result["flashcards"], False)
    )
    logger.info("Generated %d flashcards for book %s (deck %s)", len(cards), book_id, deck.id)
    return deck, cards


async def generate_mcqs(
    db: aiosqlite.Connection,
    book_id: str,
    count: int = 10,
    topic: str | None = None,
) -> tuple[Deck, list[Card]]:
    chunks = await _load_chunks(db, book_id)
    deck = await get_or_create_deck(db, book_id, topic or DEFAULT_QUIZ_DECK)

    result = await chat_json(
        MCQ_SYSTEM_PROMPT,
        (
            f"Generate {count} high-quality multiple-choice questions from this "
            "educational content. Ensure variety in difficulty and well-crafted "
            f"distractors:\n\n{_build_context(chunks)}"
        ),
        model=settings.mcq_model,
        temperature=0.7,
    )
    if not isinstance(result, dict) or not isinstance(result.get("mcqs"), list):
        raise InvalidAIResponseError("Invalid AI response format")

    cards = await insert_cards(db, deck, CardType.MCQ, normalize_cards(result["mcqs"], True))
    logger.info("Generated %d MCQs for book %s (deck %s)", len(cards), book_id, deck.id)
    return deck, cards
