"""
Key-concept map generation.

The book's chunks are joined in page order, truncated, and sent to the
gateway which returns main concepts with nested sub-concepts. The result
replaces the book's previous concept map as a two-level hierarchy:
level 1 rows have no parent, level 2 rows point at their main concept.
"""
from __future__ import annotations

import logging
import uuid

import aiosqlite

from studydeck.config import settings
from studydeck.db.sqlite import list_chunks_for_book, replace_concepts
from studydeck.models.concept import Concept, ConceptNode
from studydeck.services.card_generator import NoContentError
from studydeck.services.llm_service import InvalidAIResponseError, chat_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert at analyzing educational content and extracting key "
    "concepts in a hierarchical structure."
)


def _user_prompt(context: str) -> str:
    return (
        "Analyze this content and extract 5-8 main key concepts, with 2-4 "
        "sub-concepts for each main concept. Format as JSON array:\n"
        "[{\n"
        '  "title": "Main Concept Title",\n'
        '  "description": "Brief description",\n'
        '  "subConcepts": [\n'
        '    {"title": "Sub-concept Title", "description": "Brief description"}\n'
        "  ]\n"
        "}]\n\n"
        f"Content:\n{context}"
    )


def flatten_concepts(items: list) -> list[dict]:
    """Turn the nested AI output into rows, parents before their children."""
    rows: list[dict] = []
    main_index = 0
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        main_id = str(uuid.uuid4())
        rows.append(
            {
                "id": main_id,
                "parent_id": None,
                "title": title,
                "description": str(item.get("description") or "").strip(),
                "level": 1,
                "order_index": main_index,
            }
        )
        main_index += 1

        sub_index = 0
        for sub in item.get("subConcepts") or []:
            if not isinstance(sub, dict):
                continue
            sub_title = str(sub.get("title") or "").strip()
            if not sub_title:
                continue
            rows.append(
                {
                    "id": str(uuid.uuid4()),
                    "parent_id": main_id,
                    "title": sub_title,
                    "description": str(sub.get("description") or "").strip(),
                    "level": 2,
                    "order_index": sub_index,
                }
            )
            sub_index += 1
    return rows


def build_concept_tree(concepts: list[Concept]) -> list[ConceptNode]:
    mains = sorted((c for c in concepts if c.level == 1), key=lambda c: c.order_index)
    nodes = {
        c.id: ConceptNode(id=c.id, title=c.title, description=c.description)
        for c in mains
    }
    subs = sorted((c for c in concepts if c.level == 2), key=lambda c: c.order_index)
    for sub in subs:
        parent = nodes.get(sub.parent_id or "")
        if parent is None:
            continue
        parent.sub_concepts.append(
            ConceptNode(id=sub.id, title=sub.title, description=sub.description)
        )
    return [nodes[c.id] for c in mains]


async def generate_concepts(db: aiosqlite.Connection, book_id: str) -> int:
    """Regenerate the concept map for a book. Returns the number of rows stored."""
    chunks = await list_chunks_for_book(db, book_id)
    if not chunks:
        raise NoContentError("No content found for this book")

    context = "\n\n".join(c.text for c in chunks)[: settings.concept_context_chars]
    result = await chat_json(
        SYSTEM_PROMPT,
        _user_prompt(context),
        model=settings.concept_model,
        temperature=0.7,
        json_mode=False,
    )
    if isinstance(result, dict):
        # json_object mode on some models wraps the array
        result = result.get("concepts")
    if not isinstance(result, list):
        raise InvalidAIResponseError("Invalid AI response format")

    rows = flatten_concepts(result)
    count = await replace_concepts(db, book_id, rows)
    logger.info("Generated %d concepts for book %s", count, book_id)
    return count
