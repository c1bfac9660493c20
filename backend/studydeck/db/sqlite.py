import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from studydeck.config import settings
from studydeck.models.book import Book, BookCreate, BookUpdate, Material, MaterialCreate
from studydeck.models.card import Card, CardType, Deck, DeckStats, Review, ReviewStats
from studydeck.models.chunk import Chunk
from studydeck.models.concept import Concept
from studydeck.services.chunker import ChunkData
from studydeck.services.scheduler import ReviewSchedule

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS books (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    author      TEXT DEFAULT '',
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS materials (
    id           TEXT PRIMARY KEY,
    book_id      TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    filename     TEXT NOT NULL,
    storage_path TEXT NOT NULL,
    file_hash    TEXT NOT NULL,
    file_size    INTEGER NOT NULL,
    pages        INTEGER DEFAULT 0,
    status       TEXT DEFAULT 'pending',
    chunk_count  INTEGER DEFAULT 0,
    created_at   TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_materials_book ON materials(book_id);

CREATE TABLE IF NOT EXISTS chunks (
    id          TEXT PRIMARY KEY,
    material_id TEXT NOT NULL REFERENCES materials(id) ON DELETE CASCADE,
    book_id     TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    chunk_index INTEGER NOT NULL,
    text        TEXT NOT NULL,
    page_from   INTEGER NOT NULL,
    page_to     INTEGER NOT NULL,
    topic       TEXT DEFAULT '',
    difficulty  INTEGER DEFAULT 3,
    has_embedding INTEGER DEFAULT 0,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_chunks_material ON chunks(material_id, chunk_index);
CREATE INDEX IF NOT EXISTS idx_chunks_book ON chunks(book_id, page_from);

CREATE TABLE IF NOT EXISTS decks (
    id          TEXT PRIMARY KEY,
    book_id     TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    title       TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (book_id, title)
);

CREATE TABLE IF NOT EXISTS cards (
    id          TEXT PRIMARY KEY,
    deck_id     TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    book_id     TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    type        TEXT NOT NULL,
    question    TEXT NOT NULL,
    answer      TEXT NOT NULL,
    distractors TEXT NOT NULL DEFAULT '[]',
    difficulty  INTEGER DEFAULT 3,
    source_chunk_ids TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_cards_deck ON cards(deck_id);

CREATE TABLE IF NOT EXISTS reviews (
    id            TEXT PRIMARY KEY,
    card_id       TEXT NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
    grade         INTEGER NOT NULL,
    due_at        TEXT NOT NULL,
    interval_days INTEGER NOT NULL DEFAULT 1,
    ease_factor   REAL NOT NULL DEFAULT 2.5,
    reviewed_at   TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviews_card ON reviews(card_id, reviewed_at);

CREATE TABLE IF NOT EXISTS concepts (
    id          TEXT PRIMARY KEY,
    book_id     TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    parent_id   TEXT REFERENCES concepts(id) ON DELETE CASCADE,
    title       TEXT NOT NULL,
    description TEXT DEFAULT '',
    level       INTEGER NOT NULL DEFAULT 1,
    order_index INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_concepts_book ON concepts(book_id, level, order_index);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""

# Most recent review per card; ties on reviewed_at fall back to insert order.
_LATEST_REVIEWS_CTE = """
WITH latest AS (
    SELECT r.* FROM reviews r
    WHERE r.rowid = (
        SELECT r2.rowid FROM reviews r2
        WHERE r2.card_id = r.card_id
        ORDER BY r2.reviewed_at DESC, r2.rowid DESC
        LIMIT 1
    )
)
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def iso(dt: datetime) -> str:
    """Fixed-width UTC ISO timestamp, safe for lexical comparison in SQL."""
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


# --- Books ---


def _row_to_book(row: aiosqlite.Row) -> Book:
    return Book(**dict(row))


async def create_book(db: aiosqlite.Connection, book: BookCreate) -> Book:
    book_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        "INSERT INTO books (id, title, author, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (book_id, book.title, book.author, now, now),
    )
    await db.commit()
    return await get_book(db, book_id)  # type: ignore[return-value]


async def get_book(db: aiosqlite.Connection, book_id: str) -> Book | None:
    cursor = await db.execute("SELECT * FROM books WHERE id = ?", (book_id,))
    row = await cursor.fetchone()
    return _row_to_book(row) if row else None


async def list_books(
    db: aiosqlite.Connection, offset: int = 0, limit: int = 50
) -> tuple[list[Book], int]:
    cursor = await db.execute("SELECT COUNT(*) FROM books")
    total = (await cursor.fetchone())[0]

    cursor = await db.execute(
        "SELECT * FROM books ORDER BY created_at DESC LIMIT ? OFFSET ?",
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_book(r) for r in rows], total


async def update_book(
    db: aiosqlite.Connection, book_id: str, updates: BookUpdate
) -> Book | None:
    fields = updates.model_dump(exclude_none=True)
    if not fields:
        return await get_book(db, book_id)

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    await db.execute(
        f"UPDATE books SET {set_clause} WHERE id = ?",  # noqa: S608
        list(fields.values()) + [book_id],
    )
    await db.commit()
    return await get_book(db, book_id)


async def delete_book(db: aiosqlite.Connection, book_id: str) -> bool:
    cursor = await db.execute("DELETE FROM books WHERE id = ?", (book_id,))
    await db.commit()
    return cursor.rowcount > 0


# --- Materials ---


def _row_to_material(row: aiosqlite.Row) -> Material:
    return Material(**dict(row))


async def create_material(db: aiosqlite.Connection, material: MaterialCreate) -> Material:
    material_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO materials
           (id, book_id, filename, storage_path, file_hash, file_size,
            created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            material_id,
            material.book_id,
            material.filename,
            material.storage_path,
            material.file_hash,
            material.file_size,
            now,
            now,
        ),
    )
    await db.commit()
    return await get_material(db, material_id)  # type: ignore[return-value]


async def get_material(db: aiosqlite.Connection, material_id: str) -> Material | None:
    cursor = await db.execute("SELECT * FROM materials WHERE id = ?", (material_id,))
    row = await cursor.fetchone()
    return _row_to_material(row) if row else None


async def list_materials_for_book(
    db: aiosqlite.Connection, book_id: str
) -> list[Material]:
    cursor = await db.execute(
        "SELECT * FROM materials WHERE book_id = ? ORDER BY created_at ASC",
        (book_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_material(r) for r in rows]


async def find_material_by_hash(
    db: aiosqlite.Connection, book_id: str, file_hash: str
) -> Material | None:
    cursor = await db.execute(
        "SELECT * FROM materials WHERE book_id = ? AND file_hash = ?",
        (book_id, file_hash),
    )
    row = await cursor.fetchone()
    return _row_to_material(row) if row else None


async def update_material(
    db: aiosqlite.Connection,
    material_id: str,
    *,
    status: str | None = None,
    pages: int | None = None,
    chunk_count: int | None = None,
) -> Material | None:
    fields = {
        k: v
        for k, v in (("status", status), ("pages", pages), ("chunk_count", chunk_count))
        if v is not None
    }
    if not fields:
        return await get_material(db, material_id)

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    await db.execute(
        f"UPDATE materials SET {set_clause} WHERE id = ?",  # noqa: S608
        list(fields.values()) + [material_id],
    )
    await db.commit()
    return await get_material(db, material_id)


async def delete_material(db: aiosqlite.Connection, material_id: str) -> bool:
    cursor = await db.execute("DELETE FROM materials WHERE id = ?", (material_id,))
    await db.commit()
    return cursor.rowcount > 0


async def find_materials_by_status(
    db: aiosqlite.Connection, statuses: list[str]
) -> list[Material]:
    placeholders = ", ".join("?" for _ in statuses)
    cursor = await db.execute(
        f"SELECT * FROM materials WHERE status IN ({placeholders})",  # noqa: S608
        statuses,
    )
    rows = await cursor.fetchall()
    return [_row_to_material(r) for r in rows]


# --- Chunks ---


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    d = dict(row)
    d["has_embedding"] = bool(d["has_embedding"])
    return Chunk(**d)


async def insert_chunks(
    db: aiosqlite.Connection, material: Material, chunks: list[ChunkData]
) -> list[str]:
    """Insert chunks for a material. Returns the generated chunk IDs in order."""
    now = _now()
    chunk_ids: list[str] = []
    for c in chunks:
        chunk_id = str(uuid.uuid4())
        chunk_ids.append(chunk_id)
        await db.execute(
            """INSERT INTO chunks
               (id, material_id, book_id, chunk_index, text, page_from, page_to,
                topic, difficulty, has_embedding, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (
                chunk_id,
                material.id,
                material.book_id,
                c.chunk_index,
                c.text,
                c.page_from,
                c.page_to,
                c.topic,
                c.difficulty,
                now,
            ),
        )
    await db.commit()
    return chunk_ids


async def delete_chunks_for_material(db: aiosqlite.Connection, material_id: str) -> int:
    cursor = await db.execute("DELETE FROM chunks WHERE material_id = ?", (material_id,))
    await db.commit()
    return cursor.rowcount or 0


async def mark_chunk_embedded(db: aiosqlite.Connection, chunk_id: str) -> None:
    await db.execute("UPDATE chunks SET has_embedding = 1 WHERE id = ?", (chunk_id,))
    await db.commit()


async def list_chunks_for_material(
    db: aiosqlite.Connection, material_id: str, offset: int = 0, limit: int = 50
) -> tuple[list[Chunk], int]:
    cursor = await db.execute(
        "SELECT COUNT(*) FROM chunks WHERE material_id = ?", (material_id,)
    )
    total = (await cursor.fetchone())[0]

    cursor = await db.execute(
        "SELECT * FROM chunks WHERE material_id = ? ORDER BY chunk_index LIMIT ? OFFSET ?",
        (material_id, limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_chunk(r) for r in rows], total


async def list_chunks_for_book(
    db: aiosqlite.Connection, book_id: str, limit: int | None = None
) -> list[Chunk]:
    """Chunks of every material in the book, in page order."""
    query = (
        "SELECT c.* FROM chunks c JOIN materials m ON m.id = c.material_id "
        "WHERE c.book_id = ? ORDER BY c.page_from, m.created_at, c.chunk_index"
    )
    params: list = [book_id]
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    cursor = await db.execute(query, params)
    rows = await cursor.fetchall()
    return [_row_to_chunk(r) for r in rows]


# --- Decks & cards ---


def _row_to_deck(row: aiosqlite.Row) -> Deck:
    return Deck(**dict(row))


def _row_to_card(row: aiosqlite.Row) -> Card:
    d = dict(row)
    d["distractors"] = json.loads(d["distractors"] or "[]")
    d["source_chunk_ids"] = json.loads(d["source_chunk_ids"] or "[]")
    return Card(**d)


async def get_deck(db: aiosqlite.Connection, deck_id: str) -> Deck | None:
    cursor = await db.execute("SELECT * FROM decks WHERE id = ?", (deck_id,))
    row = await cursor.fetchone()
    return _row_to_deck(row) if row else None


async def get_or_create_deck(db: aiosqlite.Connection, book_id: str, title: str) -> Deck:
    cursor = await db.execute(
        "SELECT * FROM decks WHERE book_id = ? AND title = ?", (book_id, title)
    )
    row = await cursor.fetchone()
    if row:
        return _row_to_deck(row)

    deck_id = str(uuid.uuid4())
    await db.execute(
        "INSERT INTO decks (id, book_id, title, created_at) VALUES (?, ?, ?, ?)",
        (deck_id, book_id, title, _now()),
    )
    await db.commit()
    return await get_deck(db, deck_id)  # type: ignore[return-value]


async def list_decks(db: aiosqlite.Connection, book_id: str) -> list[Deck]:
    cursor = await db.execute(
        "SELECT * FROM decks WHERE book_id = ? ORDER BY created_at ASC", (book_id,)
    )
    rows = await cursor.fetchall()
    return [_row_to_deck(r) for r in rows]


async def insert_cards(
    db: aiosqlite.Connection,
    deck: Deck,
    card_type: CardType,
    cards: list[dict],
) -> list[Card]:
    """Insert cards given as dicts with question/answer/difficulty/distractors/source_chunk_ids."""
    now = _now()
    card_ids: list[str] = []
    for c in cards:
        card_id = str(uuid.uuid4())
        card_ids.append(card_id)
        await db.execute(
            """INSERT INTO cards
               (id, deck_id, book_id, type, question, answer, distractors,
                difficulty, source_chunk_ids, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                card_id,
                deck.id,
                deck.book_id,
                card_type.value,
                c["question"],
                c["answer"],
                json.dumps(c.get("distractors") or []),
                c["difficulty"],
                json.dumps(c.get("source_chunk_ids") or []),
                now,
            ),
        )
    await db.commit()

    inserted: list[Card] = []
    for card_id in card_ids:
        card = await get_card(db, card_id)
        if card:
            inserted.append(card)
    return inserted


async def get_card(db: aiosqlite.Connection, card_id: str) -> Card | None:
    cursor = await db.execute("SELECT * FROM cards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return _row_to_card(row) if row else None


async def list_cards(
    db: aiosqlite.Connection, deck_id: str, card_type: CardType | None = None
) -> list[Card]:
    if card_type:
        cursor = await db.execute(
            "SELECT * FROM cards WHERE deck_id = ? AND type = ? ORDER BY created_at ASC, rowid ASC",
            (deck_id, card_type.value),
        )
    else:
        cursor = await db.execute(
            "SELECT * FROM cards WHERE deck_id = ? ORDER BY created_at ASC, rowid ASC",
            (deck_id,),
        )
    rows = await cursor.fetchall()
    return [_row_to_card(r) for r in rows]


async def delete_card(db: aiosqlite.Connection, card_id: str) -> bool:
    cursor = await db.execute("DELETE FROM cards WHERE id = ?", (card_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


# --- Reviews (append-only) ---


def _row_to_review(row: aiosqlite.Row) -> Review:
    return Review(**dict(row))


async def insert_review(
    db: aiosqlite.Connection,
    card_id: str,
    schedule: ReviewSchedule,
    reviewed_at: datetime,
) -> Review:
    review_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO reviews
           (id, card_id, grade, due_at, interval_days, ease_factor, reviewed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            review_id,
            card_id,
            schedule.grade,
            iso(schedule.due_at),
            schedule.interval_days,
            schedule.ease_factor,
            iso(reviewed_at),
        ),
    )
    await db.commit()
    cursor = await db.execute("SELECT * FROM reviews WHERE id = ?", (review_id,))
    return _row_to_review(await cursor.fetchone())


async def list_reviews(db: aiosqlite.Connection, card_id: str) -> list[Review]:
    cursor = await db.execute(
        "SELECT * FROM reviews WHERE card_id = ? ORDER BY reviewed_at ASC, rowid ASC",
        (card_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_review(r) for r in rows]


async def get_latest_review(db: aiosqlite.Connection, card_id: str) -> Review | None:
    cursor = await db.execute(
        "SELECT * FROM reviews WHERE card_id = ? ORDER BY reviewed_at DESC, rowid DESC LIMIT 1",
        (card_id,),
    )
    row = await cursor.fetchone()
    return _row_to_review(row) if row else None


async def get_due_cards(
    db: aiosqlite.Connection,
    now: datetime,
    limit: int = 20,
    deck_id: str | None = None,
    book_id: str | None = None,
) -> list[Card]:
    """Cards never reviewed or whose latest review is due, oldest due first."""
    conditions = ["(l.due_at IS NULL OR l.due_at <= ?)"]
    params: list = [iso(now)]
    if deck_id:
        conditions.append("c.deck_id = ?")
        params.append(deck_id)
    if book_id:
        conditions.append("c.book_id = ?")
        params.append(book_id)
    params.append(limit)

    cursor = await db.execute(
        _LATEST_REVIEWS_CTE
        + "SELECT c.* FROM cards c LEFT JOIN latest l ON l.card_id = c.id "
        + "WHERE " + " AND ".join(conditions)
        + " ORDER BY COALESCE(l.due_at, '0000') ASC, c.created_at ASC, c.rowid ASC LIMIT ?",
        params,
    )
    rows = await cursor.fetchall()
    return [_row_to_card(r) for r in rows]


async def get_review_stats(db: aiosqlite.Connection, now: datetime) -> ReviewStats:
    """Total cards, due now, reviews logged, and a per-deck breakdown."""
    due_clause = "(l.due_at IS NULL OR l.due_at <= ?)"
    now_iso = iso(now)

    cursor = await db.execute("SELECT COUNT(*) FROM cards")
    total_cards: int = (await cursor.fetchone())[0]

    cursor = await db.execute("SELECT COUNT(*) FROM reviews")
    total_reviews: int = (await cursor.fetchone())[0]

    cursor = await db.execute(
        _LATEST_REVIEWS_CTE
        + f"SELECT COUNT(*) FROM cards c LEFT JOIN latest l ON l.card_id = c.id WHERE {due_clause}",
        (now_iso,),
    )
    due_now: int = (await cursor.fetchone())[0]

    cursor = await db.execute(
        _LATEST_REVIEWS_CTE
        + f"""SELECT d.id, d.title, d.book_id,
                  COUNT(c.id) AS total,
                  SUM(CASE WHEN c.id IS NOT NULL AND {due_clause} THEN 1 ELSE 0 END) AS due
           FROM decks d
           LEFT JOIN cards c ON c.deck_id = d.id
           LEFT JOIN latest l ON l.card_id = c.id
           GROUP BY d.id
           ORDER BY d.title ASC""",
        (now_iso,),
    )
    per_deck = [
        DeckStats(
            deck_id=row[0],
            title=row[1],
            book_id=row[2],
            total=row[3],
            due=row[4] or 0,
        )
        for row in await cursor.fetchall()
    ]

    return ReviewStats(
        total_cards=total_cards,
        due_now=due_now,
        total_reviews=total_reviews,
        per_deck=per_deck,
    )


# --- Concepts ---


def _row_to_concept(row: aiosqlite.Row) -> Concept:
    return Concept(**dict(row))


async def replace_concepts(
    db: aiosqlite.Connection, book_id: str, concepts: list[dict]
) -> int:
    """Replace a book's concept map. Parents must precede their children."""
    now = _now()
    await db.execute("DELETE FROM concepts WHERE book_id = ?", (book_id,))
    for c in concepts:
        await db.execute(
            """INSERT INTO concepts
               (id, book_id, parent_id, title, description, level, order_index, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                c["id"],
                book_id,
                c["parent_id"],
                c["title"],
                c["description"],
                c["level"],
                c["order_index"],
                now,
            ),
        )
    await db.commit()
    return len(concepts)


async def list_concepts(db: aiosqlite.Connection, book_id: str) -> list[Concept]:
    cursor = await db.execute(
        "SELECT * FROM concepts WHERE book_id = ? ORDER BY level, order_index",
        (book_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_concept(r) for r in rows]
