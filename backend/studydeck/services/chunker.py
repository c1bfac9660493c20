from __future__ import annotations

import random
from dataclasses import dataclass

CHUNK_SIZE = 1000
OVERLAP = 100

# Chunks are tagged with a random difficulty in this range until a real
# difficulty estimate exists.
MIN_DIFFICULTY = 2
MAX_DIFFICULTY = 4


@dataclass(frozen=True)
class ChunkData:
    chunk_index: int
    text: str
    page_from: int
    page_to: int
    topic: str
    difficulty: int
    char_start: int
    char_end: int


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = OVERLAP,
    rng: random.Random | None = None,
) -> list[ChunkData]:
    """Split text into fixed-width windows that overlap by ``overlap`` chars.

    Window i starts at ``i * (chunk_size - overlap)``. Page numbers are
    synthetic: the character offset divided by ``chunk_size``, not real
    page boundaries. Stops once a window reaches the end of the text, so
    no chunk lies entirely inside the previous chunk's overlap.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must satisfy 0 <= overlap < chunk_size")

    rand = rng or random
    step = chunk_size - overlap
    length = len(text)

    chunks: list[ChunkData] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        page_from = start // chunk_size + 1
        chunks.append(
            ChunkData(
                chunk_index=len(chunks),
                text=text[start:end],
                page_from=page_from,
                page_to=end // chunk_size + 1,
                topic=f"Chapter {page_from}",
                difficulty=rand.randint(MIN_DIFFICULTY, MAX_DIFFICULTY),
                char_start=start,
                char_end=end,
            )
        )
        if end >= length:
            break
        start += step

    return chunks
