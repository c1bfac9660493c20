from pydantic import BaseModel


class Chunk(BaseModel):
    id: str
    material_id: str
    book_id: str
    chunk_index: int
    text: str
    page_from: int
    page_to: int
    topic: str
    difficulty: int
    has_embedding: bool
    created_at: str


class ChunkList(BaseModel):
    items: list[Chunk]
    total: int
    offset: int
    limit: int
