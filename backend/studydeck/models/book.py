from enum import Enum

from pydantic import BaseModel


class MaterialStatus(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    READY = "ready"
    NEEDS_OCR = "needs_ocr"
    ERROR = "error"


class BookCreate(BaseModel):
    title: str
    author: str = ""


class BookUpdate(BaseModel):
    title: str | None = None
    author: str | None = None


class Book(BaseModel):
    id: str
    title: str
    author: str
    created_at: str
    updated_at: str


class BookList(BaseModel):
    items: list[Book]
    total: int
    offset: int
    limit: int


class MaterialCreate(BaseModel):
    book_id: str
    filename: str
    storage_path: str
    file_hash: str
    file_size: int


class Material(BaseModel):
    id: str
    book_id: str
    filename: str
    storage_path: str
    file_hash: str
    file_size: int
    pages: int
    status: str
    chunk_count: int = 0
    created_at: str
    updated_at: str


class MaterialList(BaseModel):
    items: list[Material]
    total: int


class ProcessResult(BaseModel):
    success: bool
    chunks_created: int
