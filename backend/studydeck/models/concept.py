from __future__ import annotations

from pydantic import BaseModel, Field


class Concept(BaseModel):
    id: str
    book_id: str
    title: str
    description: str
    parent_id: str | None
    level: int              # 1 = main concept, 2 = sub-concept
    order_index: int
    created_at: str


class ConceptNode(BaseModel):
    id: str
    title: str
    description: str
    sub_concepts: list[ConceptNode] = Field(default_factory=list)


class ConceptTree(BaseModel):
    book_id: str
    items: list[ConceptNode]
    total: int


class ConceptGenerateResult(BaseModel):
    success: bool
    concept_count: int
