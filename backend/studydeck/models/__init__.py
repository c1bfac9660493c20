from studydeck.models.book import (
    Book,
    BookCreate,
    BookList,
    BookUpdate,
    Material,
    MaterialCreate,
    MaterialList,
    MaterialStatus,
    ProcessResult,
)
from studydeck.models.card import (
    AnswerRequest,
    AnswerResult,
    Card,
    CardList,
    CardState,
    CardType,
    Deck,
    DeckList,
    DeckStats,
    GenerateRequest,
    GenerateResult,
    Review,
    ReviewList,
    ReviewRequest,
    ReviewStats,
)
from studydeck.models.chunk import Chunk, ChunkList
from studydeck.models.concept import (
    Concept,
    ConceptGenerateResult,
    ConceptNode,
    ConceptTree,
)

__all__ = [
    "AnswerRequest",
    "AnswerResult",
    "Book",
    "BookCreate",
    "BookList",
    "BookUpdate",
    "Card",
    "CardList",
    "CardState",
    "CardType",
    "Chunk",
    "ChunkList",
    "Concept",
    "ConceptGenerateResult",
    "ConceptNode",
    "ConceptTree",
    "Deck",
    "DeckList",
    "DeckStats",
    "GenerateRequest",
    "GenerateResult",
    "Material",
    "MaterialCreate",
    "MaterialList",
    "MaterialStatus",
    "ProcessResult",
    "Review",
    "ReviewList",
    "ReviewRequest",
    "ReviewStats",
]
