"""
Best-effort chunk embeddings.

A missing or failing embedding never aborts ingestion: fetch_embedding()
logs and returns None, and the chunk is stored without a vector.
"""
from __future__ import annotations

import logging

from studydeck.config import settings
from studydeck.services.llm_service import LLMError, post_gateway

logger = logging.getLogger(__name__)


async def fetch_embedding(text: str) -> list[float] | None:
    try:
        data = await post_gateway(
            "embeddings",
            {"input": text, "model": settings.embedding_model},
        )
        embedding = [float(v) for v in data["data"][0]["embedding"]]
    except LLMError as e:
        logger.warning("Embedding request failed: %s", e)
        return None
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning("Malformed embedding response: %s", e)
        return None

    if not embedding:
        logger.warning("Empty embedding returned")
        return None
    return embedding
