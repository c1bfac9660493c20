"""
Client for the hosted AI gateway (OpenAI-compatible chat completions).

Usage:
    result = await chat_json(system_prompt, user_prompt, model="...")
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from studydeck.config import settings

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


class LLMError(Exception):
    """Base class for gateway failures."""


class LLMUnavailableError(LLMError):
    """Raised when no gateway API key is configured."""


class LLMRequestError(LLMError):
    """Raised when the gateway returns a non-2xx response or cannot be reached."""


class InvalidAIResponseError(LLMError):
    """Raised when the model output is not the JSON shape we asked for."""


def _headers() -> dict[str, str]:
    if not settings.ai_api_key:
        raise LLMUnavailableError("No AI gateway API key configured")
    return {
        "Authorization": f"Bearer {settings.ai_api_key}",
        "Content-Type": "application/json",
    }


def parse_json_content(content: str) -> Any:
    """Parse model output as JSON, falling back to the first {...} or [...] block."""
    try:
        return json.loads(content)
    except (TypeError, json.JSONDecodeError):
        pass

    match = _JSON_BLOCK.search(content or "")
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass
    raise InvalidAIResponseError("Invalid AI response format")


async def post_gateway(path: str, payload: dict) -> dict:
    """POST a JSON payload to the gateway and return the decoded body."""
    headers = _headers()
    url = f"{settings.ai_base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        async with httpx.AsyncClient() as client:
            res = await client.post(
                url, json=payload, headers=headers, timeout=settings.ai_timeout
            )
    except httpx.HTTPError as e:
        raise LLMRequestError(f"AI gateway unreachable: {e}") from e

    if res.status_code >= 400:
        logger.error("AI gateway error %d: %s", res.status_code, res.text)
        raise LLMRequestError(f"AI generation failed: {res.text}")
    try:
        return res.json()
    except ValueError as e:
        raise InvalidAIResponseError("AI gateway returned a non-JSON body") from e


async def chat_json(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    json_mode: bool = True,
) -> Any:
    """
    Send a chat request expecting JSON output and return the parsed value.

    Raises LLMUnavailableError if no API key is set, LLMRequestError on
    gateway failures, InvalidAIResponseError if the output is not JSON.
    """
    payload: dict[str, Any] = {
        "model": model or settings.flashcard_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if temperature is not None:
        payload["temperature"] = temperature

    data = await post_gateway("chat/completions", payload)
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise InvalidAIResponseError("AI response has no message content") from e

    logger.debug("AI response received from %s", payload["model"])
    return parse_json_content(content)
