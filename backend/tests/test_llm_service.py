import asyncio
import json

import httpx
import pytest

from studydeck.config import settings
from studydeck.services import embeddings, llm_service
from studydeck.services.llm_service import (
    InvalidAIResponseError,
    LLMRequestError,
    LLMUnavailableError,
    chat_json,
    parse_json_content,
)

_RealAsyncClient = httpx.AsyncClient


@pytest.fixture
def gateway(monkeypatch):
    """Route gateway calls to a handler; returns the list of captured requests."""
    requests = []
    state = {"handler": None}

    def transport_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return state["handler"](request)

    transport = httpx.MockTransport(transport_handler)
    monkeypatch.setattr(
        llm_service.httpx,
        "AsyncClient",
        lambda *args, **kwargs: _RealAsyncClient(transport=transport),
    )

    def set_handler(handler):
        state["handler"] = handler
        return requests

    return set_handler


def _chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def test_chat_json_sends_openai_payload(gateway):
    requests = gateway(lambda r: _chat_response('{"flashcards": []}'))

    result = asyncio.run(chat_json("sys", "user", model="m-1", temperature=0.7))

    assert result == {"flashcards": []}
    req = requests[0]
    assert req.url == httpx.URL(f"{settings.ai_base_url}/chat/completions")
    assert req.headers["Authorization"] == "Bearer test-key"
    body = json.loads(req.content)
    assert body["model"] == "m-1"
    assert body["temperature"] == 0.7
    assert body["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


def test_chat_json_extracts_array_from_prose(gateway):
    gateway(lambda r: _chat_response('Here you go:\n[{"title": "Cells"}]\nEnjoy'))
    result = asyncio.run(chat_json("sys", "user", json_mode=False))
    assert result == [{"title": "Cells"}]


def test_chat_json_requires_api_key(gateway, monkeypatch):
    requests = gateway(lambda r: _chat_response("{}"))
    monkeypatch.setattr(settings, "ai_api_key", "")
    with pytest.raises(LLMUnavailableError):
        asyncio.run(chat_json("sys", "user"))
    assert requests == []


def test_chat_json_http_error(gateway):
    gateway(lambda r: httpx.Response(429, text="rate limited"))
    with pytest.raises(LLMRequestError, match="rate limited"):
        asyncio.run(chat_json("sys", "user"))


def test_chat_json_unparseable_content(gateway):
    gateway(lambda r: _chat_response("I cannot help with that."))
    with pytest.raises(InvalidAIResponseError):
        asyncio.run(chat_json("sys", "user"))


def test_parse_json_content_plain_object():
    assert parse_json_content('{"a": 1}') == {"a": 1}


def test_fetch_embedding_success(gateway):
    requests = gateway(
        lambda r: httpx.Response(200, json={"data": [{"embedding": [0.5, 1, -2]}]})
    )
    assert asyncio.run(embeddings.fetch_embedding("hello")) == [0.5, 1.0, -2.0]
    body = json.loads(requests[0].content)
    assert body == {"input": "hello", "model": settings.embedding_model}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": [{"embedding": []}]}),
        httpx.Response(200, text="not json"),
    ],
)
def test_fetch_embedding_failures_are_soft(gateway, response):
    gateway(lambda r: response)
    assert asyncio.run(embeddings.fetch_embedding("hello")) is None


def test_fetch_embedding_without_key(monkeypatch):
    monkeypatch.setattr(settings, "ai_api_key", "")
    assert asyncio.run(embeddings.fetch_embedding("hello")) is None
