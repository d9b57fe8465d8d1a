"""Unit tests for the Gemini narrative collaborator."""

import asyncio
import json

import httpx
import pytest

from stocksense.config import Settings
from stocksense.domain.exceptions import NarrativeError, NarrativeUnavailableError
from stocksense.engine.analyzer import NARRATIVE_FALLBACK, AnalysisEngine
from stocksense.narrative.gemini import (
    SYSTEM_INSTRUCTION,
    GeminiNarrativeClient,
    build_prompt,
)

CONTEXT = {
    "symbol": "RELIANCE",
    "price": 2450.5,
    "technicals": {"rsi": 62.0},
    "readings": [],
    "patterns": [{"name": "Doji"}],
    "fundamentals": {"pe": 24.1},
}


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler, **settings):
    settings.setdefault("GEMINI_API_KEY", "secret-key")
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiNarrativeClient(Settings(**settings), http_client=http_client)


def test_build_prompt_carries_technical_and_fundamental_sections():
    prompt = build_prompt(CONTEXT)
    assert prompt.startswith("Technical: ")
    assert '"symbol": "RELIANCE"' in prompt
    assert '"patterns": [{"name": "Doji"}]' in prompt
    assert prompt.endswith('Fundamental: {"pe": 24.1}')


def test_build_prompt_without_fundamentals():
    assert build_prompt({"symbol": "X"}).endswith("Fundamental: {}")


def test_successful_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers["x-goog-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply("Consolidating near support."))

    client = _client(handler, GEMINI_MODEL="gemini-test")
    text = asyncio.run(client(CONTEXT))

    assert text == "Consolidating near support."
    assert seen["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-test:generateContent"
    )
    assert seen["key"] == "secret-key"
    assert seen["body"]["systemInstruction"]["parts"][0]["text"] == SYSTEM_INSTRUCTION
    assert seen["body"]["contents"][0]["parts"][0]["text"] == build_prompt(CONTEXT)


def test_multiple_parts_are_joined():
    def handler(request):
        body = {"candidates": [{"content": {"parts": [{"text": "a "}, {"text": "b"}]}}]}
        return httpx.Response(200, json=body)

    assert asyncio.run(_client(handler)(CONTEXT)) == "a b"


def test_unconfigured_key_raises_before_any_request():
    def handler(request):
        pytest.fail("no request expected without a key")

    client = _client(handler, GEMINI_API_KEY="")
    with pytest.raises(NarrativeUnavailableError):
        asyncio.run(client(CONTEXT))


def test_http_error_propagates():
    client = _client(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client(CONTEXT))


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"candidates": []},
        {"candidates": [{"content": {}}]},
        _reply("   "),
    ],
)
def test_unusable_response_raises(body):
    client = _client(lambda request: httpx.Response(200, json=body))
    with pytest.raises(NarrativeError):
        asyncio.run(client(CONTEXT))


def test_engine_falls_back_when_service_fails(doji_series):
    client = _client(lambda request: httpx.Response(503))

    result = asyncio.run(AnalysisEngine().analyze(doji_series, narrative_fn=client))

    assert result.narrative == NARRATIVE_FALLBACK
    assert result.narrative_generated is False
    assert [p.name for p in result.patterns] == ["Doji"]


def test_defaults_to_cached_settings(gemini_env):
    client = GeminiNarrativeClient()
    assert client.settings.narrative_enabled
    assert client.endpoint.endswith("/models/gemini-2.5-flash:generateContent")
