from __future__ import annotations

import asyncio
import json
from typing import Callable, List

import httpx
import pytest

from rostersync.config.settings import load_settings
from rostersync.models.enums import ErrorKind
from rostersync.models.errors import (
    AuthError,
    BadRequestError,
    ExtractionError,
    RateLimitError,
    UnavailableError,
)
from rostersync.providers.base_provider import classify_status
from rostersync.providers.gemini_provider import GeminiProvider
from rostersync.providers.openrouter_provider import OpenRouterProvider
from rostersync.providers.registry import build_providers

GEMINI_OK = {
    "candidates": [
        {"content": {"parts": [{"text": '{"teamName": "Lakers",'}, {"text": ' "players": []}'}]}}
    ],
    "usageMetadata": {"promptTokenCount": 11, "candidatesTokenCount": 22, "totalTokenCount": 33},
}


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def gemini(handler, **kwargs) -> GeminiProvider:
    return GeminiProvider(
        model="gemini-1.5-flash",
        api_key="gemini-secret-key",
        client=mock_client(handler),
        transport_retry_attempts=1,
        **kwargs,
    )


@pytest.mark.parametrize(
    "status, expected",
    [
        (200, None),
        (204, None),
        (400, BadRequestError),
        (401, AuthError),
        (403, AuthError),
        (404, BadRequestError),
        (408, UnavailableError),
        (429, RateLimitError),
        (500, UnavailableError),
        (503, UnavailableError),
        (529, UnavailableError),
    ],
)
def test_classify_status(status: int, expected) -> None:
    assert classify_status(status) is expected


def test_gemini_generate_returns_text_and_usage() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=GEMINI_OK)

    provider = gemini(handler)
    response = asyncio.run(provider.generate("Extract the roster for: Lakers", "be precise"))

    assert response.provider_id == "gemini:gemini-1.5-flash"
    assert response.text == '{"teamName": "Lakers", "players": []}'
    assert response.usage["totalTokenCount"] == 33

    request = seen[0]
    assert request.url.path.endswith("/models/gemini-1.5-flash:generateContent")
    assert request.headers["x-goog-api-key"] == "gemini-secret-key"
    body = json.loads(request.content)
    assert body["systemInstruction"]["parts"][0]["text"] == "be precise"
    assert body["contents"][0]["parts"][0]["text"] == "Extract the roster for: Lakers"
    assert body["tools"] == [{"google_search": {}}]


def test_gemini_can_skip_search_grounding() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=GEMINI_OK)

    asyncio.run(gemini(handler, use_search_grounding=False).generate("q", "s"))

    assert "tools" not in json.loads(seen[0].content)


@pytest.mark.parametrize(
    "status, error_cls, kind",
    [
        (403, AuthError, ErrorKind.AUTH),
        (400, BadRequestError, ErrorKind.BAD_REQUEST),
        (429, RateLimitError, ErrorKind.RATE_LIMIT),
        (503, UnavailableError, ErrorKind.UNAVAILABLE),
    ],
)
def test_gemini_http_errors_are_classified(status: int, error_cls, kind: ErrorKind) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status, json={"error": {"code": status, "message": "provider says no"}}
        )

    with pytest.raises(error_cls) as excinfo:
        asyncio.run(gemini(handler).generate("q", "s"))

    error = excinfo.value
    assert error.kind is kind
    assert error.status_code == status
    assert error.provider_id == "gemini:gemini-1.5-flash"
    assert error.message == "provider says no"


def test_gemini_empty_response_is_a_retryable_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    with pytest.raises(ExtractionError) as excinfo:
        asyncio.run(gemini(handler).generate("q", "s"))

    assert excinfo.value.kind is ErrorKind.UNKNOWN
    assert excinfo.value.retryable is True
    assert "empty response" in excinfo.value.message


def test_gemini_blocked_prompt_reports_reason() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(ExtractionError, match="blocked: SAFETY"):
        asyncio.run(gemini(handler).generate("q", "s"))


def test_network_errors_become_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UnavailableError) as excinfo:
        asyncio.run(gemini(handler).generate("q", "s"))

    assert excinfo.value.retryable is True
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_missing_api_key_is_an_auth_error() -> None:
    with pytest.raises(AuthError):
        GeminiProvider(model="gemini-1.5-flash", api_key="")


def test_openrouter_generate_returns_text_and_usage() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": '{"players": ["Bob Smith"]}'}}],
                "usage": {"prompt_tokens": 5, "completion_tokens": 6, "total_tokens": 11},
            },
        )

    provider = OpenRouterProvider(
        model="meta-llama/llama-3-70b",
        api_key="or-secret",
        client=mock_client(handler),
        transport_retry_attempts=1,
    )
    response = asyncio.run(provider.generate("prompt", "system"))

    assert response.provider_id == "openrouter:meta-llama/llama-3-70b"
    assert response.text == '{"players": ["Bob Smith"]}'
    assert response.usage["total_tokens"] == 11
    assert seen[0].headers["Authorization"] == "Bearer or-secret"
    messages = json.loads(seen[0].content)["messages"]
    assert messages[0] == {"role": "system", "content": "system"}


def test_build_providers_keeps_order_and_skips_unusable_entries() -> None:
    settings = load_settings(
        _env_file=None,
        gemini_api_key="g-key",
        openrouter_api_key=None,
        provider_order=[
            "gemini:gemini-1.5-flash",
            "openrouter:some-model",
            "mystery:model",
            "gemini:",
            "gemini:gemini-flash-lite-latest",
        ],
    )

    providers = build_providers(settings)

    assert [p.provider_id for p in providers] == [
        "gemini:gemini-1.5-flash",
        "gemini:gemini-flash-lite-latest",
    ]
    assert all(p.transport_retry_attempts == settings.transport_retry_attempts for p in providers)
