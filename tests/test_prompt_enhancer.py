"""
Tests for PromptEnhancer fallback behaviour.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from photoforge.services.prompt_enhancer import PromptEnhancer

RAW = "портрет девушки в осеннем парке"


def _completion(content: object) -> httpx.Response:
    return httpx.Response(
        200,
        json={"choices": [{"message": {"role": "assistant", "content": content}}]},
        request=httpx.Request("POST", "https://api.openai.test/v1/chat/completions"),
    )


def _client(response: httpx.Response | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock(spec=httpx.AsyncClient)
    client.post = AsyncMock(return_value=response, side_effect=error)
    return client


class TestPromptEnhancer:
    """Enhancement succeeds or falls back to the raw prompt."""

    async def test_enhanced_prompt_returned(self) -> None:
        client = _client(_completion("  Portrait of a young woman in an autumn park, golden hour  "))
        enhancer = PromptEnhancer("sk-test", http_client=client)

        result = await enhancer.enhance(RAW)

        assert result == "Portrait of a young woman in an autumn park, golden hour"
        messages = client.post.await_args.kwargs["json"]["messages"]
        assert messages[-1] == {"role": "user", "content": RAW}

    async def test_no_key_skips_call(self) -> None:
        client = _client(_completion("ignored"))
        enhancer = PromptEnhancer("", http_client=client)

        assert await enhancer.enhance(RAW) == RAW
        client.post.assert_not_awaited()

    @pytest.mark.parametrize(
        "error",
        [httpx.ReadTimeout("slow"), httpx.ConnectError("refused")],
    )
    async def test_transport_failure_falls_back(self, error: Exception) -> None:
        enhancer = PromptEnhancer("sk-test", http_client=_client(error=error))

        assert await enhancer.enhance(RAW) == RAW

    async def test_error_status_falls_back(self) -> None:
        response = httpx.Response(
            500, text="boom", request=httpx.Request("POST", "https://api.openai.test")
        )
        enhancer = PromptEnhancer("sk-test", http_client=_client(response))

        assert await enhancer.enhance(RAW) == RAW

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"choices": []}, request=httpx.Request("POST", "https://x")),
            httpx.Response(200, text="not json", request=httpx.Request("POST", "https://x")),
            _completion(""),
            _completion(None),
        ],
    )
    async def test_malformed_or_empty_answer_falls_back(self, response: httpx.Response) -> None:
        enhancer = PromptEnhancer("sk-test", http_client=_client(response))

        assert await enhancer.enhance(RAW) == RAW
