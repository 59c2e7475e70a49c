"""
Tests for the OpenAI structured generation provider.
"""
import json
from typing import List

import httpx
import pytest
from pydantic import BaseModel

from storycast.providers.exceptions import (
    BillingError,
    GenerationSchemaError,
    ProviderError,
    ProviderUnavailable,
)
from storycast.providers.generation.openai import (
    OpenAIGenerationProvider,
    is_billing_error,
    strip_code_fences,
)


class Verdict(BaseModel):
    answer: str
    tags: List[str] = []


def completion(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def provider(mock_httpx_client):
    return OpenAIGenerationProvider(
        api_key="sk-test",
        model="gpt-test",
        max_attempts=3,
        retry_delay=0,
        client=mock_httpx_client,
    )


class TestHelpers:
    """Tests for module helpers."""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    @pytest.mark.parametrize("status_code,text,expected", [
        (402, "Payment required", True),
        (400, '{"error": {"code": "insufficient_quota"}}', True),
        (400, "messages must not be empty", False),
        (429, "quota exceeded", False),
    ])
    def test_is_billing_error(self, status_code, text, expected):
        assert is_billing_error(status_code, text) is expected


class TestGenerate:
    """Tests for OpenAIGenerationProvider.generate."""

    @pytest.mark.asyncio
    async def test_valid_output(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = completion('{"answer": "yes"}')

        result = await provider.generate(Verdict, "system", "question", temperature=0.2)

        assert result == Verdict(answer="yes")
        payload = mock_httpx_client.post.call_args.kwargs["json"]
        assert payload["model"] == "gpt-test"
        assert payload["temperature"] == 0.2
        assert payload["response_format"]["json_schema"]["name"] == "Verdict"
        headers = mock_httpx_client.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_model_override(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = completion('{"answer": "yes"}')

        await provider.generate(Verdict, "system", "question", model="gpt-fast")

        assert mock_httpx_client.post.call_args.kwargs["json"]["model"] == "gpt-fast"

    @pytest.mark.asyncio
    async def test_repairs_invalid_output(self, provider, mock_httpx_client):
        mock_httpx_client.post.side_effect = [
            completion('{"tags": ["x"]}'),
            completion('```json\n{"answer": "fixed"}\n```'),
        ]

        result = await provider.generate(Verdict, "system", "question")

        assert result.answer == "fixed"
        assert mock_httpx_client.post.call_count == 2
        retry_messages = mock_httpx_client.post.call_args_list[1].kwargs["json"]["messages"]
        assert [m["role"] for m in retry_messages] == ["system", "user", "assistant", "user"]
        assert retry_messages[2]["content"] == '{"tags": ["x"]}'
        assert "did not match the required JSON schema" in retry_messages[3]["content"]

    @pytest.mark.asyncio
    async def test_schema_failure_after_all_attempts(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = completion("not json at all")

        with pytest.raises(GenerationSchemaError) as exc_info:
            await provider.generate(Verdict, "system", "question")

        assert exc_info.value.attempts == 3
        assert exc_info.value.schema_name == "Verdict"
        assert mock_httpx_client.post.call_count == 3

    @pytest.mark.asyncio
    async def test_rate_limited_is_unavailable(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(429, text="slow down")

        with pytest.raises(ProviderUnavailable):
            await provider.generate(Verdict, "system", "question")

        assert mock_httpx_client.post.call_count == 3

    @pytest.mark.asyncio
    async def test_recovers_after_server_error(self, provider, mock_httpx_client):
        mock_httpx_client.post.side_effect = [
            httpx.Response(503, text="overloaded"),
            completion(json.dumps({"answer": "ok"})),
        ]

        result = await provider.generate(Verdict, "system", "question")

        assert result.answer == "ok"

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, provider, mock_httpx_client):
        mock_httpx_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ProviderUnavailable):
            await provider.generate(Verdict, "system", "question")

    @pytest.mark.asyncio
    async def test_billing_error_not_retried(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(402, text="insufficient_quota: check billing")

        with pytest.raises(BillingError):
            await provider.generate(Verdict, "system", "question")

        assert mock_httpx_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_client_error(self, provider, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(400, text="bad request")

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(Verdict, "system", "question")

        assert not isinstance(exc_info.value, BillingError)

    @pytest.mark.asyncio
    async def test_placeholder_key_is_unavailable(self, mock_httpx_client):
        provider = OpenAIGenerationProvider(api_key="PASTE_YOUR_KEY_HERE", client=mock_httpx_client)

        assert provider.is_available is False
        with pytest.raises(ProviderUnavailable):
            await provider.generate(Verdict, "system", "question")
        mock_httpx_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_close(self, provider, mock_httpx_client):
        await provider.close()

        mock_httpx_client.aclose.assert_awaited_once()
