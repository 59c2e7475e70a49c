"""
OpenAI structured generation provider.

Posts to the chat completions endpoint with a JSON-schema response format
derived from the pydantic model, then validates the answer locally. Invalid
output is sent back to the model with the validation error so the next
attempt can repair it.
"""
import asyncio
import logging
from typing import Optional, Type, List, Dict

import httpx
from pydantic import ValidationError

from .base import BaseGenerationProvider, T
from ..exceptions import (
    BillingError,
    GenerationSchemaError,
    ProviderError,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

BILLING_KEYWORDS = [
    "billing", "insufficient_quota", "exceeded", "quota",
    "payment", "credit", "balance", "limit reached",
    "insufficient_funds",
]


def is_billing_error(status_code: int, error_text: str) -> bool:
    """Check if an error response is a billing or quota refusal."""
    if status_code not in (400, 402, 403):
        return False
    error_lower = error_text.lower()
    return any(kw in error_lower for kw in BILLING_KEYWORDS)


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences some models wrap around JSON."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
    return content.strip()


class OpenAIGenerationProvider(BaseGenerationProvider):
    """OpenAI chat completions with schema-validated output."""

    ENV_KEY = "OPENAI_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        from storycast.config import config
        self.api_key = api_key or config.ai.openai_api_key or ""
        self.model = model or config.ai.openai_model
        self.max_attempts = max_attempts or config.episodes.generation_max_attempts
        self.retry_delay = retry_delay
        self.client = client or httpx.AsyncClient(timeout=120.0)

        if not self.api_key or self.api_key.startswith("PASTE_"):
            logger.warning("[OPENAI] No OpenAI API key - generation calls will fail")
            self.api_key = ""
        else:
            logger.info(f"[OPENAI] Initialized with {self.model}")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate(
        self,
        schema: Type[T],
        system_instructions: str,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.8,
    ) -> T:
        if not self.is_available:
            raise ProviderUnavailable(self.name, f"{self.ENV_KEY} not set")

        schema_name = schema.__name__
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_instructions},
            {"role": "user", "content": prompt},
        ]
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        last_error = ""
        transport_failure = False

        for attempt in range(1, self.max_attempts + 1):
            payload = {
                "model": model or self.model,
                "messages": messages,
                "temperature": temperature,
                "response_format": {
                    "type": "json_schema",
                    "json_schema": {
                        "name": schema_name,
                        "schema": schema.model_json_schema(),
                        "strict": False,
                    },
                },
            }

            try:
                response = await self.client.post(OPENAI_CHAT_URL, headers=headers, json=payload)
            except httpx.TransportError as e:
                last_error = f"transport error: {e}"
                transport_failure = True
                logger.warning(f"[OPENAI] {schema_name} attempt {attempt}/{self.max_attempts}: {last_error}")
                await self._backoff(attempt)
                continue

            if response.status_code == 429 or response.status_code >= 500:
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                transport_failure = True
                logger.warning(f"[OPENAI] {schema_name} attempt {attempt}/{self.max_attempts}: {last_error}")
                await self._backoff(attempt)
                continue

            if response.status_code != 200:
                if is_billing_error(response.status_code, response.text):
                    logger.critical("!" * 70)
                    logger.critical("!   [BILLING ERROR] NO CREDITS / QUOTA EXCEEDED")
                    logger.critical("!   Check your OpenAI billing at:")
                    logger.critical("!   https://platform.openai.com/account/billing")
                    logger.critical("!" * 70)
                    raise BillingError(self.name, response.text)
                raise ProviderError(self.name, f"API error {response.status_code}: {response.text[:200]}")

            transport_failure = False
            content = self._extract_content(response.json())

            try:
                result = schema.model_validate_json(strip_code_fences(content))
            except ValidationError as e:
                last_error = str(e)
                logger.warning(
                    f"[OPENAI] {schema_name} attempt {attempt}/{self.max_attempts} "
                    f"failed validation: {e.error_count()} error(s)"
                )
                messages = messages[:2] + [
                    {"role": "assistant", "content": content},
                    {
                        "role": "user",
                        "content": (
                            "Your previous answer did not match the required JSON schema:\n"
                            f"{last_error[:1500]}\n\nReturn corrected JSON only."
                        ),
                    },
                ]
                continue

            logger.debug(f"[OPENAI] {schema_name} validated on attempt {attempt}")
            return result

        if transport_failure:
            raise ProviderUnavailable(self.name, last_error)
        raise GenerationSchemaError(self.name, schema_name, self.max_attempts, last_error)

    def _extract_content(self, data: dict) -> str:
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    async def _backoff(self, attempt: int) -> None:
        if self.retry_delay > 0 and attempt < self.max_attempts:
            await asyncio.sleep(self.retry_delay * attempt)

    async def close(self) -> None:
        await self.client.aclose()
