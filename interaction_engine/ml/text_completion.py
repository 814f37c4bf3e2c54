"""
Medication Interaction Engine - Text-Completion Collaborator
The engine only depends on an async ``complete(prompt) -> str`` contract
"""
import logging
from typing import Optional

import httpx

from config import settings
from interaction_engine.core.errors import CollaboratorFailure

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a clinical pharmacology assistant that screens medication lists for "
    "drug-drug interactions. Answer only in the exact line format requested, "
    "without headers or commentary."
)


class TextCompletionClient:
    """Prompt in, text out. Implementations raise on failure."""

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class OpenAITextCompletionClient(TextCompletionClient):
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint"""

    def __init__(
        self,
        api_url: str = None,
        api_key: str = None,
        model: str = None,
        temperature: float = None,
        max_tokens: int = None,
        timeout: float = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_url = (api_url or settings.LLM_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.model = model or settings.LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

        self.headers = {"Content-Type": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"

        self.http_client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.LLM_TIMEOUT_SECONDS
        )

        logger.info(f"Text-completion client initialized for model {self.model}")

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        resp = await self.http_client.post(
            f"{self.api_url}/chat/completions",
            json=payload,
            headers=self.headers
        )

        if resp.status_code != 200:
            raise CollaboratorFailure(
                f"Text completion failed: {resp.status_code} - {resp.text[:200]}"
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CollaboratorFailure(f"Malformed text completion response: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise CollaboratorFailure("Empty text completion response")

        return content

    async def close(self) -> None:
        await self.http_client.aclose()
