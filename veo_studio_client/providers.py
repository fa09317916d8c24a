import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger
from veo_studio_client.errors import (
    MalformedResponse,
    ProviderError,
    QuotaExceeded,
    TransientOverload,
)
from veo_studio_client.models import GenerationRequest

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class TextProvider(ABC):
    """A remote endpoint able to turn a GenerationRequest into text.

    Implementations raise only ProviderError subclasses, so the caller can
    treat every failure as one failed attempt.
    """

    name: str = "provider"

    @abstractmethod
    async def generate(
        self, session: aiohttp.ClientSession, request: GenerationRequest
    ) -> str: ...

    async def _post_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                if response.status >= 400:
                    raise self._status_error(response.status, data)
                if not isinstance(data, dict):
                    raise MalformedResponse(
                        f"{self.name} returned a non-JSON body", response.status
                    )
                return data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(f"{self.name} request failed: {e!r}") from e

    def _status_error(self, status: int, data: Any) -> ProviderError:
        message = f"HTTP error! status: {status}"
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message") or message

        if status == 429:
            return QuotaExceeded(message, status)
        if status == 503:
            return TransientOverload(message, status)
        return ProviderError(message, status)


class GeminiProvider(TextProvider):
    """Primary provider, one instance per API key"""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        model: str = "gemini-1.5-flash-latest",
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        tuning = request.tuning
        return {
            "contents": [
                {"parts": [{"text": message.content} for message in request.messages]}
            ],
            "generationConfig": {
                "temperature": tuning.temperature,
                "topK": tuning.top_k,
                "topP": tuning.top_p,
                "maxOutputTokens": tuning.max_output_tokens,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in SAFETY_CATEGORIES
            ],
        }

    async def generate(
        self, session: aiohttp.ClientSession, request: GenerationRequest
    ) -> str:
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        data = await self._post_json(
            session, f"{url}?key={self.api_key}", self.build_payload(request)
        )

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse("Invalid response format from Gemini API") from e
        if not isinstance(text, str):
            raise MalformedResponse("Invalid response format from Gemini API")
        return text.strip()


class DeepSeekProvider(TextProvider):
    """Secondary provider speaking the OpenAI-compatible chat completions API"""

    name = "deepseek"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepseek.com",
        model: str = "deepseek-chat",
        temperature: float = 0.3,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": message.role.value, "content": message.content}
                for message in request.messages
            ],
            "max_tokens": request.tuning.max_output_tokens,
            "temperature": self.temperature,
        }

    async def generate(
        self, session: aiohttp.ClientSession, request: GenerationRequest
    ) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post_json(
            session,
            f"{self.base_url}/v1/chat/completions",
            self.build_payload(request),
            headers=headers,
        )

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse("Invalid response format from DeepSeek API") from e
        if not isinstance(text, str):
            raise MalformedResponse("Invalid response format from DeepSeek API")
        logger.debug(f"DeepSeek returned {len(text)} characters")
        return text.strip()
