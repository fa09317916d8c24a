import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import aiohttp
from loguru import logger
from veo_studio_client.errors import (
    AllProvidersExhausted,
    ProviderError,
    QuotaExceeded,
    ServiceUnavailable,
    TransientOverload,
)
from veo_studio_client.models import (
    AUTHORING_RETRY,
    AUTHORING_TUNING,
    TRANSLATION_RETRY,
    TRANSLATION_TUNING,
    GenerationRequest,
    PromptFields,
    RetryPolicy,
    TextGenerationConfig,
)
from veo_studio_client.prompt_template import (
    authoring_messages,
    build_fallback_prompt,
    translation_messages,
)
from veo_studio_client.providers import DeepSeekProvider, GeminiProvider, TextProvider

SleepFn = Callable[[float], Awaitable[None]]

TRANSLATION_UNAVAILABLE = (
    "Translation service temporarily unavailable. Please try again in a few minutes."
)


class TextGenerationClient:
    """Text generation over a rotating pool of primary credentials.

    Every call walks the pool once, starting where the previous call left
    off, then falls back to the secondary provider.
    """

    def __init__(
        self,
        primary: Sequence[TextProvider],
        secondary: Optional[TextProvider] = None,
        request_timeout: float = 60.0,
        sleep: SleepFn = asyncio.sleep,
    ):
        if not primary:
            raise ValueError("At least one primary provider is required")

        self._primary: List[TextProvider] = list(primary)
        self._cursor = 0
        self.secondary = secondary
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._sleep = sleep
        self.logger = logger

    @classmethod
    def from_config(
        cls, config: TextGenerationConfig, sleep: SleepFn = asyncio.sleep
    ) -> "TextGenerationClient":
        primary = [
            GeminiProvider(key, base_url=config.gemini_base_url, model=config.gemini_model)
            for key in config.gemini_api_keys
        ]
        secondary = None
        if config.deepseek_api_key:
            secondary = DeepSeekProvider(
                config.deepseek_api_key,
                base_url=config.deepseek_base_url,
                model=config.deepseek_model,
            )
        return cls(
            primary, secondary, request_timeout=config.request_timeout, sleep=sleep
        )

    @property
    def pool_size(self) -> int:
        return len(self._primary)

    @property
    def rotation_cursor(self) -> int:
        return self._cursor

    async def translate(self, source_text: str) -> str:
        """Translate Myanmar text to English, raising ServiceUnavailable on total outage"""
        request = GenerationRequest(
            messages=translation_messages(source_text), tuning=TRANSLATION_TUNING
        )
        try:
            return await self._generate(request, TRANSLATION_RETRY)
        except AllProvidersExhausted as e:
            self.logger.error(f"Translation failed on every provider: {e}")
            raise ServiceUnavailable(TRANSLATION_UNAVAILABLE) from e

    async def generate_structured_prompt(self, fields: PromptFields) -> str:
        """Author a Veo prompt; falls back to the local template instead of failing"""
        request = GenerationRequest(
            messages=authoring_messages(fields), tuning=AUTHORING_TUNING
        )
        try:
            return await self._generate(request, AUTHORING_RETRY)
        except AllProvidersExhausted:
            self.logger.warning(
                "All providers failed for prompt generation, using local template"
            )
            return build_fallback_prompt(fields)

    def _next_provider(self) -> Tuple[int, TextProvider]:
        ordinal = self._cursor + 1
        provider = self._primary[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._primary)
        return ordinal, provider

    async def _generate(self, request: GenerationRequest, policy: RetryPolicy) -> str:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            for _ in range(len(self._primary)):
                ordinal, provider = self._next_provider()
                text = await self._try_credential(
                    session, provider, ordinal, request, policy
                )
                if text is not None:
                    return text

            if self.secondary is None:
                raise AllProvidersExhausted(
                    f"All {len(self._primary)} primary keys failed and no secondary provider is configured"
                )

            self.logger.warning(
                f"All {len(self._primary)} primary keys failed, trying {self.secondary.name} fallback"
            )
            try:
                return await self.secondary.generate(session, request)
            except ProviderError as e:
                self.logger.error(f"{self.secondary.name} fallback also failed: {e}")
                raise AllProvidersExhausted(str(e)) from e

    async def _try_credential(
        self,
        session: aiohttp.ClientSession,
        provider: TextProvider,
        ordinal: int,
        request: GenerationRequest,
        policy: RetryPolicy,
    ) -> Optional[str]:
        """Returns the generated text, or None once this credential is used up"""
        for attempt in range(1, policy.attempts_per_credential + 1):
            try:
                return await provider.generate(session, request)
            except QuotaExceeded:
                self.logger.error(f"API key {ordinal} quota exceeded, trying next key")
                return None
            except TransientOverload as e:
                if attempt >= policy.attempts_per_credential:
                    self.logger.error(
                        f"API key {ordinal} failed (attempt {attempt}): status {e.status}: {e}"
                    )
                    return None
                delay = policy.overload_backoff * attempt
                self.logger.warning(
                    f"API key {ordinal} overloaded, retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)
            except ProviderError as e:
                self.logger.error(
                    f"API key {ordinal} failed (attempt {attempt}): status {e.status}: {e}"
                )
                return None
        return None
