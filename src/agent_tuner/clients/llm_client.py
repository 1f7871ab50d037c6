"""OpenAI-compatible chat client used for agent calls, judging and prompt rewrites."""

import asyncio
import time
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI, RateLimitError

from ..config import Settings
from .base import BaseLLMClient

MAX_RETRIES = 5
INITIAL_RETRY_DELAY = 1.0
BACKOFF_MULTIPLIER = 2.0


class LLMClient(BaseLLMClient):
    """Async OpenAI client; every call may target its own model."""

    def __init__(self, settings: Settings):
        """Initialize client from settings; local endpoints need no real key."""
        self.settings = settings
        client_kwargs: Dict[str, Any] = {"api_key": settings.api_key or "local"}
        if settings.base_url:
            client_kwargs["base_url"] = settings.base_url
        self.async_client = AsyncOpenAI(**client_kwargs)
        self.model = settings.model
        self.temperature = settings.temperature

    async def achat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        """Return the reply text for messages, backing off on rate limits."""
        request = self._build_request(messages, model, temperature, max_tokens, json_mode)

        start_time = time.time()
        try:
            response = await self._create_with_backoff(request)
        except RateLimitError:
            logger.error(f"{request['model']} still rate limited after {MAX_RETRIES} attempts")
            raise
        except Exception as e:
            logger.error(f"Chat completion on {request['model']} failed: {e}")
            raise

        content = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0
        logger.debug(
            f"{request['model']} replied in {(time.time() - start_time) * 1000:.0f}ms "
            f"({tokens_used} tokens, {len(content)} chars)"
        )
        return content

    def _build_request(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        json_mode: bool
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens:
            request["max_tokens"] = max_tokens
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        return request

    async def _create_with_backoff(self, request: Dict[str, Any]) -> Any:
        """Call the API, sleeping INITIAL_RETRY_DELAY * 2^n after the n-th rate limit."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                return await self.async_client.chat.completions.create(**request)
            except RateLimitError:
                if attempt == MAX_RETRIES:
                    raise
                delay = INITIAL_RETRY_DELAY * BACKOFF_MULTIPLIER ** (attempt - 1)
                logger.warning(
                    f"{request['model']} rate limited on attempt {attempt}/{MAX_RETRIES}; "
                    f"waiting {delay:.1f}s"
                )
                await asyncio.sleep(delay)
        raise RuntimeError("Retry loop exited without a response")
