"""
Gateway to the external completion service.

Wraps a single chat-completion call with bounded retry and exponential
backoff. The gateway does not interpret the completion: it returns the raw
text or raises the last attempt's error.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from openai import AsyncOpenAI

from config.config import Settings, get_settings
from config.logging_config import get_logger
from services.errors import LLMServiceError

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 2,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Await ``fn`` until it succeeds or ``max_attempts`` calls have failed.

    Waits ``base_delay * 2 ** (attempt - 1)`` seconds after each failed
    attempt. The final failure is re-raised unchanged.
    """
    max_attempts = max(1, max_attempts)
    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if attempt == max_attempts:
                raise
            delay = base_delay * 2 ** (attempt - 1)
            logger.warning(
                "Completion attempt failed, retrying",
                attempt=attempt,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(e),
            )
            await sleep(delay)
    raise AssertionError("unreachable")


class LLMGateway:
    """
    Completion client with retry.

    This is the only place calls to the completion service are retried;
    callers fall back to fixed values instead of retrying again.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: AsyncOpenAI | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the gateway.

        Args:
            settings: Application settings. Uses default if not provided.
            client: Preconfigured OpenAI-compatible client (tests).
            sleep: Delay primitive used between attempts.
        """
        self.settings = settings or get_settings()
        self._client = client
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        """Whether a completion call can be attempted at all."""
        return self._client is not None or bool(self.settings.llm_api_key)

    @property
    def client(self) -> AsyncOpenAI:
        """
        Get or create the completion client.

        Lazily initialized so the app can start without an API key. The SDK's
        own retries are disabled; retry policy lives in ``complete``.
        """
        if self._client is None:
            if not self.settings.llm_api_key:
                raise LLMServiceError("Completion service API key is not configured")
            self._client = AsyncOpenAI(
                api_key=self.settings.llm_api_key,
                base_url=self.settings.llm_base_url,
                timeout=self.settings.llm_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, max_tokens: int, retries: int | None = None) -> str:
        """
        Run a single-turn completion.

        Args:
            prompt: User prompt text.
            max_tokens: Token budget for the completion.
            retries: Total attempts; defaults to ``llm_retry_attempts``.

        Returns:
            The raw completion text ("" when the service sends no content).

        Raises:
            LLMServiceError: The gateway is not configured.
            Exception: Whatever the final attempt raised.
        """
        client = self.client
        attempts = retries if retries is not None else self.settings.llm_retry_attempts

        async def call() -> str:
            response = await client.chat.completions.create(
                model=self.settings.llm_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.settings.llm_temperature,
                max_tokens=max_tokens,
            )
            if not response.choices:
                return ""
            return response.choices[0].message.content or ""

        return await retry_with_backoff(
            call,
            max_attempts=attempts,
            base_delay=self.settings.llm_retry_base_delay_seconds,
            sleep=self._sleep,
        )
