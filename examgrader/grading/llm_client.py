"""
LLM Client for the AI grading oracle.

Provides an async wrapper around the OpenAI SDK configured for any
OpenAI-compatible endpoint. Includes retry logic and error handling.
"""

import asyncio
import logging
from typing import NamedTuple, Protocol

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from examgrader.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when LLM API call fails."""

    def __init__(self, message: str, cause: Exception | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        super().__init__(message)


class TokenUsage(NamedTuple):
    """Token counts reported by the provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class Completion(NamedTuple):
    """Text and optional usage of one completion."""

    text: str
    usage: TokenUsage | None = None


class CompletionClient(Protocol):
    """Anything that can complete a prompt."""

    model: str

    async def complete(self, prompt: str, system_prompt: str | None = None) -> Completion: ...


class LLMClient:
    """
    Client for interacting with an OpenAI-compatible LLM API.

    Implements retry logic with exponential backoff. Every failure is
    surfaced as LLMError.
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the LLM client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
        """
        self._settings = settings or get_settings()
        self._client = AsyncOpenAI(
            api_key=self._settings.llm_api_key,
            base_url=self._settings.llm_base_url,
        )
        self.model = self._settings.llm_model

        # Retry configuration
        self._max_retries = self._settings.llm_max_retries
        self._base_delay = 1.0  # seconds
        self._max_delay = 30.0  # seconds

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 2048,
    ) -> Completion:
        """
        Generate a completion for a prompt.

        Args:
            prompt: User message with the actual request.
            system_prompt: Optional system message defining the LLM's role.
            max_tokens: Maximum tokens in response.

        Returns:
            The generated text and token usage.

        Raises:
            LLMError: If generation fails after all retries.
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        return await self._call_with_retry(messages, max_tokens)

    async def _call_with_retry(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
    ) -> Completion:
        """
        Call the API with exponential backoff retry.

        Args:
            messages: Chat messages to send.
            max_tokens: Maximum response tokens.

        Returns:
            Generated completion.

        Raises:
            LLMError: If all retries fail.
        """
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=self._settings.llm_temperature,
                    max_tokens=max_tokens,
                )

                if response.choices and response.choices[0].message.content:
                    usage = None
                    if response.usage is not None:
                        usage = TokenUsage(
                            prompt_tokens=response.usage.prompt_tokens,
                            completion_tokens=response.usage.completion_tokens,
                            total_tokens=response.usage.total_tokens,
                        )
                    return Completion(text=response.choices[0].message.content, usage=usage)

                raise LLMError("Empty response from LLM")

            except LLMError:
                raise

            except (RateLimitError, APIConnectionError) as e:
                last_error = e
                if attempt < self._max_retries:
                    delay = self._calculate_delay(attempt)
                    logger.info("Retrying LLM call in %.1fs after %s", delay, type(e).__name__)
                    await asyncio.sleep(delay)
                    continue
                raise LLMError(
                    f"{type(e).__name__} after {self._max_retries} retries",
                    cause=e,
                    retryable=True,
                ) from e

            except APIStatusError as e:
                # Don't retry on client errors (4xx except 429)
                if 400 <= e.status_code < 500 and e.status_code != 429:
                    raise LLMError(
                        f"API error: {e.message}",
                        cause=e,
                        retryable=False,
                    ) from e

                last_error = e
                if attempt < self._max_retries:
                    await asyncio.sleep(self._calculate_delay(attempt))
                    continue
                raise LLMError(
                    f"API error after {self._max_retries} retries: {e.message}",
                    cause=e,
                    retryable=True,
                ) from e

            except Exception as e:
                raise LLMError(f"Unexpected error: {e}", cause=e, retryable=False) from e

        raise LLMError(f"Failed after {self._max_retries} retries", cause=last_error)

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self._base_delay * (2**attempt)
        return min(delay, self._max_delay)

    async def health_check(self) -> bool:
        """
        Check if the API is reachable.

        Returns:
            True if API is healthy, False otherwise.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=5,
            )
            return bool(response.choices)
        except Exception:
            logger.warning("LLM health check failed", exc_info=True)
            return False
