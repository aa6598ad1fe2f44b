"""
OpenAI Service for Vibe Report Generation
Streams a single chat completion for the report prompt and accumulates it.
"""

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from vibe_report.config import settings
from vibe_report.features.reports.prompts import build_report_prompt
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ChunkCallback = Callable[[str], Awaitable[None] | None]


class ReportGenerationError(Exception):
    """Raised when the model request fails or produces nothing."""

    def __init__(self, message: str, api_error: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.api_error = api_error
        self.recoverable = recoverable


class OpenAIServiceError(Exception):
    """Base exception for OpenAI service errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class OpenAIService:
    """
    Streaming text generation for vibe reports.

    One request per analysis: the prompt is sent as a single user message and
    text deltas are yielded in order as they arrive.
    """

    def __init__(self):
        self.client = None
        self._initialize_client()
        logger.info("OpenAI service initialized for report generation")

    def _initialize_client(self):
        """Initialize OpenAI async client with configuration."""
        try:
            if not settings.OPENAI_API_KEY:
                raise OpenAIServiceError("OPENAI_API_KEY not configured in settings")

            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
            )

            logger.info(
                "OpenAI client initialized",
                model=settings.OPENAI_MODEL,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
            )

        except Exception as e:
            logger.error("Failed to initialize OpenAI client", error=str(e))
            raise OpenAIServiceError(f"OpenAI client initialization failed: {e}") from e

    async def iter_report_chunks(self, display_name: str, chat_transcript: str) -> AsyncIterator[str]:
        """
        Yield text deltas for the report, in arrival order.

        Raises:
            ReportGenerationError: if the stream cannot be opened or breaks
            part-way through.
        """
        if not self.client:
            raise OpenAIServiceError("OpenAI client not initialized")

        prompt = build_report_prompt(display_name, chat_transcript)
        logger.info(
            "Starting report generation",
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            transcript_length=len(chat_transcript),
        )

        stream = await self._open_stream_with_retry(prompt)

        chunk_count = 0
        try:
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    chunk_count += 1
                    yield delta
        except (openai.APIError, httpx.HTTPError) as e:
            # Transport errors while reading the body are not wrapped by the SDK.
            logger.error(
                "OpenAI stream interrupted",
                chunks_received=chunk_count,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ReportGenerationError(
                "Report stream interrupted", api_error=str(e), recoverable=True
            ) from e

        logger.debug("OpenAI stream finished", chunks_received=chunk_count)

    async def request_report(
        self,
        display_name: str,
        chat_transcript: str,
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """
        Run one streaming request and return the full accumulated text.

        `on_chunk` receives the accumulated text so far after each delta and
        may be a plain function or a coroutine function.
        """
        accumulated = ""
        async for delta in self.iter_report_chunks(display_name, chat_transcript):
            accumulated += delta
            if on_chunk is not None:
                result = on_chunk(accumulated)
                if inspect.isawaitable(result):
                    await result

        if not accumulated.strip():
            raise ReportGenerationError("Empty response from OpenAI API", recoverable=True)

        logger.info("Report generation completed", response_length=len(accumulated))
        return accumulated

    async def _open_stream_with_retry(self, prompt: str) -> Any:
        """Open the completion stream, retrying transient failures."""

        last_error = None
        max_retries = settings.OPENAI_MAX_RETRIES

        for attempt in range(max_retries):
            try:
                logger.debug(
                    "Opening OpenAI stream",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    model=settings.OPENAI_MODEL,
                )

                return await self.client.chat.completions.create(
                    model=settings.OPENAI_MODEL,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=settings.OPENAI_MAX_TOKENS,
                    temperature=settings.OPENAI_TEMPERATURE,
                    stream=True,
                )

            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)

                logger.warning(
                    "OpenAI rate limit hit, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )

                if attempt < max_retries - 1:
                    await asyncio.sleep(wait_time)

            except openai.APITimeoutError as e:
                last_error = e
                logger.warning(
                    "OpenAI API timeout, retrying",
                    attempt=attempt + 1,
                    timeout=settings.OPENAI_TIMEOUT_SECONDS,
                    error=str(e),
                )

            except openai.APIError as e:
                last_error = e
                # Don't retry on client errors (4xx)
                status_code = getattr(e, "status_code", None)
                if status_code is not None and 400 <= status_code < 500:
                    logger.error("OpenAI client error (not retrying)", error=str(e))
                    break

                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

        logger.error(
            "OpenAI stream could not be opened",
            max_retries=max_retries,
            final_error=str(last_error),
        )

        raise ReportGenerationError(
            f"OpenAI API failed after {max_retries} attempts",
            api_error=str(last_error),
            recoverable=True,
        ) from last_error


# Singleton instance
openai_service = OpenAIService()
