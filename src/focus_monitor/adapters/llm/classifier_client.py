"""Classifier API client for summarization and classification."""

import asyncio
import logging
import time
from types import TracebackType
from typing import Optional

import httpx

from focus_monitor.adapters.llm.prompts import build_classification_prompt
from focus_monitor.adapters.llm.response_parser import (
    MalformedResponse,
    fallback_result,
    parse_response,
)
from focus_monitor.config import Settings
from focus_monitor.core.entities import Category, ClassificationResult
from focus_monitor.core.interfaces import ContentClassifier

logger = logging.getLogger(__name__)


class ClassifierError(Exception):
    """The classifier endpoint could not produce a response."""


class ClassifierClient(ContentClassifier):
    """OpenAI-compatible chat completions client.

    ``classify`` never raises: transport failures, error statuses and
    unparseable answers all degrade to the fallback result.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = settings.classifier
        self.settings = settings
        self.api_key = settings.classifier_api_key
        self.model = config.model
        self.max_tokens = config.max_tokens
        self.temperature = config.temperature
        self.base_url = config.base_url.rstrip("/")
        self.max_retries = max(1, config.max_retries)
        self.initial_retry_delay = config.initial_retry_delay
        self.request_delay = config.request_delay
        self.max_prompt_chars = config.max_prompt_chars
        self._last_request_time = 0.0
        self._rate_lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
        )

    async def classify(self, title: str, body: str, category: Category) -> ClassificationResult:
        """Summarize and classify page content.

        ``processing_time_ms`` runs from dispatch of the answered request to
        receipt of its response. When every attempt fails it covers the span
        from the first dispatch to giving up, retry backoff included.
        """
        prompts = self.settings.prompts.classification

        try:
            prompt = build_classification_prompt(
                title=title,
                body=body,
                category=Category(category).value,
                template=prompts.get("user", ""),
                max_chars=self.max_prompt_chars,
            )
        except (KeyError, IndexError, ValueError) as e:
            # malformed prompt template or category
            logger.error("Could not build classifier prompt: %s", e)
            return fallback_result(self.model, 0, reason=str(e)[:100])

        await self._wait_for_slot()
        started = time.monotonic()
        try:
            response, elapsed_ms = await self._call_api(prompt=prompt, system=prompts.get("system", ""))
        except (ClassifierError, httpx.HTTPError) as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.warning("Classifier request failed for %r: %s", title[:80], e)
            return fallback_result(self.model, elapsed_ms, reason=str(e)[:100])

        outcome = parse_response(response, model=self.model, processing_time_ms=elapsed_ms)
        if isinstance(outcome, MalformedResponse):
            # Show first part of response to see structure
            logger.warning(
                "Classifier returned unusable response (%s): %s",
                outcome.reason,
                response[:250],
            )
            return fallback_result(self.model, elapsed_ms, reason=outcome.reason)
        return outcome.result

    async def _wait_for_slot(self) -> None:
        """Rate limiting: ensure minimum delay between requests."""
        if self.request_delay <= 0:
            return
        async with self._rate_lock:
            loop = asyncio.get_running_loop()
            wait = self.request_delay - (loop.time() - self._last_request_time)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_time = loop.time()

    async def _call_api(self, prompt: str, system: str) -> tuple[str, int]:
        """Call the chat completions endpoint with retry logic.

        Returns the answer text and the milliseconds between sending the
        answered request and receiving its response.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            retry_delay = self.initial_retry_delay * (2 ** attempt)
            sent = time.monotonic()
            try:
                response = await self._client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "max_tokens": self.max_tokens,
                        "temperature": self.temperature,
                        "messages": [
                            {"role": "system", "content": system},
                            {"role": "user", "content": prompt},
                        ],
                    },
                )
            except httpx.RequestError as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    logger.warning("Classifier network error, retrying after %.1fs: %s", retry_delay, e)
                    await asyncio.sleep(retry_delay)
                    continue
                raise

            # Success case
            if response.status_code == 200:
                elapsed_ms = int((time.monotonic() - sent) * 1000)
                return self._response_text(response), elapsed_ms

            # Rate limit or server error - retry with backoff
            if response.status_code == 429 or response.status_code >= 500:
                last_error = ClassifierError(f"Classifier returned HTTP {response.status_code}")
                if attempt < self.max_retries - 1:
                    if response.status_code == 429:
                        retry_delay = self._get_retry_delay(response, attempt)
                    logger.warning(
                        "Classifier HTTP %d, retrying after %.1fs (attempt %d/%d)",
                        response.status_code,
                        retry_delay,
                        attempt + 1,
                        self.max_retries,
                    )
                    await asyncio.sleep(retry_delay)
                    continue
                raise last_error

            # Other errors - give up immediately
            raise ClassifierError(f"Classifier returned HTTP {response.status_code}")

        raise ClassifierError(f"Failed to call classifier after all retries: {last_error}")

    def _response_text(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ClassifierError(f"Unexpected classifier payload: {e}") from e
        return content if isinstance(content, str) else ""

    def _get_retry_delay(self, response: httpx.Response, attempt: int) -> float:
        """Calculate retry delay from response headers or use exponential backoff."""
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass

        return self.initial_retry_delay * (2 ** attempt)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ClassifierClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
