"""Post-stream reconciliation of cost and token usage.

OpenRouter only knows the authoritative cost of a generation a little
after the stream ends, so ``/generation`` is polled with backoff until it
answers, fails for good, or the retry budget runs out. Whatever happens,
the assistant entry ends up finalized.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from backend.exceptions import UsageFetchError, UsageNotReadyError
from backend.models.events import TranscriptEvent, UsageFinalized, UsageUnavailable
from backend.models.schemas import GenerationStats
from backend.services.openrouter_client import OpenRouterClient
from backend.services.payloads import parse_generation_stats
from backend.services.retry import RetryBudgetExhausted, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

NOT_READY_STATUSES = {404, 429}

NO_GENERATION_ID_NOTE = "No generation ID from stream"
RETRIES_EXHAUSTED_NOTE = "Stats fetch exception after retries"


class UsageReconciler:
    """Fetches generation stats and emits the terminal transcript event.

    Args:
        client: OpenRouter API wrapper.
        emit: Receives the single terminal event per reconcile() call.
        policy: Attempt budget and backoff.
        sleep: Awaitable used for backoff delays.
    """

    def __init__(
        self,
        client: OpenRouterClient,
        emit: Callable[[TranscriptEvent], object],
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._emit = emit
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    async def reconcile(
        self,
        correlation_id: Optional[str],
        placeholder_id: str,
        accumulated_text: str,
        *,
        api_key: str,
    ) -> None:
        if not correlation_id:
            logger.error("No generationId received from stream.")
            self._unavailable(
                placeholder_id, None, accumulated_text,
                NO_GENERATION_ID_NOTE, new_id=f"no-gen-id-{placeholder_id}",
            )
            return

        try:
            stats = await retry_async(
                lambda: self._fetch_stats(api_key, correlation_id),
                self._policy,
                retry_on=(UsageNotReadyError, httpx.HTTPError),
                sleep=self._sleep,
                label=f"generation stats {correlation_id}",
            )
        except UsageFetchError as e:
            logger.error("Error fetching generation stats: %s", e.status_code)
            self._unavailable(placeholder_id, correlation_id, accumulated_text, str(e))
            return
        except RetryBudgetExhausted as e:
            logger.error("Generation stats unavailable for %s: %s", correlation_id, e)
            self._unavailable(
                placeholder_id, correlation_id, accumulated_text, RETRIES_EXHAUSTED_NOTE,
            )
            return

        logger.info(
            "Generation %s: cost=%.6f tokens=%d",
            correlation_id, stats.cost.total, stats.tokens.total_tokens,
        )
        self._emit(UsageFinalized(
            placeholder_id=placeholder_id,
            correlation_id=correlation_id,
            text=accumulated_text,
            cost=stats.cost,
            tokens=stats.tokens,
            reasoning_note=stats.reasoning_note,
        ))

    async def _fetch_stats(self, api_key: str, correlation_id: str) -> GenerationStats:
        response = await self._client.get_generation(api_key, correlation_id)
        if response.status_code in NOT_READY_STATUSES:
            raise UsageNotReadyError(
                f"Generation stats not ready (status {response.status_code})"
            )
        if not response.is_success:
            raise UsageFetchError(response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None
        stats = parse_generation_stats(body)
        if stats is None:
            logger.warning(
                "Generation stats fetched (%d) but data field is missing: %.200s",
                response.status_code, response.text,
            )
            raise UsageNotReadyError("Generation stats payload has no data")
        return stats

    def _unavailable(
        self,
        placeholder_id: str,
        correlation_id: Optional[str],
        text: str,
        note: str,
        new_id: Optional[str] = None,
    ) -> None:
        self._emit(UsageUnavailable(
            placeholder_id=placeholder_id,
            correlation_id=correlation_id,
            text=text,
            note=note,
            new_id=new_id or correlation_id or placeholder_id,
        ))
