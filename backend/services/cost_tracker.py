import logging
from typing import Iterable

from backend.models.schemas import ChatMessage, Sender

logger = logging.getLogger(__name__)


class CostTracker:
    """Aggregates reconciled usage over a transcript."""

    def get_cost_summary(self, messages: Iterable[ChatMessage]) -> dict:
        total_cost = 0.0
        prompt_tokens = 0
        completion_tokens = 0
        priced = 0
        unpriced = 0

        for msg in messages:
            if msg.sender != Sender.ASSISTANT:
                continue
            if msg.cost is None:
                unpriced += 1
                continue
            priced += 1
            total_cost += msg.cost.total
            if msg.tokens is not None:
                prompt_tokens += msg.tokens.prompt_tokens
                completion_tokens += msg.tokens.completion_tokens

        return {
            "total_cost_usd": round(total_cost, 8),
            "total_prompt_tokens": prompt_tokens,
            "total_completion_tokens": completion_tokens,
            "priced_messages": priced,
            "unpriced_messages": unpriced,
        }
