"""Defensive parsing of OpenRouter JSON payloads.

Numeric fields arrive as numbers, numeric strings, null or not at all.
Everything funnels through :func:`coerce_number` so the default-to-zero
policy lives in one place.
"""

import math
from typing import Any, Optional

from backend.models.schemas import (
    Cost,
    GenerationStats,
    ModelInfo,
    ModelPricing,
    TokenUsage,
)


def coerce_number(value: Any) -> float:
    """Return ``value`` as a non-negative finite float, or 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def coerce_count(value: Any) -> int:
    return int(coerce_number(value))


def parse_generation_stats(body: Any) -> Optional[GenerationStats]:
    """Parse a ``/generation`` response body.

    Returns None when the ``data`` container is missing, which callers
    treat as "not ready yet".
    """
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if not isinstance(data, dict):
        return None

    tokens = TokenUsage(
        prompt_tokens=coerce_count(data.get("tokens_prompt")),
        completion_tokens=coerce_count(data.get("tokens_completion")),
    )
    usage = data.get("usage")
    return GenerationStats(
        cost=Cost(total=coerce_number(data.get("total_cost"))),
        tokens=tokens,
        reasoning_note=str(usage) if usage is not None else None,
    )


def parse_model(raw: dict) -> ModelInfo:
    """Build a ModelInfo from one entry of the ``/models`` listing."""
    pricing = raw.get("pricing") or {}
    if not isinstance(pricing, dict):
        pricing = {}
    return ModelInfo(
        id=str(raw.get("id", "")),
        name=raw.get("name") or "",
        description=raw.get("description") or "",
        pricing=ModelPricing(
            prompt=coerce_number(pricing.get("prompt")),
            completion=coerce_number(pricing.get("completion")),
        ),
    )
