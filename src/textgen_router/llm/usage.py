"""Budget checks and usage recording around routed calls."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Protocol

from .types import ConfigurationError, GenerationRequest, GenerationResponse

logger = logging.getLogger(__name__)


class UsageTracker(Protocol):
    def check_budget(self, backend: str, request: GenerationRequest) -> bool:
        ...

    def record(self, response: GenerationResponse) -> None:
        ...


class NoopUsageTracker:
    """Allows every call and records nothing."""

    def check_budget(self, backend: str, request: GenerationRequest) -> bool:
        return True

    def record(self, response: GenerationResponse) -> None:
        return None


class LoggingUsageTracker:
    """Logs each served call with a cost estimate from the pricing table."""

    def __init__(self, pricing: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self.pricing = dict(pricing or {})

    def check_budget(self, backend: str, request: GenerationRequest) -> bool:
        return True

    def estimate_cost(self, provider: str, model: str, tokens: int | None) -> float:
        """Blended estimate: backends report total tokens only, so the dearer rate is used."""
        pricing = self.pricing.get(f"{provider}:{model}")
        if not pricing or not tokens:
            return 0.0
        per_1k = pricing.get("per_1k")
        if per_1k is None:
            per_1k = max(float(pricing.get("input_per_1k", 0.0)), float(pricing.get("output_per_1k", 0.0)))
        return (tokens / 1000.0) * float(per_1k)

    def record(self, response: GenerationResponse) -> None:
        cost = self.estimate_cost(response.provider, response.model, response.tokens_used)
        logger.info(
            "llm_call provider=%s model=%s tokens=%s latency_ms=%d cost_usd=%.6f",
            response.provider,
            response.model,
            response.tokens_used,
            response.latency_ms,
            cost,
        )


def build_usage_tracker(settings: Dict[str, Any]) -> UsageTracker:
    kind = str(settings.get("usage", {}).get("tracker", "none")).lower()
    if kind == "none":
        return NoopUsageTracker()
    if kind == "log":
        return LoggingUsageTracker(settings.get("pricing", {}))
    raise ConfigurationError(f"Unknown usage.tracker '{kind}'. Supported: none, log")
