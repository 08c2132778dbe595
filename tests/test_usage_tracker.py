import logging

import pytest

from textgen_router.llm.types import ConfigurationError, GenerationRequest, GenerationResponse, Message
from textgen_router.llm.usage import LoggingUsageTracker, NoopUsageTracker, build_usage_tracker


def test_default_tracker_is_noop():
    tracker = build_usage_tracker({})

    assert isinstance(tracker, NoopUsageTracker)
    assert tracker.check_budget("capable-paid", GenerationRequest(messages=(Message("user", "u"),))) is True
    assert tracker.record(GenerationResponse(content="", provider="local", model="m")) is None


def test_logging_tracker_estimates_cost(caplog):
    tracker = build_usage_tracker(
        {
            "usage": {"tracker": "log"},
            "pricing": {"capable-paid:gpt-4o-mini": {"input_per_1k": 0.00015, "output_per_1k": 0.0006}},
        }
    )
    assert isinstance(tracker, LoggingUsageTracker)

    response = GenerationResponse(
        content="x", provider="capable-paid", model="gpt-4o-mini", latency_ms=12, tokens_used=2000
    )
    assert tracker.estimate_cost("capable-paid", "gpt-4o-mini", 2000) == pytest.approx(0.0012)
    assert tracker.estimate_cost("local", "llama3.2", 2000) == 0.0
    assert tracker.estimate_cost("capable-paid", "gpt-4o-mini", None) == 0.0

    with caplog.at_level(logging.INFO, logger="textgen_router.llm.usage"):
        tracker.record(response)
    assert "provider=capable-paid" in caplog.text
    assert "cost_usd=0.001200" in caplog.text


def test_flat_per_1k_pricing():
    tracker = LoggingUsageTracker({"fast-paid:m": {"per_1k": 0.002}})

    assert tracker.estimate_cost("fast-paid", "m", 500) == pytest.approx(0.001)


def test_unknown_tracker_is_rejected():
    with pytest.raises(ConfigurationError):
        build_usage_tracker({"usage": {"tracker": "sqlite"}})
