"""Priority-ordered backend routing with probe-then-dispatch fallback."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import parse_order
from ..prompts import build_telugu_messages
from ..registry import BackendDescriptor, build_registry, create_adapter
from .providers.base import BackendAdapter
from .types import (
    ConfigurationError,
    ExhaustionError,
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
)
from .usage import UsageTracker, build_usage_tracker

logger = logging.getLogger(__name__)


class TextRouter:
    """Tries backends strictly in priority order until one serves the request.

    Each backend is probed with ``is_available()`` before it is dispatched, so
    an unreachable backend never receives a full (possibly paid) generation
    call. Any adapter failure advances the chain; only exhaustion of the whole
    chain, or an invalid request, reaches the caller.
    """

    def __init__(
        self,
        settings: Dict[str, Any],
        adapters: Mapping[str, BackendAdapter] | None = None,
        usage_tracker: UsageTracker | None = None,
        registry: Mapping[str, BackendDescriptor] | None = None,
    ) -> None:
        self.settings = settings
        self.registry = dict(registry) if registry is not None else build_registry(settings)
        self.usage = usage_tracker or build_usage_tracker(settings)
        self._adapters: Dict[str, BackendAdapter] = dict(adapters or {})
        self._adapters_lock = threading.Lock()
        self._order_override: Optional[Tuple[str, ...]] = None
        self._override_lock = threading.Lock()

    def adapter(self, backend_id: str) -> BackendAdapter:
        """Returns the cached adapter, building it from the registry on first use."""
        adapter = self._adapters.get(backend_id)
        if adapter is not None:
            return adapter
        with self._adapters_lock:
            adapter = self._adapters.get(backend_id)
            if adapter is None:
                descriptor = self.registry.get(backend_id)
                if descriptor is None:
                    raise ConfigurationError(f"backend '{backend_id}' is not configured")
                adapter = create_adapter(descriptor)
                self._adapters[backend_id] = adapter
        return adapter

    def configured_order(self) -> List[str]:
        return parse_order(self.settings.get("routing", {}).get("order"))

    def set_order_override(self, order: Iterable[str] | None) -> None:
        with self._override_lock:
            self._order_override = tuple(parse_order(order)) if order is not None else None

    def _resolve_order(self, order: Sequence[str] | None) -> List[str]:
        if order is not None:
            return parse_order(order)
        override = self._order_override
        if override is not None:
            return list(override)
        return self.configured_order()

    def _probe(self, adapter: BackendAdapter) -> bool:
        try:
            return bool(adapter.is_available())
        except Exception as exc:
            logger.warning("Probe for %s raised: %s", adapter.name, exc)
            return False

    def _probe_all(self, adapters: Dict[str, BackendAdapter]) -> Dict[str, bool]:
        if not adapters:
            return {}
        with ThreadPoolExecutor(max_workers=len(adapters)) as pool:
            futures = {backend: pool.submit(self._probe, adapter) for backend, adapter in adapters.items()}
            return {backend: future.result() for backend, future in futures.items()}

    def generate(self, request: GenerationRequest, order: Sequence[str] | None = None) -> GenerationResponse:
        request.validate()

        chain = self._resolve_order(order)
        if not chain:
            raise ExhaustionError("No backends configured: routing order is empty")

        parallel = bool(self.settings.get("routing", {}).get("parallel_probe", False))
        tried: List[str] = []
        failures: List[Tuple[str, str]] = []
        last_error: BaseException | None = None

        probes: Dict[str, bool] = {}
        budget: Dict[str, bool] = {}
        if parallel:
            adapters: Dict[str, BackendAdapter] = {}
            for backend in chain:
                try:
                    adapter = self.adapter(backend)
                except Exception:
                    # reported in order by the dispatch loop below
                    continue
                budget[backend] = self.usage.check_budget(backend, request)
                if budget[backend]:
                    adapters[backend] = adapter
            probes = self._probe_all(adapters)

        for backend in chain:
            tried.append(backend)

            try:
                adapter = self.adapter(backend)
            except Exception as exc:
                failures.append((backend, str(exc)))
                last_error = exc
                logger.warning("Backend %s could not be constructed: %s", backend, exc)
                continue

            allowed = budget[backend] if backend in budget else self.usage.check_budget(backend, request)
            if not allowed:
                failures.append((backend, "budget exceeded"))
                logger.info("Skipping %s: budget exceeded", backend)
                continue

            available = probes[backend] if backend in probes else self._probe(adapter)
            if not available:
                failures.append((backend, "unavailable"))
                logger.info("Backend %s unavailable, trying next", backend)
                continue

            start = time.perf_counter()
            try:
                response = adapter.generate(request)
            except Exception as exc:
                failures.append((backend, str(exc)))
                last_error = exc
                logger.warning("Backend %s failed: %s", backend, exc)
                continue
            latency_ms = int((time.perf_counter() - start) * 1000)

            if not isinstance(response, GenerationResponse) or not isinstance(response.content, str):
                failures.append((backend, "response has no content"))
                logger.warning("Backend %s returned a response without content", backend)
                continue

            response = replace(
                response,
                latency_ms=max(latency_ms, 0),
                cached=False,
                fallback_from=chain[0] if backend != chain[0] else None,
                attempted=tuple(tried),
            )
            if response.fallback_from:
                logger.info("Served by %s after falling back from %s", backend, response.fallback_from)
            self.usage.record(response)
            return response

        message = f"All backends failed (tried: {', '.join(tried)}): " + " | ".join(
            f"{backend}: {reason}" for backend, reason in failures
        )
        logger.error(message)
        raise ExhaustionError(message, tried=tried, failures=failures, last_error=last_error)

    def generate_telugu(
        self,
        topic: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> GenerationResponse:
        request = GenerationRequest(
            messages=build_telugu_messages(topic),
            options=GenerationOptions(temperature=temperature, max_tokens=max_tokens, json_mode=json_mode),
        )
        return self.generate(request)

    def status(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for backend in self._resolve_order(None):
            descriptor = self.registry.get(backend)
            row: Dict[str, Any] = {
                "backend": backend,
                "model": None,
                "cost_tier": descriptor.cost_tier if descriptor else None,
                "available": False,
            }
            try:
                adapter = self.adapter(backend)
            except Exception as exc:
                row["error"] = str(exc)
                rows.append(row)
                continue
            row["model"] = adapter.model
            row["available"] = self._probe(adapter)
            rows.append(row)
        return rows

    def list_models(self) -> Dict[str, List[str]]:
        models: Dict[str, List[str]] = {}
        for backend in self._resolve_order(None):
            try:
                adapter = self.adapter(backend)
            except Exception as exc:
                logger.warning("Backend %s could not be constructed: %s", backend, exc)
                models[backend] = []
                continue
            models[backend] = list(adapter.get_models())
        return models
