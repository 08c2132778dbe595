"""Groq chat completions provider (OpenAI-compatible REST)."""

from __future__ import annotations

import logging
import time
from typing import Dict, List

import requests

from ..types import BackendError, GenerationRequest, GenerationResponse
from .base import BaseProvider

logger = logging.getLogger(__name__)


class GroqProvider(BaseProvider):
    def __init__(self, descriptor) -> None:
        super().__init__(descriptor)
        self._api_key = descriptor.credential()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _list_models(self) -> List[str]:
        res = requests.get(
            f"{self.descriptor.base_url}/models",
            headers=self._headers(),
            timeout=self.descriptor.probe_timeout_seconds,
        )
        res.raise_for_status()
        return [str(m["id"]) for m in res.json().get("data", []) if isinstance(m, dict) and m.get("id")]

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        if not self._api_key:
            raise BackendError(self.name, "/".join(self.descriptor.credential_env) + " missing")

        model = self.model
        opts = self._options(request)
        payload = {
            "model": model,
            "messages": request.as_dicts(),
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
        }
        if opts.json_mode:
            payload["response_format"] = {"type": "json_object"}

        start = time.perf_counter()
        try:
            res = requests.post(
                f"{self.descriptor.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
                timeout=self.descriptor.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise BackendError(self.name, str(exc)) from exc
        data = self._json_or_error(res)
        latency_ms = int((time.perf_counter() - start) * 1000)

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise BackendError(self.name, f"malformed completion: {exc!r}") from exc

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens")

        return GenerationResponse(
            content=str(text).strip(),
            provider=self.name,
            model=model,
            latency_ms=latency_ms,
            tokens_used=int(tokens) if tokens is not None else None,
            raw={"id": data.get("id")},
        )

    def is_available(self) -> bool:
        if not self._api_key:
            return False
        try:
            self._list_models()
        except Exception as exc:
            logger.debug("%s probe failed: %s", self.name, exc)
            return False
        return True

    def get_models(self) -> List[str]:
        if not self._api_key:
            return []
        try:
            return self._list_models()
        except Exception as exc:
            logger.debug("%s model discovery failed: %s", self.name, exc)
            return []
