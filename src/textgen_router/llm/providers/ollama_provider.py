"""Locally hosted Ollama server provider."""

from __future__ import annotations

import logging
import time
from typing import List, Sequence

import requests

from ..types import BackendError, GenerationRequest, GenerationResponse, Message
from .base import BaseProvider

logger = logging.getLogger(__name__)

ROLE_MARKERS = {
    "system": "### System:",
    "user": "### User:",
    "assistant": "### Assistant:",
}


def flatten_messages(messages: Sequence[Message]) -> str:
    """One prompt string, one marker block per message, ending with an open assistant cue."""
    blocks = [f"{ROLE_MARKERS[m.role]}\n{m.content}" for m in messages]
    blocks.append(ROLE_MARKERS["assistant"])
    return "\n\n".join(blocks) + "\n"


class OllamaProvider(BaseProvider):
    def _installed(self, timeout: float) -> List[str]:
        res = requests.get(f"{self.descriptor.base_url}/api/tags", timeout=timeout)
        res.raise_for_status()
        models = res.json().get("models", [])
        return [str(m.get("name")) for m in models if isinstance(m, dict) and m.get("name")]

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        model = self.model
        opts = self._options(request)
        payload = {
            "model": model,
            "prompt": flatten_messages(request.messages),
            "stream": False,
            "options": {
                "temperature": opts.temperature,
                "num_predict": opts.max_tokens,
            },
        }
        if opts.json_mode:
            payload["format"] = "json"

        start = time.perf_counter()
        try:
            res = requests.post(
                f"{self.descriptor.base_url}/api/generate",
                json=payload,
                timeout=self.descriptor.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise BackendError(self.name, str(exc)) from exc
        data = self._json_or_error(res)
        latency_ms = int((time.perf_counter() - start) * 1000)

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise BackendError(self.name, "response body has no 'response' text")

        tokens = None
        if "eval_count" in data or "prompt_eval_count" in data:
            tokens = int(data.get("prompt_eval_count", 0) or 0) + int(data.get("eval_count", 0) or 0)

        return GenerationResponse(
            content=data["response"].strip(),
            provider=self.name,
            model=model,
            latency_ms=latency_ms,
            tokens_used=tokens,
            raw={"done_reason": data.get("done_reason")},
        )

    def is_available(self) -> bool:
        try:
            installed = self._installed(self.descriptor.probe_timeout_seconds)
        except Exception as exc:
            logger.debug("%s probe failed: %s", self.name, exc)
            return False
        model = self.model
        # `llama3.2` matches the implicit `llama3.2:latest` tag
        names = set(installed) | {name.split(":", 1)[0] for name in installed if name.endswith(":latest")}
        if model not in names:
            logger.debug("%s is reachable but model %s is not installed", self.name, model)
            return False
        return True

    def get_models(self) -> List[str]:
        try:
            return self._installed(self.descriptor.probe_timeout_seconds)
        except Exception as exc:
            logger.debug("%s model discovery failed: %s", self.name, exc)
            return []
