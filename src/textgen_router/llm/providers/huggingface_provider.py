"""Hugging Face serverless inference provider (free, rate-limited)."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Sequence

import requests

from ..types import BackendError, GenerationRequest, GenerationResponse, Message
from .base import BaseProvider

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = "Respond with a single valid JSON object and nothing else."

# "model is currently loading" on cold start
LOADING_STATUS = 503


def format_instruct_prompt(messages: Sequence[Message], json_mode: bool = False) -> str:
    """Llama-3 instruct document; the last header is left open for the assistant turn."""
    turns = [(m.role, m.content) for m in messages]
    if json_mode:
        if turns and turns[0][0] == "system":
            turns[0] = ("system", f"{turns[0][1]}\n\n{JSON_ONLY_INSTRUCTION}")
        else:
            turns.insert(0, ("system", JSON_ONLY_INSTRUCTION))
    parts = ["<|begin_of_text|>"]
    for role, content in turns:
        parts.append(f"<|start_header_id|>{role}<|end_header_id|>\n\n{content}<|eot_id|>")
    parts.append("<|start_header_id|>assistant<|end_header_id|>\n\n")
    return "".join(parts)


class HuggingFaceProvider(BaseProvider):
    def __init__(self, descriptor) -> None:
        super().__init__(descriptor)
        self._api_key = descriptor.credential()

    def _post(self, model: str, payload: Dict[str, Any], timeout: float) -> requests.Response:
        return requests.post(
            f"{self.descriptor.base_url}/{model}",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=timeout,
        )

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        if not self._api_key:
            raise BackendError(self.name, "/".join(self.descriptor.credential_env) + " missing")

        model = self.model
        opts = self._options(request)
        payload = {
            "inputs": format_instruct_prompt(request.messages, json_mode=opts.json_mode),
            "parameters": {
                "max_new_tokens": opts.max_tokens,
                "temperature": opts.temperature,
                "return_full_text": False,
            },
        }

        start = time.perf_counter()
        try:
            res = self._post(model, payload, self.descriptor.timeout_seconds)
        except requests.RequestException as exc:
            raise BackendError(self.name, str(exc)) from exc
        data = self._json_or_error(res)
        latency_ms = int((time.perf_counter() - start) * 1000)

        item = data[0] if isinstance(data, list) and data else data
        if not isinstance(item, dict):
            raise BackendError(self.name, "unexpected response shape")
        if item.get("error"):
            raise BackendError(self.name, str(item["error"]))
        text = item.get("generated_text")
        if not isinstance(text, str):
            raise BackendError(self.name, "response has no generated_text")

        return GenerationResponse(
            content=text.strip(),
            provider=self.name,
            model=model,
            latency_ms=latency_ms,
        )

    def is_available(self) -> bool:
        # No health endpoint: a one-token generation is the cheapest probe.
        if not self._api_key:
            return False
        payload = {"inputs": "ping", "parameters": {"max_new_tokens": 1, "return_full_text": False}}
        try:
            res = self._post(self.model, payload, self.descriptor.probe_timeout_seconds)
        except Exception as exc:
            logger.debug("%s probe failed: %s", self.name, exc)
            return False
        if res.status_code == LOADING_STATUS:
            logger.info("%s model %s is loading; treating as available", self.name, self.model)
            return True
        return res.status_code == 200

    def get_models(self) -> List[str]:
        # serverless inference has no listing endpoint
        return []
