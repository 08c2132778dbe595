"""OpenAI Responses API provider."""

from __future__ import annotations

import logging
import time
from typing import List

from openai import OpenAI

from ..types import BackendError, GenerationRequest, GenerationResponse
from .base import BaseProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """Retries belong to the router, so the SDK client never retries.

    An injected ``client`` is used as given and should be built with
    ``max_retries=0``.
    """

    def __init__(self, descriptor, client=None) -> None:
        super().__init__(descriptor)
        self._client = client
        api_key = descriptor.credential()
        if self._client is None and api_key:
            self._client = OpenAI(api_key=api_key, base_url=descriptor.base_url, max_retries=0)

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        if self._client is None:
            raise BackendError(self.name, "/".join(self.descriptor.credential_env) + " missing")

        model = self.model
        opts = self._options(request)
        kwargs = {
            "model": model,
            "input": request.as_dicts(),
            "temperature": opts.temperature,
            "max_output_tokens": opts.max_tokens,
            "timeout": self.descriptor.timeout_seconds,
        }
        if opts.json_mode:
            kwargs["text"] = {"format": {"type": "json_object"}}

        start = time.perf_counter()
        try:
            response = self._client.responses.create(**kwargs)
        except Exception as exc:
            raise BackendError(self.name, str(exc), status_code=getattr(exc, "status_code", None)) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        text = getattr(response, "output_text", None)
        if text is None:
            raise BackendError(self.name, "response has no output_text")
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", None)

        return GenerationResponse(
            content=str(text).strip(),
            provider=self.name,
            model=model,
            latency_ms=latency_ms,
            tokens_used=int(tokens) if tokens is not None else None,
            raw={"id": getattr(response, "id", None)},
        )

    def is_available(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.models.retrieve(self.model, timeout=self.descriptor.probe_timeout_seconds)
        except Exception as exc:
            logger.debug("%s probe failed: %s", self.name, exc)
            return False
        return True

    def get_models(self) -> List[str]:
        if self._client is None:
            return []
        try:
            page = self._client.models.list(timeout=self.descriptor.probe_timeout_seconds)
            return [m.id for m in page]
        except Exception as exc:
            logger.debug("%s model discovery failed: %s", self.name, exc)
            return []
