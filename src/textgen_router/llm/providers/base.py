"""Backend adapter interface and shared adapter plumbing."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Dict, List, Protocol

import requests

from ..types import BackendError, GenerationOptions, GenerationRequest, GenerationResponse

if TYPE_CHECKING:
    from ...registry import BackendDescriptor


class BackendAdapter(Protocol):
    name: str

    @property
    def model(self) -> str:
        ...

    def set_model(self, model: str) -> None:
        ...

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        ...

    def is_available(self) -> bool:
        ...

    def get_models(self) -> List[str]:
        ...


class BaseProvider:
    """Holds the descriptor and the operator-set current model."""

    def __init__(self, descriptor: "BackendDescriptor") -> None:
        self.descriptor = descriptor
        self.name = descriptor.identifier
        self._model = descriptor.default_model
        self._model_lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        model = (model or "").strip()
        if not model:
            raise ValueError("model must be a non-empty string")
        with self._model_lock:
            self._model = model

    def _options(self, request: GenerationRequest) -> GenerationOptions:
        return request.options.resolve(self.descriptor.temperature, self.descriptor.max_tokens)

    def _json_or_error(self, res: requests.Response) -> Any:
        """Raises BackendError for non-2xx statuses or undecodable bodies."""
        if not 200 <= res.status_code < 300:
            raise BackendError(self.name, _error_detail(res), status_code=res.status_code)
        try:
            return res.json()
        except ValueError as exc:
            raise BackendError(self.name, f"malformed response body: {exc}") from exc


def _error_detail(res: requests.Response) -> str:
    try:
        data: Dict[str, Any] = res.json()
    except ValueError:
        return (res.text or "").strip()[:200] or "empty response"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err)
        if err:
            return str(err)
    return str(data)[:200]
