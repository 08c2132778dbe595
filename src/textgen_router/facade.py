"""Application context that owns the process's router."""

from __future__ import annotations

import threading
from typing import Any, Dict

from dotenv import load_dotenv

from .config import load_settings
from .llm.router import TextRouter
from .llm.types import GenerationRequest, GenerationResponse


class RouterContext:
    """Constructs one TextRouter on first use and hands it to every call site.

    Pass the context explicitly to the code that needs text generation.
    """

    def __init__(self, settings: Dict[str, Any] | None = None, router: TextRouter | None = None) -> None:
        self.settings = settings if settings is not None else load_settings()
        self._router = router
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, settings_path: str = "config/settings.yaml") -> "RouterContext":
        load_dotenv()
        return cls(load_settings(settings_path))

    @property
    def router(self) -> TextRouter:
        router = self._router
        if router is None:
            with self._lock:
                if self._router is None:
                    self._router = TextRouter(self.settings)
                router = self._router
        return router

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        return self.router.generate(request)

    def generate_telugu(self, topic: str, **options: Any) -> GenerationResponse:
        return self.router.generate_telugu(topic, **options)
