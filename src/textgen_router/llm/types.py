"""Shared request/response structures and router errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

ROLES = ("system", "user", "assistant")


class RouterError(RuntimeError):
    """Base error for the routing layer."""


class ConfigurationError(RouterError):
    """Settings are invalid or incomplete."""


class InvalidRequestError(RouterError, ValueError):
    """Request violates the input contract; raised before any backend call."""


class BackendError(RouterError):
    """One backend failed to return a valid generation."""

    def __init__(self, backend: str, message: str, status_code: int | None = None) -> None:
        self.backend = backend
        self.status_code = status_code
        prefix = f"{backend}: HTTP {status_code}: " if status_code else f"{backend}: "
        super().__init__(prefix + message)


class ExhaustionError(RouterError):
    """Every backend in the chain was unavailable or failed."""

    def __init__(
        self,
        message: str,
        tried: Iterable[str] = (),
        failures: Iterable[Tuple[str, str]] = (),
        last_error: BaseException | None = None,
    ) -> None:
        self.tried = list(tried)
        self.failures = list(failures)
        self.last_error = last_error
        super().__init__(message)


@dataclass(frozen=True)
class Message:
    role: str
    content: str


@dataclass(frozen=True)
class GenerationOptions:
    """Generation controls. ``None`` means the backend default applies."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    json_mode: bool = False

    def resolve(self, temperature: float, max_tokens: int) -> "GenerationOptions":
        return GenerationOptions(
            temperature=self.temperature if self.temperature is not None else temperature,
            max_tokens=self.max_tokens if self.max_tokens is not None else max_tokens,
            json_mode=self.json_mode,
        )


@dataclass(frozen=True)
class GenerationRequest:
    messages: Tuple[Message, ...]
    options: GenerationOptions = field(default_factory=GenerationOptions)

    @classmethod
    def from_dicts(
        cls,
        messages: Iterable[Mapping[str, Any]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> "GenerationRequest":
        return cls(
            messages=tuple(Message(role=str(m.get("role", "")), content=m.get("content")) for m in messages),
            options=GenerationOptions(temperature=temperature, max_tokens=max_tokens, json_mode=json_mode),
        )

    def validate(self) -> None:
        if not self.messages:
            raise InvalidRequestError("messages must not be empty")
        for idx, message in enumerate(self.messages):
            if message.role not in ROLES:
                raise InvalidRequestError(f"messages[{idx}] has unknown role '{message.role}'")
            if not isinstance(message.content, str):
                raise InvalidRequestError(f"messages[{idx}] content must be a string")
        opts = self.options
        if opts.temperature is not None and opts.temperature < 0:
            raise InvalidRequestError("temperature must be >= 0")
        if opts.max_tokens is not None and opts.max_tokens <= 0:
            raise InvalidRequestError("max_tokens must be positive")

    def as_dicts(self) -> list[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


@dataclass(frozen=True)
class GenerationResponse:
    content: str
    provider: str
    model: str
    latency_ms: int = 0
    tokens_used: Optional[int] = None
    cached: bool = False
    fallback_from: Optional[str] = None
    attempted: Tuple[str, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict)
