"""Backend descriptors built from settings, and adapter construction."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .llm.providers.groq_provider import GroqProvider
from .llm.providers.huggingface_provider import HuggingFaceProvider
from .llm.providers.ollama_provider import OllamaProvider
from .llm.providers.openai_provider import OpenAIProvider
from .llm.types import ConfigurationError

COST_TIERS = ("free-local", "free-rate-limited", "paid")

# backends declared without a `kind` fall back to the one for their identifier
DEFAULT_KINDS = {
    "local": "ollama",
    "free-cloud": "huggingface",
    "fast-paid": "groq",
    "capable-paid": "openai",
}


@dataclass(frozen=True)
class BackendDescriptor:
    identifier: str
    kind: str
    default_model: str
    base_url: Optional[str]
    credential_env: Tuple[str, ...]
    cost_tier: str
    timeout_seconds: float
    probe_timeout_seconds: float
    temperature: float
    max_tokens: int

    def credential(self) -> Optional[str]:
        """First non-empty value among the referenced env vars."""
        for key in self.credential_env:
            value = os.getenv(key)
            if value and value.strip():
                return value.strip()
        return None


def build_descriptor(identifier: str, cfg: Dict[str, Any], llm_cfg: Dict[str, Any]) -> BackendDescriptor:
    model = str(cfg.get("model") or "").strip()
    if not model:
        raise ConfigurationError(f"backends.{identifier}.model is required")
    tier = str(cfg.get("cost_tier") or "paid")
    if tier not in COST_TIERS:
        raise ConfigurationError(
            f"backends.{identifier}.cost_tier '{tier}' is not one of {', '.join(COST_TIERS)}"
        )
    credential_env = cfg.get("credential_env") or ()
    if isinstance(credential_env, str):
        credential_env = (credential_env,)
    try:
        return BackendDescriptor(
            identifier=identifier,
            kind=str(cfg.get("kind") or DEFAULT_KINDS.get(identifier, "")),
            default_model=model,
            base_url=(str(cfg["base_url"]).rstrip("/") if cfg.get("base_url") else None),
            credential_env=tuple(str(k) for k in credential_env),
            cost_tier=tier,
            timeout_seconds=float(cfg.get("timeout_seconds", 60)),
            probe_timeout_seconds=float(cfg.get("probe_timeout_seconds", 5)),
            temperature=float(cfg.get("temperature", llm_cfg.get("temperature", 0.7))),
            max_tokens=int(cfg.get("max_tokens", llm_cfg.get("max_tokens", 1000))),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"backends.{identifier}: {exc}") from exc


def build_registry(settings: Dict[str, Any]) -> Dict[str, BackendDescriptor]:
    llm_cfg = settings.get("llm", {})
    return {
        identifier: build_descriptor(identifier, cfg or {}, llm_cfg)
        for identifier, cfg in settings.get("backends", {}).items()
    }


ADAPTER_TYPES: Dict[str, Callable[[BackendDescriptor], Any]] = {
    "ollama": OllamaProvider,
    "huggingface": HuggingFaceProvider,
    "groq": GroqProvider,
    "openai": OpenAIProvider,
}


def create_adapter(descriptor: BackendDescriptor):
    adapter_cls = ADAPTER_TYPES.get(descriptor.kind)
    if adapter_cls is None:
        raise ConfigurationError(
            f"Backend '{descriptor.identifier}' has unsupported kind '{descriptor.kind}'"
        )
    return adapter_cls(descriptor)
