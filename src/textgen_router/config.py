"""Configuration loading and defaults."""

from __future__ import annotations

import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .llm.types import ConfigurationError

DEFAULT_SETTINGS: Dict[str, Any] = {
    "routing": {
        "order": ["local", "free-cloud", "fast-paid", "capable-paid"],
        "parallel_probe": False,
    },
    "llm": {
        "temperature": 0.7,
        "max_tokens": 1000,
    },
    "backends": {
        "local": {
            "kind": "ollama",
            "model": "llama3.2",
            "base_url": "http://localhost:11434",
            "credential_env": [],
            "cost_tier": "free-local",
            "timeout_seconds": 120,
            "probe_timeout_seconds": 3,
        },
        "free-cloud": {
            "kind": "huggingface",
            "model": "meta-llama/Llama-3.3-70B-Instruct",
            "base_url": "https://api-inference.huggingface.co/models",
            "credential_env": ["HUGGINGFACE_API_KEY", "HF_API_KEY"],
            "cost_tier": "free-rate-limited",
            "timeout_seconds": 90,
            "probe_timeout_seconds": 5,
        },
        "fast-paid": {
            "kind": "groq",
            "model": "llama-3.3-70b-versatile",
            "base_url": "https://api.groq.com/openai/v1",
            "credential_env": ["GROQ_API_KEY"],
            "cost_tier": "paid",
            "timeout_seconds": 30,
            "probe_timeout_seconds": 3,
        },
        "capable-paid": {
            "kind": "openai",
            "model": "gpt-4o-mini",
            "base_url": None,
            "credential_env": ["OPENAI_API_KEY"],
            "cost_tier": "paid",
            "timeout_seconds": 60,
            "probe_timeout_seconds": 5,
        },
    },
    "usage": {
        "tracker": "none",
    },
    "pricing": {
        "fast-paid:llama-3.3-70b-versatile": {"input_per_1k": 0.00059, "output_per_1k": 0.00079},
        "capable-paid:gpt-4o-mini": {"input_per_1k": 0.00015, "output_per_1k": 0.0006},
    },
}

# backend id -> prefix of its <PREFIX>_BASE_URL / <PREFIX>_MODEL env overrides
BACKEND_ENV_PREFIXES = {
    "local": "OLLAMA",
    "free-cloud": "HUGGINGFACE",
    "fast-paid": "GROQ",
    "capable-paid": "OPENAI",
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_order(value: Any) -> list[str]:
    """Parses a backend order from a list or a comma-separated string; first occurrence wins."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    order: list[str] = []
    for item in items:
        name = str(item).strip()
        if name and name not in order:
            order.append(name)
    return order


def _float_env(env: Mapping[str, str], key: str) -> float | None:
    raw = (env.get(key) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got '{raw}'") from exc


def _int_env(env: Mapping[str, str], key: str) -> int | None:
    raw = (env.get(key) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got '{raw}'") from exc


def apply_env_overrides(settings: Dict[str, Any], env: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Applies environment overrides on top of merged settings."""
    env = os.environ if env is None else env
    merged = deepcopy(settings)
    routing = merged.setdefault("routing", {})
    backends = merged.setdefault("backends", {})

    order_env = env.get("TEXTGEN_BACKEND_ORDER")
    if order_env and order_env.strip():
        routing["order"] = parse_order(order_env)

    active = (env.get("TEXTGEN_PROVIDER") or env.get("AI_PROVIDER") or "").strip()
    if active:
        if active not in backends:
            raise ConfigurationError(
                f"Unknown active provider '{active}'. Known: {', '.join(sorted(backends))}"
            )
        order = [b for b in parse_order(routing.get("order")) if b != active]
        routing["order"] = [active] + order

    llm_cfg = merged.setdefault("llm", {})
    temperature = _float_env(env, "TEXTGEN_TEMPERATURE")
    if temperature is not None:
        llm_cfg["temperature"] = temperature
    max_tokens = _int_env(env, "TEXTGEN_MAX_TOKENS")
    if max_tokens is not None:
        llm_cfg["max_tokens"] = max_tokens

    for backend_id, prefix in BACKEND_ENV_PREFIXES.items():
        backend_cfg = backends.get(backend_id)
        if backend_cfg is None:
            continue
        base_url = (env.get(f"{prefix}_BASE_URL") or "").strip()
        if base_url:
            backend_cfg["base_url"] = base_url
        model = (env.get(f"{prefix}_MODEL") or "").strip()
        if model:
            backend_cfg["model"] = model
    return merged


def load_settings(
    settings_path: str = "config/settings.yaml",
    env: Mapping[str, str] | None = None,
) -> Dict[str, Any]:
    """Loads settings.yaml, merges it onto defaults, then applies env overrides."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        if not isinstance(user_cfg, dict):
            raise ConfigurationError(f"{settings_path} must contain a mapping")
        merged = _deep_merge(merged, user_cfg)
    return apply_env_overrides(merged, env)
