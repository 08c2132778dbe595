from dataclasses import replace

import pytest
import requests

from textgen_router.config import DEFAULT_SETTINGS
from textgen_router.llm.providers.ollama_provider import ROLE_MARKERS, OllamaProvider, flatten_messages
from textgen_router.llm.types import BackendError, GenerationOptions, GenerationRequest, Message
from textgen_router.registry import build_registry

INVALID = object()


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is INVALID:
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def _provider():
    return OllamaProvider(build_registry(DEFAULT_SETTINGS)["local"])


def _unflatten(prompt):
    roles = {marker: role for role, marker in ROLE_MARKERS.items()}
    blocks = prompt.rstrip("\n").split("\n\n")
    assert blocks[-1] == ROLE_MARKERS["assistant"]
    pairs = []
    for block in blocks[:-1]:
        marker, content = block.split("\n", 1)
        pairs.append((roles[marker], content))
    return pairs


def test_flattened_prompt_preserves_message_order():
    messages = (
        Message("system", "You are a cinema trivia assistant"),
        Message("user", "Name one 1950s Telugu classic"),
        Message("assistant", "Mayabazar (1957)"),
        Message("user", "Who directed it?"),
    )

    assert _unflatten(flatten_messages(messages)) == [(m.role, m.content) for m in messages]


def test_generate_posts_flattened_prompt(monkeypatch):
    captured = {}

    def fake_post(url, json, timeout):
        captured.update(url=url, payload=json, timeout=timeout)
        return DummyResponse(
            payload={"response": " Mayabazar (1957) ", "prompt_eval_count": 12, "eval_count": 6, "done_reason": "stop"}
        )

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.post", fake_post)

    request = GenerationRequest(
        messages=(Message("system", "s"), Message("user", "u")),
        options=GenerationOptions(max_tokens=64),
    )
    result = _provider().generate(request)

    assert captured["url"] == "http://localhost:11434/api/generate"
    assert captured["timeout"] == 120
    assert captured["payload"]["model"] == "llama3.2"
    assert captured["payload"]["stream"] is False
    assert captured["payload"]["options"] == {"temperature": 0.7, "num_predict": 64}
    assert "format" not in captured["payload"]
    assert _unflatten(captured["payload"]["prompt"]) == [("system", "s"), ("user", "u")]
    assert result.content == "Mayabazar (1957)"
    assert result.provider == "local"
    assert result.model == "llama3.2"
    assert result.tokens_used == 18
    assert result.latency_ms >= 0


def test_json_mode_requests_json_format(monkeypatch):
    captured = {}

    def fake_post(url, json, timeout):
        captured["payload"] = json
        return DummyResponse(payload={"response": "{}"})

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.post", fake_post)

    request = GenerationRequest(messages=(Message("user", "u"),), options=GenerationOptions(json_mode=True))
    result = _provider().generate(request)

    assert captured["payload"]["format"] == "json"
    assert result.tokens_used is None


def test_set_model_changes_requested_model(monkeypatch):
    captured = {}

    def fake_post(url, json, timeout):
        captured["model"] = json["model"]
        return DummyResponse(payload={"response": "ok"})

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.post", fake_post)

    provider = _provider()
    provider.set_model("qwen2.5:7b")
    result = provider.generate(GenerationRequest(messages=(Message("user", "u"),)))

    assert captured["model"] == "qwen2.5:7b"
    assert result.model == "qwen2.5:7b"
    with pytest.raises(ValueError):
        provider.set_model(" ")


@pytest.mark.parametrize(
    "response",
    [
        DummyResponse(status_code=500, payload={"error": "model crashed"}),
        DummyResponse(status_code=200, payload=INVALID, text="<html>"),
        DummyResponse(status_code=200, payload={"done": True}),
    ],
)
def test_bad_responses_raise_backend_error(monkeypatch, response):
    monkeypatch.setattr(
        "textgen_router.llm.providers.ollama_provider.requests.post",
        lambda url, json, timeout: response,
    )

    with pytest.raises(BackendError) as excinfo:
        _provider().generate(GenerationRequest(messages=(Message("user", "u"),)))

    assert excinfo.value.backend == "local"


def test_http_error_keeps_status_and_message(monkeypatch):
    monkeypatch.setattr(
        "textgen_router.llm.providers.ollama_provider.requests.post",
        lambda url, json, timeout: DummyResponse(status_code=404, payload={"error": "model 'x' not found"}),
    )

    with pytest.raises(BackendError) as excinfo:
        _provider().generate(GenerationRequest(messages=(Message("user", "u"),)))

    assert excinfo.value.status_code == 404
    assert "not found" in str(excinfo.value)


def test_connection_error_raises_backend_error(monkeypatch):
    def fake_post(url, json, timeout):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.post", fake_post)

    with pytest.raises(BackendError):
        _provider().generate(GenerationRequest(messages=(Message("user", "u"),)))


def test_probe_requires_installed_model(monkeypatch):
    seen = {}

    def fake_get(url, timeout):
        seen.update(url=url, timeout=timeout)
        return DummyResponse(payload={"models": [{"name": "llama3.2:latest"}, {"name": "qwen2.5:7b"}]})

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.get", fake_get)

    provider = _provider()
    assert provider.is_available() is True
    assert seen == {"url": "http://localhost:11434/api/tags", "timeout": 3}

    provider.set_model("mistral")
    assert provider.is_available() is False


def test_probe_and_discovery_never_raise(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.get", fake_get)

    provider = _provider()
    assert provider.is_available() is False
    assert provider.get_models() == []


def test_get_models_lists_installed_names(monkeypatch):
    monkeypatch.setattr(
        "textgen_router.llm.providers.ollama_provider.requests.get",
        lambda url, timeout: DummyResponse(payload={"models": [{"name": "llama3.2:latest"}, {"size": 1}]}),
    )

    assert _provider().get_models() == ["llama3.2:latest"]


def test_base_url_override(monkeypatch):
    descriptor = replace(build_registry(DEFAULT_SETTINGS)["local"], base_url="http://gpu-box:11434")
    captured = {}

    def fake_post(url, json, timeout):
        captured["url"] = url
        return DummyResponse(payload={"response": "ok"})

    monkeypatch.setattr("textgen_router.llm.providers.ollama_provider.requests.post", fake_post)
    OllamaProvider(descriptor).generate(GenerationRequest(messages=(Message("user", "u"),)))

    assert captured["url"] == "http://gpu-box:11434/api/generate"
