import json

import pytest

from contract_resolver.config import Settings
from contract_resolver.services.hosted_provider import HostedReportProvider
from contract_resolver.services.provider_chain import (
    build_image_chain,
    build_text_chain,
    order_provider_specs,
    parse_provider_specs,
)
from contract_resolver.services.text_analysis_provider import TextAnalysisProvider
from contract_resolver.services.vision_provider import VisionAnalysisProvider


def _settings(**overrides) -> Settings:
    base: dict[str, object] = {
        "hosted_backend_url": "",
        "openai_api_key": "",
        "gemini_api_key": "",
        "huggingface_api_key": "",
        "contract_text_providers_json": "",
        "contract_image_providers_json": "",
    }
    base.update(overrides)
    return Settings(**base)


def test_no_credentials_gives_empty_chains() -> None:
    s = _settings()
    assert build_text_chain(s) == []
    assert build_image_chain(s) == []


def test_default_text_chain_order_and_timeouts() -> None:
    s = _settings(
        hosted_backend_url="https://backend.example.com/api",
        openai_api_key="ok",
        gemini_api_key="gk",
        huggingface_api_key="hk",
    )

    chain = build_text_chain(s)

    assert [p.name for p in chain] == ["hosted", "gemini", "openai", "huggingface"]
    assert isinstance(chain[0], HostedReportProvider)
    assert all(isinstance(p, TextAnalysisProvider) for p in chain[1:])
    assert chain[0].timeout_seconds == 60.0
    assert [p.timeout_seconds for p in chain[1:]] == [10.0, 10.0, 10.0]


def test_default_image_chain_uses_vision_providers() -> None:
    s = _settings(gemini_api_key="gk", openai_api_key="ok", huggingface_api_key="hk")

    chain = build_image_chain(s)

    assert [p.name for p in chain] == ["gemini_vision", "openai_vision"]
    assert all(isinstance(p, VisionAnalysisProvider) for p in chain)
    assert chain[0].timeout_seconds == 120.0
    assert chain[1].timeout_seconds == 10.0
    first = chain[0]
    assert isinstance(first, VisionAnalysisProvider)
    assert first.analyzer.timeout_seconds == 60.0
    assert first.extractor.min_chars == 10


def test_json_chain_is_ordered_by_priority_and_filled_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEEPSEEK_API_KEY", "dk")
    monkeypatch.setenv("DEEPSEEK_BASE_URL", "https://api.deepseek.example/v1")
    monkeypatch.delenv("UNUSED_API_KEY", raising=False)
    providers = [
        {"name": "deepseek", "kind": "openai", "model": "deepseek-chat", "priority": 2},
        {"name": "gemini", "api_key": "gk", "priority": "1", "timeout_seconds": 30},
        {"name": "unused", "kind": "openai", "base_url": "https://x.example"},
        {"name": "weird", "kind": "carrier_pigeon", "api_key": "x", "base_url": "https://x.example"},
        "not an object",
    ]
    s = _settings(contract_text_providers_json=json.dumps(providers))

    chain = build_text_chain(s)

    assert [p.name for p in chain] == ["gemini", "deepseek"]
    assert chain[0].timeout_seconds == 30.0
    assert chain[1].timeout_seconds == 10.0


def test_parse_provider_specs_header_auth_and_kind_inference(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "az")
    raw = json.dumps(
        [
            {
                "name": "azure-openai",
                "base_url": "https://res.openai.azure.com/openai",
                "model": "gpt4",
                "chat_completions_path": "/deployments/gpt4/chat/completions?api-version=2024-02-01",
            }
        ]
    )
    specs = parse_provider_specs(raw, _settings(), "image")

    assert len(specs) == 1
    spec = specs[0]
    assert spec["kind"] == "openai_vision"
    assert spec["api_key"] == "az"
    assert spec["auth_type"] == "header"
    assert spec["auth_header_name"] == "api-key"


def test_invalid_json_falls_back_to_default_chain() -> None:
    s = _settings(contract_text_providers_json="{not json", gemini_api_key="gk")
    assert [p.name for p in build_text_chain(s)] == ["gemini"]


def test_huggingface_is_not_a_vision_kind() -> None:
    raw = json.dumps([{"name": "hf", "kind": "huggingface", "api_key": "hk", "model": "m"}])
    assert parse_provider_specs(raw, _settings(), "image") == []


def test_order_provider_specs_is_stable() -> None:
    specs = [{"name": "a"}, {"name": "b", "priority": 5}, {"name": "c"}, {"name": "d", "priority": 5}]
    assert [p["name"] for p in order_provider_specs(specs)] == ["b", "d", "a", "c"]
