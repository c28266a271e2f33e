from __future__ import annotations

import json
import logging
import os
import re
from typing import Literal, TypedDict, cast

from ..config import Settings
from .contract_provider import ContractProvider
from .hosted_provider import HostedReportProvider
from .llm_clients import GeminiClient, HuggingFaceClient, OpenAICompatibleClient
from .text_analysis_provider import TextAnalysisProvider
from .vision_provider import ImageTextExtractor, VisionAnalysisProvider

logger = logging.getLogger(__name__)

Modality = Literal["text", "image"]

TEXT_KINDS = {"hosted", "gemini", "openai", "huggingface"}
IMAGE_KINDS = {"hosted", "gemini_vision", "openai_vision"}


class ProviderSpec(TypedDict, total=False):
    name: str
    kind: str
    base_url: str
    api_key: str
    model: str
    text_model: str
    timeout_seconds: float
    priority: int
    auth_type: Literal["bearer", "header"]
    auth_header_name: str
    auth_prefix: str
    chat_completions_path: str
    response_format: str


def _provider_token(name: str) -> str:
    s = re.sub(r"[^A-Za-z0-9]+", "_", str(name or "").strip()).strip("_")
    return s.upper() if s else ""


def _env_str(var_name: str) -> str:
    return str(os.getenv(var_name, "") or "").strip()


def _normalize_kind(kind: str, name: str, modality: Modality) -> str:
    k = str(kind or "").strip().lower()
    if not k:
        token = _provider_token(name).lower()
        for candidate in ("hosted", "gemini", "huggingface", "openai"):
            if candidate in token:
                k = candidate
                break
        else:
            k = "openai"
    if modality == "image":
        if k in {"gemini", "openai"}:
            k = f"{k}_vision"
    elif k.endswith("_vision"):
        k = k[: -len("_vision")]
    return k


def _vendor_defaults(settings: Settings, kind: str) -> tuple[str, str, str]:
    if kind == "hosted":
        return str(settings.hosted_backend_url or ""), "", ""
    if kind == "gemini":
        return settings.gemini_base_url, settings.gemini_api_key, settings.gemini_model
    if kind == "gemini_vision":
        return settings.gemini_base_url, settings.gemini_api_key, settings.gemini_vision_model
    if kind == "openai":
        return settings.openai_base_url, settings.openai_api_key, settings.ai_model
    if kind == "openai_vision":
        return settings.openai_base_url, settings.openai_api_key, settings.ai_vision_model
    if kind == "huggingface":
        return settings.huggingface_base_url, settings.huggingface_api_key, settings.huggingface_model
    return "", "", ""


def _usable(spec: ProviderSpec) -> bool:
    kind = spec.get("kind", "")
    if kind == "hosted":
        return bool(spec.get("base_url"))
    return bool(spec.get("base_url")) and bool(spec.get("api_key")) and bool(spec.get("model"))


def parse_provider_specs(raw_json: str, settings: Settings, modality: Modality) -> list[ProviderSpec]:
    """解析供应商 JSON 配置；缺失的地址/密钥/模型依次从 ``<NAME>_*`` 环境变量和默认配置补全。"""
    raw = str(raw_json or "").strip()
    if not raw:
        return []
    try:
        obj: object = cast(object, json.loads(raw))
    except Exception:
        logger.warning("contract_chain providers_json_invalid modality=%s", modality)
        return []
    if not isinstance(obj, list):
        logger.warning("contract_chain providers_json_not_list modality=%s", modality)
        return []

    allowed = TEXT_KINDS if modality == "text" else IMAGE_KINDS
    specs: list[ProviderSpec] = []
    for item_obj in cast(list[object], obj):
        if not isinstance(item_obj, dict):
            continue
        d = {str(k): v for k, v in cast(dict[object, object], item_obj).items()}
        name_raw = str(d.get("name", "") or "").strip()
        kind = _normalize_kind(str(d.get("kind", "") or ""), name_raw, modality)
        if kind not in allowed:
            logger.warning("contract_chain unknown_kind name=%s kind=%s modality=%s", name_raw, kind, modality)
            continue

        token = _provider_token(name_raw or kind)
        default_base, default_key, default_model = _vendor_defaults(settings, kind)

        p: ProviderSpec = {
            "name": name_raw or kind,
            "kind": kind,
            "base_url": str(d.get("base_url", "") or "").strip() or _env_str(f"{token}_BASE_URL") or default_base,
            "api_key": str(d.get("api_key", "") or "").strip() or _env_str(f"{token}_API_KEY") or default_key,
            "model": str(d.get("model", "") or "").strip() or _env_str(f"{token}_MODEL") or default_model,
        }

        text_model = str(d.get("text_model", "") or "").strip()
        if text_model:
            p["text_model"] = text_model

        timeout_raw = d.get("timeout_seconds")
        if isinstance(timeout_raw, (int, float)) and not isinstance(timeout_raw, bool) and float(timeout_raw) > 0:
            p["timeout_seconds"] = float(timeout_raw)
        elif isinstance(timeout_raw, str):
            try:
                t = float(timeout_raw.strip())
                if t > 0:
                    p["timeout_seconds"] = t
            except ValueError:
                pass

        priority_raw = d.get("priority")
        if isinstance(priority_raw, int) and not isinstance(priority_raw, bool):
            p["priority"] = int(priority_raw)
        elif isinstance(priority_raw, str):
            s = priority_raw.strip()
            if s and re.fullmatch(r"-?\d+", s):
                p["priority"] = int(s)

        rf = str(d.get("response_format", "") or "").strip()
        if rf:
            p["response_format"] = rf

        auth_type = str(d.get("auth_type", "") or "").strip().lower()
        if (not auth_type) and token.startswith("AZURE"):
            auth_type = "header"
        if auth_type in {"bearer", "header"}:
            p["auth_type"] = cast(Literal["bearer", "header"], auth_type)
        auth_header_name = str(d.get("auth_header_name", "") or "").strip()
        if (not auth_header_name) and auth_type == "header":
            auth_header_name = "api-key"
        if auth_header_name:
            p["auth_header_name"] = auth_header_name
        auth_prefix = str(d.get("auth_prefix", "") or "")
        if auth_prefix:
            p["auth_prefix"] = auth_prefix

        chat_path = str(d.get("chat_completions_path", "") or "").strip()
        if chat_path:
            p["chat_completions_path"] = chat_path

        if not _usable(p):
            logger.info("contract_chain skip_unconfigured name=%s kind=%s", p.get("name"), kind)
            continue
        specs.append(p)
    return specs


def order_provider_specs(specs: list[ProviderSpec]) -> list[ProviderSpec]:
    if not specs:
        return []
    indexed = list(enumerate(specs))

    def _key(x: tuple[int, ProviderSpec]) -> tuple[int, int]:
        idx, p = x
        pr = p.get("priority")
        if isinstance(pr, int):
            return (int(pr), int(idx))
        return (1_000_000_000, int(idx))

    return [p for _, p in sorted(indexed, key=_key)]


def default_provider_specs(settings: Settings, modality: Modality) -> list[ProviderSpec]:
    if modality == "text":
        kinds = ["hosted", "gemini", "openai", "huggingface"]
    else:
        kinds = ["hosted", "gemini_vision", "openai_vision"]

    specs: list[ProviderSpec] = []
    for kind in kinds:
        base_url, api_key, model = _vendor_defaults(settings, kind)
        p: ProviderSpec = {
            "name": kind,
            "kind": kind,
            "base_url": str(base_url or "").strip(),
            "api_key": str(api_key or "").strip(),
            "model": str(model or "").strip(),
        }
        if _usable(p):
            specs.append(p)
    return specs


def _openai_client(spec: ProviderSpec, *, model: str, timeout_seconds: float) -> OpenAICompatibleClient:
    auth_header_name: str | None = None
    auth_prefix: str | None = None
    if spec.get("auth_type") == "header" or spec.get("auth_header_name"):
        auth_header_name = str(spec.get("auth_header_name") or "api-key")
        auth_prefix = str(spec.get("auth_prefix", "") or "")
    return OpenAICompatibleClient(
        base_url=spec.get("base_url", ""),
        api_key=spec.get("api_key", ""),
        model=model,
        timeout_seconds=timeout_seconds,
        auth_header_name=auth_header_name,
        auth_prefix=auth_prefix,
        chat_completions_path=spec.get("chat_completions_path"),
        response_format=spec.get("response_format"),
    )


def build_provider(spec: ProviderSpec, settings: Settings, *, timeout_seconds: float) -> ContractProvider | None:
    kind = spec.get("kind", "")
    name = spec.get("name", kind)
    max_length = int(settings.contract_max_text_length)
    text_timeout = float(settings.contract_text_timeout_seconds)

    if kind == "hosted":
        return HostedReportProvider(
            name,
            base_url=spec.get("base_url", ""),
            api_key=spec.get("api_key", ""),
            timeout_seconds=timeout_seconds,
            max_length=max_length,
        )

    if kind == "gemini":
        client = GeminiClient(
            base_url=spec.get("base_url", ""),
            api_key=spec.get("api_key", ""),
            model=spec.get("model", ""),
            timeout_seconds=timeout_seconds,
        )
        return TextAnalysisProvider(name, client.generate, max_length=max_length, timeout_seconds=timeout_seconds)

    if kind == "openai":
        client_o = _openai_client(spec, model=spec.get("model", ""), timeout_seconds=timeout_seconds)
        return TextAnalysisProvider(name, client_o.generate, max_length=max_length, timeout_seconds=timeout_seconds)

    if kind == "huggingface":
        client_h = HuggingFaceClient(
            base_url=spec.get("base_url", ""),
            api_key=spec.get("api_key", ""),
            model=spec.get("model", ""),
            timeout_seconds=timeout_seconds,
        )
        return TextAnalysisProvider(name, client_h.generate, max_length=max_length, timeout_seconds=timeout_seconds)

    if kind == "gemini_vision":
        reader = GeminiClient(
            base_url=spec.get("base_url", ""),
            api_key=spec.get("api_key", ""),
            model=spec.get("model", ""),
            timeout_seconds=timeout_seconds,
        )
        writer = GeminiClient(
            base_url=spec.get("base_url", ""),
            api_key=spec.get("api_key", ""),
            model=spec.get("text_model") or settings.gemini_model,
            timeout_seconds=text_timeout,
        )
        return VisionAnalysisProvider(
            name,
            ImageTextExtractor(reader.read_image, min_chars=settings.contract_ocr_min_chars),
            TextAnalysisProvider(f"{name}:text", writer.generate, max_length=max_length, timeout_seconds=text_timeout),
            timeout_seconds=timeout_seconds,
        )

    if kind == "openai_vision":
        reader_o = _openai_client(spec, model=spec.get("model", ""), timeout_seconds=timeout_seconds)
        writer_o = _openai_client(spec, model=spec.get("text_model") or settings.ai_model, timeout_seconds=text_timeout)
        return VisionAnalysisProvider(
            name,
            ImageTextExtractor(reader_o.read_image, min_chars=settings.contract_ocr_min_chars),
            TextAnalysisProvider(f"{name}:text", writer_o.generate, max_length=max_length, timeout_seconds=text_timeout),
            timeout_seconds=timeout_seconds,
        )

    logger.warning("contract_chain unknown_kind name=%s kind=%s", name, kind)
    return None


def _build_chain(settings: Settings, modality: Modality) -> list[ContractProvider]:
    raw_json = settings.contract_text_providers_json if modality == "text" else settings.contract_image_providers_json
    specs = parse_provider_specs(raw_json, settings, modality)
    if not specs:
        specs = default_provider_specs(settings, modality)
    ordered = order_provider_specs(specs)

    first_timeout = float(
        settings.contract_text_timeout_seconds if modality == "text" else settings.contract_image_timeout_seconds
    )
    backup_timeout = float(settings.contract_backup_timeout_seconds)

    chain: list[ContractProvider] = []
    for spec in ordered:
        explicit = spec.get("timeout_seconds")
        if explicit is not None:
            timeout = float(explicit)
        else:
            timeout = first_timeout if not chain else backup_timeout
        provider = build_provider(spec, settings, timeout_seconds=timeout)
        if provider is not None:
            chain.append(provider)

    logger.info(
        "contract_chain built modality=%s providers=%s",
        modality,
        ",".join(f"{p.name}:{p.timeout_seconds:g}s" for p in chain) or "-",
    )
    return chain


def build_text_chain(settings: Settings) -> list[ContractProvider]:
    return _build_chain(settings, "text")


def build_image_chain(settings: Settings) -> list[ContractProvider]:
    return _build_chain(settings, "image")
