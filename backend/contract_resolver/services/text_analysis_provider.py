from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, cast

from ..schemas.contracts import ContractSubmission, ImageSubmission, Provenance, Report
from .contract_provider import ContractProvider, TextGenerator
from .heuristic_classifier import detect_document_type
from .provider_failures import FailureKind, ProviderFailure
from .section_extractor import first_array_items, first_section

logger = logging.getLogger(__name__)

DEFAULT_MAX_TEXT_LENGTH = 25_000
TRUNCATION_MARKER = "... [text truncated due to length]"

SUMMARY_PLACEHOLDER = "Analysis of the provided contract"
RISKS_PLACEHOLDER = ["No specific risks identified"]
CLARIFICATIONS_PLACEHOLDER = ["No specific clarifications needed"]
BEST_PRACTICES_PLACEHOLDER = ["Follow standard legal practices"]
FINAL_ADVICE_PLACEHOLDER = "Please consult with a licensed attorney for a complete legal assessment"

SUMMARY_HEADINGS = ["document summary", "summary"]
RISKS_HEADINGS = ["potential risks", "risks"]
CLARIFICATIONS_HEADINGS = ["clarifications needed", "clarifications"]
BEST_PRACTICES_HEADINGS = ["best practices"]
FINAL_ADVICE_HEADINGS = ["final advice", "recommendation"]

_REPORT_KEYS = ("summary", "risks", "clarifications", "bestPractices", "best_practices", "finalAdvice", "final_advice")
_ITEM_TEXT_KEYS = ("risk", "clarification", "practice", "description", "text", "issue", "question", "recommendation", "title")

_JSON_BLOCK_RE = re.compile(r"```json\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def truncate_contract_text(text: str, max_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    t = str(text or "")
    limit = max(1, int(max_length))
    if len(t) <= limit:
        return t
    return t[:limit] + TRUNCATION_MARKER


def build_review_prompt(text: str, max_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    trimmed = truncate_contract_text(text, max_length)
    return (
        "As an expert in Indian contract law, please review the following contract text:\n\n"
        f"```\n{trimmed}\n```\n\n"
        "Provide a comprehensive analysis including:\n"
        "1. Document Summary: A brief overview of what this contract is about\n"
        "2. Potential Risks: Identify any clauses that could be problematic or risky for either party\n"
        "3. Clarifications Needed: Areas that are ambiguous or need further clarification\n"
        "4. Best Practices: Suggestions for improving the contract based on Indian legal standards\n"
        "5. Final Advice: Overall recommendation and key points to consider\n\n"
        "Format your response as a structured JSON with the following keys:\n"
        "- summary (string)\n"
        "- risks (array of strings)\n"
        "- clarifications (array of strings)\n"
        "- bestPractices (array of strings)\n"
        "- finalAdvice (string)\n"
        "- documentType (string, e.g. \"rental agreement\", optional)\n\n"
        "Ensure your response is valid JSON that can be parsed."
    )


def _extract_json(text: str) -> dict[str, Any] | None:
    raw = str(text or "").strip()
    if not raw:
        return None

    m = _JSON_BLOCK_RE.search(raw)
    if m:
        candidate = m.group(1)
        try:
            obj = json.loads(candidate)
            return obj if isinstance(obj, dict) else None
        except Exception:
            pass

    candidate = raw
    if candidate.startswith("```"):
        candidate = candidate.strip("`\n ")

    left = candidate.find("{")
    right = candidate.rfind("}")
    if left >= 0 and right > left:
        candidate2 = candidate[left : right + 1]
        try:
            obj = json.loads(candidate2)
            return obj if isinstance(obj, dict) else None
        except Exception:
            return None

    return None


def _clean_str(value: object) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _item_text(item: object) -> str:
    if isinstance(item, (str, int, float)) and not isinstance(item, bool):
        return str(item).strip()
    if isinstance(item, dict):
        d = cast(dict[str, object], item)
        for key in _ITEM_TEXT_KEYS:
            s = _clean_str(d.get(key))
            if s:
                return s
        for v in d.values():
            s = _clean_str(v)
            if s:
                return s
    return ""


def _clean_list(value: object) -> list[str] | None:
    """None 表示需要占位文本；显式的空列表原样保留。"""
    if isinstance(value, str):
        s = value.strip()
        return [s] if s else None
    if not isinstance(value, list):
        return None
    items = cast(list[object], value)
    out = [s for s in (_item_text(item) for item in items) if s]
    if items and not out:
        return None
    return out


def report_fields_from_json(obj: dict[str, Any]) -> dict[str, Any] | None:
    """结构化回复 -> 报告字段；没有任何报告字段时返回 None。"""
    if not any(k in obj for k in _REPORT_KEYS):
        return None

    risks = _clean_list(obj.get("risks"))
    clarifications = _clean_list(obj.get("clarifications"))
    best_practices = _clean_list(obj.get("bestPractices", obj.get("best_practices")))

    return {
        "summary": _clean_str(obj.get("summary")) or SUMMARY_PLACEHOLDER,
        "risks": risks if risks is not None else list(RISKS_PLACEHOLDER),
        "clarifications": clarifications if clarifications is not None else list(CLARIFICATIONS_PLACEHOLDER),
        "best_practices": best_practices if best_practices is not None else list(BEST_PRACTICES_PLACEHOLDER),
        "final_advice": _clean_str(obj.get("finalAdvice", obj.get("final_advice"))) or FINAL_ADVICE_PLACEHOLDER,
        "document_type": _clean_str(obj.get("documentType", obj.get("document_type"))) or None,
    }


def report_fields_from_prose(text: str) -> dict[str, Any] | None:
    """自然语言回复 -> 报告字段；一个标题都找不到时返回 None。"""
    summary = first_section(text, SUMMARY_HEADINGS)
    risks = first_array_items(text, RISKS_HEADINGS)
    clarifications = first_array_items(text, CLARIFICATIONS_HEADINGS)
    best_practices = first_array_items(text, BEST_PRACTICES_HEADINGS)
    final_advice = first_section(text, FINAL_ADVICE_HEADINGS)

    if all(x is None for x in (summary, risks, clarifications, best_practices, final_advice)):
        return None

    return {
        "summary": summary or SUMMARY_PLACEHOLDER,
        "risks": risks or list(RISKS_PLACEHOLDER),
        "clarifications": clarifications or list(CLARIFICATIONS_PLACEHOLDER),
        "best_practices": best_practices or list(BEST_PRACTICES_PLACEHOLDER),
        "final_advice": final_advice or FINAL_ADVICE_PLACEHOLDER,
        "document_type": None,
    }


def parse_review_reply(reply: str) -> dict[str, Any]:
    raw = str(reply or "").strip()
    if not raw:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "empty reply")

    obj = _extract_json(raw)
    if obj is not None:
        fields = report_fields_from_json(obj)
        if fields is not None:
            return fields

    logger.info("contract_analysis json_parse_failed, using section extraction chars=%s", len(raw))
    fields = report_fields_from_prose(raw)
    if fields is None:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "reply has neither json nor report sections")
    return fields


def build_report(
    fields: dict[str, Any],
    *,
    tier: str,
    source_text: str,
    degraded: bool = False,
    started: float | None = None,
) -> Report:
    document_type = str(fields.get("document_type") or "").strip() or detect_document_type(source_text)
    elapsed = (time.perf_counter() - started) * 1000.0 if started is not None else 0.0
    return Report(
        summary=str(fields.get("summary") or SUMMARY_PLACEHOLDER),
        risks=list(fields.get("risks") or []),
        clarifications=list(fields.get("clarifications") or []),
        best_practices=list(fields.get("best_practices") or []),
        final_advice=str(fields.get("final_advice") or FINAL_ADVICE_PLACEHOLDER),
        document_type=document_type,
        provenance=Provenance(tier=str(tier), degraded=bool(degraded)),
        processing_time_ms=elapsed,
    )


class TextAnalysisProvider(ContractProvider):
    """Prompt a text model for a review and normalize whatever it answers."""

    def __init__(
        self,
        name: str,
        generate: TextGenerator,
        *,
        max_length: int = DEFAULT_MAX_TEXT_LENGTH,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.name = str(name)
        self.generate: TextGenerator = generate
        self.max_length: int = int(max_length)
        self.timeout_seconds = float(timeout_seconds)

    async def analyze(self, submission: ContractSubmission) -> Report:
        if isinstance(submission, ImageSubmission):
            raise ProviderFailure(FailureKind.AUTH_CONFIG, f"{self.name} cannot analyze images")
        return await self.analyze_text(submission.body)

    async def analyze_text(self, text: str, max_length: int | None = None) -> Report:
        started = time.perf_counter()
        body = str(text or "")
        if not body.strip():
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "no contract text to analyze")

        limit = int(max_length) if max_length is not None else self.max_length
        prompt = build_review_prompt(body, limit)
        reply = await self.generate(prompt)
        fields = parse_review_reply(reply)

        logger.info(
            "contract_analysis parsed provider=%s reply_chars=%s risks=%s",
            self.name,
            len(str(reply or "")),
            len(fields.get("risks") or []),
        )
        return build_report(fields, tier=self.name, source_text=body, started=started)
