import asyncio
import logging

import httpx
import pytest

from conftest import RENTAL_TEXT, StubProvider, make_report

from contract_resolver.schemas.contracts import ImageSubmission, Provenance, TextSubmission
from contract_resolver.services.ai_metrics import ResolutionMetrics
from contract_resolver.services.provider_failures import ExtractionResult, FailureKind, ProviderFailure
from contract_resolver.services.text_analysis_provider import TextAnalysisProvider
from contract_resolver.services.vision_provider import OCR_FAILED_TEXT, ImageTextExtractor, VisionAnalysisProvider


@pytest.mark.asyncio
async def test_falls_through_to_first_successful_provider(make_resolver, metrics: ResolutionMetrics) -> None:
    p1 = StubProvider("hosted", error=ProviderFailure(FailureKind.NETWORK_UNREACHABLE, "down"))
    p2 = StubProvider("gemini", error=httpx.ConnectError("refused"))
    p3 = StubProvider("huggingface", report=make_report("whatever"))
    resolver = make_resolver(text_chain=[p1, p2, p3])

    report = await resolver.resolve(TextSubmission(body="The service provider bills monthly."))

    assert report.provenance.tier == "huggingface"
    assert report.provenance.degraded is False
    assert report.summary == "A short services contract."
    assert len(p1.calls) == 1
    assert len(p2.calls) == 1
    assert len(p3.calls) == 1

    snap = metrics.snapshot()
    assert snap["failures_total"] == 2
    assert snap["fallbacks_total"] == 0
    assert snap["requests_by_modality"] == {"text": 1}


@pytest.mark.asyncio
async def test_later_providers_are_not_called_after_success(make_resolver) -> None:
    p1 = StubProvider("hosted", report=make_report())
    p2 = StubProvider("gemini", report=make_report())
    resolver = make_resolver(text_chain=[p1, p2])

    report = await resolver.resolve_text_submission("anything")

    assert report.provenance.tier == "hosted"
    assert p2.calls == []


@pytest.mark.asyncio
async def test_all_failing_providers_end_in_heuristic(make_resolver, metrics: ResolutionMetrics, caplog) -> None:
    chain = [
        StubProvider("a", error=ProviderFailure(FailureKind.AUTH_CONFIG, "no key")),
        StubProvider("b", error=RuntimeError("kaboom")),
    ]
    resolver = make_resolver(text_chain=chain)

    with caplog.at_level(logging.INFO):
        report = await resolver.resolve(TextSubmission(body=RENTAL_TEXT))

    assert report.provenance.tier == "heuristic"
    assert report.provenance.degraded is True
    assert report.document_type == "rental agreement"
    assert report.is_complete()
    assert "provider_failed tier=a kind=auth_config" in caplog.text
    assert "provider_failed tier=b kind=unknown" in caplog.text
    assert "fallback_to_heuristic" in caplog.text

    snap = metrics.snapshot()
    assert snap["fallbacks_total"] == 1
    kinds = {row["kind"] for row in snap["top_failure_kinds"]}
    assert kinds == {"auth_config", "unknown"}


@pytest.mark.asyncio
async def test_slow_provider_times_out_and_chain_continues(make_resolver, metrics: ResolutionMetrics) -> None:
    slow = StubProvider("slow", report=make_report(), delay=5.0, timeout_seconds=0.05)
    fast = StubProvider("fast", report=make_report())
    resolver = make_resolver(text_chain=[slow, fast])

    report = await resolver.resolve_text_submission("text")

    assert report.provenance.tier == "fast"
    recent = metrics.snapshot()["recent_failures"]
    assert recent[0]["tier"] == "slow"
    assert recent[0]["kind"] == "timeout"


@pytest.mark.asyncio
async def test_incomplete_report_is_treated_as_malformed(make_resolver, metrics: ResolutionMetrics) -> None:
    broken = StubProvider("broken", report=make_report(summary="   "))
    good = StubProvider("good", report=make_report())
    resolver = make_resolver(text_chain=[broken, good])

    report = await resolver.resolve_text_submission("text")

    assert report.provenance.tier == "good"
    assert metrics.snapshot()["recent_failures"][0]["kind"] == "malformed_response"


@pytest.mark.asyncio
async def test_partial_success_keeps_degraded_flag(make_resolver) -> None:
    partial = make_report(
        provenance=Provenance(tier="x", degraded=True), extracted_text="Lease", ocr_status="partial"
    )
    resolver = make_resolver(image_chain=[StubProvider("gemini_vision", report=partial)])

    report = await resolver.resolve_image_submission("aGVsbG8=")

    assert report.provenance.tier == "gemini_vision"
    assert report.provenance.degraded is True
    assert report.ocr_status == "partial"


@pytest.mark.asyncio
async def test_image_chain_exhausted_uses_salvaged_ocr_text(make_resolver) -> None:
    salvage = ExtractionResult(text=RENTAL_TEXT, status="complete")
    chain = [
        StubProvider("v1", error=ProviderFailure(FailureKind.TIMEOUT, "late", salvage=salvage)),
        StubProvider("v2", error=ProviderFailure(FailureKind.AUTH_CONFIG, "no key")),
    ]
    resolver = make_resolver(image_chain=chain)

    report = await resolver.resolve(ImageSubmission(base64="aGVsbG8="))

    assert report.provenance.tier == "heuristic"
    assert report.document_type == "rental agreement"
    assert report.extracted_text == RENTAL_TEXT
    assert report.ocr_status == "complete"


@pytest.mark.asyncio
async def test_image_chain_exhausted_without_ocr_text(make_resolver) -> None:
    resolver = make_resolver(image_chain=[StubProvider("v1", error=ProviderFailure(FailureKind.TIMEOUT))])

    report = await resolver.resolve(ImageSubmission(base64="aGVsbG8="))

    assert report.provenance.degraded is True
    assert report.ocr_status == "error"
    assert report.extracted_text == OCR_FAILED_TEXT
    assert report.document_type == "legal document"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["", "rent " * 20_000, "\x00\x01 binary junk"])
async def test_text_resolution_is_total(make_resolver, body: str) -> None:
    failing = StubProvider("a", error=ValueError("bad"))
    report = await make_resolver(text_chain=[failing]).resolve_text_submission(body)
    assert report.is_complete()
    assert report.summary and report.final_advice


@pytest.mark.asyncio
@pytest.mark.parametrize("image", ["", "not base64!!", "data:image/png;base64,@@@"])
async def test_image_resolution_is_total_with_empty_chain(make_resolver, image: str) -> None:
    report = await make_resolver().resolve_image_submission(image)
    assert report.provenance.tier == "heuristic"
    assert report.is_complete()


@pytest.mark.asyncio
async def test_processing_time_covers_whole_resolution(make_resolver) -> None:
    slow_fail = StubProvider("a", error=ProviderFailure(FailureKind.UNKNOWN, "x"), delay=0.05)
    ok = StubProvider("b", report=make_report(processing_time_ms=0.0))

    report = await make_resolver(text_chain=[slow_fail, ok]).resolve_text_submission("text")

    assert report.processing_time_ms >= 20.0


@pytest.mark.asyncio
async def test_undecodable_image_skips_remote_ocr(make_resolver, metrics: ResolutionMetrics) -> None:
    calls: list[str] = []

    async def _reader(image_base64: str, mime_type: str, prompt: str) -> str:
        calls.append(mime_type)
        return "never used"

    async def _model(prompt: str) -> str:
        return "{}"

    vision = VisionAnalysisProvider(
        "gemini_vision",
        ImageTextExtractor(_reader),
        TextAnalysisProvider("gemini_vision:text", _model),
    )
    report = await make_resolver(image_chain=[vision]).resolve_image_submission("not base64!!")

    assert calls == []
    assert report.provenance.tier == "heuristic"
    assert metrics.snapshot()["recent_failures"][0]["kind"] == "malformed_response"


@pytest.mark.asyncio
async def test_backup_vision_timeout_keeps_ocr_text(make_resolver) -> None:
    async def _reader(image_base64: str, mime_type: str, prompt: str) -> str:
        return RENTAL_TEXT

    async def _slow_model(prompt: str) -> str:
        await asyncio.sleep(2.0)
        return "{}"

    vision = VisionAnalysisProvider(
        "openai_vision",
        ImageTextExtractor(_reader),
        TextAnalysisProvider("openai_vision:text", _slow_model, timeout_seconds=60.0),
        timeout_seconds=0.5,
    )
    report = await make_resolver(image_chain=[vision]).resolve_image_submission("aGVsbG8=")

    assert report.provenance.tier == "heuristic"
    assert report.extracted_text == RENTAL_TEXT
    assert report.ocr_status == "complete"
    assert report.document_type == "rental agreement"


@pytest.mark.asyncio
async def test_module_level_entry_points_use_shared_resolver(monkeypatch, make_resolver) -> None:
    import contract_resolver.services.contract_resolution_service as mod

    hosted = StubProvider("hosted", report=make_report())
    resolver = make_resolver(text_chain=[hosted])
    monkeypatch.setattr(mod, "get_contract_resolver", lambda: resolver, raising=True)

    text_report = await mod.resolve_text_submission("The service provider bills monthly.")
    image_report = await mod.resolve_image_submission("aGVsbG8=", "image/png")

    assert text_report.provenance.tier == "hosted"
    assert image_report.provenance.tier == "heuristic"


def test_get_contract_resolver_builds_from_settings(monkeypatch) -> None:
    import contract_resolver.services.contract_resolution_service as mod
    from contract_resolver.config import Settings

    settings = Settings(
        hosted_backend_url="https://backend.example.com/api",
        openai_api_key="",
        gemini_api_key="",
        huggingface_api_key="",
        contract_text_providers_json="",
        contract_image_providers_json="",
        contract_locale_keywords="pune",
    )
    monkeypatch.setattr(mod, "get_settings", lambda: settings, raising=True)
    mod.get_contract_resolver.cache_clear()
    try:
        resolver = mod.get_contract_resolver()
        assert [p.name for p in resolver.text_chain] == ["hosted"]
        assert [p.name for p in resolver.image_chain] == ["hosted"]
        assert resolver.classifier.locale is not None
        assert resolver.classifier.locale.keywords == ("pune",)
    finally:
        mod.get_contract_resolver.cache_clear()
