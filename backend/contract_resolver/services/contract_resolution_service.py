from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from functools import lru_cache

from ..config import get_settings
from ..schemas.contracts import (
    ContractSubmission,
    ImageSubmission,
    Provenance,
    Report,
    TextSubmission,
)
from .ai_metrics import ResolutionMetrics, ai_metrics
from .contract_provider import ContractProvider
from .heuristic_classifier import HEURISTIC_TIER, HeuristicClassifier, india_locale
from .provider_chain import build_image_chain, build_text_chain
from .provider_failures import ExtractionResult, FailureKind, ProviderFailure, classify_exception
from .vision_provider import OCR_FAILED_TEXT

logger = logging.getLogger(__name__)


class ContractResolver:
    """Try each provider of the submission's chain in order; the heuristic classifier answers last.

    ``resolve`` never raises: every provider failure is classified, logged and
    recorded, and an exhausted chain ends in a degraded heuristic report.
    """

    def __init__(
        self,
        text_chain: Sequence[ContractProvider],
        image_chain: Sequence[ContractProvider],
        *,
        classifier: HeuristicClassifier | None = None,
        metrics: ResolutionMetrics | None = None,
    ) -> None:
        self.text_chain: list[ContractProvider] = list(text_chain)
        self.image_chain: list[ContractProvider] = list(image_chain)
        self.classifier: HeuristicClassifier = classifier if classifier is not None else HeuristicClassifier()
        self.metrics: ResolutionMetrics = metrics if metrics is not None else ai_metrics

    def chain_for(self, submission: ContractSubmission) -> list[ContractProvider]:
        return self.image_chain if isinstance(submission, ImageSubmission) else self.text_chain

    async def _attempt(self, provider: ContractProvider, submission: ContractSubmission) -> Report:
        try:
            report = await asyncio.wait_for(provider.analyze(submission), timeout=float(provider.timeout_seconds))
        except Exception as exc:
            raise classify_exception(exc) from exc
        if not isinstance(report, Report) or not report.is_complete():
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "report failed validation")
        return report

    async def resolve(self, submission: ContractSubmission) -> Report:
        started = time.perf_counter()
        modality = submission.kind
        self.metrics.record_request(modality)

        salvage: ExtractionResult | None = None
        for provider in self.chain_for(submission):
            self.metrics.record_attempt(provider.name)
            try:
                report = await self._attempt(provider, submission)
            except ProviderFailure as failure:
                if failure.salvage is not None and failure.salvage.text.strip():
                    salvage = failure.salvage
                self.metrics.record_failure(
                    modality=modality,
                    tier=provider.name,
                    kind=failure.kind.value,
                    message=failure.message,
                )
                logger.info(
                    "contract_resolution provider_failed tier=%s kind=%s message=%s",
                    provider.name,
                    failure.kind.value,
                    failure.message[:300],
                    exc_info=failure.kind is FailureKind.UNKNOWN,
                )
                continue

            self.metrics.record_success(provider.name)
            elapsed = (time.perf_counter() - started) * 1000.0
            logger.info(
                "contract_resolution provider_succeeded tier=%s modality=%s degraded=%s elapsed_ms=%.1f",
                provider.name,
                modality,
                report.provenance.degraded,
                elapsed,
            )
            return report.model_copy(
                update={
                    "provenance": Provenance(tier=provider.name, degraded=bool(report.provenance.degraded)),
                    "processing_time_ms": elapsed,
                }
            )

        return self._fallback(submission, salvage, started)

    def _fallback(self, submission: ContractSubmission, salvage: ExtractionResult | None, started: float) -> Report:
        self.metrics.record_fallback()
        self.metrics.record_attempt(HEURISTIC_TIER)
        if isinstance(submission, ImageSubmission):
            if salvage is not None:
                report = self.classifier.classify_and_report(
                    salvage.text,
                    extracted_text=salvage.text,
                    ocr_status=salvage.status,
                )
            else:
                report = self.classifier.classify_and_report(
                    "",
                    extracted_text=OCR_FAILED_TEXT,
                    ocr_status="error",
                )
        else:
            report = self.classifier.classify_and_report(submission.body)
        self.metrics.record_success(HEURISTIC_TIER)

        elapsed = (time.perf_counter() - started) * 1000.0
        logger.warning(
            "contract_resolution fallback_to_heuristic modality=%s document_type=%s salvaged_ocr=%s elapsed_ms=%.1f",
            submission.kind,
            report.document_type,
            salvage is not None,
            elapsed,
        )
        return report.model_copy(update={"processing_time_ms": elapsed})

    async def resolve_text_submission(self, text: str) -> Report:
        return await self.resolve(TextSubmission(body=str(text or "")))

    async def resolve_image_submission(self, base64_image: str, mime_hint: str | None = None) -> Report:
        return await self.resolve(ImageSubmission(base64=str(base64_image or ""), mime_hint=mime_hint))


@lru_cache()
def get_contract_resolver() -> ContractResolver:
    settings = get_settings()
    return ContractResolver(
        build_text_chain(settings),
        build_image_chain(settings),
        classifier=HeuristicClassifier(india_locale(settings.contract_locale_keywords)),
        metrics=ai_metrics,
    )


async def resolve_text_submission(text: str) -> Report:
    return await get_contract_resolver().resolve_text_submission(text)


async def resolve_image_submission(base64_image: str, mime_hint: str | None = None) -> Report:
    return await get_contract_resolver().resolve_image_submission(base64_image, mime_hint)
