from __future__ import annotations

import logging
import time
from typing import cast

import httpx

from ..schemas.contracts import ContractSubmission, ImageSubmission, OcrStatus, Provenance, Report
from .contract_provider import ContractProvider
from .provider_failures import FailureKind, ProviderFailure, raise_for_status
from .text_analysis_provider import build_report, report_fields_from_json, truncate_contract_text
from .vision_provider import decode_image, resolve_mime, split_data_url

logger = logging.getLogger(__name__)

TEXT_REVIEW_PATH = "/ai/review-contract"
IMAGE_REVIEW_PATH = "/ai/review-contract-image"


class HostedReportProvider(ContractProvider):
    """Primary analysis backend that already answers with a finished report."""

    def __init__(
        self,
        name: str,
        *,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 60.0,
        max_length: int = 25_000,
    ) -> None:
        self.name = str(name)
        self.base_url: str = str(base_url or "").strip()
        self.api_key: str = str(api_key or "").strip()
        self.timeout_seconds = float(timeout_seconds)
        self.max_length: int = int(max_length)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: dict[str, object]) -> dict[str, object]:
        if not self.base_url:
            raise ProviderFailure(FailureKind.AUTH_CONFIG, "hosted backend url is not configured")
        url = self.base_url.rstrip("/") + path

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            res = await client.post(url, headers=self._headers(), json=payload)
            raise_for_status(res)
            try:
                body = cast(object, res.json())
            except Exception as exc:
                raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, f"non-json body: {exc}") from exc

        if not isinstance(body, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "hosted reply is not an object")
        envelope = cast(dict[str, object], body)
        if envelope.get("success") is False:
            message = str(envelope.get("message") or envelope.get("error") or "hosted backend reported failure")
            raise ProviderFailure(FailureKind.UNKNOWN, message)
        data = envelope.get("data")
        if not isinstance(data, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "hosted reply has no data object")
        return cast(dict[str, object], data)

    async def analyze(self, submission: ContractSubmission) -> Report:
        started = time.perf_counter()

        if isinstance(submission, ImageSubmission):
            payload, data_url_mime = split_data_url(submission.base64)
            mime_type = resolve_mime(decode_image(payload), submission.mime_hint or data_url_mime)
            data = await self._post(IMAGE_REVIEW_PATH, {"image": f"data:{mime_type};base64,{payload}"})
            extracted = str(data.get("extractedText") or data.get("extracted_text") or "").strip()
            source_text = extracted
        else:
            source_text = str(submission.body or "")
            if not source_text.strip():
                raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "no contract text to analyze")
            data = await self._post(
                TEXT_REVIEW_PATH,
                {"contractText": truncate_contract_text(source_text, self.max_length)},
            )
            extracted = ""

        fields = report_fields_from_json(data)
        if fields is None:
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "hosted data has no report fields")

        report = build_report(fields, tier=self.name, source_text=source_text, started=started)
        if not isinstance(submission, ImageSubmission):
            return report

        status_raw = str(data.get("ocrStatus") or data.get("ocr_status") or "").strip().lower()
        ocr_status: OcrStatus = "complete" if extracted else "error"
        if status_raw in {"complete", "partial", "error"}:
            ocr_status = cast(OcrStatus, status_raw)
        logger.info("contract_hosted image_report provider=%s ocr_status=%s", self.name, ocr_status)
        return report.model_copy(
            update={
                "extracted_text": extracted or None,
                "ocr_status": ocr_status,
                "provenance": Provenance(tier=self.name, degraded=ocr_status != "complete"),
            }
        )
