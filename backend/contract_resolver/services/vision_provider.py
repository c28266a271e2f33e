from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time

from ..schemas.contracts import ContractSubmission, ImageSubmission, Provenance, Report
from .contract_provider import ContractProvider, ImageReader
from .provider_failures import ExtractionResult, FailureKind, ProviderFailure, classify_exception
from .text_analysis_provider import TextAnalysisProvider

logger = logging.getLogger(__name__)

DEFAULT_OCR_MIN_CHARS = 10
DEFAULT_IMAGE_MIME = "image/jpeg"
ANALYSIS_MARGIN_SECONDS = 0.05

OCR_PROMPT = (
    "Extract all the text from this image of a legal document.\n"
    "Return ONLY the extracted text, formatted as it appears in the document.\n"
    "Do not include any analysis, commentary, or additional text."
)

OCR_FAILED_TEXT = (
    "Failed to extract text from the image. Please try again with a clearer image or use text input instead."
)


def split_data_url(value: str) -> tuple[str, str | None]:
    """``data:image/png;base64,xxx`` -> (``xxx``, ``image/png``); raw base64 passes through."""
    raw = str(value or "").strip()
    if raw.lower().startswith("data:") and "," in raw:
        header, payload = raw.split(",", 1)
        mime = header[5:].split(";", 1)[0].strip().lower()
        return payload.strip(), (mime or None)
    return raw, None


def decode_image(image_base64: str) -> bytes:
    compact = "".join(str(image_base64 or "").split())
    if not compact:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "empty image payload")
    try:
        data = base64.b64decode(compact + "=" * (-len(compact) % 4), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, f"image is not valid base64: {exc}") from exc
    if not data:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "empty image payload")
    return data


def sniff_mime(data: bytes) -> str | None:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def resolve_mime(data: bytes, mime_hint: str | None = None) -> str:
    hint = str(mime_hint or "").strip().lower()
    if hint.startswith("image/"):
        return hint
    return sniff_mime(data) or DEFAULT_IMAGE_MIME


def ocr_failure_report(tier: str, *, started: float | None = None) -> Report:
    elapsed = (time.perf_counter() - started) * 1000.0 if started is not None else 0.0
    return Report(
        summary="Unable to analyze the contract image",
        risks=["Text extraction failed - unable to analyze the document"],
        clarifications=["Please try uploading a clearer image or use text input instead"],
        best_practices=[
            "Ensure the document is well-lit and clearly visible in the image",
            "Try using a higher resolution image",
            "Consider using text input for better results",
        ],
        final_advice=(
            "We couldn't extract sufficient text from your image to provide a proper analysis. "
            "Please try again with a clearer image or use the text input option."
        ),
        document_type=None,
        extracted_text=OCR_FAILED_TEXT,
        ocr_status="error",
        provenance=Provenance(tier=str(tier), degraded=True),
        processing_time_ms=elapsed,
    )


class ImageTextExtractor:
    def __init__(self, read_image: ImageReader, *, min_chars: int = DEFAULT_OCR_MIN_CHARS) -> None:
        self.read_image: ImageReader = read_image
        self.min_chars: int = max(1, int(min_chars))

    async def extract_text(self, image_base64: str, mime_type: str) -> ExtractionResult:
        raw = await self.read_image(image_base64, mime_type, OCR_PROMPT)
        text = str(raw or "").strip()
        if not text:
            return ExtractionResult(text="", status="error")
        if len(text) < self.min_chars:
            return ExtractionResult(text=text, status="partial")
        return ExtractionResult(text=text, status="complete")


class VisionAnalysisProvider(ContractProvider):
    """OCR the image, then hand the text to a text analysis provider."""

    def __init__(
        self,
        name: str,
        extractor: ImageTextExtractor,
        analyzer: TextAnalysisProvider,
        *,
        timeout_seconds: float = 120.0,
    ) -> None:
        self.name = str(name)
        self.extractor: ImageTextExtractor = extractor
        self.analyzer: TextAnalysisProvider = analyzer
        self.timeout_seconds = float(timeout_seconds)

    async def analyze(self, submission: ContractSubmission) -> Report:
        if not isinstance(submission, ImageSubmission):
            return await self.analyzer.analyze_text(submission.body)
        return await self.analyze_image(submission.base64, submission.mime_hint)

    async def analyze_image(self, image_base64: str, mime_hint: str | None = None) -> Report:
        started = time.perf_counter()
        payload, data_url_mime = split_data_url(image_base64)
        data = decode_image(payload)
        mime_type = resolve_mime(data, mime_hint or data_url_mime)

        extraction = await self.extractor.extract_text(payload, mime_type)
        logger.info(
            "contract_ocr extracted provider=%s status=%s chars=%s mime=%s",
            self.name,
            extraction.status,
            len(extraction.text),
            mime_type,
        )
        if extraction.status == "error":
            return ocr_failure_report(self.name, started=started)

        # The OCR text survives an analysis failure so the resolver can still use it.
        # Analysis has to end inside this provider's own timeout for that to hold.
        remaining = self.timeout_seconds - (time.perf_counter() - started)
        margin = max(ANALYSIS_MARGIN_SECONDS, self.timeout_seconds * 0.05)
        budget = min(self.analyzer.timeout_seconds, remaining - margin)
        if budget <= 0:
            raise ProviderFailure(
                FailureKind.TIMEOUT,
                f"{self.name} has no time left for analysis after OCR",
                salvage=extraction,
            )
        try:
            report = await asyncio.wait_for(
                self.analyzer.analyze_text(extraction.text),
                timeout=budget,
            )
        except Exception as exc:
            raise classify_exception(exc).with_salvage(extraction) from exc

        return report.model_copy(
            update={
                "extracted_text": extraction.text,
                "ocr_status": extraction.status,
                "provenance": Provenance(tier=self.name, degraded=extraction.status == "partial"),
                "processing_time_ms": (time.perf_counter() - started) * 1000.0,
            }
        )
