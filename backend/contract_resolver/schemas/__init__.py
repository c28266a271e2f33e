"""Pydantic模式"""
from .contracts import (
    ContractReviewEnvelope,
    ContractReviewErrorResponse,
    ContractSubmission,
    ImageSubmission,
    OcrStatus,
    Provenance,
    Report,
    ReviewImageRequest,
    ReviewTextRequest,
    TextSubmission,
)

__all__ = [
    "ContractReviewEnvelope",
    "ContractReviewErrorResponse",
    "ContractSubmission",
    "ImageSubmission",
    "OcrStatus",
    "Provenance",
    "Report",
    "ReviewImageRequest",
    "ReviewTextRequest",
    "TextSubmission",
]
