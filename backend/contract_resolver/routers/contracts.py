"""合同分析API路由"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..schemas.contracts import ContractReviewEnvelope, Report, ReviewImageRequest, ReviewTextRequest
from ..services.ai_metrics import ai_metrics
from ..services.contract_resolution_service import ContractResolver, get_contract_resolver
from ..services.vision_provider import split_data_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["合同分析"])

ERROR_CONTRACT_BAD_REQUEST = "CONTRACT_BAD_REQUEST"


def _request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "") or "").strip() or uuid.uuid4().hex


def _make_error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    out_headers: dict[str, str] = {
        "X-Request-Id": str(request_id),
        "X-Error-Code": str(error_code),
    }
    if headers:
        for k, v in headers.items():
            out_headers[str(k)] = str(v)

    return JSONResponse(
        status_code=int(status_code),
        content={
            "error_code": str(error_code),
            "message": str(message),
            "detail": str(message),
            "request_id": str(request_id),
        },
        headers=out_headers,
    )


def _report_response(report: Report, request_id: str) -> JSONResponse:
    envelope = ContractReviewEnvelope(success=True, data=report)
    return JSONResponse(
        status_code=200,
        content=envelope.model_dump(mode="json", by_alias=True),
        headers={"X-Request-Id": request_id},
    )


@router.post("/review-text", response_model=ContractReviewEnvelope)
async def review_contract_text(
    request: Request,
    payload: ReviewTextRequest,
    resolver: Annotated[ContractResolver, Depends(get_contract_resolver)],
):
    """分析合同文本"""
    request_id = _request_id(request)
    text = str(payload.contract_text or "")
    if not text.strip():
        return _make_error_response(
            status_code=400,
            error_code=ERROR_CONTRACT_BAD_REQUEST,
            message="Contract text is required",
            request_id=request_id,
        )

    report = await resolver.resolve_text_submission(text)
    logger.info(
        "contract_review text request_id=%s chars=%s tier=%s degraded=%s",
        request_id,
        len(text),
        report.provenance.tier,
        report.provenance.degraded,
    )
    return _report_response(report, request_id)


@router.post("/review-image", response_model=ContractReviewEnvelope)
async def review_contract_image(
    request: Request,
    payload: ReviewImageRequest,
    resolver: Annotated[ContractResolver, Depends(get_contract_resolver)],
):
    """分析合同图片（base64 或 data URL）"""
    request_id = _request_id(request)
    raw = str(payload.image or "").strip()
    if not raw:
        return _make_error_response(
            status_code=400,
            error_code=ERROR_CONTRACT_BAD_REQUEST,
            message="Image data is required",
            request_id=request_id,
        )

    image_base64, mime_hint = split_data_url(raw)
    report = await resolver.resolve_image_submission(image_base64, mime_hint)
    logger.info(
        "contract_review image request_id=%s mime_hint=%s tier=%s ocr_status=%s degraded=%s",
        request_id,
        mime_hint or "-",
        report.provenance.tier,
        report.ocr_status,
        report.provenance.degraded,
    )
    return _report_response(report, request_id)


@router.get("/metrics")
async def contract_metrics():
    """供应商链运行指标"""
    return ai_metrics.snapshot()
