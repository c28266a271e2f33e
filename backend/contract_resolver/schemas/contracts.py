from __future__ import annotations

from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


OcrStatus = Literal["complete", "partial", "error"]


class TextSubmission(BaseModel):
    kind: Literal["text"] = "text"
    body: str = ""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class ImageSubmission(BaseModel):
    kind: Literal["image"] = "image"
    base64: str = ""
    mime_hint: str | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


ContractSubmission = Annotated[Union[TextSubmission, ImageSubmission], Field(discriminator="kind")]


class _CamelModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Provenance(_CamelModel):
    tier: str = Field(..., description="产出报告的供应商标识")
    degraded: bool = Field(False, description="是否为降级结果")


class Report(_CamelModel):
    summary: str
    risks: list[str] = Field(default_factory=list)
    clarifications: list[str] = Field(default_factory=list)
    best_practices: list[str] = Field(default_factory=list)
    final_advice: str
    document_type: str | None = None
    extracted_text: str | None = None
    ocr_status: OcrStatus | None = None
    provenance: Provenance
    processing_time_ms: float = 0.0

    def is_complete(self) -> bool:
        if not self.summary.strip() or not self.final_advice.strip():
            return False
        for items in (self.risks, self.clarifications, self.best_practices):
            if any(not str(x).strip() for x in items):
                return False
        return True


class ReviewTextRequest(_CamelModel):
    contract_text: str | None = None


class ReviewImageRequest(_CamelModel):
    image: str | None = None


class ContractReviewEnvelope(_CamelModel):
    success: bool = True
    data: Report


class ContractReviewErrorResponse(BaseModel):
    error_code: str
    message: str
    request_id: str
