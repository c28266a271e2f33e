from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..config import DEFAULT_LOCALE_KEYWORDS
from ..schemas.contracts import OcrStatus, Provenance, Report

logger = logging.getLogger(__name__)

HEURISTIC_TIER = "heuristic"
GENERIC_DOCUMENT_TYPE = "legal document"


@dataclass(frozen=True)
class DocumentProfile:
    document_type: str
    keywords: tuple[str, ...]
    summary: str
    risks: tuple[str, ...]
    clarifications: tuple[str, ...]
    best_practices: tuple[str, ...]
    final_advice: str


@dataclass(frozen=True)
class LocaleProfile:
    name: str
    keywords: tuple[str, ...]
    risk: str
    clarification: str
    best_practice: str
    advice_suffix: str


# Checked in order, first match wins: a lease often says "agreement" or
# "service" too, so the narrower vocabularies come first.
DOCUMENT_PROFILES: tuple[DocumentProfile, ...] = (
    DocumentProfile(
        document_type="employment agreement",
        keywords=("employment", "employee", "employer", "salary", "compensation"),
        summary="This appears to be an employment contract with standard legal provisions.",
        risks=(
            "Non-compete clause appears overly restrictive and may not be enforceable",
            "Termination provisions lack adequate notice periods",
            "Intellectual property rights assignment language is excessively broad",
            "Absence of clear performance evaluation criteria",
        ),
        clarifications=(
            "Specify working hours and overtime compensation policy",
            "Detail the exact scope of job responsibilities",
            "Clarify remote work policy and requirements",
            "Define procedure for performance reviews and potential raises",
        ),
        best_practices=(
            "Include comprehensive confidentiality provisions",
            "Specify employee benefits in detail including leave policy",
            "Add clear procedures for addressing workplace grievances",
            "Include training and professional development opportunities",
        ),
        final_advice=(
            "This employment contract requires revision to properly protect both employer and employee rights. "
            "Focus particularly on refining termination clauses, intellectual property provisions, "
            "and performance expectations."
        ),
    ),
    DocumentProfile(
        document_type="rental agreement",
        keywords=("rent", "lease", "tenant", "landlord", "premises"),
        summary="This appears to be a rental agreement with standard terms for residential property.",
        risks=(
            "The security deposit amount may exceed legal limits in some jurisdictions",
            "Maintenance responsibilities are not clearly defined between landlord and tenant",
            "No specific timeline for the return of security deposit",
            "Potential issues with eviction procedures that may not comply with local regulations",
        ),
        clarifications=(
            "Specify exact dates for rent payment and consequences of late payment",
            "Define who is responsible for specific maintenance tasks",
            "Clarify subletting permissions and restrictions",
            "Include details on utility payments responsibility",
        ),
        best_practices=(
            "Include a detailed inventory of fixtures and fittings with condition noted",
            "Clearly specify notice period required for termination by either party",
            "Add dispute resolution mechanisms such as mediation",
            "Include rules regarding property alterations and modifications",
        ),
        final_advice=(
            "This rental agreement requires additional clauses to offer adequate protection to both parties. "
            "Consider adding more specific terms regarding maintenance responsibilities, security deposit handling, "
            "and proper notice periods."
        ),
    ),
    DocumentProfile(
        document_type="non-disclosure agreement",
        keywords=("confidential", "disclosure", "proprietary", "non-disclosure"),
        summary="This appears to be a non-disclosure agreement for protecting confidential information.",
        risks=(
            "Definition of confidential information is excessively broad",
            "Duration of confidentiality obligations extends beyond reasonable limits",
            "Missing exclusions for information that becomes publicly available",
            "Inadequate provisions for handling forced disclosure due to legal proceedings",
        ),
        clarifications=(
            "Specify the process for returning or destroying confidential materials",
            "Define more precisely what constitutes permitted use of information",
            "Clarify notification requirements for compelled disclosure",
            "Specify whether information developed independently is excluded",
        ),
        best_practices=(
            "Include specific examples of what constitutes confidential information",
            "Add provisions addressing accidental disclosure",
            "Clearly specify jurisdiction and governing law",
            "Include a non-solicitation provision if appropriate",
        ),
        final_advice=(
            "This NDA requires revisions to balance adequate protection of confidential information with "
            "reasonable scope and duration limitations. Consider narrowing the definition of confidential "
            "information and adding proper exceptions."
        ),
    ),
    DocumentProfile(
        document_type="sale agreement",
        keywords=("sale", "purchase", "buyer", "seller"),
        summary="This appears to be a sale agreement for transfer of property or goods.",
        risks=(
            "Conditions precedent to closing are not clearly defined",
            "Warranty provisions are limited and may not provide adequate protection",
            "No clear remedies specified for potential breaches",
            "Insufficient clarity on which party bears transfer taxes and fees",
        ),
        clarifications=(
            "Specify exact payment terms and methods",
            "Clarify inspection rights and procedure before closing",
            "Define process for addressing defects discovered after transfer",
            "Specify exact items included/excluded from the sale",
        ),
        best_practices=(
            "Include detailed escrow instructions",
            "Add specific representations about the condition of the property/goods",
            "Include force majeure clause for unforeseen circumstances",
            "Specify record-keeping requirements for the transaction",
        ),
        final_advice=(
            "This sale agreement requires more detailed provisions regarding payment terms, inspection rights, "
            "and remedies for breach. Consider adding stronger warranty provisions and clearly defining "
            "closing conditions."
        ),
    ),
    DocumentProfile(
        document_type="service agreement",
        keywords=("service", "provider", "client", "scope"),
        summary="This appears to be a service agreement outlining the terms of service provision.",
        risks=(
            "Scope of services lacks specific deliverables and timelines",
            "Payment terms are ambiguous and could lead to disputes",
            "Termination rights are imbalanced between parties",
            "Liability limitations may be unenforceable under applicable law",
        ),
        clarifications=(
            "Define specific deliverables with measurable acceptance criteria",
            "Clarify payment schedule and conditions for payment",
            "Specify intellectual property ownership of work products",
            "Define process for requesting and approving changes to the services",
        ),
        best_practices=(
            "Include service level agreements with performance metrics",
            "Add detailed procedure for handling disputes",
            "Specify confidentiality obligations for client information",
            "Include insurance and indemnification requirements",
        ),
        final_advice=(
            "This service agreement would benefit from more precisely defined deliverables, clearer payment "
            "terms, and balanced termination provisions. Consider adding service level metrics and a structured "
            "change management process."
        ),
    ),
)

GENERIC_PROFILE = DocumentProfile(
    document_type=GENERIC_DOCUMENT_TYPE,
    keywords=(),
    summary="This appears to be a legal document with standard contractual provisions.",
    risks=(
        "Some terms may be vague or ambiguous",
        "Potential enforceability issues for overly broad provisions",
        "Unclear remedies in case of breach",
        "Jurisdiction and venue provisions may be absent",
    ),
    clarifications=(
        "Define key terms more precisely",
        "Clarify responsibilities of each party",
        "Specify dispute resolution procedures",
        "Outline consequences for non-compliance",
    ),
    best_practices=(
        "Include clear termination and notice provisions",
        "Add severability clause",
        "Specify governing law",
        "Include signature blocks for all parties",
    ),
    final_advice=(
        "This document would benefit from clearer language and more specific provisions tailored to the "
        "parties' intentions. Consider having it reviewed by a legal professional."
    ),
)


def india_locale(keywords: list[str] | tuple[str, ...] | None = None) -> LocaleProfile:
    kws = tuple(str(k).lower() for k in (keywords if keywords is not None else DEFAULT_LOCALE_KEYWORDS) if str(k).strip())
    return LocaleProfile(
        name="India",
        keywords=kws,
        risk="Some provisions may not comply with recent Indian legal developments",
        clarification="Consider specific state laws that may apply to this agreement in India",
        best_practice="Include clear jurisdiction clause specifying applicable Indian state law",
        advice_suffix=" Ensure compliance with local Indian regulations.",
    )


def detect_profile(text: str) -> DocumentProfile:
    lower = str(text or "").lower()
    for profile in DOCUMENT_PROFILES:
        if any(k in lower for k in profile.keywords):
            return profile
    return GENERIC_PROFILE


def detect_document_type(text: str) -> str:
    return detect_profile(text).document_type


class HeuristicClassifier:
    """Offline keyword classifier; the last tier of every chain."""

    def __init__(self, locale: LocaleProfile | None = None) -> None:
        self.locale: LocaleProfile | None = locale if locale is not None else india_locale()

    def _matches_locale(self, lower_text: str) -> bool:
        if self.locale is None:
            return False
        return any(k in lower_text for k in self.locale.keywords)

    def classify_and_report(
        self,
        raw_text: str,
        *,
        extracted_text: str | None = None,
        ocr_status: OcrStatus | None = None,
    ) -> Report:
        started = time.perf_counter()
        text = str(raw_text or "")
        lower = text.lower()
        profile = detect_profile(text)

        summary = profile.summary
        risks = list(profile.risks)
        clarifications = list(profile.clarifications)
        best_practices = list(profile.best_practices)
        final_advice = profile.final_advice

        if self.locale is not None and self._matches_locale(lower):
            summary = summary.replace(".", f" typically used in {self.locale.name}.", 1)
            risks.append(self.locale.risk)
            clarifications.append(self.locale.clarification)
            best_practices.append(self.locale.best_practice)
            final_advice = final_advice + self.locale.advice_suffix

        logger.debug(
            "heuristic_classifier classified document_type=%s text_chars=%s",
            profile.document_type,
            len(text),
        )

        return Report(
            summary=summary,
            risks=risks,
            clarifications=clarifications,
            best_practices=best_practices,
            final_advice=final_advice,
            document_type=profile.document_type,
            extracted_text=extracted_text,
            ocr_status=ocr_status,
            provenance=Provenance(tier=HEURISTIC_TIER, degraded=True),
            processing_time_ms=(time.perf_counter() - started) * 1000.0,
        )
