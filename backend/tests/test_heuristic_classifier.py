import pytest

from contract_resolver.services.heuristic_classifier import (
    GENERIC_DOCUMENT_TYPE,
    HEURISTIC_TIER,
    HeuristicClassifier,
    detect_document_type,
    india_locale,
)


RENTAL_RISKS = [
    "The security deposit amount may exceed legal limits in some jurisdictions",
    "Maintenance responsibilities are not clearly defined between landlord and tenant",
    "No specific timeline for the return of security deposit",
    "Potential issues with eviction procedures that may not comply with local regulations",
]

RENTAL_CLARIFICATIONS = [
    "Specify exact dates for rent payment and consequences of late payment",
    "Define who is responsible for specific maintenance tasks",
    "Clarify subletting permissions and restrictions",
    "Include details on utility payments responsibility",
]


def test_rental_keywords_give_canned_rental_report() -> None:
    text = "The tenant pays rent to the landlord every month."
    classifier = HeuristicClassifier()

    first = classifier.classify_and_report(text)
    second = classifier.classify_and_report(text)

    assert first.document_type == "rental agreement"
    assert first.risks == RENTAL_RISKS
    assert first.clarifications == RENTAL_CLARIFICATIONS
    assert first.provenance.tier == HEURISTIC_TIER
    assert first.provenance.degraded is True
    assert first.is_complete()
    assert first.model_dump(exclude={"processing_time_ms"}) == second.model_dump(exclude={"processing_time_ms"})


def test_locale_keyword_adds_one_item_per_list_and_advice_sentence() -> None:
    classifier = HeuristicClassifier()
    plain = classifier.classify_and_report("This lease covers a two bedroom flat.")
    local = classifier.classify_and_report("This lease covers a two bedroom flat in Mumbai.")

    assert plain.document_type == local.document_type == "rental agreement"
    assert len(local.risks) == len(plain.risks) + 1
    assert len(local.clarifications) == len(plain.clarifications) + 1
    assert len(local.best_practices) == len(plain.best_practices) + 1
    assert local.risks[-1] == "Some provisions may not comply with recent Indian legal developments"
    assert local.final_advice == plain.final_advice + " Ensure compliance with local Indian regulations."
    assert local.summary.endswith("typically used in India.")
    assert "typically used in India" not in plain.summary


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("The employee salary is paid by the employer and the tenant", "employment agreement"),
        ("The tenant shall keep the premises clean", "rental agreement"),
        ("All proprietary and confidential information", "non-disclosure agreement"),
        ("The buyer pays the seller on delivery", "sale agreement"),
        ("The service provider will deliver to the client", "service agreement"),
        ("Hello world", GENERIC_DOCUMENT_TYPE),
        ("", GENERIC_DOCUMENT_TYPE),
    ],
)
def test_detect_document_type_first_match_wins(text: str, expected: str) -> None:
    assert detect_document_type(text) == expected


def test_empty_text_still_gives_complete_report() -> None:
    report = HeuristicClassifier().classify_and_report("")
    assert report.document_type == GENERIC_DOCUMENT_TYPE
    assert report.summary
    assert report.final_advice
    assert report.risks
    assert report.is_complete()


def test_ocr_metadata_is_carried_through() -> None:
    report = HeuristicClassifier().classify_and_report(
        "rent", extracted_text="rent", ocr_status="partial"
    )
    assert report.extracted_text == "rent"
    assert report.ocr_status == "partial"


def test_custom_locale_keywords_and_no_locale() -> None:
    custom = HeuristicClassifier(india_locale(["pune"]))
    assert len(custom.classify_and_report("lease in Pune").risks) == 5
    assert len(custom.classify_and_report("lease in Mumbai").risks) == 4

    no_locale = HeuristicClassifier()
    no_locale.locale = None
    assert len(no_locale.classify_and_report("lease in Mumbai").risks) == 4

