import json

import pytest

from autodiag.diagnosis.errors import DiagnosisParseError, DiagnosisValidationError
from autodiag.diagnosis.parsing import (
    extract_and_parse_json,
    extract_json_object,
    normalize_diagnosis,
    parse_diagnosis,
)


def _valid_payload(**overrides):
    payload = {
        "problem": "Random/Multiple Cylinder Misfire Detected",
        "solution": "1. Check spark plugs\n2. Inspect ignition coils",
        "severity": "high",
        "estimatedCost": "$150-$1000",
        "additionalNotes": "Address immediately",
    }
    payload.update(overrides)
    return payload


def test_direct_json_is_parsed():
    data = extract_and_parse_json(json.dumps(_valid_payload()))
    assert data["problem"].startswith("Random")


def test_fallback_recovers_object_embedded_in_prose():
    text = "Sure! Here is the diagnosis you asked for:\n" + json.dumps(_valid_payload()) + "\nLet me know."
    data = extract_and_parse_json(text)
    assert data["severity"] == "high"


def test_fallback_recovers_object_inside_markdown_fence():
    text = "```json\n" + json.dumps(_valid_payload(), indent=2) + "\n```"
    data = extract_and_parse_json(text)
    assert data["estimatedCost"] == "$150-$1000"


def test_fallback_keeps_nested_objects():
    payload = _valid_payload(estimatedCost={"usd": "$100-$200"})
    data = extract_and_parse_json("prefix " + json.dumps(payload) + " suffix")
    assert data["estimatedCost"] == {"usd": "$100-$200"}


def test_fallback_recovers_object_when_trailing_prose_has_braces():
    text = (
        "Result: " + json.dumps(_valid_payload())
        + " (tip: wrap codes like {P0300} when searching)"
    )
    data = extract_and_parse_json(text)
    assert data["problem"] == "Random/Multiple Cylinder Misfire Detected"


def test_fallback_skips_leading_non_json_braces():
    text = "Checked {P0300} first. " + json.dumps(_valid_payload(severity="low"))
    data = extract_and_parse_json(text)
    assert data["severity"] == "low"


def test_text_without_braces_raises_parse_error():
    with pytest.raises(DiagnosisParseError):
        extract_and_parse_json("The car looks fine to me.")


def test_invalid_json_between_braces_raises_parse_error():
    with pytest.raises(DiagnosisParseError):
        extract_and_parse_json("result: {problem: unquoted, severity: high}")


@pytest.mark.parametrize("text", ["", None])
def test_empty_output_raises_parse_error(text):
    with pytest.raises(DiagnosisParseError):
        extract_and_parse_json(text)


def test_json_array_is_not_an_object():
    with pytest.raises(DiagnosisParseError):
        extract_and_parse_json('[{"problem": "x"}]')


def test_extract_json_object_returns_none_without_braces():
    assert extract_json_object("no json here") is None
    assert extract_json_object("") is None


@pytest.mark.parametrize("missing", ["problem", "solution", "severity", "estimatedCost"])
def test_missing_mandatory_field_is_rejected(missing):
    payload = _valid_payload()
    del payload[missing]

    with pytest.raises(DiagnosisValidationError) as e:
        normalize_diagnosis(payload)
    assert missing in str(e.value)


def test_empty_mandatory_field_is_rejected():
    with pytest.raises(DiagnosisValidationError):
        normalize_diagnosis(_valid_payload(solution=""))


def test_whitespace_only_problem_is_rejected():
    with pytest.raises(DiagnosisValidationError):
        normalize_diagnosis(_valid_payload(problem="   "))


@pytest.mark.parametrize("raw,expected", [("HIGH", "high"), ("Medium", "medium"), (" low ", "low")])
def test_severity_is_case_insensitive(raw, expected):
    result = normalize_diagnosis(_valid_payload(severity=raw))
    assert result.severity == expected


def test_unknown_severity_is_rejected():
    with pytest.raises(DiagnosisValidationError):
        normalize_diagnosis(_valid_payload(severity="critical"))


def test_string_cost_is_converted_to_usd_and_inr():
    result = normalize_diagnosis(_valid_payload(estimatedCost="$100-$300"), usd_to_inr_rate=83)
    assert result.estimated_cost.usd == "$100-$300"
    assert result.estimated_cost.inr == "₹8,300-₹24,900"


def test_cost_object_keeps_provided_inr():
    result = normalize_diagnosis(_valid_payload(estimatedCost={"usd": "$100", "inr": "₹9,000"}))
    assert result.estimated_cost.usd == "$100"
    assert result.estimated_cost.inr == "₹9,000"


def test_cost_object_without_usd_is_rejected():
    with pytest.raises(DiagnosisValidationError):
        normalize_diagnosis(_valid_payload(estimatedCost={"inr": "₹9,000"}))


def test_missing_notes_become_none():
    payload = _valid_payload()
    del payload["additionalNotes"]
    assert normalize_diagnosis(payload).additional_notes is None
    assert normalize_diagnosis(_valid_payload(additionalNotes="")).additional_notes is None


def test_audio_analysis_is_prepended_to_notes():
    result = normalize_diagnosis(
        _valid_payload(additionalNotes="Check belts", audioAnalysis="Squealing at idle")
    )
    assert result.additional_notes == "Squealing at idle\n\nCheck belts"


def test_parse_diagnosis_end_to_end_serializes_with_camel_case_aliases():
    text = "Diagnosis:\n" + json.dumps(_valid_payload(severity="HIGH"))
    result = parse_diagnosis(text, usd_to_inr_rate=83)

    dumped = result.model_dump(by_alias=True)
    assert dumped["severity"] == "high"
    assert dumped["estimatedCost"] == {"usd": "$150-$1000", "inr": "₹12,450-₹83,000"}
    assert dumped["additionalNotes"] == "Address immediately"
