from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from autodiag.diagnosis.currency import convert_usd_to_inr
from autodiag.diagnosis.errors import DiagnosisParseError, DiagnosisValidationError
from autodiag.diagnosis.schema import SEVERITY_LEVELS, DiagnosisResult, EstimatedCost


# Greedy on purpose: first "{" through the last "}" so nested objects survive.
_JSON_OBJ_RE = re.compile(r"\{.*\}", re.DOTALL)

REQUIRED_FIELDS = ("problem", "solution", "severity", "estimatedCost")

_DECODER = json.JSONDecoder()


def extract_json_object(text: str) -> Optional[str]:
    """
    Attempts to extract the first brace-delimited span from a model output.
    """
    if not text:
        return None
    m = _JSON_OBJ_RE.search(text)
    return m.group(0) if m else None


def _scan_for_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Decode from each "{" in turn and return the first JSON object found.
    Covers prose after the object that itself contains braces.
    """
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = _DECODER.raw_decode(text, idx)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None


def extract_and_parse_json(text: str) -> Dict[str, Any]:
    """
    Parse model output as a JSON object.

    Direct parsing is tried first; models that wrap the object in prose or
    markdown fences fall back to the brace-delimited span, then to decoding
    from each "{" until one yields an object.
    """
    if not text or not isinstance(text, str):
        raise DiagnosisParseError("Empty model output")

    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError:
        raw = extract_json_object(text)
        if raw is None:
            raise DiagnosisParseError("No JSON object found in model output")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            data = _scan_for_object(text)
            if data is None:
                raise DiagnosisParseError(f"Failed to parse response as JSON: {e}") from e

    if not isinstance(data, dict):
        raise DiagnosisParseError("Model output JSON is not an object")
    return data


def _normalize_severity(raw: Any) -> str:
    severity = str(raw).strip().lower()
    if severity not in SEVERITY_LEVELS:
        raise DiagnosisValidationError(
            f"Invalid severity {raw!r}; expected one of: {', '.join(SEVERITY_LEVELS)}"
        )
    return severity


def _normalize_cost(raw: Any, *, usd_to_inr_rate: float) -> EstimatedCost:
    if isinstance(raw, dict):
        usd = raw.get("usd")
        if not usd:
            raise DiagnosisValidationError("estimatedCost object is missing 'usd'")
        inr = raw.get("inr") or convert_usd_to_inr(str(usd), usd_to_inr_rate)
        return EstimatedCost(usd=str(usd), inr=str(inr))

    usd = str(raw).strip()
    return EstimatedCost(usd=usd, inr=convert_usd_to_inr(usd, usd_to_inr_rate))


def _normalize_notes(data: Dict[str, Any]) -> Optional[str]:
    notes = data.get("additionalNotes")
    notes = str(notes).strip() if notes else ""

    # video prompt asks for a separate audioAnalysis key
    audio = data.get("audioAnalysis")
    audio = str(audio).strip() if audio else ""

    if audio:
        return f"{audio}\n\n{notes}".strip()
    return notes or None


def normalize_diagnosis(data: Dict[str, Any], *, usd_to_inr_rate: float = 83.0) -> DiagnosisResult:
    missing = [k for k in REQUIRED_FIELDS if not data.get(k)]
    if missing:
        raise DiagnosisValidationError(
            f"Invalid response format: missing required fields: {', '.join(missing)}"
        )

    try:
        return DiagnosisResult(
            problem=str(data["problem"]).strip(),
            solution=str(data["solution"]).strip(),
            severity=_normalize_severity(data["severity"]),
            estimated_cost=_normalize_cost(data["estimatedCost"], usd_to_inr_rate=usd_to_inr_rate),
            additional_notes=_normalize_notes(data),
        )
    except ValidationError as e:
        raise DiagnosisValidationError(f"JSON does not match schema: {e}") from e


def parse_diagnosis(text: str, *, usd_to_inr_rate: float = 83.0) -> DiagnosisResult:
    return normalize_diagnosis(extract_and_parse_json(text), usd_to_inr_rate=usd_to_inr_rate)
