"""
Domain errors and the static error classifier.

Every failure on the diagnosis path ends up as one user-facing message. The
classifier is a static lookup keyed on the HTTP status code or on substrings of
the provider error message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from autodiag.llm.client import GenerationInvalidResponse, GenerationTimeout


class DiagnosisError(Exception):
    """Base class for diagnosis failures raised by this package."""


class DiagnosisParseError(DiagnosisError):
    """The model output did not contain a parseable JSON object."""


class DiagnosisValidationError(DiagnosisError):
    """The JSON object is missing mandatory fields or has invalid values."""


class InvalidInputError(DiagnosisError):
    """User input was rejected before any API call was made."""


@dataclass(frozen=True)
class ClassifiedError:
    category: str
    status_code: int
    code: str
    message: str


@dataclass(frozen=True)
class _Rule:
    category: str
    status_code: int
    message: str
    statuses: Tuple[int, ...] = ()
    needles: Tuple[str, ...] = ()


# Order matters: quota is checked before rate limiting because providers
# report exhausted quota with a 429 as well.
_RULES: Tuple[_Rule, ...] = (
    _Rule(
        category="invalid_api_key",
        status_code=502,
        message="Invalid API key. Please check your API key configuration.",
        statuses=(401, 403),
        needles=("api key not valid", "invalid api key", "incorrect api key", "api_key_invalid"),
    ),
    _Rule(
        category="quota_exceeded",
        status_code=502,
        message="API quota exceeded. Please check your billing details or quota limits.",
        needles=("insufficient_quota", "quota exceeded", "resource_exhausted", "exceeded your current quota"),
    ),
    _Rule(
        category="rate_limited",
        status_code=503,
        message="Too many requests. Please try again in a few moments.",
        statuses=(429,),
        needles=("rate limit", "too many requests"),
    ),
    _Rule(
        category="timeout",
        status_code=504,
        message="Request timed out. Please check your internet connection.",
        needles=("timed out", "timeout"),
    ),
    _Rule(
        category="network",
        status_code=502,
        message="Network error. Please check your internet connection.",
        needles=("network", "connection refused", "connection reset", "name or service not known"),
    ),
)

_INVALID_RESPONSE_MESSAGE = "The diagnosis service returned an unexpected response. Please try again."
_UNKNOWN_MESSAGE = "An error occurred while communicating with the diagnosis service."


def _signals(exc: BaseException) -> Tuple[Optional[int], str]:
    status = getattr(exc, "status_code", None)
    if status is None:
        # google-genai APIError carries the HTTP status as .code
        code_attr = getattr(exc, "code", None)
        status = code_attr if isinstance(code_attr, int) else None

    parts = [str(exc)]
    provider_code = getattr(exc, "provider_code", None)
    if provider_code:
        parts.append(str(provider_code))
    return status, " ".join(parts).lower()


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (TimeoutError, GenerationTimeout, httpx.TimeoutException))


def _is_network(exc: BaseException) -> bool:
    return isinstance(exc, (ConnectionError, httpx.TransportError))


def classify_error(exc: BaseException) -> ClassifiedError:
    if isinstance(exc, InvalidInputError):
        return ClassifiedError("invalid_input", 400, "invalid_parameters", str(exc))

    if isinstance(exc, (DiagnosisParseError, DiagnosisValidationError, GenerationInvalidResponse)):
        return ClassifiedError("invalid_response", 502, "invalid_response", _INVALID_RESPONSE_MESSAGE)

    if _is_timeout(exc):
        rule = next(r for r in _RULES if r.category == "timeout")
        return ClassifiedError(rule.category, rule.status_code, rule.category, rule.message)

    status, text = _signals(exc)

    for rule in _RULES:
        if any(n in text for n in rule.needles):
            return ClassifiedError(rule.category, rule.status_code, rule.category, rule.message)
        if status is not None and status in rule.statuses:
            return ClassifiedError(rule.category, rule.status_code, rule.category, rule.message)

    if _is_network(exc):
        rule = next(r for r in _RULES if r.category == "network")
        return ClassifiedError(rule.category, rule.status_code, rule.category, rule.message)

    return ClassifiedError("unknown", 502, "diagnosis_failed", str(exc) or _UNKNOWN_MESSAGE)


class DiagnosisFailed(DiagnosisError):
    """Raised by the pipeline once a failure has been classified."""

    def __init__(self, classified: ClassifiedError):
        super().__init__(classified.message)
        self.classified = classified
