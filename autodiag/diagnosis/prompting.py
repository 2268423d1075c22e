from __future__ import annotations

import json
import re
from typing import Dict, List

from autodiag.diagnosis.errors import InvalidInputError

SYSTEM_INSTRUCTION = "You are an expert automotive diagnostic system."

STRICT_JSON_RULE = (
    "Return ONLY a JSON object in this exact format, with NO additional text or markdown formatting:"
)

# Generic OBD-II shape: one letter system prefix followed by four hex digits.
_OBD_CODE_RE = re.compile(r"^[PBCU][0-9A-F]{4}$")


def _schema_block(hints: Dict[str, str]) -> str:
    return json.dumps(hints, indent=2, ensure_ascii=False)


def _checklist(items: List[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


OBD_SCHEMA_HINT = {
    "problem": "Detailed description of what the code indicates and its implications",
    "solution": "Step-by-step diagnostic and repair procedure, including required tools",
    "severity": "low/medium/high",
    "estimatedCost": "Cost range in USD (e.g., $100-$300)",
    "additionalNotes": "Important warnings, prerequisites, or related information",
}

OBD_CHECKLIST = [
    "Common causes and symptoms",
    "Associated vehicle systems",
    "Potential risks",
    "Required parts and labor",
    "Diagnostic steps",
    "Manufacturer considerations",
    "Related codes",
    "Environmental impact",
]

IMAGE_SCHEMA_HINT = {
    "problem": "Detailed description of visible issues",
    "solution": "Step-by-step repair procedure",
    "severity": "low/medium/high",
    "estimatedCost": "Cost range in USD (e.g., $100-$300)",
    "additionalNotes": "Important warnings or observations",
}

IMAGE_CHECKLIST = [
    "Visible mechanical problems",
    "Fluid leaks or stains",
    "Wear patterns",
    "Rust or corrosion",
    "Safety concerns",
    "Part quality",
    "Required tools",
]

VIDEO_SCHEMA_HINT = {
    "problem": "Detailed description combining visual and audio symptoms",
    "solution": "Step-by-step diagnostic procedure",
    "severity": "low/medium/high",
    "estimatedCost": "Cost range in USD (e.g., $100-$300)",
    "additionalNotes": "Important warnings or observations",
    "audioAnalysis": "Specific analysis of sounds heard in the video",
}

VIDEO_CHECKLIST = [
    "Motion-related issues",
    "Operating sounds (knocking, clicking, whining)",
    "Fluid leaks",
    "Smoke/exhaust",
    "Vibrations",
    "Sound patterns and frequencies",
    "Correlation between visual and audio symptoms",
    "Safety concerns",
    "Required equipment",
]


def normalize_obd_code(code: str) -> str:
    """
    Strip and upper-case a user-typed code. Unknown formats are passed through
    (manufacturer specific codes exist), only empty input is rejected.
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        raise InvalidInputError("Please enter an OBD code")
    return normalized


def is_standard_obd_code(code: str) -> bool:
    return bool(_OBD_CODE_RE.match(code))


def build_obd_prompt(code: str) -> str:
    return (
        f"{SYSTEM_INSTRUCTION} Analyze this OBD code: {code}.\n"
        f"{STRICT_JSON_RULE}\n"
        f"{_schema_block(OBD_SCHEMA_HINT)}\n\n"
        "Consider:\n"
        f"{_checklist(OBD_CHECKLIST)}"
    )


def build_image_prompt() -> str:
    return (
        f"{SYSTEM_INSTRUCTION} Analyze this car image.\n"
        f"{STRICT_JSON_RULE}\n"
        f"{_schema_block(IMAGE_SCHEMA_HINT)}\n\n"
        "Consider:\n"
        f"{_checklist(IMAGE_CHECKLIST)}"
    )


def build_video_prompt(audio_summary: str) -> str:
    transcript = audio_summary.strip() if audio_summary and audio_summary.strip() else "No audio patterns detected."
    return (
        f"{SYSTEM_INSTRUCTION} Analyze this video frame and audio transcript.\n"
        "Video frame shows visual symptoms, while audio transcript captures sounds.\n\n"
        "Audio Transcript:\n"
        f"{transcript}\n\n"
        f"{STRICT_JSON_RULE}\n"
        f"{_schema_block(VIDEO_SCHEMA_HINT)}\n\n"
        "Consider:\n"
        f"{_checklist(VIDEO_CHECKLIST)}"
    )
