from __future__ import annotations

import hashlib
import json
import re
import time
from typing import Any, Dict, List

from autodiag.llm.client import GenerationRequest, GenerationResult


_CODE_IN_PROMPT_RE = re.compile(r"Analyze this OBD code: (\S+?)\.\s")

MOCK_OBD_RESPONSES: Dict[str, Dict[str, Any]] = {
    "P0300": {
        "problem": "Random/Multiple Cylinder Misfire Detected",
        "solution": (
            "1. Check spark plugs and replace if worn\n2. Inspect ignition coils\n"
            "3. Check fuel injectors\n4. Verify fuel pressure\n5. Inspect vacuum leaks"
        ),
        "severity": "high",
        "estimatedCost": "$150-$1000",
        "additionalNotes": "Should be addressed immediately to prevent catalytic converter damage",
    },
    "P0420": {
        "problem": "Catalyst System Efficiency Below Threshold",
        "solution": (
            "1. Check exhaust leaks\n2. Inspect oxygen sensors\n"
            "3. Test catalytic converter\n4. Replace if necessary"
        ),
        "severity": "medium",
        "estimatedCost": "$400-$2500",
        "additionalNotes": "May affect emissions and fuel efficiency",
    },
}

MOCK_DEFAULT_OBD_RESPONSE: Dict[str, Any] = {
    "problem": "Generic OBD-II Code",
    "solution": "1. Read code with scanner\n2. Inspect related systems\n3. Consult mechanic if unsure",
    "severity": "medium",
    "estimatedCost": "$50-$500",
    "additionalNotes": "Further diagnosis may be needed",
}

MOCK_MEDIA_RESPONSES: List[Dict[str, Any]] = [
    {
        "problem": "Worn Brake Pads",
        "solution": (
            "1. Measure brake pad thickness\n2. Replace brake pads if less than 3mm\n"
            "3. Check rotors for damage\n4. Test brake system"
        ),
        "severity": "high",
        "estimatedCost": "$200-$400",
        "additionalNotes": "Regular brake maintenance is crucial for safety",
    },
    {
        "problem": "Oil Leak",
        "solution": (
            "1. Clean affected area\n2. Identify leak source\n3. Replace gasket or seal\n"
            "4. Check oil level\n5. Monitor for further leaks"
        ),
        "severity": "medium",
        "estimatedCost": "$150-$500",
        "additionalNotes": "Address oil leaks promptly to prevent engine damage",
    },
    {
        "problem": "Tire Wear Pattern",
        "solution": (
            "1. Check tire pressure\n2. Perform wheel alignment\n3. Rotate tires\n"
            "4. Replace if wear is severe"
        ),
        "severity": "medium",
        "estimatedCost": "$50-$800",
        "additionalNotes": "Uneven wear may indicate alignment issues",
    },
]


class MockGenerativeClient:
    """
    Deterministic stand-in for the generative API (dev/testing only).

    OBD prompts resolve by code; media prompts pick a canned diagnosis from a
    digest of the bytes so the same upload always gets the same answer. Media
    answers are wrapped in a markdown fence, as real models often do.
    """

    def __init__(self, model_name: str = "mock-diagnosis"):
        self._model_name = model_name

    @property
    def model_id(self) -> str:
        return self._model_name

    def generate(self, req: GenerationRequest) -> GenerationResult:
        start = time.perf_counter()

        if req.media is None:
            m = _CODE_IN_PROMPT_RE.search(req.prompt or "")
            code = m.group(1) if m else "UNKNOWN"
            payload = MOCK_OBD_RESPONSES.get(code) or {
                **MOCK_DEFAULT_OBD_RESPONSE,
                "problem": f"{MOCK_DEFAULT_OBD_RESPONSE['problem']} (Code: {code})",
                "additionalNotes": f"Code {code}: {MOCK_DEFAULT_OBD_RESPONSE['additionalNotes']}",
            }
            text = json.dumps(payload)
        else:
            digest = hashlib.sha256(req.media.data).digest()
            payload = dict(MOCK_MEDIA_RESPONSES[digest[0] % len(MOCK_MEDIA_RESPONSES)])
            payload["additionalNotes"] = f"Analyzing {req.media.filename}. {payload['additionalNotes']}"
            if "audioAnalysis" in (req.prompt or ""):
                payload["audioAnalysis"] = "Mock audio analysis: no abnormal sounds identified."
            text = f"Here is the diagnosis:\n```json\n{json.dumps(payload, indent=2)}\n```"

        return GenerationResult(
            text=text,
            model_id=self._model_name,
            latency_ms=int((time.perf_counter() - start) * 1000),
            meta={"mock": True, "requested_model": req.model},
        )
