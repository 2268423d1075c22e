from __future__ import annotations

import re
from typing import List, Optional

from pydantic import BaseModel, Field

from autodiag.diagnosis.schema import DiagnosisResult

SEVERITY_COLORS = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
}

# "1. Check plugs", "2) Inspect coils", "- Replace filter"
_STEP_PREFIX_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


class DiagnosisDisplay(BaseModel):
    severity_label: str
    severity_color: str
    solution_steps: List[str] = Field(default_factory=list)
    cost_text: str
    notes: Optional[str] = None


def split_solution_steps(solution: str) -> List[str]:
    steps = []
    for line in (solution or "").splitlines():
        step = _STEP_PREFIX_RE.sub("", line).strip()
        if step:
            steps.append(step)
    return steps


def build_display(result: DiagnosisResult) -> DiagnosisDisplay:
    cost = result.estimated_cost
    return DiagnosisDisplay(
        severity_label=result.severity.capitalize(),
        severity_color=SEVERITY_COLORS[result.severity],
        solution_steps=split_solution_steps(result.solution),
        cost_text=f"{cost.usd} (≈ {cost.inr})",
        notes=result.additional_notes,
    )
