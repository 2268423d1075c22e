from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high"]

SEVERITY_LEVELS = ("low", "medium", "high")


class EstimatedCost(BaseModel):
    usd: str
    inr: str


class DiagnosisResult(BaseModel):
    """
    Validated diagnosis returned by the generative API.

    Serialized with camelCase aliases (estimatedCost, additionalNotes) so the
    browser form can render it without remapping.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    problem: str = Field(..., min_length=1)
    solution: str = Field(..., min_length=1)
    severity: Severity
    estimated_cost: EstimatedCost = Field(..., alias="estimatedCost")
    additional_notes: Optional[str] = Field(default=None, alias="additionalNotes")
