from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from autodiag.diagnosis.schema import DiagnosisResult
from autodiag.presentation import DiagnosisDisplay


# ---------
# Shared
# ---------

class ModelInfo(BaseModel):
    name: str


class MetaInfo(BaseModel):
    duration_ms: Optional[int] = None


# ---------
# Details
# ---------

class DiagnosisDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["obd", "image", "video"]
    model: ModelInfo
    meta: Optional[MetaInfo] = None
    audio_summary: Optional[str] = None


# ---------
# Top-level response
# ---------

class DiagnosisResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    result: DiagnosisResult
    display: DiagnosisDisplay
    details: DiagnosisDetails
    warnings: List[str] = Field(default_factory=list)


# ---------
# Consistent error payload
# ---------

class ErrorBody(BaseModel):
    code: str
    message: str
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody
