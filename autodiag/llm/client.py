from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


# -----------------------------
# Public types
# -----------------------------

@dataclass(frozen=True)
class MediaPayload:
    """
    Binary media sent inline with a prompt.

    Videos never reach the client directly: the pipeline reduces them to one
    JPEG frame first.
    """
    data: bytes
    mime_type: str
    filename: str = "upload"

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.b64()}"


@dataclass(frozen=True)
class GenerationRequest:
    """
    A provider-agnostic request: one prompt and at most one inline media part.
    """
    prompt: str
    model: str
    media: Optional[MediaPayload] = None
    temperature: float = 0.3
    max_tokens: int = 1000

    # Optional: useful for tracing
    request_id: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    """
    Provider-agnostic result.

    text is the free-form model output, expected to contain one JSON object.
    meta allows attaching provider-specific details (usage, finish reason, etc.)
    without leaking provider code into callers.
    """
    text: str
    model_id: str
    latency_ms: int
    meta: Dict[str, Any] = field(default_factory=dict)


# -----------------------------
# Errors
# -----------------------------

class GenerationError(RuntimeError):
    """Base class for all generative client failures."""


class GenerationTimeout(GenerationError):
    """Raised when the provider times out."""


class GenerationHTTPError(GenerationError):
    """
    Raised when the provider answers with a non-2xx status.

    provider_code is the machine-readable code from the error body when the
    provider sends one (e.g. "insufficient_quota").
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, provider_code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_code = provider_code


class GenerationInvalidResponse(GenerationError):
    """Raised when a 2xx reply is not the envelope the provider documents."""


class GenerationConfigError(GenerationError):
    """Raised when a provider is selected without the configuration it needs."""


# -----------------------------
# Client interface
# -----------------------------

class GenerativeClient(Protocol):
    """
    Multimodal generative API client.

    Implementations:
    - MockGenerativeClient (dev/tests)
    - GeminiClient (google-genai)
    - OpenAIChatClient (OpenAI-compatible /chat/completions over httpx)
    """
    @property
    def model_id(self) -> str:
        ...

    def generate(self, req: GenerationRequest) -> GenerationResult:
        ...
