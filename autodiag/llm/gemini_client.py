from __future__ import annotations

import time
from typing import Any, Dict, List

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from autodiag.llm.client import (
    GenerationConfigError,
    GenerationHTTPError,
    GenerationInvalidResponse,
    GenerationRequest,
    GenerationResult,
)


class GeminiClient:
    """
    Gemini adapter using the google-genai SDK.

    The prompt and the optional media part go out in a single
    generate_content call; media bytes are sent inline with their MIME type.
    """

    def __init__(self, *, api_key: str | None, default_model: str):
        if not api_key:
            raise GenerationConfigError(
                "Gemini API key is missing. Please set GEMINI_API_KEY in your environment or .env file."
            )
        self._client = genai.Client(api_key=api_key)
        self._default_model = default_model

    @property
    def model_id(self) -> str:
        return self._default_model

    def generate(self, req: GenerationRequest) -> GenerationResult:
        model = req.model or self._default_model

        contents: List[Any] = []
        if req.media is not None:
            contents.append(types.Part.from_bytes(data=req.media.data, mime_type=req.media.mime_type))
        contents.append(req.prompt)

        config = types.GenerateContentConfig(
            temperature=req.temperature,
            max_output_tokens=req.max_tokens,
        )

        start = time.perf_counter()
        try:
            response = self._client.models.generate_content(model=model, contents=contents, config=config)
        except genai_errors.APIError as e:
            raise GenerationHTTPError(
                e.message or str(e),
                status_code=e.code,
                provider_code=e.status,
            ) from e

        text = response.text
        if not text:
            raise GenerationInvalidResponse("Gemini returned an empty response")

        meta: Dict[str, Any] = {"provider": "gemini", "request_id": req.request_id}
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            meta["prompt_tokens"] = getattr(usage, "prompt_token_count", None)
            meta["output_tokens"] = getattr(usage, "candidates_token_count", None)

        return GenerationResult(
            text=text,
            model_id=model,
            latency_ms=int((time.perf_counter() - start) * 1000),
            meta=meta,
        )
