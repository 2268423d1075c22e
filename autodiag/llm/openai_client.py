from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from autodiag.llm.client import (
    GenerationConfigError,
    GenerationHTTPError,
    GenerationInvalidResponse,
    GenerationRequest,
    GenerationResult,
    GenerationTimeout,
)
from autodiag.diagnosis.prompting import SYSTEM_INSTRUCTION


class OpenAIChatClient:
    """
    OpenAI-compatible Chat Completions client.

    Works with OpenAI or any gateway exposing /chat/completions. Images are
    sent as a data: URL content part alongside the text prompt.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        default_model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not api_key:
            raise GenerationConfigError("OpenAI API key is missing. Please set OPENAI_API_KEY.")
        self._default_model = default_model
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def model_id(self) -> str:
        return self._default_model

    def close(self) -> None:
        self._http.close()

    def _user_content(self, req: GenerationRequest) -> Any:
        if req.media is None:
            return req.prompt
        parts: List[Dict[str, Any]] = [
            {"type": "text", "text": req.prompt},
            {"type": "image_url", "image_url": {"url": req.media.data_url()}},
        ]
        return parts

    def generate(self, req: GenerationRequest) -> GenerationResult:
        model = req.model or self._default_model
        payload = {
            "model": model,
            "temperature": req.temperature,
            "max_tokens": req.max_tokens,
            "messages": [
                {
                    "role": "system",
                    "content": f"{SYSTEM_INSTRUCTION} Respond ONLY with a JSON object in the exact format specified by the user.",
                },
                {"role": "user", "content": self._user_content(req)},
            ],
        }

        start = time.perf_counter()
        try:
            r = self._http.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise GenerationTimeout(f"Request to {model} timed out") from e

        if r.status_code >= 400:
            raise _http_error(r)

        try:
            data = r.json()
        except ValueError as e:
            raise GenerationInvalidResponse("Invalid API response format") from e
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationInvalidResponse("Invalid API response format") from e
        if not text:
            raise GenerationInvalidResponse("Invalid API response format")

        return GenerationResult(
            text=text,
            model_id=data.get("model", model),
            latency_ms=int((time.perf_counter() - start) * 1000),
            meta={"provider": "openai", "usage": data.get("usage"), "request_id": req.request_id},
        )


def _http_error(r: httpx.Response) -> GenerationHTTPError:
    message = f"HTTP {r.status_code}"
    provider_code = None
    try:
        body = r.json()
    except ValueError:
        body = {}
    err = (body.get("error") if isinstance(body, dict) else None) or {}
    if isinstance(err, dict):
        message = err.get("message") or message
        provider_code = err.get("code") or err.get("type")
    return GenerationHTTPError(message, status_code=r.status_code, provider_code=provider_code)
