from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import anyio

from autodiag.config import settings
from autodiag.diagnosis.errors import (
    DiagnosisError,
    DiagnosisFailed,
    InvalidInputError,
    classify_error,
)
from autodiag.diagnosis.parsing import parse_diagnosis
from autodiag.diagnosis.prompting import (
    build_image_prompt,
    build_obd_prompt,
    build_video_prompt,
    is_standard_obd_code,
    normalize_obd_code,
)
from autodiag.diagnosis.schema import DiagnosisResult
from autodiag.llm.client import GenerationRequest, GenerativeClient, MediaPayload
from autodiag.observability.metrics import DIAGNOSIS_REQUESTS_TOTAL, LLM_CALL_SECONDS
from autodiag.pipelines.runner import run_with_timeout
from autodiag.preprocessing.audio import summarize_video_audio
from autodiag.preprocessing.media import extract_video_frame
from autodiag.utils.request_context import get_request_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosisOutcome:
    """
    Normalized output boundary for one diagnosis round trip.
    Either this exists and result is fully validated, or DiagnosisFailed was raised.
    """
    result: DiagnosisResult
    kind: str
    model_id: str
    duration_ms: int
    audio_summary: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class DiagnosisPipeline:
    """
    Orchestrates a single diagnosis request for each input kind:
    - obd: prompt embeds the user-typed code, text model
    - image: prompt + inline photo, vision model
    - video: first frame + audio heuristic summary, vision model

    Keeps prompt building, timeout, parsing, error classification and metrics
    out of the API layer. No retries: a failure is classified and raised once.
    """

    def __init__(
        self,
        client: GenerativeClient,
        *,
        text_model: str,
        vision_model: str,
        usd_to_inr_rate: float = 83.0,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        audio_analysis_enabled: bool = True,
        ffmpeg_binary: str = "ffmpeg",
        audio_max_seconds: int = 30,
    ):
        self._client = client
        self._text_model = text_model
        self._vision_model = vision_model
        self._rate = usd_to_inr_rate
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._audio_enabled = audio_analysis_enabled
        self._ffmpeg = ffmpeg_binary
        self._audio_max_seconds = audio_max_seconds

    def close(self) -> None:
        """Release the client's connection pool, if it holds one."""
        close = getattr(self._client, "close", None)
        if callable(close):
            close()

    def _request(self, prompt: str, model: str, media: Optional[MediaPayload] = None) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            model=model,
            media=media,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            request_id=get_request_id(),
        )

    async def diagnose_obd(self, code: str) -> DiagnosisOutcome:
        try:
            normalized = normalize_obd_code(code)
        except InvalidInputError as e:
            DIAGNOSIS_REQUESTS_TOTAL.labels(kind="obd", result="invalid_input", model="n/a").inc()
            raise DiagnosisFailed(classify_error(e)) from e

        if not is_standard_obd_code(normalized):
            logger.info("obd_code_nonstandard code=%s", normalized)

        req = self._request(build_obd_prompt(normalized), self._text_model)
        return await self._run("obd", req)

    async def diagnose_image(self, payload: MediaPayload) -> DiagnosisOutcome:
        req = self._request(build_image_prompt(), self._vision_model, media=payload)
        return await self._run("image", req)

    async def diagnose_video(self, payload: MediaPayload) -> DiagnosisOutcome:
        # Both steps finish before the API call is issued.
        frame = await anyio.to_thread.run_sync(extract_video_frame, payload)

        audio_text = ""
        warnings: List[str] = []
        if self._audio_enabled:
            suffix = os.path.splitext(payload.filename)[1] or ".mp4"
            summary = await anyio.to_thread.run_sync(
                lambda: summarize_video_audio(
                    payload.data,
                    ffmpeg_binary=self._ffmpeg,
                    max_seconds=self._audio_max_seconds,
                    suffix=suffix,
                )
            )
            audio_text = summary.as_transcript()
            warnings.extend(summary.warnings)
        else:
            warnings.append("audio_analysis_disabled")

        req = self._request(build_video_prompt(audio_text), self._vision_model, media=frame)
        outcome = await self._run("video", req)
        return DiagnosisOutcome(
            result=outcome.result,
            kind=outcome.kind,
            model_id=outcome.model_id,
            duration_ms=outcome.duration_ms,
            audio_summary=audio_text or None,
            warnings=warnings,
        )

    async def _run(self, kind: str, req: GenerationRequest) -> DiagnosisOutcome:
        model_label = req.model or getattr(self._client, "model_id", "unknown")

        try:
            gen, duration_s = await run_with_timeout(self._client.generate, req)
        except Exception as e:
            classified = classify_error(e)
            DIAGNOSIS_REQUESTS_TOTAL.labels(kind=kind, result=classified.category, model=model_label).inc()
            logger.warning(
                "diagnosis_failed kind=%s model=%s category=%s error=%s: %s",
                kind, model_label, classified.category, type(e).__name__, e,
            )
            raise DiagnosisFailed(classified) from e

        LLM_CALL_SECONDS.labels(kind=kind, model=model_label).observe(duration_s)

        try:
            result = parse_diagnosis(gen.text, usd_to_inr_rate=self._rate)
        except DiagnosisError as e:
            classified = classify_error(e)
            DIAGNOSIS_REQUESTS_TOTAL.labels(kind=kind, result=classified.category, model=model_label).inc()
            logger.warning(
                "diagnosis_invalid_output kind=%s model=%s error=%s raw_len=%d",
                kind, model_label, e, len(gen.text or ""),
            )
            raise DiagnosisFailed(classified) from e

        DIAGNOSIS_REQUESTS_TOTAL.labels(kind=kind, result="ok", model=model_label).inc()
        logger.info(
            "diagnosis_ok kind=%s model=%s severity=%s duration_ms=%d",
            kind, gen.model_id, result.severity, int(duration_s * 1000),
        )

        return DiagnosisOutcome(
            result=result,
            kind=kind,
            model_id=gen.model_id,
            duration_ms=int(duration_s * 1000),
        )


def create_diagnosis_pipeline(client: GenerativeClient) -> DiagnosisPipeline:
    return DiagnosisPipeline(
        client,
        text_model=settings.text_model,
        vision_model=settings.vision_model,
        usd_to_inr_rate=settings.usd_to_inr_rate,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        audio_analysis_enabled=settings.audio_analysis_enabled,
        ffmpeg_binary=settings.ffmpeg_binary,
        audio_max_seconds=settings.audio_max_seconds,
    )
