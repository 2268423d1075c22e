import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, File, Form, UploadFile

from autodiag.api.schemas import DiagnosisDetails, DiagnosisResponse, ErrorResponse, MetaInfo, ModelInfo
from autodiag.config import settings
from autodiag.llm.factory import create_generative_client
from autodiag.pipelines.diagnosis_pipeline import DiagnosisOutcome, DiagnosisPipeline, create_diagnosis_pipeline
from autodiag.preprocessing.media import read_upload
from autodiag.presentation import build_display

router = APIRouter(
    prefix="/diagnose",
    tags=["diagnose"],
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_diagnosis_pipeline() -> DiagnosisPipeline:
    """
    Dependency provider. Instantiated once per process; tests swap it through
    app.dependency_overrides.
    """
    return create_diagnosis_pipeline(create_generative_client())


def _to_response(outcome: DiagnosisOutcome) -> DiagnosisResponse:
    return DiagnosisResponse(
        result=outcome.result,
        display=build_display(outcome.result),
        details=DiagnosisDetails(
            kind=outcome.kind,
            model=ModelInfo(name=outcome.model_id),
            meta=MetaInfo(duration_ms=outcome.duration_ms),
            audio_summary=outcome.audio_summary,
        ),
        warnings=list(outcome.warnings),
    )


def close_diagnosis_pipeline() -> None:
    """
    Close the cached pipeline on shutdown. Does nothing if no request ever
    built it.
    """
    if get_diagnosis_pipeline.cache_info().currsize:
        get_diagnosis_pipeline().close()
        get_diagnosis_pipeline.cache_clear()


@router.post("/obd", response_model=DiagnosisResponse)
async def diagnose_obd(
    code: str = Form(""),
    pipeline: DiagnosisPipeline = Depends(get_diagnosis_pipeline),
):
    outcome = await pipeline.diagnose_obd(code)
    return _to_response(outcome)


@router.post("/image", response_model=DiagnosisResponse)
async def diagnose_image(
    file: UploadFile = File(...),
    pipeline: DiagnosisPipeline = Depends(get_diagnosis_pipeline),
):
    payload = await read_upload(file, kind="image", max_mb=settings.max_image_mb)
    logger.info("diagnose_image filename=%s bytes=%d mime=%s", payload.filename, len(payload.data), payload.mime_type)

    outcome = await pipeline.diagnose_image(payload)
    return _to_response(outcome)


@router.post("/video", response_model=DiagnosisResponse)
async def diagnose_video(
    file: UploadFile = File(...),
    pipeline: DiagnosisPipeline = Depends(get_diagnosis_pipeline),
):
    payload = await read_upload(file, kind="video", max_mb=settings.max_video_mb)
    logger.info("diagnose_video filename=%s bytes=%d mime=%s", payload.filename, len(payload.data), payload.mime_type)

    outcome = await pipeline.diagnose_video(payload)
    return _to_response(outcome)
