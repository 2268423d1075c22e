from __future__ import annotations

import io
import os
import tempfile
from typing import Literal

import cv2
import numpy as np
from fastapi import HTTPException, UploadFile
from PIL import Image

from autodiag.llm.client import MediaPayload

MediaKind = Literal["image", "video"]

FRAME_MIME = "image/jpeg"
FRAME_FILENAME = "frame.jpg"


def _mb_to_bytes(mb: int) -> int:
    return mb * 1024 * 1024


def _check_content_type(content_type: str | None, kind: MediaKind) -> str:
    ct = (content_type or "").split(";")[0].strip().lower()
    if not ct.startswith(f"{kind}/"):
        raise HTTPException(
            status_code=400,
            detail={"code": "unsupported_file_type", "message": f"Please select {'an' if kind == 'image' else 'a'} {kind} file"},
        )
    return ct


def _verify_image(data: bytes) -> None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception:
        raise HTTPException(
            status_code=422,
            detail={"code": "unprocessable_input", "message": "Invalid or corrupted image"},
        )


async def read_upload(file: UploadFile, *, kind: MediaKind, max_mb: int) -> MediaPayload:
    """
    Validate an uploaded photo or video and turn it into a transportable payload.
    - Validates MIME type prefix (header-based, best-effort)
    - Rejects empty files
    - Enforces size limit
    - For images, checks the bytes decode with PIL
    """
    mime_type = _check_content_type(file.content_type, kind)

    data = await file.read()
    if not data:
        raise HTTPException(
            status_code=400,
            detail={"code": "empty_file", "message": "Please select a file"},
        )
    if len(data) > _mb_to_bytes(max_mb):
        raise HTTPException(
            status_code=413,
            detail={"code": "payload_too_large", "message": f"{kind.capitalize()} exceeds max size of {max_mb}MB"},
        )

    if kind == "image":
        _verify_image(data)

    return MediaPayload(data=data, mime_type=mime_type, filename=file.filename or kind)


def _decode_first_frame(path: str) -> np.ndarray:
    cap = cv2.VideoCapture(path)
    try:
        if not cap.isOpened():
            raise ValueError("Failed to load video")
        ok, frame = cap.read()
    finally:
        cap.release()
    if not ok or frame is None:
        raise ValueError("Failed to extract video frame")
    return frame


def extract_video_frame(payload: MediaPayload) -> MediaPayload:
    """
    Reduce a video to its first frame, re-encoded as JPEG.

    OpenCV only reads containers from disk, so the bytes go through a
    temporary file that is removed before returning.
    """
    suffix = os.path.splitext(payload.filename)[1] or ".mp4"
    fd, path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload.data)
        frame = _decode_first_frame(path)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": "unprocessable_input", "message": str(e)},
        )
    finally:
        os.unlink(path)

    ok, buf = cv2.imencode(".jpg", frame)
    if not ok:
        raise HTTPException(
            status_code=422,
            detail={"code": "unprocessable_input", "message": "Failed to extract video frame"},
        )
    return MediaPayload(data=buf.tobytes(), mime_type=FRAME_MIME, filename=FRAME_FILENAME)
