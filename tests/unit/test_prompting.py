import pytest

from autodiag.diagnosis.errors import InvalidInputError
from autodiag.diagnosis.prompting import (
    build_image_prompt,
    build_obd_prompt,
    build_video_prompt,
    is_standard_obd_code,
    normalize_obd_code,
)


def test_obd_code_is_stripped_and_upper_cased():
    assert normalize_obd_code("  p0300 ") == "P0300"


@pytest.mark.parametrize("code", ["", "   ", None])
def test_empty_obd_code_is_rejected(code):
    with pytest.raises(InvalidInputError):
        normalize_obd_code(code)


@pytest.mark.parametrize("code,expected", [("P0300", True), ("U0100", True), ("P03", False), ("HELLO", False)])
def test_standard_obd_code_shape(code, expected):
    assert is_standard_obd_code(code) is expected


def test_obd_prompt_embeds_code_and_declares_shape():
    prompt = build_obd_prompt("P0420")
    assert "Analyze this OBD code: P0420." in prompt
    for key in ("problem", "solution", "severity", "estimatedCost", "additionalNotes"):
        assert f'"{key}"' in prompt
    assert "Return ONLY a JSON object" in prompt
    assert "Related codes" in prompt


def test_image_prompt_declares_shape_without_audio():
    prompt = build_image_prompt()
    assert "Analyze this car image" in prompt
    assert '"estimatedCost"' in prompt
    assert "audioAnalysis" not in prompt


def test_video_prompt_embeds_audio_transcript():
    prompt = build_video_prompt("High-frequency noise detected")
    assert "Audio Transcript:\nHigh-frequency noise detected" in prompt
    assert '"audioAnalysis"' in prompt


def test_video_prompt_without_audio_says_so():
    assert "No audio patterns detected." in build_video_prompt("")
