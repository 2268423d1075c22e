"""
Crude sound heuristic for vehicle videos.

This is not acoustic diagnosis. The audio track is decoded to mono PCM. Each
2048-sample window goes through an FFT and is scaled to the 0..255 byte range
browsers use for analyser nodes. Each band average is then compared against
a fixed threshold. The resulting lines are embedded in the video prompt as an
"audio transcript".
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field
from typing import List

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
FFT_SIZE = 2048
MIN_DB = -100.0
MAX_DB = -30.0

LOW_THRESHOLD = 150
MID_THRESHOLD = 120
HIGH_THRESHOLD = 90

LOW_PATTERN = "Heavy low-frequency noise detected (possible engine knocking or rumbling)"
MID_PATTERN = "Significant mid-range frequencies (possible belt or bearing issues)"
HIGH_PATTERN = "High-frequency noise detected (possible brake squealing or metal-on-metal contact)"


@dataclass(frozen=True)
class BandAverages:
    low: float
    mid: float
    high: float


@dataclass
class AudioSummary:
    patterns: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    windows_analyzed: int = 0

    def as_transcript(self) -> str:
        if self.patterns:
            return "\n".join(self.patterns)
        if self.windows_analyzed:
            return "No abnormal sound patterns detected."
        return "Audio unavailable."


def byte_frequency_data(window: np.ndarray) -> np.ndarray:
    """
    Map one window of float samples in [-1, 1] to FFT_SIZE // 2 byte-scaled bins.
    """
    windowed = window * np.blackman(len(window))
    magnitude = np.abs(np.fft.rfft(windowed, n=FFT_SIZE))[: FFT_SIZE // 2] / FFT_SIZE
    db = 20.0 * np.log10(magnitude + 1e-12)
    scaled = (db - MIN_DB) * (255.0 / (MAX_DB - MIN_DB))
    return np.clip(scaled, 0, 255).astype(np.uint8)


def band_averages(freq_bytes: np.ndarray) -> BandAverages:
    n = len(freq_bytes)
    q = n // 4
    h = n // 2
    return BandAverages(
        low=float(np.mean(freq_bytes[:q])),
        mid=float(np.mean(freq_bytes[q:h])),
        high=float(np.mean(freq_bytes[h:])),
    )


def describe_frequency_patterns(bands: BandAverages) -> List[str]:
    patterns: List[str] = []
    if bands.low > LOW_THRESHOLD:
        patterns.append(LOW_PATTERN)
    if bands.mid > MID_THRESHOLD:
        patterns.append(MID_PATTERN)
    if bands.high > HIGH_THRESHOLD:
        patterns.append(HIGH_PATTERN)
    return patterns


def analyze_samples(samples: np.ndarray) -> AudioSummary:
    """
    Run the band heuristic over consecutive non-overlapping windows.
    Repeated patterns are reported once, in first-seen order.
    """
    summary = AudioSummary()
    seen = set()
    for start in range(0, len(samples) - FFT_SIZE + 1, FFT_SIZE):
        bands = band_averages(byte_frequency_data(samples[start:start + FFT_SIZE]))
        summary.windows_analyzed += 1
        for p in describe_frequency_patterns(bands):
            if p not in seen:
                seen.add(p)
                summary.patterns.append(p)
    return summary


def decode_pcm(video_bytes: bytes, *, ffmpeg_binary: str, max_seconds: int, suffix: str = ".mp4") -> np.ndarray:
    """
    Decode the audio track to mono float32 samples at SAMPLE_RATE via ffmpeg.
    Returns an empty array when the container has no audio stream.
    """
    fd, path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(video_bytes)
        cmd = [
            ffmpeg_binary, "-hide_banner", "-loglevel", "error",
            "-i", path, "-t", str(max_seconds),
            "-vn", "-ac", "1", "-ar", str(SAMPLE_RATE), "-f", "s16le", "pipe:1",
        ]
        result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=max_seconds + 10)
    finally:
        os.unlink(path)

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        if "does not contain any stream" in stderr or "Output file is empty" in stderr:
            return np.zeros(0, dtype=np.float32)
        raise RuntimeError(f"ffmpeg failed: {stderr[:200]}")

    return np.frombuffer(result.stdout, dtype="<i2").astype(np.float32) / 32768.0


def summarize_video_audio(
    video_bytes: bytes,
    *,
    ffmpeg_binary: str = "ffmpeg",
    max_seconds: int = 30,
    suffix: str = ".mp4",
) -> AudioSummary:
    try:
        samples = decode_pcm(video_bytes, ffmpeg_binary=ffmpeg_binary, max_seconds=max_seconds, suffix=suffix)
    except FileNotFoundError:
        logger.warning("audio_skipped reason=ffmpeg_not_found binary=%s", ffmpeg_binary)
        return AudioSummary(warnings=["audio_analysis_unavailable_ffmpeg_missing"])
    except (RuntimeError, subprocess.TimeoutExpired) as e:
        logger.warning("audio_skipped reason=decode_failed error=%s", e)
        return AudioSummary(warnings=["audio_analysis_failed"])

    if samples.size < FFT_SIZE:
        return AudioSummary(warnings=["no_audio_track"])

    summary = analyze_samples(samples)
    logger.info("audio_ok windows=%d patterns=%d", summary.windows_analyzed, len(summary.patterns))
    return summary
