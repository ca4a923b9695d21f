"""
WAV encoding of one speaking turn, fully in memory.

Format is fixed: 2 channels interleaved, 44.1kHz, 16-bit signed little-endian PCM.
One open, header set once, all frames written, close once; the wave module patches
the RIFF and data lengths on close, so the data chunk is exactly 2 bytes per sample.
"""
from __future__ import annotations

import io
import wave
from dataclasses import dataclass

import numpy as np

WAV_CONTENT_TYPE = "audio/wav"


@dataclass(frozen=True)
class WavFormat:
    """PCM layout of the container. Only 16-bit signed integer samples are supported."""

    channels: int = 2
    sample_rate: int = 44_100
    bits_per_sample: int = 16

    def __post_init__(self) -> None:
        if self.bits_per_sample != 16:
            raise ValueError(f"unsupported bit depth {self.bits_per_sample}; only 16-bit PCM")
        if self.channels < 1:
            raise ValueError("channels must be >= 1")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")

    @property
    def sample_width(self) -> int:
        return self.bits_per_sample // 8


WAV_FORMAT = WavFormat()


def encode_wav(samples: np.ndarray, fmt: WavFormat = WAV_FORMAT) -> bytes:
    """Serialize int16 samples (already interleaved) to a complete WAV file."""
    pcm = np.asarray(samples, dtype=np.int16).astype("<i2", copy=False).tobytes()
    out = io.BytesIO()
    with wave.open(out, "wb") as wav:
        wav.setnchannels(fmt.channels)
        wav.setsampwidth(fmt.sample_width)
        wav.setframerate(fmt.sample_rate)
        wav.writeframes(pcm)
    return out.getvalue()
