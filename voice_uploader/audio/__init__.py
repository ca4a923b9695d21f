"""Audio pipeline: per-speaker buffers, silence-driven flush, WAV encoding."""
from .encoder import WAV_FORMAT, WavFormat, encode_wav
from .models import DispatchJob, TickBatch
from .processor import TickProcessor
from .registry import SpeakerEntry, SpeakerRegistry
from .sample_buffer import SampleBuffer, samples_for_seconds

__all__ = [
    "WAV_FORMAT",
    "WavFormat",
    "encode_wav",
    "DispatchJob",
    "TickBatch",
    "TickProcessor",
    "SpeakerEntry",
    "SpeakerRegistry",
    "SampleBuffer",
    "samples_for_seconds",
]
