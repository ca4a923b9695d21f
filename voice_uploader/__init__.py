"""Per-speaker voice capture: buffer each speaking turn, upload it as WAV when the speaker falls silent."""

__version__ = "0.1.0"
