"""Transcription module - session state and turn reassembly."""

from .session import TranscriptionSession
from .turn_buffer import TurnBuffer

__all__ = ["TranscriptionSession", "TurnBuffer"]
