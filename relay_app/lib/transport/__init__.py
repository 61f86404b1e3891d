"""Transport layer for WebSocket connections."""

from .assemblyai_client import TranscriptionClient

__all__ = ["TranscriptionClient"]
