"""Pydantic models and types for the live transcription relay."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class PeerRole(str, Enum):
    """Role of a connected peer. At most one live connection per role."""

    DEVICE = "device"
    UI = "ui"


class ClientState(Enum):
    """Lifecycle of one upstream transcription connection.

    Idle -> Opening -> Open -> Closed, or Opening -> Closed on failure.
    A handle never goes back to Opening.
    """

    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


class UiCommand(BaseModel):
    """Command sent by the UI over its WebSocket."""

    type: Literal["start", "stop"] = Field(..., description="Session command")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = ""
    transcriber_configured: bool = False
    session_active: bool = False
    device_connected: bool = False
    ui_connected: bool = False


# Exceptions
class TranscriberError(Exception):
    """Base exception for upstream transcriber failures."""

    pass


class CredentialError(TranscriberError):
    """The token endpoint did not issue a streaming credential."""

    pass


class ConnectError(TranscriberError):
    """The streaming handshake with the transcriber did not complete."""

    pass


class DecodeError(ValueError):
    """An inbound transcriber frame could not be decoded."""

    pass


class PeerSendError(Exception):
    """A peer socket refused an outbound message."""

    pass
