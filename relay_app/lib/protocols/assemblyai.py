"""AssemblyAI streaming (v3) protocol definitions.

Pure functions for:
- Parsing transcriber messages
- Constructing token and streaming URLs and headers
- Building control frames

No I/O, no state - just data transformations.
"""

import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
from urllib.parse import urlencode

from ..livetypes import DecodeError


class TranscriberMessageType(Enum):
    """Types of messages from the streaming transcriber."""

    BEGIN = auto()      # Streaming session confirmed ready
    TURN = auto()       # Transcript fragment for one turn_order
    OTHER = auto()      # Anything else (Termination, unknown types)


@dataclass(frozen=True)
class TranscriberMessage:
    """Parsed message from the streaming transcriber.

    Immutable data class representing a single message.
    """

    type: TranscriberMessageType
    turn_order: int = 0
    transcript: str = ""
    end_of_turn: bool = False
    raw: str = ""

    @property
    def is_begin(self) -> bool:
        return self.type == TranscriberMessageType.BEGIN

    @property
    def is_turn(self) -> bool:
        return self.type == TranscriberMessageType.TURN


@dataclass(frozen=True)
class StreamingConfig:
    """Configuration for the AssemblyAI streaming service.

    Immutable - create a new instance to change values.
    """

    api_key: str
    host: str = "streaming.assemblyai.com"
    sample_rate: int = 16000
    secure: bool = True

    @property
    def token_url(self) -> str:
        """Base URL of the token-issuing endpoint."""
        return get_token_url(self.host, secure=self.secure)

    @property
    def headers(self) -> dict[str, str]:
        """Get authentication headers for the token endpoint."""
        return get_token_headers(self.api_key)

    def stream_url(self, token: str, sample_rate: Optional[int] = None) -> str:
        """Construct the WebSocket URL for one streaming session.

        sample_rate overrides the configured rate for this session only.
        """
        return get_stream_url(
            self.host, sample_rate or self.sample_rate, token, secure=self.secure
        )

    @classmethod
    def from_env(cls) -> "StreamingConfig":
        """Create config from environment variables."""
        import os

        api_key = os.getenv("ASSEMBLYAI_API_KEY", "")
        host = os.getenv("ASSEMBLYAI_HOST", "streaming.assemblyai.com")
        sample_rate = int(os.getenv("SAMPLE_RATE", "16000"))

        return cls(api_key=api_key, host=host, sample_rate=sample_rate)

    def is_configured(self) -> bool:
        """Check if the API key is set."""
        return bool(self.api_key)


def get_token_url(host: str, secure: bool = True) -> str:
    """Construct the token endpoint URL.

    Args:
        host: Transcriber host (optionally with port)
        secure: Use https instead of http

    Returns:
        URL of the temporary token endpoint
    """
    scheme = "https" if secure else "http"
    return f"{scheme}://{host}/v3/token"


def get_token_params(expires_in_seconds: int) -> dict[str, str]:
    """Query parameters for a token request."""
    return {"expires_in_seconds": str(expires_in_seconds)}


def get_token_headers(api_key: str) -> dict[str, str]:
    """Construct token endpoint authentication headers.

    The API key is sent as-is, without a "Bearer" prefix.
    """
    return {"Authorization": api_key}


def get_stream_url(
    host: str, sample_rate: int, token: str, secure: bool = True
) -> str:
    """Construct the streaming WebSocket URL.

    Args:
        host: Transcriber host (optionally with port)
        sample_rate: Sample rate of the audio that will be streamed
        token: Temporary credential from the token endpoint
        secure: Use wss instead of ws

    Returns:
        WebSocket URL carrying the credential as a query parameter
    """
    scheme = "wss" if secure else "ws"
    query = urlencode(
        {
            "sample_rate": sample_rate,
            "formatted_finals": "true",
            "token": token,
        }
    )
    return f"{scheme}://{host}/v3/ws?{query}"


def parse_token_response(data: object) -> str:
    """Extract the token from a token endpoint JSON body.

    Raises:
        ValueError: If the body carries no usable token
    """
    if not isinstance(data, dict):
        raise ValueError("Token response is not a JSON object")
    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise ValueError("Token response has no token")
    return token


def parse_transcriber_message(raw_message: str | bytes) -> TranscriberMessage:
    """Parse a raw JSON message from the transcriber.

    Pure function - no side effects.

    Args:
        raw_message: Raw frame from the WebSocket

    Returns:
        Parsed TranscriberMessage

    Raises:
        DecodeError: If the frame is not a JSON object

    Examples:
        >>> parse_transcriber_message('{"type": "Begin", "id": "abc"}')
        TranscriberMessage(type=TranscriberMessageType.BEGIN, ...)

        >>> parse_transcriber_message('{"type": "Turn", "turn_order": 2, "transcript": "hi"}')
        TranscriberMessage(type=TranscriberMessageType.TURN, turn_order=2, transcript='hi', ...)
    """
    if isinstance(raw_message, bytes):
        try:
            raw_message = raw_message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("Frame is not valid UTF-8") from e

    try:
        data = json.loads(raw_message)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {raw_message[:100]}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object: {raw_message[:100]}")

    msg_type_str = data.get("type", "")

    if msg_type_str == "Begin":
        return TranscriberMessage(
            type=TranscriberMessageType.BEGIN,
            raw=raw_message,
        )
    elif msg_type_str == "Turn":
        turn_order = _as_turn_order(data.get("turn_order"))
        if turn_order is None:
            raise DecodeError(f"Turn without a valid turn_order: {raw_message[:100]}")
        return TranscriberMessage(
            type=TranscriberMessageType.TURN,
            turn_order=turn_order,
            transcript=str(data.get("transcript") or ""),
            end_of_turn=bool(data.get("end_of_turn", False)),
            raw=raw_message,
        )
    else:
        return TranscriberMessage(
            type=TranscriberMessageType.OTHER,
            raw=raw_message,
        )


def _as_turn_order(value: object) -> Optional[int]:
    # bool is an int subclass; reject it along with negatives
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def create_terminate_message() -> str:
    """Control frame that ends the streaming session gracefully."""
    return json.dumps({"type": "Terminate"})
