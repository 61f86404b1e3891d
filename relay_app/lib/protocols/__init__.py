"""Protocol definitions for the transcriber and the peers."""

from .assemblyai import (
    StreamingConfig,
    TranscriberMessage,
    TranscriberMessageType,
    create_terminate_message,
    get_stream_url,
    get_token_headers,
    get_token_url,
    parse_transcriber_message,
)

__all__ = [
    "StreamingConfig",
    "TranscriberMessage",
    "TranscriberMessageType",
    "create_terminate_message",
    "get_stream_url",
    "get_token_headers",
    "get_token_url",
    "parse_transcriber_message",
]
