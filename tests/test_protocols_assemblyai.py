"""Tests for AssemblyAI protocol parsing and configuration.

These tests verify:
- Message parsing handles Begin, Turn and everything else
- Malformed frames raise DecodeError
- URL and header construction is correct
"""

from urllib.parse import parse_qs, urlparse

import pytest

from relay_app.lib.livetypes import DecodeError
from relay_app.lib.protocols.assemblyai import (
    StreamingConfig,
    TranscriberMessage,
    TranscriberMessageType,
    create_terminate_message,
    get_stream_url,
    get_token_headers,
    get_token_url,
    parse_token_response,
    parse_transcriber_message,
)


class TestParseTranscriberMessage:
    """Tests for parse_transcriber_message function."""

    def test_parse_begin(self):
        """Begin message should be recognized."""
        msg = parse_transcriber_message('{"type": "Begin", "id": "abc", "expires_at": 1}')

        assert msg.type == TranscriberMessageType.BEGIN
        assert msg.is_begin
        assert not msg.is_turn

    def test_parse_turn(self):
        """Turn message should carry order and transcript."""
        raw = (
            '{"type": "Turn", "turn_order": 3, "transcript": "Hello there.",'
            ' "end_of_turn": true, "turn_is_formatted": true}'
        )
        msg = parse_transcriber_message(raw)

        assert msg.type == TranscriberMessageType.TURN
        assert msg.turn_order == 3
        assert msg.transcript == "Hello there."
        assert msg.end_of_turn is True
        assert msg.is_turn

    def test_parse_turn_bytes(self):
        """Frames delivered as bytes should decode the same way."""
        msg = parse_transcriber_message(b'{"type": "Turn", "turn_order": 0, "transcript": "hi"}')

        assert msg.is_turn
        assert msg.transcript == "hi"

    def test_parse_turn_missing_transcript(self):
        """A Turn without transcript text is an empty fragment."""
        msg = parse_transcriber_message('{"type": "Turn", "turn_order": 1}')

        assert msg.is_turn
        assert msg.transcript == ""
        assert msg.end_of_turn is False

    def test_parse_termination_is_other(self):
        """Termination and unknown types are OTHER."""
        raw = '{"type": "Termination", "audio_duration_seconds": 12}'
        msg = parse_transcriber_message(raw)

        assert msg.type == TranscriberMessageType.OTHER
        assert msg.raw == raw

    def test_parse_missing_type_field(self):
        """Message without type field should be OTHER."""
        msg = parse_transcriber_message('{"transcript": "orphan"}')

        assert msg.type == TranscriberMessageType.OTHER

    def test_parse_invalid_json(self):
        """Invalid JSON should raise DecodeError."""
        with pytest.raises(DecodeError, match="Invalid JSON"):
            parse_transcriber_message("not valid json {")

    def test_parse_non_object(self):
        """A JSON value that is not an object should raise DecodeError."""
        with pytest.raises(DecodeError):
            parse_transcriber_message("[1, 2, 3]")

    def test_parse_invalid_utf8(self):
        """Undecodable binary frames should raise DecodeError."""
        with pytest.raises(DecodeError):
            parse_transcriber_message(b"\xff\xfe\x00")

    @pytest.mark.parametrize("turn_order", ['"1"', "-1", "true", "null", "1.5"])
    def test_parse_turn_invalid_order(self, turn_order):
        """A Turn without a non-negative integer order cannot be placed."""
        raw = f'{{"type": "Turn", "turn_order": {turn_order}, "transcript": "x"}}'
        with pytest.raises(DecodeError):
            parse_transcriber_message(raw)

    def test_message_is_frozen(self):
        """TranscriberMessage should be immutable."""
        msg = TranscriberMessage(type=TranscriberMessageType.TURN, transcript="hello")

        with pytest.raises(Exception):
            msg.transcript = "modified"


class TestUrls:
    """Tests for URL and header construction."""

    def test_token_url(self):
        assert get_token_url("streaming.assemblyai.com") == "https://streaming.assemblyai.com/v3/token"

    def test_token_url_insecure(self):
        assert get_token_url("127.0.0.1:8080", secure=False) == "http://127.0.0.1:8080/v3/token"

    def test_token_headers_use_raw_key(self):
        """The API key is the whole Authorization value."""
        headers = get_token_headers("my_key")

        assert headers == {"Authorization": "my_key"}

    def test_stream_url(self):
        """Stream URL should carry sample rate, formatted finals and token."""
        url = get_stream_url("streaming.assemblyai.com", 16000, "tok123")
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert parsed.scheme == "wss"
        assert parsed.netloc == "streaming.assemblyai.com"
        assert parsed.path == "/v3/ws"
        assert query == {
            "sample_rate": ["16000"],
            "formatted_finals": ["true"],
            "token": ["tok123"],
        }

    def test_stream_url_escapes_token(self):
        """Tokens are query-encoded."""
        url = get_stream_url("h", 8000, "a b&c", secure=False)

        assert url.startswith("ws://h/v3/ws?")
        assert parse_qs(urlparse(url).query)["token"] == ["a b&c"]


class TestParseTokenResponse:
    """Tests for parse_token_response function."""

    def test_returns_token(self):
        assert parse_token_response({"token": "abc"}) == "abc"

    def test_missing_token(self):
        with pytest.raises(ValueError):
            parse_token_response({"error": "unauthorized"})

    def test_empty_token(self):
        with pytest.raises(ValueError):
            parse_token_response({"token": ""})

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_token_response(["abc"])


class TestStreamingConfig:
    """Tests for StreamingConfig dataclass."""

    def test_properties(self):
        config = StreamingConfig(api_key="key123", host="example.test", sample_rate=8000)

        assert config.token_url == "https://example.test/v3/token"
        assert config.headers == {"Authorization": "key123"}
        assert "sample_rate=8000" in config.stream_url("t")

    def test_is_configured(self):
        assert StreamingConfig(api_key="key").is_configured()
        assert not StreamingConfig(api_key="").is_configured()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ASSEMBLYAI_API_KEY", "env-key")
        monkeypatch.setenv("ASSEMBLYAI_HOST", "eu.example.test")
        monkeypatch.setenv("SAMPLE_RATE", "8000")

        config = StreamingConfig.from_env()

        assert config.api_key == "env-key"
        assert config.host == "eu.example.test"
        assert config.sample_rate == 8000
        assert config.secure is True

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        monkeypatch.delenv("ASSEMBLYAI_HOST", raising=False)
        monkeypatch.delenv("SAMPLE_RATE", raising=False)

        config = StreamingConfig.from_env()

        assert not config.is_configured()
        assert config.host == "streaming.assemblyai.com"
        assert config.sample_rate == 16000

    def test_immutable(self):
        config = StreamingConfig(api_key="key")

        with pytest.raises(Exception):
            config.api_key = "new"


def test_terminate_message():
    """Terminate control frame is the only outbound JSON frame."""
    assert create_terminate_message() == '{"type": "Terminate"}'
