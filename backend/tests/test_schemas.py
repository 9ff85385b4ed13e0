"""
Tests for schemas/client.py and schemas/upstream.py
"""

import base64
import json

import pytest

from gateway.core.exceptions import ClientProtocolError, UpstreamProtocolError
from gateway.schemas.client import (
    InvalidControlMessage,
    PingMessage,
    StartMessage,
    StopMessage,
    TranscriptDeltaEvent,
    UnknownControlMessage,
    parse_control_frame,
)
from gateway.schemas.upstream import (
    InputAudioBufferAppend,
    ProviderError,
    ResponseTextDelta,
    TranscriptionCompleted,
    TranscriptionDelta,
    UnknownProviderEvent,
    build_instructions,
    parse_provider_event,
)


class TestControlFrames:
    def test_start_with_target_language(self):
        msg = parse_control_frame('{"type": "start", "targetLanguage": "fr"}')
        assert isinstance(msg, StartMessage)
        assert msg.target_language == "fr"

    def test_start_without_target_language(self):
        msg = parse_control_frame('{"type": "start"}')
        assert isinstance(msg, StartMessage)
        assert msg.target_language is None

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_target_language_means_original(self, blank):
        msg = parse_control_frame(json.dumps({"type": "start", "targetLanguage": blank}))
        assert msg.target_language is None

    def test_stop_and_ping(self):
        assert isinstance(parse_control_frame('{"type": "stop"}'), StopMessage)
        assert isinstance(parse_control_frame(b'{"type": "ping"}'), PingMessage)

    def test_unknown_type_is_still_a_control_message(self):
        msg = parse_control_frame('{"type": "pause", "reason": "user"}')
        assert isinstance(msg, UnknownControlMessage)
        assert msg.type == "pause"

    def test_known_type_with_invalid_fields(self):
        msg = parse_control_frame('{"type": "start", "targetLanguage": 5}')
        assert isinstance(msg, InvalidControlMessage)
        assert msg.type == "start"
        assert msg.message == "Invalid start message: targetLanguage"

    @pytest.mark.parametrize(
        "raw",
        [
            b"\x00\x01\xff\xfe",
            "RIFF....WAVEfmt",
            "[1, 2, 3]",
            '{"kind": "start"}',
            '{"type": 7}',
        ],
    )
    def test_non_control_frames_raise(self, raw):
        with pytest.raises(ClientProtocolError):
            parse_control_frame(raw)


class TestServerEvents:
    def test_delta_serialization(self):
        event = TranscriptDeltaEvent(text="lo", full="Hello", language="original")
        assert event.model_dump() == {
            "type": "transcript.delta",
            "text": "lo",
            "full": "Hello",
            "language": "original",
        }


class TestProviderEvents:
    def test_transcription_delta(self):
        event = parse_provider_event(
            json.dumps(
                {
                    "type": "conversation.item.input_audio_transcription.delta",
                    "item_id": "item_1",
                    "content_index": 0,
                    "delta": "Hel",
                }
            )
        )
        assert isinstance(event, TranscriptionDelta)
        assert event.delta == "Hel"

    def test_transcription_completed(self):
        event = parse_provider_event(
            '{"type": "conversation.item.input_audio_transcription.completed", '
            '"transcript": "Hello there."}'
        )
        assert isinstance(event, TranscriptionCompleted)
        assert event.transcript == "Hello there."

    def test_response_text_delta(self):
        event = parse_provider_event('{"type": "response.text.delta", "delta": "Bon"}')
        assert isinstance(event, ResponseTextDelta)

    def test_error_with_and_without_detail(self):
        event = parse_provider_event(
            '{"type": "error", "error": {"type": "invalid_request_error", "message": "bad"}}'
        )
        assert isinstance(event, ProviderError)
        assert event.error.message == "bad"

        bare = parse_provider_event('{"type": "error"}')
        assert bare.error is None

    def test_unknown_type(self):
        event = parse_provider_event('{"type": "rate_limits.updated", "rate_limits": []}')
        assert isinstance(event, UnknownProviderEvent)
        assert event.type == "rate_limits.updated"

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '"just a string"',
            '{"no_type": true}',
            '{"type": "response.text.delta", "delta": {"nested": 1}}',
        ],
    )
    def test_malformed_payloads_raise(self, raw):
        with pytest.raises(UpstreamProtocolError):
            parse_provider_event(raw)


class TestOutbound:
    def test_audio_append_is_base64(self):
        chunk = bytes(range(256))
        msg = InputAudioBufferAppend.from_chunk(chunk)
        assert msg.type == "input_audio_buffer.append"
        assert base64.b64decode(msg.audio) == chunk

    def test_instructions_depend_on_target(self):
        assert "original language" in build_instructions(None)
        assert "Japanese" in build_instructions("Japanese")
