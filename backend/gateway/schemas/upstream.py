"""
Upstream Provider Schemas
实时转写服务 (OpenAI Realtime 方言) 的消息模型

出站: session.update / input_audio_buffer.append
入站: 转写增量、分段完成、文本响应增量、错误
"""

from __future__ import annotations

import base64
import json
from typing import Literal, Union

from pydantic import BaseModel, Field, ValidationError

from gateway.core.exceptions import UpstreamProtocolError

TRANSCRIBE_INSTRUCTIONS = (
    "Transcribe the audio in the original language. "
    "Output only the transcription, nothing else."
)

TRANSLATE_INSTRUCTIONS = (
    "You are a real-time translator. Translate every utterance into {language}. "
    "Output only the translated text, nothing else. Be immediate and concise."
)


def build_instructions(target_language: str | None) -> str:
    """Session instructions fixed for the life of one upstream link"""
    if target_language:
        return TRANSLATE_INSTRUCTIONS.format(language=target_language)
    return TRANSCRIBE_INSTRUCTIONS


# ========== Outbound ==========


class TurnDetection(BaseModel):
    type: Literal["server_vad"] = "server_vad"
    threshold: float
    prefix_padding_ms: int
    silence_duration_ms: int


class InputAudioTranscription(BaseModel):
    model: str


class SessionConfig(BaseModel):
    # never consume provider-synthesized audio
    modalities: list[str] = Field(default_factory=lambda: ["text"])
    instructions: str
    input_audio_format: str = "pcm16"
    input_audio_transcription: InputAudioTranscription
    turn_detection: TurnDetection


class SessionUpdate(BaseModel):
    type: Literal["session.update"] = "session.update"
    session: SessionConfig


class InputAudioBufferAppend(BaseModel):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str  # base64

    @classmethod
    def from_chunk(cls, chunk: bytes) -> "InputAudioBufferAppend":
        return cls(audio=base64.b64encode(chunk).decode("ascii"))


# ========== Inbound ==========


class TranscriptionDelta(BaseModel):
    type: Literal["conversation.item.input_audio_transcription.delta"] = (
        "conversation.item.input_audio_transcription.delta"
    )
    item_id: str | None = None
    delta: str = ""


class TranscriptionCompleted(BaseModel):
    """A segment bounded by server VAD has been fully transcribed"""

    type: Literal["conversation.item.input_audio_transcription.completed"] = (
        "conversation.item.input_audio_transcription.completed"
    )
    item_id: str | None = None
    transcript: str = ""


class ResponseTextDelta(BaseModel):
    type: Literal["response.text.delta"] = "response.text.delta"
    delta: str = ""


class ResponseTextDone(BaseModel):
    type: Literal["response.text.done"] = "response.text.done"
    text: str = ""


class ProviderErrorDetail(BaseModel):
    type: str | None = None
    code: str | None = None
    message: str | None = None


class ProviderError(BaseModel):
    type: Literal["error"] = "error"
    error: ProviderErrorDetail | None = None


class UnknownProviderEvent(BaseModel):
    """Any event type not modelled above"""

    type: str


ProviderEvent = Union[
    TranscriptionDelta,
    TranscriptionCompleted,
    ResponseTextDelta,
    ResponseTextDone,
    ProviderError,
    UnknownProviderEvent,
]

_EVENT_MODELS: dict[str, type[BaseModel]] = {
    "conversation.item.input_audio_transcription.delta": TranscriptionDelta,
    "conversation.item.input_audio_transcription.completed": TranscriptionCompleted,
    "response.text.delta": ResponseTextDelta,
    "response.text.done": ResponseTextDone,
    "error": ProviderError,
}


def parse_provider_event(raw: str | bytes) -> ProviderEvent:
    """
    Parse one provider message.

    Unknown event types become UnknownProviderEvent; payloads that are not a
    JSON object with a type, or whose known type has malformed fields, raise
    UpstreamProtocolError.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as e:
        raise UpstreamProtocolError("Invalid JSON from provider", payload=raw) from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise UpstreamProtocolError("Provider message has no event type", payload=data)

    model = _EVENT_MODELS.get(data["type"])
    if model is None:
        return UnknownProviderEvent(type=data["type"])

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise UpstreamProtocolError(f"Malformed {data['type']} event", payload=data) from e
