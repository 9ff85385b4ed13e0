"""
Client Protocol Schemas
客户端协议：控制帧 (JSON) + 服务端事件
"""

from __future__ import annotations

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from gateway.core.exceptions import ClientProtocolError

# language tag of untranslated text
ORIGINAL_LANGUAGE = "original"


# ========== Client → Server ==========


class StartMessage(BaseModel):
    """Begin a transcription span, optionally translating into targetLanguage"""

    type: Literal["start"] = "start"
    target_language: str | None = Field(default=None, alias="targetLanguage")

    class Config:
        populate_by_name = True

    @field_validator("target_language")
    @classmethod
    def blank_means_original(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class StopMessage(BaseModel):
    type: Literal["stop"] = "stop"


class PingMessage(BaseModel):
    type: Literal["ping"] = "ping"


class UnknownControlMessage(BaseModel):
    """Well-formed control frame with a type the gateway does not handle"""

    type: str


class InvalidControlMessage(BaseModel):
    """Known control type whose fields failed validation"""

    type: str
    message: str


ControlMessage = Annotated[
    Union[StartMessage, StopMessage, PingMessage],
    Field(discriminator="type"),
]

_control_adapter: TypeAdapter = TypeAdapter(ControlMessage)

CONTROL_TYPES = ("start", "stop", "ping")


def parse_control_frame(
    raw: str | bytes,
) -> StartMessage | StopMessage | PingMessage | InvalidControlMessage | UnknownControlMessage:
    """
    Parse a client frame as a control message.

    A frame is a control message only if it is a UTF-8 JSON object with a
    string ``type``. Anything else raises ClientProtocolError and the caller
    treats the frame as opaque audio.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ClientProtocolError("Frame is not UTF-8 text") from e

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as e:
        raise ClientProtocolError("Frame is not JSON") from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ClientProtocolError("Frame has no message type")

    try:
        return _control_adapter.validate_python(data)
    except ValidationError as e:
        if data["type"] in CONTROL_TYPES:
            fields = ", ".join(str(err["loc"][-1]) for err in e.errors() if err["loc"])
            return InvalidControlMessage(
                type=data["type"],
                message=f"Invalid {data['type']} message: {fields or 'malformed'}",
            )
        # 未知类型：记录后忽略，不当作音频
        return UnknownControlMessage(type=data["type"])


# ========== Server → Client ==========


class ReadyEvent(BaseModel):
    """Upstream link established, audio may be sent"""

    type: Literal["ready"] = "ready"


class PongEvent(BaseModel):
    type: Literal["pong"] = "pong"
    t: int  # unix ms


class TranscriptDeltaEvent(BaseModel):
    """Incremental text plus the full transcript so far"""

    type: Literal["transcript.delta"] = "transcript.delta"
    text: str
    full: str
    language: str


class TranscriptFinalEvent(BaseModel):
    type: Literal["transcript.final"] = "transcript.final"
    text: str
    language: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


ServerEvent = Union[
    ReadyEvent,
    PongEvent,
    TranscriptDeltaEvent,
    TranscriptFinalEvent,
    ErrorEvent,
]
