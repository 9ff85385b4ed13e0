"""
Realtime Stream WebSocket
实时转写 / 翻译中继入口
"""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from gateway.services.relay import ClientLink

router = APIRouter(tags=["Realtime Stream"])


@router.websocket("/stream")
async def websocket_stream(websocket: WebSocket):
    """
    Relay one client audio stream to the realtime provider.

    Client frames: {"type": "start", "targetLanguage"?}, {"type": "stop"},
    {"type": "ping"}, and binary audio. Server events: ready,
    transcript.delta, transcript.final, error, pong.
    """
    link = ClientLink(websocket)
    await link.run()
