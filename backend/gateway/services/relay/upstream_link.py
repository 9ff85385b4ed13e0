"""
Upstream Link
到实时转写服务的 WebSocket 连接

工作原理:
1. 每次 start 建立一条新连接
2. 连接建立后立即发送 session.update (仅文本模态 + 指令 + server VAD)
3. 音频块 base64 编码后以 input_audio_buffer.append 透传，保持到达顺序
4. 监听任务按顺序解析上游事件并交给回调
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from gateway.core.config import Settings
from gateway.core.exceptions import MissingConfigError, UpstreamConnectError, UpstreamProtocolError
from gateway.schemas.upstream import (
    InputAudioBufferAppend,
    InputAudioTranscription,
    ProviderEvent,
    SessionConfig,
    SessionUpdate,
    TurnDetection,
    build_instructions,
    parse_provider_event,
)

CONNECTION_LOST = "Upstream connection lost"


class UpstreamLink:
    """
    One streaming connection to the realtime provider.

    The session configuration (modality, instructions, VAD) is fixed for the
    life of the link. Only the owning client loop writes audio, so frames go
    out in arrival order.
    """

    def __init__(
        self,
        config: Settings,
        target_language: str | None,
        on_event: Callable[[ProviderEvent], Awaitable[None]],
        on_error: Callable[[str], Awaitable[None]] | None = None,
    ):
        self.config = config
        self.target_language = target_language
        self.on_event = on_event
        self.on_error = on_error

        self._ws = None
        self._listener_task: asyncio.Task | None = None
        self._closing = False
        self._listener_done = False

    @property
    def url(self) -> str:
        return f"{self.config.REALTIME_URL}?model={self.config.REALTIME_MODEL}"

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not (self._closing or self._listener_done)

    def build_session_update(self) -> SessionUpdate:
        return SessionUpdate(
            session=SessionConfig(
                instructions=build_instructions(self.target_language),
                input_audio_transcription=InputAudioTranscription(
                    model=self.config.INPUT_TRANSCRIPTION_MODEL
                ),
                turn_detection=TurnDetection(
                    threshold=self.config.VAD_THRESHOLD,
                    prefix_padding_ms=self.config.VAD_PREFIX_PADDING_MS,
                    silence_duration_ms=self.config.VAD_SILENCE_DURATION_MS,
                ),
            )
        )

    async def open(self) -> None:
        """Connect, send the session configuration and start listening

        Raises:
            MissingConfigError: no provider credential configured
            UpstreamConnectError: network or handshake failure
        """
        if not self.config.OPENAI_API_KEY:
            raise MissingConfigError("OPENAI_API_KEY")

        headers = {
            "Authorization": f"Bearer {self.config.OPENAI_API_KEY}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            self._ws = await websockets.connect(
                self.url,
                additional_headers=headers,
                ping_interval=self.config.UPSTREAM_PING_INTERVAL,
            )
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to realtime provider: {e}")
            raise UpstreamConnectError(f"Connection to provider failed: {e}") from e

        try:
            await self._ws.send(self.build_session_update().model_dump_json())
        except (OSError, ConnectionClosed) as e:
            await self._discard_transport()
            raise UpstreamConnectError(f"Session configuration failed: {e}") from e

        logger.info(
            f"Connected to realtime provider: model={self.config.REALTIME_MODEL}, "
            f"target={self.target_language or 'original'}"
        )
        self._listener_task = asyncio.create_task(self._listen())

    async def send_audio(self, chunk: bytes) -> None:
        """Forward one audio chunk; a no-op unless the link is open"""
        if not self.is_open:
            return
        try:
            await self._ws.send(InputAudioBufferAppend.from_chunk(chunk).model_dump_json())
        except ConnectionClosed as e:
            logger.warning(f"Audio dropped, provider connection closed: {e}")

    async def close(self) -> None:
        """关闭连接；已被上游关闭时为 no-op"""
        if self._closing:
            return
        self._closing = True

        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, ConnectionClosed) as e:
                logger.debug(f"Provider connection already gone: {e}")

        if self._listener_task and not self._listener_task.done():
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        self._ws = None
        logger.info("Realtime provider connection closed")

    async def _listen(self) -> None:
        """按到达顺序解析并分发上游事件"""
        try:
            async for message in self._ws:
                try:
                    event = parse_provider_event(message)
                except UpstreamProtocolError as e:
                    logger.warning(f"Skipping provider payload: {e.message}")
                    continue
                await self.on_event(event)
            if not self._closing:
                logger.info("Realtime provider closed the connection")
        except ConnectionClosedOK:
            if not self._closing:
                logger.info("Realtime provider closed the connection")
        except ConnectionClosed as e:
            if not self._closing:
                logger.error(f"Realtime provider connection lost: {e}")
                await self._emit_error(CONNECTION_LOST)
        except Exception as e:
            logger.exception(f"Upstream listener failed: {e}")
            await self._emit_error(CONNECTION_LOST)
        finally:
            self._listener_done = True

    async def _emit_error(self, message: str) -> None:
        if self.on_error:
            try:
                await self.on_error(message)
            except Exception as e:
                logger.error(f"Error in upstream error callback: {e}")

    async def _discard_transport(self) -> None:
        try:
            await self._ws.close()
        except (OSError, ConnectionClosed):
            pass
        self._ws = None
