"""
Client Link
客户端 WebSocket 连接：控制帧 / 音频帧分流，驱动会话与上游连接的生命周期

- 控制帧: start / stop / ping (JSON)
- 其他帧一律视为原始音频，仅在 STREAMING 且上游连接打开时透传，否则静默丢弃
- 所有下行事件进入 outbox，由单一写任务按顺序发送
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from functools import partial

from fastapi import WebSocket, WebSocketDisconnect
from gateway.core.config import Settings, settings as default_settings
from gateway.core.exceptions import ClientProtocolError, GatewayError, WebSocketSendError
from gateway.core.logging import connection_logger, log_ws_event
from gateway.schemas.client import (
    ErrorEvent,
    InvalidControlMessage,
    PingMessage,
    PongEvent,
    ReadyEvent,
    ServerEvent,
    StartMessage,
    StopMessage,
    TranscriptFinalEvent,
    parse_control_frame,
)
from gateway.services.llm_service import TranslationService
from gateway.services.relay.event_translator import EventTranslator
from gateway.services.relay.session import RelaySession, SessionPhase
from gateway.services.relay.translation_injector import TranslationInjector, TranslationResult
from gateway.services.relay.upstream_link import UpstreamLink


def now_ms() -> int:
    return int(time.time() * 1000)


class ClientLink:
    """Owns one client connection and the session that lives on it"""

    def __init__(
        self,
        websocket: WebSocket,
        config: Settings | None = None,
        translation_service: TranslationService | None = None,
        upstream_factory: Callable[..., UpstreamLink] = UpstreamLink,
        connection_id: str | None = None,
    ):
        self.websocket = websocket
        self.config = config or default_settings
        self.connection_id = connection_id or f"conn_{uuid.uuid4().hex[:8]}"
        self.log = connection_logger(self.connection_id)

        self.session = RelaySession(connection_id=self.connection_id)
        self.injector = TranslationInjector(
            translation_service or TranslationService(self.config),
            on_translated=self._on_translated,
            ordered=self.config.TRANSLATION_ORDERED,
            timeout=self.config.TRANSLATION_TIMEOUT,
        )
        self.translator = EventTranslator(self.session, self.post, self.injector)
        self.upstream_factory = upstream_factory

        self._outbox: asyncio.Queue[ServerEvent] = asyncio.Queue()
        self._writer_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self._client_gone = False

    # ==================== 连接循环 ====================

    async def run(self) -> None:
        """Accept the connection and process frames until the client leaves"""
        await self.websocket.accept()
        log_ws_event("connected", self.connection_id)
        self._writer_task = asyncio.create_task(self._drain_outbox())

        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                try:
                    await self.handle_frame(message)
                except Exception as e:
                    self.log.exception(f"Frame handling failed: {e}")
                    self.post(ErrorEvent(message=str(e) or "Internal error"))
        except WebSocketDisconnect:
            pass
        finally:
            await self.on_disconnect()

    async def handle_frame(self, message: dict) -> None:
        """Dispatch one ASGI receive message (text or bytes)"""
        raw = message.get("bytes")
        if raw is None:
            raw = message.get("text")
        if raw is None:
            return

        try:
            control = parse_control_frame(raw)
        except ClientProtocolError:
            chunk = raw if isinstance(raw, bytes) else raw.encode("utf-8")
            await self.forward_audio(chunk)
            return

        match control:
            case PingMessage():
                self.post(PongEvent(t=now_ms()))
            case StartMessage(target_language=target_language):
                await self.start(target_language)
            case StopMessage():
                await self.stop()
            case InvalidControlMessage(message=message):
                self.log.warning(message)
                self.post(ErrorEvent(message=message))
            case _:
                self.log.warning(f"Unknown control message type: {control.type}")

    # ==================== 控制消息 ====================

    async def start(self, target_language: str | None) -> None:
        """开始新的 span；已有上游连接时先关闭再重连"""
        await self._shutdown_upstream()
        self.injector.detach()
        self.injector.reset()

        epoch = self.session.begin(target_language)
        self.log.info(
            f"Starting session {self.connection_id}: target={self.session.language}, span={epoch}"
        )

        link = self.upstream_factory(
            self.config,
            target_language,
            on_event=partial(self.translator.handle, epoch=epoch),
            on_error=partial(self._on_upstream_error, epoch=epoch),
        )
        self.session.attach_upstream(link)
        self._connect_task = asyncio.create_task(self._connect(link, epoch))

    async def stop(self) -> None:
        """关闭上游并发送 Final；没有 start 过也会发送"""
        task = self._take_connect_task()
        link = self.session.release_upstream()
        self.session.mark_stopped()
        await self._close(task, link)
        self.injector.detach()

        self.post(
            TranscriptFinalEvent(text=self.session.transcript, language=self.session.language)
        )
        log_ws_event(
            "stopped", self.connection_id, {"transcript_chars": len(self.session.transcript)}
        )

    async def forward_audio(self, chunk: bytes) -> None:
        """Pass audio through only while streaming; otherwise drop it"""
        link = self.session.upstream
        if self.session.phase is not SessionPhase.STREAMING or link is None:
            return
        await link.send_audio(chunk)

    async def on_disconnect(self) -> None:
        """客户端断开：无条件关闭上游，不发送 Final"""
        task = self._take_connect_task()
        link = self.session.release_upstream()
        self.session.mark_stopped()
        try:
            await self._close(task, link)
        finally:
            self.injector.detach()
            self._client_gone = True
            if self._writer_task and not self._writer_task.done():
                self._writer_task.cancel()
                try:
                    await self._writer_task
                except asyncio.CancelledError:
                    pass
            log_ws_event("disconnected", self.connection_id)

    # ==================== 下行事件 ====================

    def post(self, event: ServerEvent) -> None:
        """Queue an event for the client; never blocks"""
        self._outbox.put_nowait(event)

    async def _drain_outbox(self) -> None:
        while True:
            event = await self._outbox.get()
            try:
                if not self._client_gone:
                    await self._send(event)
            except WebSocketSendError as e:
                self.log.warning(f"Failed to send to client: {e.message}")
                self._client_gone = True
            finally:
                self._outbox.task_done()

    async def _send(self, event: ServerEvent) -> None:
        try:
            await self.websocket.send_json(event.model_dump())
        except Exception as e:
            raise WebSocketSendError(str(e) or type(e).__name__) from e

    # ==================== 上游生命周期 ====================

    async def _connect(self, link: UpstreamLink, epoch: int) -> None:
        try:
            await link.open()
        except GatewayError as e:
            self.log.warning(f"Upstream open failed: {e.message}")
            self._fail_start(link, e.message)
            return
        except Exception as e:
            self.log.exception(f"Unexpected upstream open failure: {e}")
            self._fail_start(link, "Failed to open upstream connection")
            return

        if self.session.upstream is not link or self.session.epoch != epoch:
            # start 已被 stop 或新的 start 取代
            await link.close()
            return

        self.session.mark_streaming()
        self.post(ReadyEvent())
        log_ws_event("ready", self.connection_id, {"span": epoch})

    def _fail_start(self, link: UpstreamLink, message: str) -> None:
        if self.session.upstream is not link:
            return
        self.session.release_upstream()
        self.session.mark_idle()
        self.post(ErrorEvent(message=message))

    async def _on_upstream_error(self, message: str, epoch: int) -> None:
        if self.session.accepts(epoch):
            self.post(ErrorEvent(message=message))

    async def _on_translated(self, result: TranslationResult) -> None:
        await self.translator.apply_translation(result)

    def _take_connect_task(self) -> asyncio.Task | None:
        task, self._connect_task = self._connect_task, None
        return task

    async def _shutdown_upstream(self) -> None:
        task = self._take_connect_task()
        link = self.session.release_upstream()
        await self._close(task, link)

    async def _close(self, task: asyncio.Task | None, link: UpstreamLink | None) -> None:
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if link:
            await link.close()
