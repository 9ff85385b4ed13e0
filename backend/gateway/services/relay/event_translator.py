"""
Event Translator
上游事件 → 客户端转写协议

网关中唯一同时引用上游协议和客户端协议的地方，两边可以独立演进。
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from gateway.schemas.client import (
    ORIGINAL_LANGUAGE,
    ErrorEvent,
    ServerEvent,
    TranscriptDeltaEvent,
)
from gateway.schemas.upstream import (
    ProviderError,
    ProviderEvent,
    ResponseTextDelta,
    ResponseTextDone,
    TranscriptionCompleted,
    TranscriptionDelta,
)
from gateway.services.relay.session import RelaySession
from gateway.services.relay.translation_injector import TranslationInjector, TranslationResult

# 分段之间的连接符
SEGMENT_JOINER = " "

DEFAULT_PROVIDER_ERROR = "Upstream provider error"


class EventTranslator:
    """Normalize provider events into transcript events for one session

    Events are handled strictly in arrival order (the upstream listener
    awaits each one). ``emit`` must not block; it only queues the event for
    the client writer.

    | provider event                  | no target language        | target language          |
    |---------------------------------|---------------------------|--------------------------|
    | transcription delta             | append, Delta "original"  | ignored                  |
    | transcription completed         | append " ", Delta         | hand to injector         |
    | response text delta             | ignored                   | append, Delta target     |
    | error                           | Error                     | Error                    |
    | anything else                   | ignored                   | ignored                  |
    """

    def __init__(
        self,
        session: RelaySession,
        emit: Callable[[ServerEvent], None],
        injector: TranslationInjector,
    ):
        self.session = session
        self.emit = emit
        self.injector = injector

    async def handle(self, event: ProviderEvent, epoch: int) -> None:
        """Process one provider event produced by the link of span ``epoch``"""
        if not self.session.accepts(epoch):
            logger.debug(f"Dropping {event.type} from a finished span")
            return

        target = self.session.target_language

        match event:
            case TranscriptionDelta(delta=delta):
                if target or not delta:
                    return
                await self._append_and_emit(delta, ORIGINAL_LANGUAGE, epoch)

            case TranscriptionCompleted(transcript=transcript):
                segment = transcript.strip()
                if not segment:
                    return
                if target:
                    logger.debug(f"Translating segment into {target}: {segment[:80]}")
                    self.injector.submit(segment, target, epoch)
                else:
                    await self._append_and_emit(
                        segment, ORIGINAL_LANGUAGE, epoch, joiner=SEGMENT_JOINER
                    )

            case ResponseTextDelta(delta=delta):
                if not target or not delta:
                    return
                await self._append_and_emit(delta, target, epoch)

            case ResponseTextDone(text=text):
                if target and text:
                    logger.debug(f"Provider translation completed: {text[:80]}")

            case ProviderError(error=detail):
                message = (detail.message if detail else None) or DEFAULT_PROVIDER_ERROR
                logger.warning(f"Provider error on {self.session.connection_id}: {message}")
                self.emit(ErrorEvent(message=message))

            case _:
                # 未知事件类型：向前兼容，忽略
                logger.trace(f"Ignoring provider event {event.type}")

    async def apply_translation(self, result: TranslationResult) -> None:
        """Append a finished segment translation and emit it"""
        await self._append_and_emit(
            result.text, result.target_language, result.epoch, joiner=SEGMENT_JOINER
        )

    async def _append_and_emit(
        self, text: str, language: str, epoch: int, joiner: str = ""
    ) -> None:
        full = await self.session.append(text, joiner=joiner, epoch=epoch)
        if full is None:
            logger.debug("Session no longer live, discarding text")
            return
        self.emit(TranscriptDeltaEvent(text=text, full=full, language=language))
