"""
Translation Injector
分段翻译：每个完成的分段一个后台任务，不阻塞上游事件流
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from gateway.core.exceptions import GatewayError
from gateway.services.llm_service import TranslationService
from gateway.services.relay.ordered_translation_sender import OrderedTranslationSender


@dataclass
class TranslationResult:
    """翻译结果"""

    text: str
    segment_index: int
    epoch: int
    target_language: str
    error: bool = False


class TranslationInjector:
    """Fire-and-forget translation of finished segments

    Each submitted segment runs in its own detached task. Failures are logged
    and the segment is dropped. With ``ordered`` the results are delivered in
    the order the segments were submitted, otherwise as they complete.
    """

    def __init__(
        self,
        service: TranslationService,
        on_translated: Callable[[TranslationResult], Awaitable[None]],
        ordered: bool = True,
        timeout: float | None = None,
    ):
        self.service = service
        self.on_translated = on_translated
        self.ordered = ordered
        self.timeout = timeout

        self._next_index = 0
        self._sender = OrderedTranslationSender(self._deliver)
        # 持有引用，防止任务被垃圾回收
        self._tasks: set[asyncio.Task] = set()
        # detach 之后仍在运行的任务，完成后自行移除
        self._detached: set[asyncio.Task] = set()

    def reset(self) -> None:
        """新 span 开始：重新编号，旧 span 的结果交给旧 sender 后被丢弃"""
        self._next_index = 0
        self._sender = OrderedTranslationSender(self._deliver)

    def submit(self, text: str, target_language: str, epoch: int) -> asyncio.Task:
        """Schedule translation of one segment and return immediately"""
        index = self._next_index
        self._next_index += 1
        task = asyncio.create_task(
            self._translate(text, target_language, epoch, index, self._sender),
            name=f"translate-{epoch}-{index}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def detach(self) -> int:
        """Stop tracking pending tasks without awaiting them; returns how many were pending

        Detached tasks keep running to completion and their results are
        discarded by the session epoch check.
        """
        pending = len(self._tasks)
        if pending:
            logger.debug(f"Detaching {pending} pending translation task(s)")
        for task in self._tasks:
            task.add_done_callback(self._detached.discard)
        self._detached.update(self._tasks)
        self._tasks.clear()
        return pending

    @property
    def detached_count(self) -> int:
        return len(self._detached)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def _translate(
        self,
        text: str,
        target_language: str,
        epoch: int,
        index: int,
        sender: OrderedTranslationSender,
    ) -> None:
        result = TranslationResult(
            text="",
            segment_index=index,
            epoch=epoch,
            target_language=target_language,
            error=True,
        )
        try:
            translated = await asyncio.wait_for(
                self.service.translate(text, target_language), timeout=self.timeout
            )
            result.text = translated
            result.error = False
        except TimeoutError:
            logger.warning(f"Translation timeout, dropping segment: {text[:50]}...")
        except GatewayError as e:
            logger.warning(f"Translation failed, dropping segment: {e.message}")
        except Exception as e:
            logger.exception(f"Unexpected translation error: {e}")

        if self.ordered:
            await sender.on_translation_complete(result)
        elif not result.error:
            await self._deliver(result)

    async def _deliver(self, result: TranslationResult) -> None:
        try:
            await self.on_translated(result)
        except Exception as e:
            logger.error(f"Error in translation completion callback: {e}")
