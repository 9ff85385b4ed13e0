"""
Ordered Translation Sender
按分段顺序交付翻译结果

翻译请求并行执行；结果按 segment_index 顺序交付，前面的分段未返回时后面的分段等待。
失败的分段同样占位，到达后直接让出位置，不会阻塞后续分段。
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from gateway.services.relay.translation_injector import TranslationResult


class OrderedTranslationSender:
    """Release translation results strictly in segment order

    One instance per transcription span; a new span gets a new sender.

    Attributes:
        send_callback: receives each successful result, in order
        results: completed results waiting for an earlier segment
        next_to_send: index of the next segment to release
    """

    def __init__(self, send_callback: Callable[[TranslationResult], Awaitable[Any]]):
        self.send_callback = send_callback
        self.results: dict[int, TranslationResult] = {}
        self.next_to_send: int = 0
        self._lock = asyncio.Lock()

    async def on_translation_complete(self, result: TranslationResult):
        """翻译完成回调：缓存结果并交付所有连续就绪的分段"""
        async with self._lock:
            self.results[result.segment_index] = result
            await self._flush_ready()

    async def _flush_ready(self):
        while self.next_to_send in self.results:
            result = self.results.pop(self.next_to_send)
            self.next_to_send += 1
            if not result.error:
                await self.send_callback(result)

    @property
    def pending_count(self) -> int:
        """已完成但仍在等待前序分段的结果数"""
        return len(self.results)
