"""
Relay Session State
单个客户端连接的会话状态
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from gateway.schemas.client import ORIGINAL_LANGUAGE

if TYPE_CHECKING:
    from gateway.services.relay.upstream_link import UpstreamLink


class SessionPhase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPED = "stopped"


LIVE_PHASES = (SessionPhase.CONNECTING, SessionPhase.STREAMING)


@dataclass
class RelaySession:
    """封装一个客户端连接的转写/翻译生命周期

    transcript 只追加不改写；所有追加都经过 append()，在同一把锁下完成。
    upstream 只在 CONNECTING / STREAMING 阶段非空。
    """

    connection_id: str
    phase: SessionPhase = SessionPhase.IDLE
    target_language: str | None = None
    transcript: str = ""
    upstream: UpstreamLink | None = None

    # start 计数，旧 span 的迟到结果据此丢弃
    epoch: int = 0

    _append_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def language(self) -> str:
        """Language tag of the text this span produces"""
        return self.target_language or ORIGINAL_LANGUAGE

    @property
    def is_live(self) -> bool:
        return self.phase in LIVE_PHASES

    def accepts(self, epoch: int) -> bool:
        """Whether results produced during ``epoch`` may still be appended"""
        return self.is_live and epoch == self.epoch

    def begin(self, target_language: str | None) -> int:
        """开始新的 span：清空 transcript，固定目标语言，进入 CONNECTING"""
        self.epoch += 1
        self.transcript = ""
        self.target_language = target_language
        self.phase = SessionPhase.CONNECTING
        return self.epoch

    def attach_upstream(self, link: UpstreamLink) -> None:
        if not self.is_live:
            raise RuntimeError(f"Cannot attach upstream link in phase {self.phase.value}")
        self.upstream = link

    def release_upstream(self) -> UpstreamLink | None:
        """Detach and return the owned link; the caller closes it"""
        link, self.upstream = self.upstream, None
        return link

    def mark_streaming(self) -> None:
        self.phase = SessionPhase.STREAMING

    def mark_idle(self) -> None:
        """连接失败后回到可重新 start 的状态"""
        self.phase = SessionPhase.IDLE

    def mark_stopped(self) -> None:
        self.phase = SessionPhase.STOPPED

    async def append(self, text: str, joiner: str = "", epoch: int | None = None) -> str | None:
        """Append text and return the full transcript

        ``joiner`` is inserted only when the transcript is non-empty. With
        ``epoch`` given, nothing is appended (and None returned) unless the
        session still accepts results of that span. Nothing awaits while the
        lock is held.
        """
        async with self._append_lock:
            if epoch is not None and not self.accepts(epoch):
                return None
            if joiner and self.transcript:
                self.transcript += joiner
            self.transcript += text
            return self.transcript
