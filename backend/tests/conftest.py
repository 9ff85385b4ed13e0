"""
Pytest Fixtures
共享测试夹具：假的客户端 WebSocket、假的上游连接、假的翻译服务
"""

import asyncio
import json

import pytest

from gateway.core.config import Settings
from gateway.core.exceptions import TranslationError
from gateway.schemas.upstream import parse_provider_event


class FakeClientSocket:
    """Stands in for a Starlette WebSocket driven by ClientLink.run()"""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def receive(self) -> dict:
        return await self.incoming.get()

    async def send_json(self, data: dict):
        self.sent.append(data)

    # --- test helpers ---

    def send_control(self, **payload):
        self.incoming.put_nowait({"type": "websocket.receive", "text": json.dumps(payload)})

    def send_audio(self, chunk: bytes):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": chunk})

    def disconnect(self, code: int = 1000):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    def events(self, event_type: str) -> list[dict]:
        return [e for e in self.sent if e["type"] == event_type]

    async def wait_for(self, event_type: str, count: int = 1, timeout: float = 2.0) -> list[dict]:
        """等待至少 count 个指定类型的事件"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.events(event_type)) < count:
            if loop.time() > deadline:
                raise AssertionError(
                    f"Timed out waiting for {count} x {event_type}, got {self.sent}"
                )
            await asyncio.sleep(0.005)
        return self.events(event_type)

    async def settle(self, rounds: int = 20):
        """让事件循环跑几轮，处理已排队的帧"""
        for _ in range(rounds):
            await asyncio.sleep(0)


class FakeUpstreamLink:
    """In-memory UpstreamLink with the same surface as the real one"""

    def __init__(
        self, config, target_language, on_event, on_error=None, fail_with=None, gate=None
    ):
        self.config = config
        self.target_language = target_language
        self.on_event = on_event
        self.on_error = on_error
        self.fail_with = fail_with
        self.gate = gate
        self.audio: list[bytes] = []
        self.opened = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed

    async def open(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.opened = True

    async def send_audio(self, chunk: bytes):
        if self.is_open:
            self.audio.append(chunk)

    async def close(self):
        self.closed = True

    async def provider_sends(self, **event):
        """模拟上游推送一个事件"""
        await self.on_event(parse_provider_event(json.dumps(event)))


class FakeUpstreamFactory:
    """Records every link ClientLink creates; can make the next opens fail or hang

    With ``gate`` set, every open() waits for the event, keeping the session
    in the connecting phase.
    """

    def __init__(self):
        self.links: list[FakeUpstreamLink] = []
        self.failures: list[Exception] = []
        self.gate: asyncio.Event | None = None

    def __call__(self, config, target_language, on_event, on_error=None):
        fail_with = self.failures.pop(0) if self.failures else None
        link = FakeUpstreamLink(
            config, target_language, on_event, on_error, fail_with, gate=self.gate
        )
        self.links.append(link)
        return link

    @property
    def last(self) -> FakeUpstreamLink:
        return self.links[-1]


class FakeTranslationService:
    """Returns canned translations; raises TranslationError for texts in ``failing``"""

    model = "fake-model"

    def __init__(self, translations: dict[str, str] | None = None):
        self.translations = translations or {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def translate(self, text: str, target_language: str) -> str:
        self.calls.append((text, target_language))
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if text in self.failing:
            raise TranslationError("provider returned 500", provider="fake")
        return self.translations.get(text, f"[{target_language}] {text}")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        OPENAI_API_KEY="test-key",
        REALTIME_URL="wss://realtime.test/v1/realtime",
        REALTIME_MODEL="rt-model",
    )


@pytest.fixture
def client_socket() -> FakeClientSocket:
    return FakeClientSocket()


@pytest.fixture
def upstream_factory() -> FakeUpstreamFactory:
    return FakeUpstreamFactory()


@pytest.fixture
def translation_service() -> FakeTranslationService:
    return FakeTranslationService()
