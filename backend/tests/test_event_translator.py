"""
Tests for services/relay/event_translator.py
上游事件 → 客户端事件映射
"""

import asyncio

import pytest

from gateway.schemas.upstream import (
    ProviderError,
    ProviderErrorDetail,
    ResponseTextDelta,
    ResponseTextDone,
    TranscriptionCompleted,
    TranscriptionDelta,
    UnknownProviderEvent,
)
from gateway.services.relay.event_translator import EventTranslator
from gateway.services.relay.session import RelaySession
from gateway.services.relay.translation_injector import TranslationInjector


class Harness:
    def __init__(self, translation_service, target_language=None):
        self.emitted = []
        self.session = RelaySession(connection_id="conn_test")
        self.epoch = self.session.begin(target_language)
        self.session.mark_streaming()
        self.injector = TranslationInjector(translation_service, self._on_translated)
        self.translator = EventTranslator(self.session, self.emitted.append, self.injector)

    async def _on_translated(self, result):
        await self.translator.apply_translation(result)

    async def feed(self, *events, epoch=None):
        for event in events:
            await self.translator.handle(event, epoch or self.epoch)

    async def drain(self):
        while self.injector.pending_count:
            await asyncio.sleep(0.005)

    def dumped(self):
        return [e.model_dump() for e in self.emitted]


@pytest.mark.asyncio
async def test_source_deltas_without_target(translation_service):
    h = Harness(translation_service)

    await h.feed(TranscriptionDelta(delta="Hel"), TranscriptionDelta(delta="lo"))

    assert h.dumped() == [
        {"type": "transcript.delta", "text": "Hel", "full": "Hel", "language": "original"},
        {"type": "transcript.delta", "text": "lo", "full": "Hello", "language": "original"},
    ]


@pytest.mark.asyncio
async def test_empty_delta_emits_nothing(translation_service):
    h = Harness(translation_service)

    await h.feed(TranscriptionDelta(delta=""), TranscriptionCompleted(transcript="  "))

    assert h.emitted == []


@pytest.mark.asyncio
async def test_completed_segments_space_joined_without_target(translation_service):
    h = Harness(translation_service)

    await h.feed(
        TranscriptionCompleted(transcript=" First. "), TranscriptionCompleted(transcript="Second.")
    )

    assert h.session.transcript == "First. Second."
    assert h.emitted[-1].text == "Second."


@pytest.mark.asyncio
async def test_response_text_ignored_without_target(translation_service):
    h = Harness(translation_service)

    await h.feed(ResponseTextDelta(delta="Bonjour"), ResponseTextDone(text="Bonjour"))

    assert h.emitted == []
    assert h.session.transcript == ""


@pytest.mark.asyncio
async def test_target_uses_response_text_and_translates_segments(translation_service):
    translation_service.translations["Hello"] = "Bonjour"
    h = Harness(translation_service, target_language="fr")

    await h.feed(
        TranscriptionDelta(delta="Hel"),
        ResponseTextDelta(delta="Salut"),
        TranscriptionCompleted(transcript="Hello"),
    )
    await h.drain()

    assert [e.text for e in h.emitted] == ["Salut", "Bonjour"]
    assert h.session.transcript == "Salut Bonjour"
    assert all(e.language == "fr" for e in h.emitted)
    assert translation_service.calls == [("Hello", "fr")]


@pytest.mark.asyncio
async def test_provider_error_message(translation_service):
    h = Harness(translation_service)

    await h.feed(
        ProviderError(error=ProviderErrorDetail(message="Invalid audio")),
        ProviderError(),
    )

    assert h.dumped() == [
        {"type": "error", "message": "Invalid audio"},
        {"type": "error", "message": "Upstream provider error"},
    ]


@pytest.mark.asyncio
async def test_unknown_events_ignored(translation_service):
    h = Harness(translation_service)

    await h.feed(UnknownProviderEvent(type="input_audio_buffer.committed"))

    assert h.emitted == []


@pytest.mark.asyncio
async def test_events_from_previous_span_are_dropped(translation_service):
    h = Harness(translation_service)
    stale = h.epoch
    h.epoch = h.session.begin(None)

    await h.feed(TranscriptionDelta(delta="late"), epoch=stale)
    await h.feed(TranscriptionDelta(delta="fresh"))

    assert [e.text for e in h.emitted] == ["fresh"]
    assert h.session.transcript == "fresh"
