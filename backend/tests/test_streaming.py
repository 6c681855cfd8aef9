"""
Tests for Streaming Transcription

Validates chunking, resampling of incoming audio and flush behaviour.
"""

from unittest.mock import AsyncMock

import numpy as np
import pytest
import pytest_asyncio

from transcription.engine import TranscriptionOutcome
from transcription.exceptions import InvalidAudioInputError, NotInitializedError
from transcription.service import TranscriptionService
from transcription.streaming import StreamingTranscriber


@pytest_asyncio.fixture
async def service(fake_engine, config):
    """An initialized service backed by a fake engine."""
    service = TranscriptionService(engine=fake_engine, config=config)
    await service.initialize()
    yield service
    service.close()


def seconds(duration: float) -> np.ndarray:
    return np.zeros(int(16000 * duration), dtype=np.float32)


class TestStreamingTranscriber:
    """Tests for StreamingTranscriber."""

    @pytest.mark.asyncio
    async def test_buffers_until_chunk_is_full(self, service, fake_engine):
        callback = AsyncMock()
        streamer = StreamingTranscriber(service, on_transcription=callback)

        results = await streamer.feed(seconds(1.5))

        assert results == []
        assert streamer.buffered_seconds == pytest.approx(1.5)
        assert fake_engine.transcribe_calls == 0
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_transcribes_full_chunk(self, service, fake_engine):
        callback = AsyncMock()
        streamer = StreamingTranscriber(service, on_transcription=callback)

        await streamer.feed(seconds(1.5))
        results = await streamer.feed(seconds(1.0))

        assert len(results) == 1
        assert results[0].text == "hello world"
        assert len(fake_engine.last_samples) == 32000
        assert streamer.buffered_seconds == pytest.approx(0.5)
        callback.assert_awaited_once_with(results[0])

    @pytest.mark.asyncio
    async def test_multiple_chunks_in_one_feed(self, service, fake_engine):
        streamer = StreamingTranscriber(service, chunk_seconds=1.0)

        results = await streamer.feed(seconds(3.25))

        assert len(results) == 3
        assert fake_engine.transcribe_calls == 3
        assert streamer.buffered_seconds == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_resamples_incoming_audio(self, service, fake_engine):
        """Test 8kHz input is upsampled before chunking."""
        streamer = StreamingTranscriber(service)

        results = await streamer.feed(np.zeros(16000, dtype=np.float32), sample_rate=8000)

        assert len(results) == 1
        assert len(fake_engine.last_samples) == 32000

    @pytest.mark.asyncio
    async def test_empty_text_not_reported(self, service, fake_engine):
        fake_engine.outcome = TranscriptionOutcome(text="", confidence=0.0)
        callback = AsyncMock()
        streamer = StreamingTranscriber(service, on_transcription=callback)

        results = await streamer.feed(seconds(2.0))

        assert results == []
        assert fake_engine.transcribe_calls == 1
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_flush_transcribes_remainder(self, service, fake_engine):
        streamer = StreamingTranscriber(service)
        await streamer.feed(seconds(0.75))

        outcome = await streamer.flush()

        assert outcome.text == "hello world"
        assert len(fake_engine.last_samples) == 12000
        assert streamer.buffered_seconds == 0.0

    @pytest.mark.asyncio
    async def test_flush_discards_short_remainder(self, service, fake_engine):
        streamer = StreamingTranscriber(service)
        await streamer.feed(seconds(0.2))

        outcome = await streamer.flush()

        assert outcome is None
        assert fake_engine.transcribe_calls == 0
        assert streamer.buffered_seconds == 0.0

    @pytest.mark.asyncio
    async def test_set_transcription_callback(self, service):
        callback = AsyncMock()
        streamer = StreamingTranscriber(service)
        streamer.set_transcription_callback(callback)

        await streamer.feed(seconds(2.0))

        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_rate_propagates(self, service):
        streamer = StreamingTranscriber(service)

        with pytest.raises(InvalidAudioInputError):
            await streamer.feed(seconds(1.0), sample_rate=0)

    @pytest.mark.asyncio
    async def test_uninitialized_service_propagates(self, fake_engine_cls, config):
        service = TranscriptionService(engine=fake_engine_cls(), config=config)
        streamer = StreamingTranscriber(service)

        with pytest.raises(NotInitializedError):
            await streamer.feed(seconds(2.0))
