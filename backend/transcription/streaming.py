"""
Streaming Transcription

Accumulates incoming audio at any sample rate, resamples it to 16kHz and
transcribes it in fixed-length chunks.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import numpy as np

from .audio import TARGET_SAMPLE_RATE, AudioInput, resample_to_16khz_mono
from .engine import TranscriptionOutcome
from .service import TranscriptionService

logger = logging.getLogger(__name__)

TranscriptionCallback = Callable[[TranscriptionOutcome], Awaitable[None]]


class StreamingTranscriber:
    """
    Chunked transcription on top of a TranscriptionService.

    Audio is buffered until ``chunk_seconds`` of 16kHz samples are available,
    then each full chunk is transcribed. Only chunks with non-empty text are
    reported. Errors from the service propagate to the caller of
    ``feed``/``flush``.
    """

    DEFAULT_CHUNK_SECONDS = 2.0
    MIN_FLUSH_SECONDS = 0.5

    def __init__(
        self,
        service: TranscriptionService,
        on_transcription: Optional[TranscriptionCallback] = None,
        chunk_seconds: float = DEFAULT_CHUNK_SECONDS,
        min_flush_seconds: float = MIN_FLUSH_SECONDS,
    ):
        """
        Args:
            service: Initialized (or soon to be) transcription service
            on_transcription: Async callback for non-empty results
            chunk_seconds: Length of each transcribed chunk
            min_flush_seconds: Shortest remainder transcribed on flush
        """
        self.service = service
        self._on_transcription = on_transcription
        self.chunk_samples = int(TARGET_SAMPLE_RATE * chunk_seconds)
        self.min_flush_samples = int(TARGET_SAMPLE_RATE * min_flush_seconds)

        self._buffer = np.zeros(0, dtype=np.float32)
        self._lock = asyncio.Lock()

    @property
    def buffered_seconds(self) -> float:
        return len(self._buffer) / TARGET_SAMPLE_RATE

    def set_transcription_callback(self, callback: TranscriptionCallback) -> None:
        """Set the callback for transcription results."""
        self._on_transcription = callback

    async def feed(
        self,
        samples: AudioInput,
        sample_rate: float = TARGET_SAMPLE_RATE
    ) -> List[TranscriptionOutcome]:
        """
        Add audio and transcribe any full chunks.

        Args:
            samples: Mono audio samples
            sample_rate: Sample rate of ``samples`` in Hz

        Returns:
            Non-empty outcomes produced by this call
        """
        resampled = resample_to_16khz_mono(samples, sample_rate)

        async with self._lock:
            self._buffer = np.concatenate([self._buffer, resampled])
            chunks = []
            while len(self._buffer) >= self.chunk_samples:
                chunks.append(self._buffer[:self.chunk_samples])
                self._buffer = self._buffer[self.chunk_samples:]

        logger.debug(
            f"Received {len(resampled)} samples, {len(chunks)} chunk(s) ready, "
            f"buffer: {self.buffered_seconds:.1f}s"
        )

        # Process outside lock
        results = []
        for chunk in chunks:
            outcome = await self._transcribe_chunk(chunk)
            if outcome is not None:
                results.append(outcome)
        return results

    async def flush(self) -> Optional[TranscriptionOutcome]:
        """Transcribe whatever remains in the buffer if it is long enough."""
        async with self._lock:
            remaining = self._buffer
            self._buffer = np.zeros(0, dtype=np.float32)

        if len(remaining) < self.min_flush_samples:
            if len(remaining):
                logger.debug(f"Discarding {len(remaining)} trailing samples")
            return None

        return await self._transcribe_chunk(remaining)

    async def _transcribe_chunk(self, chunk: np.ndarray) -> Optional[TranscriptionOutcome]:
        logger.debug(f"Starting transcription of {len(chunk)} samples...")
        outcome = await self.service.transcribe(chunk)

        if not outcome.text:
            logger.debug("No speech detected")
            return None

        logger.info(outcome.text)
        if self._on_transcription:
            await self._on_transcription(outcome)
        return outcome
