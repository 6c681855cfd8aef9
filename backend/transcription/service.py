"""
Transcription Service

State-guarded facade over the recognition engine. Enforces
initialize-before-transcribe, serializes initialization per instance and
tears the engine down exactly once when the service is closed or discarded.
"""

import asyncio
import logging
import weakref
from typing import Optional

from .adapter import EngineAdapter
from .audio import AudioInput, prepare_audio
from .config import TranscriptionConfig
from .engine import (
    RecognitionEngine,
    ServiceState,
    TranscriptionOutcome,
    default_engine,
)
from .exceptions import (
    NotInitializedError,
    ServiceClosedError,
    TranscriptionError,
)

logger = logging.getLogger(__name__)


class TranscriptionService:
    """
    Service layer for speech-to-text transcription.

    A service starts UNINITIALIZED and moves to INITIALIZED after exactly one
    successful ``initialize``. A second ``initialize`` after success is a
    no-op. Each instance owns its own lock and engine handle, so separate
    instances share nothing at this level.

    Usage:
        async with TranscriptionService() as service:
            await service.initialize()
            outcome = await service.transcribe(samples)
    """

    def __init__(
        self,
        engine: Optional[RecognitionEngine] = None,
        config: Optional[TranscriptionConfig] = None
    ):
        """
        Create an uninitialized service. Performs no engine calls.

        Args:
            engine: Recognition engine. Defaults to the platform engine.
            config: Configuration. Defaults to TranscriptionConfig.from_env().
        """
        self.config = config or TranscriptionConfig.from_env()
        if engine is None:
            engine = default_engine(self.config.model_name, self.config.language)

        self.adapter = EngineAdapter(
            engine,
            initialize_timeout=self.config.initialize_timeout
        )

        self._state = ServiceState.UNINITIALIZED
        self._lock = asyncio.Lock()
        self._closed = False

        # Lets callers queued behind a failed attempt share its error
        self._attempts = 0
        self._last_error: Optional[TranscriptionError] = None

        self._finalizer = weakref.finalize(self, self.adapter.cleanup)

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        """Check if the service is initialized and still open."""
        return self._state is ServiceState.INITIALIZED and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    async def initialize(self) -> None:
        """
        Initialize the recognition engine.

        Concurrent calls are serialized: the engine is never asked to
        initialize twice at once from the same service. Callers that queued
        behind a failed attempt raise that attempt's error rather than
        starting a new one. Failures leave the service UNINITIALIZED and
        callers may retry. A retry after a timeout or cancellation waits for
        the engine setup that is still running rather than starting another.

        Raises:
            PlatformUnavailableError: If no engine exists on this platform
            ModelInitializationError: If the engine fails to initialize
            ServiceClosedError: If the service has been closed
        """
        self._ensure_open()
        attempt = self._attempts

        async with self._lock:
            self._ensure_open()

            if self._state is ServiceState.INITIALIZED:
                logger.debug("Transcription service already initialized")
                return

            if self._attempts != attempt and self._last_error is not None:
                raise self._last_error

            self._last_error = None

            logger.info("Initializing transcription service...")
            try:
                await self.adapter.initialize()
            except TranscriptionError as e:
                self._last_error = e
                logger.error(f"Transcription service initialization failed: {e}")
                raise
            finally:
                # Counts finished attempts, including cancelled ones
                self._attempts += 1

            self._state = ServiceState.INITIALIZED
            logger.info("Transcription service initialized")

    async def transcribe(self, samples: AudioInput) -> TranscriptionOutcome:
        """
        Transcribe audio samples.

        Args:
            samples: Audio samples (16kHz, mono, float32)

        Returns:
            TranscriptionOutcome with text and confidence

        Raises:
            NotInitializedError: If initialize() has not succeeded
            ServiceClosedError: If the service has been closed
            InvalidAudioInputError: If the samples are malformed
            AudioProcessingError: If the engine fails or returns no result
        """
        # Lock covers only the state check, not the engine call
        async with self._lock:
            self._ensure_open()
            if self._state is not ServiceState.INITIALIZED:
                raise NotInitializedError()

        audio = prepare_audio(samples)
        logger.debug(f"Transcribing {len(audio)} samples")
        return await self.adapter.transcribe(audio)

    @staticmethod
    def models_exist(engine: Optional[RecognitionEngine] = None) -> bool:
        """Check whether model artifacts are already on disk. No instance required."""
        return EngineAdapter(engine or _configured_engine()).models_present()

    @staticmethod
    def get_model_path(engine: Optional[RecognitionEngine] = None) -> str:
        """
        Get the engine's model cache location. No instance required.

        Raises:
            PlatformUnavailableError: If no engine exists on this platform
        """
        return EngineAdapter(engine or _configured_engine()).model_path()

    def close(self) -> None:
        """Tear down the engine. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._finalizer()
        logger.info("Transcription service closed")

    async def __aenter__(self) -> "TranscriptionService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ServiceClosedError()


def _configured_engine() -> RecognitionEngine:
    config = TranscriptionConfig.from_env()
    return default_engine(config.model_name, config.language)
