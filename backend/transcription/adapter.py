"""
Engine Adapter

Thin async pass-through over a RecognitionEngine. Blocking engine calls run
in the event loop's default executor, and engine failures are mapped to
typed transcription errors with the engine's message kept verbatim.
No resampling, caching or retries happen here.
"""

import asyncio
import logging
from typing import Optional

import numpy as np

from .engine import RecognitionEngine, TranscriptionOutcome
from .exceptions import (
    AudioProcessingError,
    ModelInitializationError,
    TranscriptionError,
)

logger = logging.getLogger(__name__)


class EngineAdapter:
    """Forwards the four engine operations with a typed failure surface."""

    DEFAULT_INITIALIZE_TIMEOUT = 300.0

    def __init__(
        self,
        engine: RecognitionEngine,
        initialize_timeout: float = DEFAULT_INITIALIZE_TIMEOUT,
    ):
        self.engine = engine
        self.initialize_timeout = initialize_timeout

        # Engine initialize left running by a timed-out or cancelled caller
        self._init_future: Optional[asyncio.Future] = None

    async def initialize(self) -> None:
        """
        Run the engine's one-time setup without blocking the event loop.

        A timeout or cancellation stops waiting but cannot stop the executor
        thread. The next call awaits that still-running setup instead of
        starting another one, so engine setups never overlap.

        Raises:
            PlatformUnavailableError: If the engine is unavailable
            ModelInitializationError: If setup fails or times out
        """
        future = self._init_future
        if future is None:
            loop = asyncio.get_event_loop()
            future = loop.run_in_executor(None, self.engine.initialize)
            self._init_future = future
        else:
            logger.info("Waiting for in-progress model initialization")

        try:
            await asyncio.wait_for(
                asyncio.shield(future),
                timeout=self.initialize_timeout
            )
        except asyncio.TimeoutError as e:
            if not future.done():
                logger.error(
                    f"Model initialization timed out after {self.initialize_timeout} seconds"
                )
                raise ModelInitializationError(
                    f"Model initialization timed out after {self.initialize_timeout} seconds"
                )
            self._init_future = None
            if future.exception() is None:
                # Setup finished as the timeout fired
                return
            raise ModelInitializationError(str(e) or "Model initialization timed out") from e
        except TranscriptionError:
            self._init_future = None
            raise
        except Exception as e:
            self._init_future = None
            logger.error(f"Engine initialization failed: {e}")
            raise ModelInitializationError(str(e)) from e

        self._init_future = None

    def models_present(self) -> bool:
        return self.engine.models_present()

    def model_path(self) -> str:
        return self.engine.model_path()

    async def transcribe(self, samples: np.ndarray) -> TranscriptionOutcome:
        """
        Transcribe 16kHz mono float32 samples without blocking the event loop.

        Raises:
            PlatformUnavailableError: If the engine is unavailable
            AudioProcessingError: If the engine fails or returns no result
        """
        loop = asyncio.get_event_loop()
        try:
            outcome = await loop.run_in_executor(None, self.engine.transcribe, samples)
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise AudioProcessingError(str(e)) from e

        if outcome is None:
            logger.error("Transcription returned no result")
            raise AudioProcessingError("Transcription returned no result")

        return outcome

    def cleanup(self) -> None:
        self.engine.cleanup()
