"""
Shared test fixtures.

FakeEngine stands in for the external recognition engine so service,
adapter and IPC tests run on any platform.
"""

import threading
import time
from typing import Optional

import numpy as np
import pytest

from transcription import RecognitionEngine, TranscriptionConfig, TranscriptionOutcome


class FakeEngine(RecognitionEngine):
    """Recognition engine double that records every call."""

    def __init__(
        self,
        outcome: Optional[TranscriptionOutcome] = None,
        init_error: Optional[Exception] = None,
        transcribe_error: Optional[Exception] = None,
        init_delay: float = 0.0,
        models: bool = True,
        path: str = "/tmp/asr-models",
        return_none: bool = False,
    ):
        self.outcome = outcome or TranscriptionOutcome(text="hello world", confidence=0.9)
        self.init_error = init_error
        self.transcribe_error = transcribe_error
        self.init_delay = init_delay
        self.models = models
        self.path = path
        self.return_none = return_none

        self.init_calls = 0
        self.transcribe_calls = 0
        self.cleanup_calls = 0
        self.active_inits = 0
        self.max_active_inits = 0
        self.last_samples: Optional[np.ndarray] = None
        self._counter_lock = threading.Lock()

    def initialize(self) -> None:
        with self._counter_lock:
            self.init_calls += 1
            self.active_inits += 1
            self.max_active_inits = max(self.max_active_inits, self.active_inits)
        try:
            if self.init_delay:
                time.sleep(self.init_delay)
            if self.init_error:
                raise self.init_error
        finally:
            with self._counter_lock:
                self.active_inits -= 1

    def models_present(self) -> bool:
        return self.models

    def model_path(self) -> str:
        return self.path

    def transcribe(self, samples: np.ndarray) -> Optional[TranscriptionOutcome]:
        with self._counter_lock:
            self.transcribe_calls += 1
        self.last_samples = samples
        if self.transcribe_error:
            raise self.transcribe_error
        if self.return_none:
            return None
        return self.outcome

    def cleanup(self) -> None:
        with self._counter_lock:
            self.cleanup_calls += 1


@pytest.fixture
def fake_engine_cls():
    """The FakeEngine class, for tests that need several configured engines."""
    return FakeEngine


@pytest.fixture
def fake_engine():
    """A FakeEngine with default behaviour."""
    return FakeEngine()


@pytest.fixture
def config():
    """Default configuration, independent of the environment."""
    return TranscriptionConfig()
