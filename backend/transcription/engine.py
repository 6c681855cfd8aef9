"""
Recognition Engines

Defines the four-operation contract every speech recognition engine must
satisfy, plus the concrete engines shipped with the bridge:

- MLXWhisperEngine: local MLX-Whisper transcription on Apple Silicon
- UnavailableEngine: stand-in for platforms without a supported engine
"""

import importlib.util
import logging
import math
import platform
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
from huggingface_hub import try_to_load_from_cache
from huggingface_hub.constants import HF_HUB_CACHE

from .exceptions import PlatformUnavailableError

logger = logging.getLogger(__name__)


class ServiceState(Enum):
    """Lifecycle state of a transcription service."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


@dataclass
class TranscriptionOutcome:
    """Result of a transcription operation."""
    text: str
    confidence: float

    def to_dict(self) -> dict:
        """Convert to dictionary for IPC serialization."""
        return {
            "text": self.text,
            "confidence": self.confidence
        }


class RecognitionEngine(ABC):
    """
    Contract for an external speech recognition engine.

    All methods are blocking. Callers that need to stay responsive run
    ``initialize`` and ``transcribe`` off the event loop.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Perform one-time setup (model download and loading). Raises on failure."""
        ...

    @abstractmethod
    def models_present(self) -> bool:
        """Return True if model artifacts are already available locally."""
        ...

    @abstractmethod
    def model_path(self) -> str:
        """Return the on-disk location the engine uses for its artifacts."""
        ...

    @abstractmethod
    def transcribe(self, samples: np.ndarray) -> Optional[TranscriptionOutcome]:
        """
        Transcribe 16kHz mono float32 samples.

        Returns None if the engine produced no result.
        """
        ...

    def cleanup(self) -> None:
        """Release engine resources. Must be safe if never initialized."""
        pass


class UnavailableEngine(RecognitionEngine):
    """Engine used where no supported recognizer exists on this platform."""

    def __init__(self, reason: str = "ASR only available on Apple Silicon macOS"):
        self.reason = reason

    def initialize(self) -> None:
        raise PlatformUnavailableError(self.reason)

    def models_present(self) -> bool:
        return False

    def model_path(self) -> str:
        raise PlatformUnavailableError(self.reason)

    def transcribe(self, samples: np.ndarray) -> Optional[TranscriptionOutcome]:
        raise PlatformUnavailableError(self.reason)


class MLXWhisperEngine(RecognitionEngine):
    """
    MLX-Whisper based recognition engine.

    Models are fetched from the Hugging Face hub on first initialize and
    cached by mlx_whisper between transcriptions. ``model_name`` may also be
    a local directory containing converted weights.
    """

    DEFAULT_MODEL = "mlx-community/whisper-large-v3-turbo"
    SAMPLE_RATE = 16000
    MODEL_CONFIG_FILE = "config.json"

    def __init__(self, model_name: Optional[str] = None, language: Optional[str] = None):
        """
        Args:
            model_name: Hugging Face repo id or local model directory
            language: Language code to force, or None to auto-detect
        """
        self.model_name = model_name or self.DEFAULT_MODEL
        self.language = language

    def initialize(self) -> None:
        """Load the model by running a short silent warmup transcription."""
        logger.info(f"Loading MLX-Whisper model: {self.model_name}")
        # Triggers model download and caching inside mlx_whisper
        dummy_audio = np.zeros(self.SAMPLE_RATE, dtype=np.float32)
        self._run(dummy_audio)
        logger.info("MLX-Whisper model loaded")

    def models_present(self) -> bool:
        local_dir = self._local_model_dir()
        if local_dir is not None:
            return (local_dir / self.MODEL_CONFIG_FILE).exists()

        cached = try_to_load_from_cache(
            repo_id=self.model_name,
            filename=self.MODEL_CONFIG_FILE,
        )
        return isinstance(cached, str)

    def model_path(self) -> str:
        local_dir = self._local_model_dir()
        if local_dir is not None:
            return str(local_dir)
        repo_folder = "models--" + self.model_name.replace("/", "--")
        return str(Path(HF_HUB_CACHE) / repo_folder)

    def transcribe(self, samples: np.ndarray) -> Optional[TranscriptionOutcome]:
        result = self._run(samples)
        if not result:
            return None

        text = result.get("text", "").strip()
        confidence = segment_confidence(result.get("segments", []))
        if text:
            logger.debug(f"Transcribed: {text[:50]}...")
        return TranscriptionOutcome(text=text, confidence=confidence)

    def cleanup(self) -> None:
        # Only touch mlx_whisper if something already imported it
        if "mlx_whisper.transcribe" not in sys.modules:
            return
        from mlx_whisper.transcribe import ModelHolder
        ModelHolder.model = None
        ModelHolder.model_path = None
        logger.info("MLX-Whisper model released")

    def _run(self, samples: np.ndarray) -> dict:
        import mlx_whisper
        return mlx_whisper.transcribe(
            samples,
            path_or_hf_repo=self.model_name,
            language=self.language,
            verbose=False
        )

    def _local_model_dir(self) -> Optional[Path]:
        path = Path(self.model_name).expanduser()
        if path.is_absolute() or path.is_dir():
            return path
        return None


def segment_confidence(segments: list) -> float:
    """
    Derive a [0, 1] confidence from whisper segments.

    Uses the mean per-segment token probability, exp(avg_logprob).
    Returns 0.0 when there are no scored segments.
    """
    probabilities = [
        math.exp(segment["avg_logprob"])
        for segment in segments
        if segment.get("avg_logprob") is not None
    ]
    if not probabilities:
        return 0.0
    mean = sum(probabilities) / len(probabilities)
    return min(1.0, max(0.0, mean))


def is_platform_supported() -> bool:
    """Check for Apple Silicon macOS with mlx_whisper installed."""
    if sys.platform != "darwin" or platform.machine() != "arm64":
        return False
    return importlib.util.find_spec("mlx_whisper") is not None


def default_engine(
    model_name: Optional[str] = None,
    language: Optional[str] = None,
) -> RecognitionEngine:
    """Return the recognition engine for the current platform."""
    if is_platform_supported():
        return MLXWhisperEngine(model_name=model_name, language=language)

    if sys.platform == "darwin" and platform.machine() == "arm64":
        reason = "mlx-whisper not installed. Run: pip install mlx-whisper"
    else:
        reason = "ASR only available on Apple Silicon macOS"
    logger.debug(f"No recognition engine available: {reason}")
    return UnavailableEngine(reason)
