"""
Transcription

Speech-to-text service facade, engine adapter and 16kHz resampling.
"""

from .audio import (
    TARGET_SAMPLE_RATE,
    prepare_audio,
    read_wav,
    resample,
    resample_to_16khz_mono,
)
from .config import TranscriptionConfig
from .engine import (
    RecognitionEngine,
    MLXWhisperEngine,
    UnavailableEngine,
    ServiceState,
    TranscriptionOutcome,
    default_engine,
    is_platform_supported,
)
from .adapter import EngineAdapter
from .service import TranscriptionService
from .streaming import StreamingTranscriber
from .exceptions import (
    TranscriptionError,
    PlatformUnavailableError,
    NotInitializedError,
    ServiceClosedError,
    ModelInitializationError,
    AudioProcessingError,
    InvalidAudioInputError,
)

__all__ = [
    "TARGET_SAMPLE_RATE",
    "prepare_audio",
    "read_wav",
    "resample",
    "resample_to_16khz_mono",
    "TranscriptionConfig",
    "RecognitionEngine",
    "MLXWhisperEngine",
    "UnavailableEngine",
    "ServiceState",
    "TranscriptionOutcome",
    "default_engine",
    "is_platform_supported",
    "EngineAdapter",
    "TranscriptionService",
    "StreamingTranscriber",
    "TranscriptionError",
    "PlatformUnavailableError",
    "NotInitializedError",
    "ServiceClosedError",
    "ModelInitializationError",
    "AudioProcessingError",
    "InvalidAudioInputError",
]
