"""
Transcription Exceptions

Custom exceptions for the transcription service and engine adapter.
Each carries an ``error_type`` tag used when reporting over IPC.
"""


class TranscriptionError(Exception):
    """Base exception for transcription errors."""

    error_type = "other"


class PlatformUnavailableError(TranscriptionError):
    """Raised when the recognition engine is not available on this platform."""

    error_type = "platform_unavailable"

    def __init__(self, message: str = "ASR is unavailable on this platform"):
        super().__init__(message)


class NotInitializedError(TranscriptionError):
    """Raised when transcription is requested before a successful initialize."""

    error_type = "not_initialized"

    def __init__(self, message: str = "ASR not initialized. Call initialize() first."):
        super().__init__(message)


class ServiceClosedError(NotInitializedError):
    """Raised when an operation is attempted on a closed service."""

    def __init__(self, message: str = "Transcription service has been closed"):
        super().__init__(message)


class ModelInitializationError(TranscriptionError):
    """Raised when model initialization fails."""

    error_type = "initialization_failed"


class AudioProcessingError(TranscriptionError):
    """Raised when the engine fails to transcribe or returns no result."""

    error_type = "transcription_failed"


class InvalidAudioInputError(TranscriptionError):
    """Raised when audio input or its sample rate is malformed."""

    error_type = "invalid_audio"
