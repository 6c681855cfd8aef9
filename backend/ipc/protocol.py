"""
IPC Message Protocol

JSON-based message protocol between a host application and the ASR bridge.
All messages follow a common structure with type discrimination. Requests
may carry an ``id`` that is echoed back on the matching response.

Audio samples travel either as a JSON list of floats or, preferably, as
base64-encoded little-endian float32 under ``samples_base64``.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from transcription.exceptions import InvalidAudioInputError


class MessageType(str, Enum):
    """Message types for IPC communication."""

    # Service lifecycle
    INITIALIZE = "initialize"
    INITIALIZED = "initialized"

    # Transcription messages
    TRANSCRIBE = "transcribe"
    TRANSCRIPTION = "transcription"

    # Streaming audio
    AUDIO_DATA = "audio_data"

    # Model queries
    MODELS_EXIST = "models_exist"
    MODELS_EXIST_RESPONSE = "models_exist_response"
    MODEL_PATH = "model_path"
    MODEL_PATH_RESPONSE = "model_path_response"

    # Resampling
    RESAMPLE = "resample"
    RESAMPLE_RESPONSE = "resample_response"

    ERROR = "error"

    # Control messages
    PING = "ping"
    PONG = "pong"
    SHUTDOWN = "shutdown"
    ACK = "ack"


@dataclass
class IPCMessage:
    """Base IPC message structure."""

    type: MessageType
    payload: dict
    id: Optional[str] = None

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        data = {
            "type": self.type.value,
            "payload": self.payload
        }
        if self.id is not None:
            data["id"] = self.id
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "IPCMessage":
        """Deserialize message from JSON string."""
        data = json.loads(json_str)
        return cls(
            type=MessageType(data["type"]),
            payload=data.get("payload") or {},
            id=data.get("id")
        )


def encode_samples(samples: np.ndarray) -> str:
    """Encode samples as base64 little-endian float32."""
    return base64.b64encode(np.asarray(samples, dtype="<f4").tobytes()).decode("ascii")


def decode_samples(payload: dict) -> np.ndarray:
    """
    Decode samples from a payload, preferring ``samples_base64``.

    Raises:
        InvalidAudioInputError: If the encoded samples are malformed
    """
    try:
        if "samples_base64" in payload:
            samples_bytes = base64.b64decode(payload["samples_base64"], validate=True)
            return np.frombuffer(samples_bytes, dtype="<f4").astype(np.float32)
        if "samples" in payload:
            return np.array(payload["samples"], dtype=np.float32)
    except (binascii.Error, TypeError, ValueError) as e:
        raise InvalidAudioInputError(f"Malformed audio samples: {e}") from e
    return np.zeros(0, dtype=np.float32)


def _sample_rate(payload: dict, key: str) -> float:
    if key not in payload:
        raise InvalidAudioInputError(f"Missing {key} in audio payload")
    return payload[key]


@dataclass
class TranscribeMessage:
    """Transcription request from host to bridge."""

    samples: np.ndarray
    sample_rate: float = 16000.0

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.TRANSCRIBE,
            payload={
                "samples_base64": encode_samples(self.samples),
                "sample_rate": self.sample_rate
            }
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "TranscribeMessage":
        return cls(
            samples=decode_samples(payload),
            sample_rate=payload.get("sample_rate", 16000.0)
        )


@dataclass
class AudioDataMessage:
    """Streaming audio chunk from host to bridge."""

    samples: np.ndarray
    sample_rate: float

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.AUDIO_DATA,
            payload={
                "samples_base64": encode_samples(self.samples),
                "sample_rate": self.sample_rate
            }
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "AudioDataMessage":
        return cls(
            samples=decode_samples(payload),
            sample_rate=_sample_rate(payload, "sample_rate")
        )


@dataclass
class TranscriptionMessage:
    """Transcription result from bridge to host."""

    text: str
    confidence: float

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.TRANSCRIPTION,
            payload={"text": self.text, "confidence": self.confidence}
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "TranscriptionMessage":
        return cls(
            text=payload["text"],
            confidence=payload.get("confidence", 0.0)
        )


@dataclass
class InitializedMessage:
    """Acknowledges a successful initialize."""

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(type=MessageType.INITIALIZED, payload={})


@dataclass
class ModelsExistResponseMessage:
    """Whether model artifacts are already on disk."""

    exists: bool

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.MODELS_EXIST_RESPONSE,
            payload={"exists": self.exists}
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "ModelsExistResponseMessage":
        return cls(exists=payload["exists"])


@dataclass
class ModelPathResponseMessage:
    """Location of the engine's model cache."""

    path: str

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.MODEL_PATH_RESPONSE,
            payload={"path": self.path}
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "ModelPathResponseMessage":
        return cls(path=payload["path"])


@dataclass
class ResampleMessage:
    """Request to resample audio to 16kHz mono."""

    samples: np.ndarray
    source_sample_rate: float

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.RESAMPLE,
            payload={
                "samples_base64": encode_samples(self.samples),
                "source_sample_rate": self.source_sample_rate
            }
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "ResampleMessage":
        return cls(
            samples=decode_samples(payload),
            source_sample_rate=_sample_rate(payload, "source_sample_rate")
        )


@dataclass
class ResampleResponseMessage:
    """Resampled 16kHz audio."""

    samples: np.ndarray

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.RESAMPLE_RESPONSE,
            payload={"samples_base64": encode_samples(self.samples)}
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "ResampleResponseMessage":
        return cls(samples=decode_samples(payload))


@dataclass
class ErrorMessage:
    """Error response for any request."""

    error: str
    error_type: str  # "platform_unavailable", "not_initialized", "initialization_failed",
                     # "transcription_failed", "invalid_audio", "other"

    def to_ipc_message(self) -> IPCMessage:
        return IPCMessage(
            type=MessageType.ERROR,
            payload={"error": self.error, "error_type": self.error_type}
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "ErrorMessage":
        return cls(
            error=payload["error"],
            error_type=payload.get("error_type", "other")
        )

    @classmethod
    def from_exception(cls, error: Exception) -> "ErrorMessage":
        """Build an error response, using the exception's error_type tag if any."""
        return cls(
            error=str(error) or type(error).__name__,
            error_type=getattr(error, "error_type", "other")
        )
