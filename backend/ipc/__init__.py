"""IPC module for host-bridge communication via Unix Domain Socket."""

from .server import IPCServer
from .protocol import (
    MessageType,
    IPCMessage,
    AudioDataMessage,
    TranscribeMessage,
    TranscriptionMessage,
    InitializedMessage,
    ModelsExistResponseMessage,
    ModelPathResponseMessage,
    ResampleMessage,
    ResampleResponseMessage,
    ErrorMessage,
    encode_samples,
    decode_samples,
)

__all__ = [
    "IPCServer",
    "MessageType",
    "IPCMessage",
    "AudioDataMessage",
    "TranscribeMessage",
    "TranscriptionMessage",
    "InitializedMessage",
    "ModelsExistResponseMessage",
    "ModelPathResponseMessage",
    "ResampleMessage",
    "ResampleResponseMessage",
    "ErrorMessage",
    "encode_samples",
    "decode_samples",
]
