"""
Transcription Configuration

Environment-based configuration for the ASR bridge.
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "ASR_BRIDGE_"


@dataclass
class TranscriptionConfig:
    """Settings for the transcription engine, service and IPC server."""

    DEFAULT_MODEL = "mlx-community/whisper-large-v3-turbo"
    DEFAULT_SOCKET_PATH = "/tmp/asr-bridge.sock"

    model_name: str = DEFAULT_MODEL
    language: Optional[str] = None  # None lets the engine detect the language
    initialize_timeout: float = 300.0
    socket_path: str = DEFAULT_SOCKET_PATH
    chunk_seconds: float = 2.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TranscriptionConfig":
        """
        Build configuration from ASR_BRIDGE_* environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            model_name=env.get(f"{ENV_PREFIX}MODEL") or defaults.model_name,
            language=env.get(f"{ENV_PREFIX}LANGUAGE") or None,
            initialize_timeout=_positive_float(
                env, f"{ENV_PREFIX}INIT_TIMEOUT", defaults.initialize_timeout
            ),
            socket_path=env.get(f"{ENV_PREFIX}SOCKET") or defaults.socket_path,
            chunk_seconds=_positive_float(
                env, f"{ENV_PREFIX}CHUNK_SECONDS", defaults.chunk_seconds
            ),
        )


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {key}={raw!r}, using {default}")
        return default
    if not math.isfinite(value) or value <= 0:
        logger.warning(f"Ignoring non-positive {key}={raw!r}, using {default}")
        return default
    return value
