"""
Audio Preparation

Converts caller audio into the engine's input contract: 16kHz, mono, float32.
Provides input normalization, linear-interpolation resampling and a small
16-bit PCM WAV reader.
"""

import logging
import math
import wave
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from .exceptions import InvalidAudioInputError

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000

# Upper bound on resampled output (4 hours at 16kHz)
MAX_OUTPUT_SAMPLES = TARGET_SAMPLE_RATE * 60 * 60 * 4

AudioInput = Union[bytes, List[float], np.ndarray]


def prepare_audio(audio_data: AudioInput) -> np.ndarray:
    """
    Prepare audio data for resampling or transcription.

    Converts various input formats to a 1-D numpy float32 array. Bytes are
    read as 16-bit little-endian PCM. The caller's buffer is never mutated.

    Raises:
        InvalidAudioInputError: If the input type or shape is unsupported
    """
    try:
        if isinstance(audio_data, (bytes, bytearray)):
            audio_array = np.frombuffer(audio_data, dtype="<i2")
            audio_array = audio_array.astype(np.float32) / 32768.0
        elif isinstance(audio_data, (list, tuple)):
            audio_array = np.array(audio_data, dtype=np.float32)
        elif isinstance(audio_data, np.ndarray):
            audio_array = audio_data.astype(np.float32)
        else:
            raise InvalidAudioInputError(
                f"Unsupported audio data type: {type(audio_data).__name__}"
            )
    except (TypeError, ValueError) as e:
        raise InvalidAudioInputError(f"Invalid audio data: {e}") from e

    if audio_array.ndim != 1:
        raise InvalidAudioInputError(
            f"Expected mono audio (1-D), got array with shape {audio_array.shape}"
        )

    return audio_array


def resample_to_16khz_mono(samples: AudioInput, source_sample_rate: float) -> np.ndarray:
    """
    Convert mono audio at an arbitrary rate to 16kHz float32 samples.

    Uses plain linear interpolation between neighbouring input samples, with
    no anti-alias filtering. This is good enough for speech recognition but
    not for high-fidelity audio. Output length is floor(len * 16000 / rate).
    Positions past the last input sample repeat it, and positions beyond the
    input entirely are filled with silence.

    Args:
        samples: Mono audio samples
        source_sample_rate: Sample rate of ``samples`` in Hz

    Returns:
        New float32 array at 16kHz

    Raises:
        InvalidAudioInputError: If the sample rate is not a positive number,
            the output would be unreasonably long or the samples are malformed
    """
    _validate_sample_rate(source_sample_rate)
    audio = prepare_audio(samples)

    if source_sample_rate == TARGET_SAMPLE_RATE:
        return audio

    input_len = len(audio)
    # Compared without dividing so tiny rates cannot overflow
    if source_sample_rate * MAX_OUTPUT_SAMPLES < TARGET_SAMPLE_RATE * max(input_len, 1):
        raise InvalidAudioInputError(
            f"Source sample rate {source_sample_rate!r} would produce more than "
            f"{MAX_OUTPUT_SAMPLES} output samples"
        )
    ratio = TARGET_SAMPLE_RATE / source_sample_rate
    output_len = int(input_len * ratio)

    output = np.zeros(output_len, dtype=np.float32)
    if output_len == 0:
        return output

    src_pos = np.arange(output_len, dtype=np.float64) / ratio
    idx = np.floor(src_pos).astype(np.int64)
    frac = (src_pos - idx).astype(np.float32)

    interior = idx + 1 < input_len
    a = audio[idx[interior]]
    b = audio[idx[interior] + 1]
    output[interior] = a + (b - a) * frac[interior]

    last = ~interior & (idx < input_len)
    output[last] = audio[idx[last]]

    logger.debug(
        f"Resampled {input_len} samples at {source_sample_rate}Hz "
        f"to {output_len} samples at {TARGET_SAMPLE_RATE}Hz"
    )
    return output


resample = resample_to_16khz_mono


def read_wav(path: Union[str, Path]) -> Tuple[np.ndarray, float]:
    """
    Read a 16-bit PCM WAV file.

    Samples are normalized to [-1.0, 1.0] and multi-channel audio is averaged
    down to mono.

    Returns:
        (samples, sample_rate)

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidAudioInputError: If the file is not 16-bit PCM WAV
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    try:
        with wave.open(str(path), "rb") as wav:
            channels = wav.getnchannels()
            sample_width = wav.getsampwidth()
            sample_rate = wav.getframerate()
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as e:
        raise InvalidAudioInputError(f"Not a valid WAV file: {e}") from e

    if sample_width != 2:
        raise InvalidAudioInputError(
            f"Unsupported sample width: {sample_width * 8} bits (expected 16-bit PCM)"
        )

    samples = np.frombuffer(frames, dtype="<i2").astype(np.float32) / 32768.0
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1).astype(np.float32)

    logger.info(
        f"Read {path.name}: {len(samples)} samples, {channels} channel(s), {sample_rate}Hz"
    )
    return samples, float(sample_rate)


def _validate_sample_rate(sample_rate: float) -> None:
    try:
        valid = math.isfinite(sample_rate) and sample_rate > 0
    except TypeError:
        valid = False
    if not valid:
        raise InvalidAudioInputError(
            f"Source sample rate must be a positive number, got {sample_rate!r}"
        )
