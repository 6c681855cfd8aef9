"""
Tests for Recognition Engines

MLX-Whisper is replaced with a stub module so these tests run on any
platform.
"""

import math
import sys
import types
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from transcription.engine import (
    MLXWhisperEngine,
    ServiceState,
    TranscriptionOutcome,
    UnavailableEngine,
    default_engine,
    is_platform_supported,
    segment_confidence,
)
from transcription.exceptions import PlatformUnavailableError


class TestTranscriptionOutcome:
    """Tests for TranscriptionOutcome dataclass."""

    def test_to_dict(self):
        """Test conversion to dictionary."""
        outcome = TranscriptionOutcome(text="Hello world", confidence=0.95)

        d = outcome.to_dict()

        assert d == {"text": "Hello world", "confidence": 0.95}


class TestServiceState:
    """Tests for ServiceState enum."""

    def test_values(self):
        assert ServiceState.UNINITIALIZED.value == "uninitialized"
        assert ServiceState.INITIALIZED.value == "initialized"


class TestUnavailableEngine:
    """Tests for UnavailableEngine."""

    def test_initialize_raises(self):
        engine = UnavailableEngine("no engine here")

        with pytest.raises(PlatformUnavailableError, match="no engine here"):
            engine.initialize()

    def test_transcribe_raises(self):
        engine = UnavailableEngine()

        with pytest.raises(PlatformUnavailableError):
            engine.transcribe(np.zeros(16000, dtype=np.float32))

    def test_model_path_raises(self):
        engine = UnavailableEngine()

        with pytest.raises(PlatformUnavailableError):
            engine.model_path()

    def test_models_present_is_false(self):
        assert UnavailableEngine().models_present() is False

    def test_cleanup_is_noop(self):
        UnavailableEngine().cleanup()


class TestSegmentConfidence:
    """Tests for segment_confidence."""

    def test_no_segments(self):
        assert segment_confidence([]) == 0.0

    def test_mean_probability(self):
        segments = [{"avg_logprob": math.log(0.8)}, {"avg_logprob": math.log(0.6)}]

        assert segment_confidence(segments) == pytest.approx(0.7)

    def test_skips_unscored_segments(self):
        segments = [{"avg_logprob": math.log(0.5)}, {"text": "no score"}]

        assert segment_confidence(segments) == pytest.approx(0.5)

    def test_clamped_to_unit_range(self):
        assert segment_confidence([{"avg_logprob": 0.5}]) == 1.0


class TestMLXWhisperEngine:
    """Tests for MLXWhisperEngine with a stubbed mlx_whisper."""

    @pytest.fixture
    def mlx_whisper(self):
        """Install a stub mlx_whisper module."""
        module = MagicMock()
        module.transcribe.return_value = {
            "text": "  Hello there  ",
            "segments": [{"avg_logprob": math.log(0.9)}],
        }
        with patch.dict(sys.modules, {"mlx_whisper": module}):
            yield module

    def test_defaults(self):
        """Test default model and auto language."""
        engine = MLXWhisperEngine()

        assert engine.model_name == MLXWhisperEngine.DEFAULT_MODEL
        assert engine.language is None

    def test_custom_model_name(self):
        """Test custom model name."""
        engine = MLXWhisperEngine(model_name="custom-model", language="en")

        assert engine.model_name == "custom-model"
        assert engine.language == "en"

    def test_initialize_runs_warmup(self, mlx_whisper):
        """Test initialize transcribes one second of silence."""
        engine = MLXWhisperEngine(model_name="mlx-community/whisper-tiny")

        engine.initialize()

        args, kwargs = mlx_whisper.transcribe.call_args
        assert len(args[0]) == 16000
        assert not args[0].any()
        assert kwargs["path_or_hf_repo"] == "mlx-community/whisper-tiny"

    def test_initialize_propagates_engine_errors(self, mlx_whisper):
        """Test initialize surfaces the engine failure unchanged."""
        mlx_whisper.transcribe.side_effect = RuntimeError("download failed")

        with pytest.raises(RuntimeError, match="download failed"):
            MLXWhisperEngine().initialize()

    def test_transcribe_strips_text(self, mlx_whisper):
        """Test text is stripped and confidence derived from segments."""
        engine = MLXWhisperEngine(language="en")

        outcome = engine.transcribe(np.zeros(16000, dtype=np.float32))

        assert outcome.text == "Hello there"
        assert outcome.confidence == pytest.approx(0.9)
        assert mlx_whisper.transcribe.call_args.kwargs["language"] == "en"

    def test_transcribe_no_result(self, mlx_whisper):
        """Test an empty engine result maps to None."""
        mlx_whisper.transcribe.return_value = None

        assert MLXWhisperEngine().transcribe(np.zeros(10, dtype=np.float32)) is None

    def test_transcribe_silence(self, mlx_whisper):
        """Test silence gives empty text with zero confidence."""
        mlx_whisper.transcribe.return_value = {"text": "", "segments": []}

        outcome = MLXWhisperEngine().transcribe(np.zeros(16000, dtype=np.float32))

        assert outcome.text == ""
        assert outcome.confidence == 0.0

    def test_models_present_in_hub_cache(self):
        """Test cached config.json counts as present."""
        engine = MLXWhisperEngine(model_name="mlx-community/whisper-tiny")

        with patch("transcription.engine.try_to_load_from_cache",
                   return_value="/cache/config.json") as lookup:
            assert engine.models_present() is True

        lookup.assert_called_once_with(
            repo_id="mlx-community/whisper-tiny",
            filename="config.json",
        )

    @pytest.mark.parametrize("cached", [None, object()])
    def test_models_missing_from_hub_cache(self, cached):
        """Test missing or known-absent cache entries count as missing."""
        engine = MLXWhisperEngine(model_name="mlx-community/whisper-tiny")

        with patch("transcription.engine.try_to_load_from_cache", return_value=cached):
            assert engine.models_present() is False

    def test_models_present_in_local_dir(self, tmp_path):
        """Test a local model directory with config.json counts as present."""
        (tmp_path / "config.json").write_text("{}")
        engine = MLXWhisperEngine(model_name=str(tmp_path))

        assert engine.models_present() is True
        assert engine.model_path() == str(tmp_path)

    def test_models_missing_in_local_dir(self, tmp_path):
        """Test an empty local directory counts as missing."""
        engine = MLXWhisperEngine(model_name=str(tmp_path))

        assert engine.models_present() is False

    def test_model_path_for_hub_repo(self):
        """Test model path points at the repo folder in the hub cache."""
        engine = MLXWhisperEngine(model_name="mlx-community/whisper-tiny")

        path = Path(engine.model_path())

        assert path.name == "models--mlx-community--whisper-tiny"

    def test_cleanup_without_import_is_safe(self):
        """Test cleanup does nothing if mlx_whisper was never loaded."""
        with patch.dict(sys.modules):
            sys.modules.pop("mlx_whisper.transcribe", None)
            MLXWhisperEngine().cleanup()

    def test_cleanup_releases_cached_model(self):
        """Test cleanup drops mlx_whisper's cached model."""
        holder = type("ModelHolder", (), {"model": object(), "model_path": "repo"})
        transcribe_module = types.ModuleType("mlx_whisper.transcribe")
        transcribe_module.ModelHolder = holder

        with patch.dict(sys.modules, {
            "mlx_whisper": MagicMock(),
            "mlx_whisper.transcribe": transcribe_module,
        }):
            MLXWhisperEngine().cleanup()
            MLXWhisperEngine().cleanup()

        assert holder.model is None
        assert holder.model_path is None


class TestDefaultEngine:
    """Tests for platform engine selection."""

    def test_unsupported_platform(self):
        with patch("transcription.engine.is_platform_supported", return_value=False):
            engine = default_engine()

        assert isinstance(engine, UnavailableEngine)

    def test_supported_platform(self):
        with patch("transcription.engine.is_platform_supported", return_value=True):
            engine = default_engine("mlx-community/whisper-tiny", "de")

        assert isinstance(engine, MLXWhisperEngine)
        assert engine.model_name == "mlx-community/whisper-tiny"
        assert engine.language == "de"

    def test_linux_is_not_supported(self):
        with patch.object(sys, "platform", "linux"):
            assert is_platform_supported() is False

    def test_intel_mac_is_not_supported(self):
        with patch.object(sys, "platform", "darwin"), \
                patch("transcription.engine.platform.machine", return_value="x86_64"):
            assert is_platform_supported() is False

    def test_apple_silicon_without_mlx_whisper(self):
        with patch.object(sys, "platform", "darwin"), \
                patch("transcription.engine.platform.machine", return_value="arm64"), \
                patch("transcription.engine.importlib.util.find_spec", return_value=None):
            assert is_platform_supported() is False
            engine = default_engine()

        assert isinstance(engine, UnavailableEngine)
        assert "pip install mlx-whisper" in engine.reason
