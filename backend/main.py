"""
ASR Bridge Main Entry Point

Runs the IPC server that exposes the transcription service to a host
application, plus a couple of command-line utilities:

    python main.py serve                 # IPC server (default)
    python main.py check                 # model presence and cache location
    python main.py transcribe FILE.wav   # one-shot WAV transcription
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
import time
from typing import Optional

from ipc import (
    IPCServer,
    AudioDataMessage,
    ErrorMessage,
    InitializedMessage,
    ModelPathResponseMessage,
    ModelsExistResponseMessage,
    ResampleMessage,
    ResampleResponseMessage,
    TranscribeMessage,
    TranscriptionMessage,
)
from transcription import (
    TARGET_SAMPLE_RATE,
    StreamingTranscriber,
    TranscriptionConfig,
    TranscriptionError,
    TranscriptionOutcome,
    TranscriptionService,
    default_engine,
    read_wav,
    resample_to_16khz_mono,
)

logger = logging.getLogger(__name__)


def setup_logging():
    """
    Configure logging for the bridge.

    Sets up logging format and suppresses verbose logs from external libraries
    (huggingface_hub, urllib3, httpx) to keep the output clean.
    """
    # Get log level from environment variable (default: INFO)
    log_level_str = os.getenv("ASR_BRIDGE_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    # Suppress verbose logs from external libraries
    logging.getLogger("huggingface_hub").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class AsrBridgeBackend:
    """
    Main backend application.

    Wires the IPC server to the transcription service and streaming
    transcriber.
    """

    def __init__(
        self,
        config: Optional[TranscriptionConfig] = None,
        service: Optional[TranscriptionService] = None,
    ):
        self.config = config or TranscriptionConfig.from_env()
        self.ipc_server = IPCServer(self.config.socket_path)
        self.transcription_service = service or TranscriptionService(config=self.config)
        self.streaming = StreamingTranscriber(
            self.transcription_service,
            on_transcription=self._on_transcription,
            chunk_seconds=self.config.chunk_seconds
        )
        self._running = False
        self._stop_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the backend services."""
        logger.info("Starting ASR bridge...")

        self.ipc_server.on_initialize(self._on_initialize)
        self.ipc_server.on_transcribe(self._on_transcribe)
        self.ipc_server.on_models_exist(self._on_models_exist)
        self.ipc_server.on_model_path(self._on_model_path)
        self.ipc_server.on_resample(self._on_resample)
        self.ipc_server.on_audio_data(self._on_audio_data)
        self.ipc_server.on_shutdown(self.stop)

        await self.ipc_server.start()
        self._running = True
        logger.info("ASR bridge started")

    async def stop(self) -> None:
        """Stop the backend services."""
        if not self._running:
            return
        logger.info("Stopping ASR bridge...")
        self._running = False

        await self.ipc_server.stop()
        self.transcription_service.close()
        logger.info("ASR bridge stopped")

    def request_stop(self) -> asyncio.Task:
        """Schedule stop() from a signal handler, keeping the task referenced."""
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.create_task(self.stop())
        return self._stop_task

    async def run(self) -> None:
        """Run the backend until shutdown."""
        await self.start()

        # Wait for shutdown signal
        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def _on_initialize(self):
        """Handle initialize request from the host."""
        try:
            await self.transcription_service.initialize()
            return InitializedMessage()
        except TranscriptionError as e:
            return ErrorMessage.from_exception(e)

    async def _on_transcribe(self, message: TranscribeMessage):
        """Handle one-shot transcription request from the host."""
        try:
            samples = message.samples
            if message.sample_rate != TARGET_SAMPLE_RATE:
                samples = resample_to_16khz_mono(samples, message.sample_rate)
            outcome = await self.transcription_service.transcribe(samples)
            return TranscriptionMessage(text=outcome.text, confidence=outcome.confidence)
        except TranscriptionError as e:
            return ErrorMessage.from_exception(e)

    async def _on_models_exist(self) -> ModelsExistResponseMessage:
        """Handle model presence query."""
        return ModelsExistResponseMessage(
            exists=TranscriptionService.models_exist(self.transcription_service.adapter.engine)
        )

    async def _on_model_path(self):
        """Handle model path query."""
        try:
            path = TranscriptionService.get_model_path(self.transcription_service.adapter.engine)
            return ModelPathResponseMessage(path=path)
        except TranscriptionError as e:
            return ErrorMessage.from_exception(e)

    async def _on_resample(self, message: ResampleMessage):
        """Handle resample request."""
        try:
            samples = resample_to_16khz_mono(message.samples, message.source_sample_rate)
            return ResampleResponseMessage(samples=samples)
        except TranscriptionError as e:
            return ErrorMessage.from_exception(e)

    async def _on_audio_data(self, message: AudioDataMessage) -> None:
        """Handle streamed audio from the host."""
        await self.streaming.feed(message.samples, message.sample_rate)

    async def _on_transcription(self, outcome: TranscriptionOutcome) -> None:
        """Forward streamed transcription to connected clients."""
        logger.debug(f"Sending to host: '{outcome.text}'")
        await self.ipc_server.send_transcription(
            TranscriptionMessage(text=outcome.text, confidence=outcome.confidence)
        )


async def serve(config: TranscriptionConfig) -> None:
    """Run the IPC server until SIGINT/SIGTERM or a shutdown request."""
    backend = AsrBridgeBackend(config)

    # Set up signal handlers
    loop = asyncio.get_event_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        backend.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await backend.run()


def check(config: TranscriptionConfig) -> int:
    """Print whether models are present and where they live."""
    engine = default_engine(config.model_name, config.language)
    exists = TranscriptionService.models_exist(engine)
    print(f"Models on disk: {'yes' if exists else 'no'}")
    try:
        print(f"Model cache: {TranscriptionService.get_model_path(engine)}")
    except TranscriptionError as e:
        print(f"Model cache: unavailable ({e})")
        return 1
    if not exists:
        print("Models will be downloaded on first initialize.")
    return 0


async def transcribe_file(config: TranscriptionConfig, path: str) -> int:
    """Transcribe a 16-bit PCM WAV file and print the result."""
    samples, sample_rate = read_wav(path)
    samples = resample_to_16khz_mono(samples, sample_rate)
    duration = len(samples) / TARGET_SAMPLE_RATE

    async with TranscriptionService(config=config) as service:
        await service.initialize()

        start = time.monotonic()
        outcome = await service.transcribe(samples)
        elapsed = time.monotonic() - start

    print(outcome.text)
    print(f"Confidence: {outcome.confidence * 100:.1f}%")
    print(f"Processing time: {elapsed:.2f}s")
    if elapsed > 0:
        print(f"Speed: {duration / elapsed:.1f}x real-time")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asr-bridge",
        description="Speech-to-text bridge with 16kHz resampling"
    )
    parser.add_argument("--model", help="Model repo id or local directory")
    parser.add_argument("--language", help="Force a language code (default: auto-detect)")

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the IPC server")
    serve_parser.add_argument("--socket", help="Unix socket path")

    subparsers.add_parser("check", help="Show model presence and cache location")

    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe a WAV file")
    transcribe_parser.add_argument("file", help="16-bit PCM WAV file")

    return parser


def cli(argv: Optional[list] = None) -> int:
    """Command-line entry point."""
    setup_logging()
    args = build_parser().parse_args(argv)

    config = TranscriptionConfig.from_env()
    if args.model:
        config.model_name = args.model
    if args.language:
        config.language = args.language
    if getattr(args, "socket", None):
        config.socket_path = args.socket

    try:
        if args.command == "check":
            return check(config)
        if args.command == "transcribe":
            return asyncio.run(transcribe_file(config, args.file))
        asyncio.run(serve(config))
        return 0
    except (TranscriptionError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(cli())
