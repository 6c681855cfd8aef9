"""
Unix Domain Socket IPC Server

Handles communication between the host application and the ASR bridge.
"""

import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

from .protocol import (
    MessageType,
    IPCMessage,
    AudioDataMessage,
    ErrorMessage,
    ResampleMessage,
    TranscribeMessage,
    TranscriptionMessage,
)

logger = logging.getLogger(__name__)

# Handlers return a message object exposing to_ipc_message()
ResponseHandler = Callable[..., Awaitable[Any]]


class IPCServer:
    """Unix Domain Socket server for host-bridge IPC."""

    DEFAULT_SOCKET_PATH = "/tmp/asr-bridge.sock"

    # Request types whose payload is parsed before reaching the handler
    _PAYLOAD_PARSERS = {
        MessageType.TRANSCRIBE: TranscribeMessage.from_payload,
        MessageType.RESAMPLE: ResampleMessage.from_payload,
    }

    def __init__(self, socket_path: Optional[str] = None):
        self.socket_path = socket_path or self.DEFAULT_SOCKET_PATH
        self.server: Optional[asyncio.Server] = None
        self.clients: list[asyncio.StreamWriter] = []
        self._running = False

        # Message handlers
        self._request_handlers: Dict[MessageType, ResponseHandler] = {}
        self._audio_handler: Optional[Callable[[AudioDataMessage], Awaitable[None]]] = None
        self._shutdown_handler: Optional[Callable[[], Awaitable[None]]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def on_initialize(self, handler: Callable[[], Awaitable[Any]]):
        """Register handler for initialize requests."""
        self._request_handlers[MessageType.INITIALIZE] = handler

    def on_transcribe(self, handler: Callable[[TranscribeMessage], Awaitable[Any]]):
        """Register handler for transcribe requests."""
        self._request_handlers[MessageType.TRANSCRIBE] = handler

    def on_models_exist(self, handler: Callable[[], Awaitable[Any]]):
        """Register handler for models_exist requests."""
        self._request_handlers[MessageType.MODELS_EXIST] = handler

    def on_model_path(self, handler: Callable[[], Awaitable[Any]]):
        """Register handler for model_path requests."""
        self._request_handlers[MessageType.MODEL_PATH] = handler

    def on_resample(self, handler: Callable[[ResampleMessage], Awaitable[Any]]):
        """Register handler for resample requests."""
        self._request_handlers[MessageType.RESAMPLE] = handler

    def on_audio_data(self, handler: Callable[[AudioDataMessage], Awaitable[None]]):
        """Register handler for streaming audio data messages."""
        self._audio_handler = handler

    def on_shutdown(self, handler: Callable[[], Awaitable[None]]):
        """Register handler invoked when a client requests shutdown."""
        self._shutdown_handler = handler

    async def send_transcription(self, transcription: TranscriptionMessage):
        """Send streamed transcription result to all connected clients."""
        logger.debug(f"Broadcasting transcription to {len(self.clients)} clients")
        await self.broadcast(transcription.to_ipc_message())

    async def start(self):
        """Start the IPC server."""
        # Remove existing socket file if present
        if os.path.exists(self.socket_path):
            os.unlink(self.socket_path)

        self.server = await asyncio.start_unix_server(
            self._handle_client,
            path=self.socket_path
        )
        self._running = True

        # Set socket permissions
        os.chmod(self.socket_path, 0o600)

        logger.info(f"IPC server started at {self.socket_path}")

    async def stop(self):
        """Stop the IPC server."""
        if not self._running:
            return
        self._running = False

        # Close all client connections
        for writer in list(self.clients):
            writer.close()
        self.clients.clear()

        # Close server
        if self.server:
            self.server.close()
            await self.server.wait_closed()

        # Remove socket file
        if os.path.exists(self.socket_path):
            os.unlink(self.socket_path)

        logger.info("IPC server stopped")

    async def broadcast(self, message: IPCMessage):
        """Send message to all connected clients."""
        data = message.to_json().encode() + b"\n"
        for writer in list(self.clients):
            try:
                writer.write(data)
                await writer.drain()
            except (ConnectionError, OSError) as e:
                logger.error(f"Failed to send message to client: {e}")

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter
    ):
        """Handle a connected client."""
        self.clients.append(writer)
        logger.info("Client connected")

        try:
            buffer = b""
            while self._running:
                # Read data in chunks
                try:
                    chunk = await asyncio.wait_for(
                        reader.read(65536),  # 64KB chunks
                        timeout=1.0
                    )
                except asyncio.TimeoutError:
                    continue

                if not chunk:
                    break

                buffer += chunk

                # Process complete messages (newline-delimited)
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    if not line:
                        continue

                    try:
                        message = IPCMessage.from_json(line.decode().strip())
                    except (json.JSONDecodeError, KeyError, ValueError) as e:
                        logger.error(f"Invalid message: {e}")
                        await self._send(writer, ErrorMessage(
                            error=f"Invalid message: {e}",
                            error_type="other"
                        ).to_ipc_message())
                        continue

                    await self._process_message(message, writer)

        except asyncio.CancelledError:
            pass
        except (ConnectionError, OSError) as e:
            logger.error(f"Client handler error: {e}")
        finally:
            if writer in self.clients:
                self.clients.remove(writer)
            writer.close()
            logger.info("Client disconnected")

    async def _process_message(self, message: IPCMessage, writer: asyncio.StreamWriter):
        """Process incoming message and send response if needed."""

        if message.type == MessageType.PING:
            await self._send(writer, IPCMessage(type=MessageType.PONG, payload={}, id=message.id))

        elif message.type == MessageType.AUDIO_DATA:
            if self._audio_handler:
                try:
                    audio_msg = AudioDataMessage.from_payload(message.payload)
                    await self._audio_handler(audio_msg)
                except Exception as e:
                    logger.error(f"Error processing audio data: {e}")
                    await self._reply(writer, message, ErrorMessage.from_exception(e))

        elif message.type == MessageType.SHUTDOWN:
            await self._send(writer, IPCMessage(type=MessageType.ACK, payload={}, id=message.id))
            if self._shutdown_handler:
                await self._shutdown_handler()
            else:
                await self.stop()

        elif message.type in self._request_handlers:
            handler = self._request_handlers[message.type]
            try:
                parser = self._PAYLOAD_PARSERS.get(message.type)
                if parser:
                    response = await handler(parser(message.payload))
                else:
                    response = await handler()
            except Exception as e:
                logger.error(f"Error processing {message.type.value}: {e}")
                response = ErrorMessage.from_exception(e)
            await self._reply(writer, message, response)

        else:
            logger.warning(f"No handler registered for {message.type.value}")
            await self._reply(writer, message, ErrorMessage(
                error=f"Unsupported message type: {message.type.value}",
                error_type="other"
            ))

    async def _reply(self, writer: asyncio.StreamWriter, request: IPCMessage, response: Any):
        ipc_message = response.to_ipc_message()
        ipc_message.id = request.id
        await self._send(writer, ipc_message)

    async def _send(self, writer: asyncio.StreamWriter, message: IPCMessage):
        writer.write(message.to_json().encode() + b"\n")
        await writer.drain()
