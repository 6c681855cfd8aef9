"""
ASR Bridge Backend

Python backend for the ASR bridge providing:
- Transcription service facade over a local speech recognition engine
- 16kHz mono resampling for engine input
- IPC server for host application communication
"""

__version__ = "1.0.0"
