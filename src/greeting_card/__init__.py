"""
greeting-card — client for the Year of the Horse greeting-card backend.

Components:
- text_client / image_client / speech_client: remote generation calls
- orchestrator: runs one generation attempt (text → image → speech)
- audio: 16-bit PCM decode and one-shot playback
- cli: ``greeting-card`` command line front end
"""

__version__ = "0.1.0"
__all__ = ["orchestrator", "audio", "cli"]
