"""
Domain errors
Raised by the voice pipeline and the upstream service clients.
"""
from typing import Optional


class VoiceProtocolError(Exception):
    """A client frame that cannot be served. ``code`` is sent to the client verbatim."""

    def __init__(self, message: str, code: str = "invalid_message"):
        super().__init__(message)
        self.message = message
        self.code = code


class AudioTooLargeError(Exception):
    """Synthesized audio exceeded the configured byte cap."""

    def __init__(self, limit: int):
        super().__init__(f"Audio stream exceeded {limit} bytes")
        self.limit = limit


class UpstreamServiceError(Exception):
    """An external AI / retrieval service failed or returned something unusable."""

    def __init__(self, service: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status = status
