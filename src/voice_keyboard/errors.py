"""Exception hierarchy for streaming sessions and key synchronization.

Every error except a clean server-initiated close is fatal to the session that
raised it. Nothing here is retried; callers start a new session instead.
"""

from __future__ import annotations


class VoiceKeyboardError(Exception):
    """Base class for all voice keyboard errors."""


class ConfigurationError(VoiceKeyboardError):
    """Invalid configuration detected before any network activity."""


class TransportError(VoiceKeyboardError):
    """I/O, TLS or WebSocket-level failure while connected."""


class HandshakeError(TransportError):
    """The server refused the WebSocket upgrade.

    Carries the HTTP response so operators can see why (bad key, wrong model...).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers or {}
        self.body = body

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is None:
            return text
        details = [f"HTTP {self.status_code}"]
        if self.headers:
            details.append("headers=" + ", ".join(f"{k}: {v}" for k, v in self.headers.items()))
        if self.body:
            details.append(f"body={self.body!r}")
        return f"{text} ({'; '.join(details)})"


class ParseError(VoiceKeyboardError):
    """A server message could not be decoded."""


class ProtocolViolationError(VoiceKeyboardError):
    """The server sent a frame the protocol does not allow."""


class ServerReportedError(VoiceKeyboardError):
    """The server sent an Error message."""

    def __init__(self, code: str, description: str):
        super().__init__(f"STT service error {code}: {description}")
        self.code = code
        self.description = description


class HardwareError(VoiceKeyboardError):
    """A key operation could not be delivered to the keyboard device."""
