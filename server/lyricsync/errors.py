"""Error taxonomy for the lyrics pipeline.

Decode and per-chunk enrichment failures are recovered where they happen.
Validation and not-found errors are surfaced to the caller and block
persistence. Network errors carry whether they were a timeout so the HTTP
layer can report them apart from bad requests.
"""

from typing import Any


class LyricsError(Exception):
    """Base exception for lyricsync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class DecodeError(LyricsError):
    """Binary lyric payload could not be decoded or decompressed."""


class NetworkError(LyricsError):
    """Transport failure or timeout talking to an external service."""

    def __init__(
        self,
        message: str,
        timed_out: bool = False,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.timed_out = timed_out
        self.status_code = status_code


class ValidationError(LyricsError):
    """Malformed request or a result that does not line up with the song."""


class NotFoundError(LyricsError):
    """Song, lyrics or search candidate does not exist."""
