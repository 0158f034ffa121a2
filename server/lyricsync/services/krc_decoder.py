"""Decoder for Kugou's encrypted .krc lyric payloads.

A payload is base64 text wrapping a 4-byte ``krc1`` header followed by
zlib data XORed with a fixed 16-byte key. Decoding is pure: a payload that
fails once always fails, so callers fall back to the plain format instead
of retrying.
"""

import base64
import binascii
import logging
import zlib

from lyricsync.config import settings
from lyricsync.errors import DecodeError
from lyricsync.models.lyrics import RawLyricsPayload

logger = logging.getLogger(__name__)


class KrcDecoder:
    def __init__(self, key: bytes | None = None, header_size: int | None = None) -> None:
        self.key = key if key is not None else settings.krc_key_bytes
        self.header_size = header_size if header_size is not None else settings.krc_header_size
        if not self.key:
            raise ValueError("KRC decryption key must not be empty")

    def decode(self, payload_b64: str) -> str:
        """Return the UTF-8 lyric text inside a base64 .krc payload."""
        raw = _b64decode(payload_b64)
        body = raw[self.header_size:]
        key_len = len(self.key)
        unmasked = bytes(b ^ self.key[i % key_len] for i, b in enumerate(body))

        try:
            inflated = zlib.decompress(unmasked)
        except zlib.error as e:
            raise DecodeError(f"KRC inflate failed: {e}") from e

        try:
            return inflated.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"KRC payload is not valid UTF-8: {e}") from e

    def encode(self, text: str) -> str:
        """Inverse of :meth:`decode`. Used to build fixtures and test payloads."""
        compressed = zlib.compress(text.encode("utf-8"))
        key_len = len(self.key)
        masked = bytes(b ^ self.key[i % key_len] for i, b in enumerate(compressed))
        header = b"krc1"[: self.header_size].ljust(self.header_size, b"\x00")
        return base64.b64encode(header + masked).decode("ascii")


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e


def decode_plain(payload_b64: str) -> str:
    """Decode the provider's base64 (unencrypted) LRC download."""
    try:
        return _b64decode(payload_b64).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"LRC payload is not valid UTF-8: {e}") from e


def decode_krc(payload_b64: str) -> str:
    return KrcDecoder().decode(payload_b64)


def build_payload(
    lrc_b64: str | None,
    krc_b64: str | None,
    cover: str = "",
    decoder: KrcDecoder | None = None,
) -> RawLyricsPayload:
    """Decode both provider downloads, dropping whichever one is corrupt."""
    decoder = decoder or KrcDecoder()

    krc: str | None = None
    if krc_b64:
        try:
            krc = decoder.decode(krc_b64)
        except DecodeError as e:
            logger.info("KRC decode failed, falling back to LRC: %s", e)

    lrc: str | None = None
    if lrc_b64:
        try:
            lrc = decode_plain(lrc_b64)
        except DecodeError as e:
            logger.info("LRC base64 decode failed: %s", e)

    return RawLyricsPayload(lrc=lrc, krc=krc, cover=cover)
