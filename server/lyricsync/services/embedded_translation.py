"""Translation already shipped inside a KRC payload.

KRC files may carry a ``[language:<base64>]`` tag holding a JSON record
with typed channels (0 = romanisation, 1 = Chinese translation). Channel
lines are aligned to the raw KRC lines, not to the filtered canonical
lines, so the filter decisions are replayed to map one onto the other.
"""

import base64
import binascii
import json
import logging
import re

from lyricsync.models.lyrics import RawLyricsPayload
from lyricsync.services.chinese_script import to_traditional
from lyricsync.services.line_filter import LineFilter
from lyricsync.services.lyrics_parser import LyricsParser, ms_to_lrc_time

logger = logging.getLogger(__name__)

_LANGUAGE_TAG_PATTERN = re.compile(r"^\[language:([^\]]+)\]", re.MULTILINE)

TRANSLATION_CHANNEL = 1

_TRADITIONAL_CHINESE_CODES = {
    "zh-tw",
    "zh-hant",
    "chinese traditional",
    "traditional chinese",
    "繁體中文",
}


def is_traditional_chinese(language: str | None) -> bool:
    return bool(language) and language.strip().lower() in _TRADITIONAL_CHINESE_CODES


class EmbeddedTranslationExtractor:
    def __init__(self, parser: LyricsParser | None = None, line_filter: LineFilter | None = None) -> None:
        self.parser = parser or LyricsParser(line_filter)
        self.line_filter = line_filter or self.parser.line_filter

    @staticmethod
    def read_channel(krc: str, channel_type: int = TRANSLATION_CHANNEL) -> list[str] | None:
        match = _LANGUAGE_TAG_PATTERN.search(krc)
        if not match:
            return None

        try:
            record = json.loads(base64.b64decode(match.group(1).strip()).decode("utf-8"))
            channels = record.get("content", [])
            channel = next((c for c in channels if c.get("type") == channel_type), None)
        except (binascii.Error, UnicodeDecodeError, ValueError, AttributeError) as e:
            logger.info("Unreadable KRC language tag: %s", e)
            return None

        if not channel or not channel.get("lyricContent"):
            return None
        return ["".join(segments).strip() for segments in channel["lyricContent"]]

    def extract_lines(
        self,
        payload: RawLyricsPayload,
        title: str | None = None,
        artist: str | None = None,
    ) -> list[tuple[int, str]] | None:
        """(start time, translated text) for each kept line, or None."""
        if not payload.krc:
            return None

        embedded = self.read_channel(payload.krc)
        if not embedded:
            return None

        result: list[tuple[int, str]] = []
        for raw in self.parser.parse_raw_krc(payload.krc, title, artist):
            if raw.skipped:
                continue
            translated = embedded[raw.raw_index] if raw.raw_index < len(embedded) else ""
            # Noise in the channel (credits, blanks) falls back to the source line
            if not translated or self.line_filter.should_skip(translated, title, artist):
                translated = raw.text
            # Kugou ships the channel in Simplified script
            result.append((raw.start_time_ms, to_traditional(translated)))

        return result or None

    def extract(
        self,
        payload: RawLyricsPayload,
        title: str | None = None,
        artist: str | None = None,
    ) -> str | None:
        lines = self.extract_lines(payload, title, artist)
        if lines is None:
            return None
        return "\n".join(f"{ms_to_lrc_time(start)}{text}" for start, text in lines)
