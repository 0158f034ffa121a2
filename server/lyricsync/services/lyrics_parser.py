"""Unified parser for the two time-coded lyric formats.

KRC lines look like ``[12000,3400]<0,400,0>Hel<400,300,0>lo``: a header
with the line start and duration, then word tokens carrying an offset,
a duration and an unused flag. LRC lines look like ``[00:12.00]Hello``.
Both paths apply the same :class:`LineFilter` so that they agree on which
lines exist.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from lyricsync.models.lyrics import CanonicalLine, RawLyricsPayload, WordTiming
from lyricsync.services.chinese_script import lyrics_are_japanese, to_traditional
from lyricsync.services.line_filter import LineFilter

logger = logging.getLogger(__name__)

_KRC_TOKEN_PATTERN = re.compile(r"<\d+,\d+,\d+>")
_KRC_HEADER_PATTERN = re.compile(r"^\[\d+,\d+\]", re.MULTILINE)
_LRC_LINE_PATTERN = re.compile(r"^\[(\d{1,2}):(\d{1,2})\.(\d{2,3})\](.+)$")


@dataclass
class KrcLine:
    start_time_ms: int
    duration_ms: int
    text: str
    word_timings: list[WordTiming] = field(default_factory=list)


@dataclass
class RawKrcLine:
    raw_index: int
    start_time_ms: int
    text: str
    skipped: bool


def _read_int(s: str, pos: int) -> tuple[int | None, int]:
    end = pos
    while end < len(s) and s[end].isascii() and s[end].isdigit():
        end += 1
    if end == pos:
        return None, pos
    return int(s[pos:end]), end


def _read_header(line: str) -> tuple[int, int, int] | None:
    """Parse ``[start,duration]`` at the start of a line.

    Returns (start, duration, content offset) or None.
    """
    if not line.startswith("["):
        return None
    start, pos = _read_int(line, 1)
    if start is None or pos >= len(line) or line[pos] != ",":
        return None
    duration, pos = _read_int(line, pos + 1)
    if duration is None or pos >= len(line) or line[pos] != "]":
        return None
    return start, duration, pos + 1


def _read_token(content: str, pos: int) -> tuple[int, int, int] | None:
    """Parse ``<offset,duration,flag>`` at ``pos``.

    Returns (offset, duration, end position) or None.
    """
    if content[pos] != "<":
        return None
    values: list[int] = []
    cursor = pos + 1
    for sep in (",", ",", ">"):
        value, cursor = _read_int(content, cursor)
        if value is None or cursor >= len(content) or content[cursor] != sep:
            return None
        values.append(value)
        cursor += 1
    return values[0], values[1], cursor


def tokenize_krc_line(line: str) -> KrcLine | None:
    """Split one KRC line into its header and word tokens.

    Scanning is linear: each ``<`` is tried as a token once and kept as
    literal text when it does not form one.
    """
    header = _read_header(line)
    if header is None:
        return None
    start, duration, pos = header
    content = line[pos:]

    timings: list[WordTiming] = []
    current: tuple[int, int] | None = None
    buf: list[str] = []

    def flush() -> None:
        if current is not None and buf:
            timings.append(WordTiming(
                text="".join(buf),
                start_offset_ms=current[0],
                duration_ms=current[1],
            ))

    i = 0
    while i < len(content):
        token = _read_token(content, i) if content[i] == "<" else None
        if token is not None:
            flush()
            current = (token[0], token[1])
            buf = []
            i = token[2]
            continue
        # Text ahead of the first token has no timing and is dropped
        if current is not None:
            buf.append(content[i])
        i += 1
    flush()

    if timings:
        text = "".join(t.text for t in timings)
    else:
        text = _KRC_TOKEN_PATTERN.sub("", content)
    return KrcLine(start_time_ms=start, duration_ms=duration, text=text.strip(), word_timings=timings)


def _split_lines(text: str) -> list[str]:
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def ms_to_lrc_time(ms: int) -> str:
    total_seconds = ms // 1000
    minutes, seconds = divmod(total_seconds, 60)
    centiseconds = (ms % 1000) // 10
    return f"[{minutes:02d}:{seconds:02d}.{centiseconds:02d}]"


def build_lrc(lines: Sequence[CanonicalLine], texts: Sequence[str] | None = None) -> str:
    """Render lines in the shared ``[mm:ss.cc]text`` format.

    ``texts`` replaces each line's text; empty entries fall back to the line.
    """
    rendered = []
    for i, line in enumerate(lines):
        text = line.text
        if texts is not None and i < len(texts) and texts[i]:
            text = texts[i]
        rendered.append(f"{ms_to_lrc_time(line.start_time_ms)}{text}")
    return "\n".join(rendered)


def _to_traditional_line(line: CanonicalLine) -> CanonicalLine:
    timings = None
    if line.word_timings:
        timings = [t.model_copy(update={"text": to_traditional(t.text)}) for t in line.word_timings]
    return line.model_copy(update={"text": to_traditional(line.text), "word_timings": timings})


class LyricsParser:
    def __init__(self, line_filter: LineFilter | None = None) -> None:
        self.line_filter = line_filter or LineFilter()

    @staticmethod
    def is_krc_format(text: str) -> bool:
        return bool(_KRC_TOKEN_PATTERN.search(text) or _KRC_HEADER_PATTERN.search(text))

    def parse_krc(self, krc: str, title: str | None = None, artist: str | None = None) -> list[CanonicalLine]:
        lines: list[CanonicalLine] = []
        for raw in _split_lines(krc):
            parsed = tokenize_krc_line(raw)
            if parsed is None or not parsed.text:
                continue
            if self.line_filter.should_skip(parsed.text, title, artist):
                continue
            lines.append(CanonicalLine(
                start_time_ms=parsed.start_time_ms,
                text=parsed.text,
                word_timings=parsed.word_timings or None,
            ))
        return lines

    def parse_raw_krc(self, krc: str, title: str | None = None, artist: str | None = None) -> list[RawKrcLine]:
        """Every KRC line in source order, with its filter decision.

        Embedded translation channels index into this unfiltered sequence.
        """
        raw_lines: list[RawKrcLine] = []
        for raw in _split_lines(krc):
            parsed = tokenize_krc_line(raw)
            if parsed is None:
                continue
            skipped = not parsed.text or self.line_filter.should_skip(parsed.text, title, artist)
            raw_lines.append(RawKrcLine(
                raw_index=len(raw_lines),
                start_time_ms=parsed.start_time_ms,
                text=parsed.text,
                skipped=skipped,
            ))
        return raw_lines

    def parse_lrc(self, lrc: str, title: str | None = None, artist: str | None = None) -> list[CanonicalLine]:
        lines: list[CanonicalLine] = []
        for raw in _split_lines(lrc):
            match = _LRC_LINE_PATTERN.match(raw.strip())
            if not match:
                continue
            minutes, seconds, fraction, words = match.groups()
            # Two digits are centiseconds, three are milliseconds
            ms = int(fraction) * 10 if len(fraction) == 2 else int(fraction)
            text = words.strip()
            if not text or self.line_filter.should_skip(text, title, artist):
                continue
            lines.append(CanonicalLine(
                start_time_ms=int(minutes) * 60_000 + int(seconds) * 1000 + ms,
                text=text,
            ))
        return lines

    def parse(
        self,
        payload: RawLyricsPayload,
        title: str | None = None,
        artist: str | None = None,
    ) -> list[CanonicalLine]:
        lines: list[CanonicalLine] = []
        if payload.krc and self.is_krc_format(payload.krc):
            lines = self.parse_krc(payload.krc, title, artist)
            if not lines:
                logger.info("KRC yielded no lines, falling back to LRC")

        if not lines and payload.lrc:
            lines = self.parse_lrc(payload.lrc, title, artist)

        # Kanji must not be rewritten as Traditional hanzi
        if lyrics_are_japanese(line.text for line in lines):
            return lines
        return [_to_traditional_line(line) for line in lines]
