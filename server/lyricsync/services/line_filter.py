"""Shared predicate separating sung lines from credits and captions.

Both lyric parsers and the embedded-translation path must use the same
instance; any divergence shifts translation indexes against the canonical
lines.
"""

from collections.abc import Iterable

from lyricsync.config import settings

_PAREN_PAIRS = (("(", ")"), ("（", "）"))


class LineFilter:
    def __init__(self, skip_prefixes: Iterable[str] | None = None) -> None:
        prefixes = settings.skip_prefixes if skip_prefixes is None else skip_prefixes
        self.skip_prefixes: tuple[str, ...] = tuple(prefixes)

    def should_skip(self, text: str, title: str | None = None, artist: str | None = None) -> bool:
        trimmed = text.strip()

        if trimmed.startswith(self.skip_prefixes):
            return True

        # Instrumental markers such as "(間奏)"
        for opening, closing in _PAREN_PAIRS:
            if trimmed.startswith(opening) and trimmed.endswith(closing):
                return True

        if title and artist:
            for caption in (f"{title} - {artist}", f"{artist} - {title}"):
                if trimmed.startswith(caption):
                    return True

        return False
