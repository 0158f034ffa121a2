"""Simplified to Traditional Chinese conversion for provider text.

Kugou serves Chinese lyrics in Simplified script. Japanese lyrics share
the ideograph range (気 must not become 氣), so lyrics with kana are
left untouched.
"""

import re
from collections.abc import Iterable
from functools import lru_cache

from opencc import OpenCC

from lyricsync.config import settings

_KANA_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
_HANZI_PATTERN = re.compile(r"[\u4e00-\u9fff]")


@lru_cache(maxsize=4)
def _converter(config: str) -> OpenCC:
    return OpenCC(config)


def to_traditional(text: str) -> str:
    if not text or not _HANZI_PATTERN.search(text):
        return text
    return _converter(settings.opencc_config).convert(text)


def lyrics_are_japanese(texts: Iterable[str]) -> bool:
    """True when the lyrics hold both hanzi and kana somewhere."""
    joined = "".join(texts)
    return bool(_HANZI_PATTERN.search(joined) and _KANA_PATTERN.search(joined))
