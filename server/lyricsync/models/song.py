import time

from pydantic import BaseModel, Field

from lyricsync.models.annotation import AnnotationSegment
from lyricsync.models.lyrics import LyricsSource, SongLyrics


def _now_ms() -> int:
    return int(time.time() * 1000)


class SongDocument(BaseModel):
    """Unified song aggregate, keyed by id in the document store."""

    id: str
    title: str = ""
    artist: str | None = None
    album: str | None = None
    lyric_offset: int = Field(default=0, ge=-60000, le=60000)

    lyrics_source: LyricsSource | None = None
    lyrics: SongLyrics | None = None

    # Consolidated annotations
    translations: dict[str, str] = Field(default_factory=dict)
    furigana: list[list[AnnotationSegment]] = Field(default_factory=list)
    soramimi: list[list[AnnotationSegment]] = Field(default_factory=list)

    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)

    @property
    def content_hash(self) -> str | None:
        return self.lyrics_source.hash if self.lyrics_source else None

    @property
    def filter_title(self) -> str:
        return self.lyrics_source.title if self.lyrics_source else self.title

    @property
    def filter_artist(self) -> str | None:
        return self.lyrics_source.artist if self.lyrics_source else self.artist
