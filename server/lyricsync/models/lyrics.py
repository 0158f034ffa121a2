from pydantic import BaseModel, ConfigDict, Field


class WordTiming(BaseModel):
    text: str
    start_offset_ms: int = Field(ge=0)
    duration_ms: int = Field(ge=0)


class CanonicalLine(BaseModel):
    start_time_ms: int = Field(ge=0)
    text: str = Field(min_length=1)
    word_timings: list[WordTiming] | None = None


class RawLyricsPayload(BaseModel):
    """Lyrics as fetched from the provider.

    ``lrc`` is the plain ``[mm:ss.cc]`` format, ``krc`` the decoded
    proprietary format with word timings. ``krc`` wins when it parses.
    """

    model_config = ConfigDict(frozen=True)

    lrc: str | None = None
    krc: str | None = None
    cover: str = ""


class LyricsSource(BaseModel):
    hash: str
    album_id: str | int
    title: str = Field(max_length=500)
    artist: str = Field(max_length=500)
    album: str | None = Field(default=None, max_length=500)


class Candidate(BaseModel):
    title: str
    artist: str
    album: str | None = None
    hash: str
    album_id: str | int
    score: float = 0.0

    def to_source(self) -> LyricsSource:
        return LyricsSource(
            hash=self.hash,
            album_id=self.album_id,
            title=self.title,
            artist=self.artist,
            album=self.album,
        )


class SongLyrics(BaseModel):
    lrc: str | None = None
    krc: str | None = None
    cover: str = ""
    parsed_lines: list[CanonicalLine] = Field(default_factory=list)

    @property
    def payload(self) -> RawLyricsPayload:
        return RawLyricsPayload(lrc=self.lrc, krc=self.krc, cover=self.cover)


class LyricsFetchRequest(BaseModel):
    title: str | None = Field(default=None, max_length=500)
    artist: str | None = Field(default=None, max_length=500)
    lyrics_source: LyricsSource | None = None
    force: bool = False


class LyricsSearchRequest(BaseModel):
    query: str | None = Field(default=None, max_length=500)
    title: str = Field(default="", max_length=500)
    artist: str = Field(default="", max_length=500)
