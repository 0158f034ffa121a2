from lyricsync.models.lyrics import (
    Candidate,
    CanonicalLine,
    LyricsSource,
    RawLyricsPayload,
    SongLyrics,
    WordTiming,
)
from lyricsync.models.annotation import AnnotationSegment, ChunkInfo, ChunkKey, ChunkResult, Operation
from lyricsync.models.song import SongDocument

__all__ = [
    "Candidate",
    "CanonicalLine",
    "LyricsSource",
    "RawLyricsPayload",
    "SongLyrics",
    "WordTiming",
    "AnnotationSegment",
    "ChunkInfo",
    "ChunkKey",
    "ChunkResult",
    "Operation",
    "SongDocument",
]
