from typing import Literal

from pydantic import BaseModel, Field


Operation = Literal["translate", "furigana", "soramimi"]


class AnnotationSegment(BaseModel):
    text: str
    reading: str | None = None


# One entry per canonical line: a translated string, or a segment list
ChunkItems = list[str] | list[list[AnnotationSegment]]


# Bracket quoting reads the same under fnmatch and Redis MATCH
_GLOB_ESCAPES = {"*": "[*]", "?": "[?]", "[": "[[]", "\\": "[\\\\]"}


def escape_glob(value: str) -> str:
    return "".join(_GLOB_ESCAPES.get(ch, ch) for ch in value)


class ChunkKey(BaseModel):
    """Address of one cached batch result.

    Without ``content_hash`` the key is less specific but still valid.
    """

    song_id: str
    operation: Operation
    language: str | None = None
    chunk_index: int = Field(ge=0)
    content_hash: str | None = None

    def cache_key(self) -> str:
        parts = ["song", self.song_id, self.operation]
        if self.language:
            parts.append(self.language)
        parts += ["chunk", str(self.chunk_index)]
        if self.content_hash:
            parts.append(self.content_hash)
        return ":".join(parts)

    @staticmethod
    def song_pattern(song_id: str, operation: Operation) -> str:
        return f"song:{escape_glob(song_id)}:{operation}:*"


class ChunkResult(BaseModel):
    chunk_index: int
    total_chunks: int
    start_index: int
    cached: bool
    items: ChunkItems


class ChunkInfo(BaseModel):
    total_lines: int
    total_chunks: int
    chunk_size: int
    cached: bool
    skipped: bool = False
    skip_reason: str | None = None
    translation: str | None = None
    annotations: list[list[AnnotationSegment]] | None = None
    initial_chunk: ChunkResult | None = None


class ChunkInfoRequest(BaseModel):
    operation: Operation
    language: str | None = Field(default=None, max_length=10)
    force: bool = False


class ChunkRequest(BaseModel):
    operation: Operation
    language: str | None = Field(default=None, max_length=10)
    force: bool = False


class ConsolidateRequest(BaseModel):
    operation: Operation
    language: str | None = Field(default=None, max_length=10)
    translations: list[str] | None = Field(default=None, max_length=500)
    annotations: list[list[AnnotationSegment]] | None = Field(default=None, max_length=500)


class ClearRequest(BaseModel):
    operations: list[Operation] = Field(min_length=1)
