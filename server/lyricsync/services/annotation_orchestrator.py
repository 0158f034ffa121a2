"""Chunked AI annotation of canonical lyric lines.

Songs are annotated in fixed-size batches so each request fits inside a
short execution window. Every batch is cached on its own, keyed by the
lyrics source fingerprint, and the caller reassembles the batches and
submits them for consolidation. Per chunk the flow is::

    pending -> in flight -> cached          (or failed -> retry, idempotent)

and once all chunks are gathered the song moves to consolidated, which
takes precedence over the chunk caches from then on.
"""

import logging
import math
from typing import Any

from lyricsync.config import settings
from lyricsync.errors import NotFoundError, ValidationError
from lyricsync.models.annotation import (
    AnnotationSegment,
    ChunkInfo,
    ChunkKey,
    ChunkResult,
    Operation,
)
from lyricsync.models.lyrics import CanonicalLine
from lyricsync.models.song import SongDocument
from lyricsync.services.chunk_cache import ChunkCache, get_chunk_cache
from lyricsync.services.embedded_translation import EmbeddedTranslationExtractor, is_traditional_chinese
from lyricsync.services.enrichment_service import (
    EnrichmentService,
    Failed,
    Malformed,
    Ok,
    lyrics_are_mostly_chinese,
)
from lyricsync.services.lyrics_parser import LyricsParser, build_lrc
from lyricsync.services.storage import SongStore, song_store

logger = logging.getLogger(__name__)


def total_chunks(total_lines: int, chunk_size: int) -> int:
    return math.ceil(total_lines / chunk_size)


def chunk_bounds(total_lines: int, chunk_index: int, chunk_size: int) -> tuple[int, int]:
    start = chunk_index * chunk_size
    return start, min(start + chunk_size, total_lines)


def _fallback_item(operation: Operation, text: str) -> Any:
    if operation == "translate":
        return text
    return [AnnotationSegment(text=text)]


def _segments_match(segments: list[AnnotationSegment], text: str) -> bool:
    return "".join(seg.text for seg in segments) == text


def _coerce_item(operation: Operation, item: Any, text: str) -> Any | None:
    """Validate one enrichment entry; None means "use the source text"."""
    if operation == "translate":
        return item if isinstance(item, str) and item.strip() else None
    if not isinstance(item, list) or not item:
        return None
    try:
        segments = [AnnotationSegment.model_validate(seg) for seg in item]
    except ValueError:
        return None
    return segments if _segments_match(segments, text) else None


def _dump_items(operation: Operation, items: list[Any]) -> list[Any]:
    if operation == "translate":
        return list(items)
    return [[seg.model_dump(exclude_none=True) for seg in line] for line in items]


class AnnotationOrchestrator:
    def __init__(
        self,
        store: SongStore | None = None,
        cache: ChunkCache | None = None,
        enrichment: EnrichmentService | None = None,
        parser: LyricsParser | None = None,
        extractor: EmbeddedTranslationExtractor | None = None,
        chunk_size: int | None = None,
        cache_ttl: int | None = None,
    ) -> None:
        self.store = store or song_store
        self.cache = cache or get_chunk_cache()
        self.enrichment = enrichment or EnrichmentService()
        self.parser = parser or LyricsParser()
        self.extractor = extractor or EmbeddedTranslationExtractor(self.parser)
        self.chunk_size = chunk_size or settings.chunk_size
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.chunk_cache_ttl_seconds

    # ── Song access ───────────────────────────────────────────

    def _load_song(self, song_id: str) -> SongDocument:
        song = self.store.get_song(song_id)
        if song is None or song.lyrics is None or not (song.lyrics.lrc or song.lyrics.krc):
            raise NotFoundError("Song has no lyrics", {"song_id": song_id})

        if not song.lyrics.parsed_lines:
            lines = self.parser.parse(song.lyrics.payload, song.filter_title, song.filter_artist)
            lyrics = song.lyrics.model_copy(update={"parsed_lines": lines})
            song = self.store.save_lyrics(song_id, lyrics)
        return song

    @staticmethod
    def _require_language(operation: Operation, language: str | None) -> None:
        if operation == "translate" and not language:
            raise ValidationError("Translation requires a target language")

    @staticmethod
    def _consolidated(song: SongDocument, operation: Operation, language: str | None) -> str | list | None:
        if operation == "translate":
            return song.translations.get(language or "") or None
        if operation == "furigana":
            return song.furigana or None
        return song.soramimi or None

    def _embedded_translation(self, song: SongDocument, language: str | None) -> list[str] | None:
        """Translation lines taken from the KRC payload, aligned to canonical lines."""
        if not is_traditional_chinese(language) or not song.lyrics.krc:
            return None
        extracted = self.extractor.extract_lines(song.lyrics.payload, song.filter_title, song.filter_artist)
        if extracted is None:
            return None
        if len(extracted) != len(song.lyrics.parsed_lines):
            logger.warning(
                "Embedded translation has %d lines but song has %d, ignoring it",
                len(extracted), len(song.lyrics.parsed_lines),
            )
            return None
        return [text for _, text in extracted]

    # ── Operations ────────────────────────────────────────────

    async def get_chunk_info(
        self,
        song_id: str,
        operation: Operation,
        language: str | None = None,
        force: bool = False,
    ) -> ChunkInfo:
        """Chunk totals for an operation, plus the full result when already done.

        When work remains, chunk 0 is processed inline and returned with
        the totals to save the caller one round trip.
        """
        self._require_language(operation, language)
        song = self._load_song(song_id)
        lines = song.lyrics.parsed_lines
        total_lines = len(lines)
        chunks = total_chunks(total_lines, self.chunk_size)
        info = {"total_lines": total_lines, "total_chunks": chunks, "chunk_size": self.chunk_size}

        # Misheard-lyrics transcription makes no sense for Chinese lyrics
        if operation == "soramimi" and lyrics_are_mostly_chinese([line.text for line in lines]):
            logger.info("Skipping soramimi for %s - lyrics are mostly Chinese", song_id)
            return ChunkInfo(**{**info, "total_chunks": 0}, cached=False, skipped=True, skip_reason="chinese_lyrics")

        if not force:
            existing = self._consolidated(song, operation, language)
            if existing:
                logger.info("Chunk info: %s for %s already consolidated", operation, song_id)
                if operation == "translate":
                    return ChunkInfo(**info, cached=True, translation=existing)
                return ChunkInfo(**info, cached=True, annotations=existing)

        if operation == "translate":
            embedded = self._embedded_translation(song, language)
            if embedded is not None:
                translation = build_lrc(lines, embedded)
                self.store.save_translation(song_id, language, translation)
                logger.info("Using KRC-embedded translation for %s (skipping AI)", song_id)
                return ChunkInfo(**info, cached=True, translation=translation)

        initial_chunk = None
        if chunks > 0:
            initial_chunk = await self.process_chunk(song_id, operation, 0, language, force, song=song)
            logger.info("Chunk info: %s - processed chunk 0 inline (%d lines, %d chunks)", operation, total_lines, chunks)

        return ChunkInfo(**info, cached=False, initial_chunk=initial_chunk)

    async def process_chunk(
        self,
        song_id: str,
        operation: Operation,
        chunk_index: int,
        language: str | None = None,
        force: bool = False,
        song: SongDocument | None = None,
    ) -> ChunkResult:
        """Annotate one batch of lines, served from the chunk cache when possible.

        Never fails because of the AI: a failed or malformed call degrades
        to the source text for the affected lines.
        """
        self._require_language(operation, language)
        song = song or self._load_song(song_id)
        lines = song.lyrics.parsed_lines
        chunks = total_chunks(len(lines), self.chunk_size)

        if chunk_index < 0 or chunk_index >= chunks:
            raise ValidationError(
                f"Invalid chunk index: {chunk_index}. Valid range: 0-{chunks - 1}",
                {"song_id": song_id, "total_chunks": chunks},
            )

        start, end = chunk_bounds(len(lines), chunk_index, self.chunk_size)
        batch = lines[start:end]
        key = ChunkKey(
            song_id=song_id,
            operation=operation,
            language=language if operation == "translate" else None,
            chunk_index=chunk_index,
            content_hash=song.content_hash,
        ).cache_key()
        result = {"chunk_index": chunk_index, "total_chunks": chunks, "start_index": start}

        if not force:
            try:
                cached = await self.cache.get(key)
            except Exception:
                logger.exception("Chunk cache lookup failed for %s", key)
                cached = None
            if cached is not None:
                logger.info("%s chunk %d/%d - cache HIT", operation, chunk_index + 1, chunks)
                return ChunkResult(**result, cached=True, items=cached)

        items: list[Any] | None = None
        if operation == "translate":
            embedded = self._embedded_translation(song, language)
            if embedded is not None:
                logger.info("Using KRC-embedded translation for chunk %d/%d", chunk_index + 1, chunks)
                items = embedded[start:end]

        if items is None:
            logger.info("%s chunk %d/%d (%d lines)", operation, chunk_index + 1, chunks, len(batch))
            items = await self._enrich(operation, batch, language)

        dumped = _dump_items(operation, items)
        try:
            await self.cache.set(key, dumped, self.cache_ttl)
        except Exception:
            logger.exception("Chunk cache write failed for %s", key)

        return ChunkResult(**result, cached=False, items=dumped)

    async def _enrich(self, operation: Operation, batch: list[CanonicalLine], language: str | None) -> list[Any]:
        texts = [line.text for line in batch]
        outcome = await self.enrichment.annotate(operation, texts, language)

        if isinstance(outcome, Ok):
            if len(outcome.items) != len(texts):
                logger.warning(
                    "%s response length mismatch - expected %d, got %d",
                    operation, len(texts), len(outcome.items),
                )
            reconciled = []
            for i, text in enumerate(texts):
                item = _coerce_item(operation, outcome.items[i], text) if i < len(outcome.items) else None
                reconciled.append(item if item is not None else _fallback_item(operation, text))
            return reconciled

        if isinstance(outcome, Malformed):
            logger.warning("%s response was malformed (%s), returning original text", operation, outcome.reason)
        elif isinstance(outcome, Failed):
            logger.warning("%s chunk failed (%s), returning original text", operation, outcome.error)
        return [_fallback_item(operation, text) for text in texts]

    def consolidate(
        self,
        song_id: str,
        operation: Operation,
        items: list[Any],
        language: str | None = None,
    ) -> int:
        """Persist a fully assembled result. Returns the line count.

        Nothing is written unless there is exactly one entry per line.
        """
        self._require_language(operation, language)
        song = self._load_song(song_id)
        lines = song.lyrics.parsed_lines

        if len(items) != len(lines):
            raise ValidationError(
                f"{operation} count mismatch: {len(items)} vs {len(lines)} lines",
                {"song_id": song_id},
            )

        if operation == "translate":
            if not all(isinstance(item, str) for item in items):
                raise ValidationError("Translations must be strings")
            self.store.save_translation(song_id, language, build_lrc(lines, items))
        else:
            try:
                segments = [[AnnotationSegment.model_validate(seg) for seg in line] for line in items]
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid {operation} segments: {e}") from e
            for index, (line, line_segments) in enumerate(zip(lines, segments)):
                if not _segments_match(line_segments, line.text):
                    raise ValidationError(
                        f"{operation} segments for line {index} do not match the lyric text",
                        {"song_id": song_id, "line": index},
                    )
            if operation == "furigana":
                self.store.save_furigana(song_id, segments)
            else:
                self.store.save_soramimi(song_id, segments)

        logger.info("Saved consolidated %s for %s (%d lines)", operation, song_id, len(items))
        return len(items)

    async def clear(self, song_id: str, operations: list[Operation]) -> list[Operation]:
        """Drop consolidated results and every chunk cache for the operations."""
        if self.store.get_song(song_id, include_lyrics=False) is None:
            raise NotFoundError("Song not found", {"song_id": song_id})

        for operation in operations:
            if operation == "translate":
                self.store.clear_translations(song_id)
            elif operation == "furigana":
                self.store.clear_furigana(song_id)
            else:
                self.store.clear_soramimi(song_id)

            try:
                keys = await self.cache.scan(ChunkKey.song_pattern(song_id, operation))
                if keys:
                    await self.cache.delete(*keys)
                    logger.info("Deleted %d %s chunk caches for %s", len(keys), operation, song_id)
            except Exception:
                logger.exception("Failed to delete %s chunk caches for %s", operation, song_id)

        return operations
