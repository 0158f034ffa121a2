import logging

from fastapi import APIRouter, HTTPException

from lyricsync.errors import LyricsError, NetworkError, NotFoundError, ValidationError
from lyricsync.models.annotation import (
    ChunkInfo,
    ChunkInfoRequest,
    ChunkRequest,
    ChunkResult,
    ClearRequest,
    ConsolidateRequest,
)
from lyricsync.models.lyrics import LyricsFetchRequest, LyricsSearchRequest
from lyricsync.services.annotation_orchestrator import AnnotationOrchestrator
from lyricsync.services.lyrics_service import LyricsService
from lyricsync.services.storage import song_store

router = APIRouter()
logger = logging.getLogger(__name__)


def _http_error(e: LyricsError) -> HTTPException:
    """Map a pipeline error onto the matching HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, NetworkError):
        return HTTPException(status_code=504 if e.timed_out else 502, detail=e.message)
    logger.error("Unhandled lyrics error: %s", e)
    return HTTPException(status_code=500, detail=e.message)


@router.post("/search")
async def search_songs(request: LyricsSearchRequest) -> dict:
    """Search the lyric provider, best match first."""
    service = LyricsService()
    try:
        candidates = await service.search(request.query, request.title, request.artist)
    except LyricsError as e:
        raise _http_error(e) from e
    finally:
        await service.close()
    return {"candidates": [c.model_dump() for c in candidates]}


@router.post("/{song_id}/lyrics")
async def fetch_lyrics(song_id: str, request: LyricsFetchRequest) -> dict:
    """Fetch (or refresh) lyrics for a song, creating the song if needed."""
    service = LyricsService()
    try:
        song = await service.fetch_lyrics(
            song_id,
            title=request.title,
            artist=request.artist,
            source=request.lyrics_source,
            force=request.force,
        )
    except LyricsError as e:
        raise _http_error(e) from e
    finally:
        await service.close()

    return {
        "song_id": song.id,
        "lyrics_source": song.lyrics_source.model_dump() if song.lyrics_source else None,
        "lyrics": song.lyrics.model_dump() if song.lyrics else None,
    }


@router.get("/{song_id}")
async def get_song(song_id: str) -> dict:
    song = song_store.get_song(song_id)
    if not song:
        raise HTTPException(status_code=404, detail="Song not found")
    return song.model_dump()


@router.post("/{song_id}/chunk-info")
async def get_chunk_info(song_id: str, request: ChunkInfoRequest) -> ChunkInfo:
    """Chunk totals for an operation; includes chunk 0 when work remains."""
    orchestrator = AnnotationOrchestrator()
    try:
        return await orchestrator.get_chunk_info(song_id, request.operation, request.language, request.force)
    except LyricsError as e:
        raise _http_error(e) from e


@router.post("/{song_id}/chunks/{chunk_index}")
async def process_chunk(song_id: str, chunk_index: int, request: ChunkRequest) -> ChunkResult:
    orchestrator = AnnotationOrchestrator()
    try:
        return await orchestrator.process_chunk(
            song_id, request.operation, chunk_index, request.language, request.force
        )
    except LyricsError as e:
        raise _http_error(e) from e


@router.post("/{song_id}/consolidate")
async def consolidate(song_id: str, request: ConsolidateRequest) -> dict:
    """Persist the reassembled result of every chunk."""
    if request.operation == "translate":
        items = request.translations
    else:
        items = request.annotations
    if items is None:
        field = "translations" if request.operation == "translate" else "annotations"
        raise HTTPException(status_code=400, detail=f"Missing {field} for {request.operation}")

    orchestrator = AnnotationOrchestrator()
    try:
        line_count = orchestrator.consolidate(song_id, request.operation, items, request.language)
    except LyricsError as e:
        raise _http_error(e) from e
    return {"success": True, "operation": request.operation, "line_count": line_count}


@router.post("/{song_id}/clear")
async def clear_annotations(song_id: str, request: ClearRequest) -> dict:
    orchestrator = AnnotationOrchestrator()
    try:
        cleared = await orchestrator.clear(song_id, request.operations)
    except LyricsError as e:
        raise _http_error(e) from e
    return {"cleared": cleared}
