"""In-memory song document store. Replace with Redis/DB in production."""

import threading
import time

from lyricsync.errors import NotFoundError
from lyricsync.models.annotation import AnnotationSegment
from lyricsync.models.lyrics import LyricsSource, SongLyrics
from lyricsync.models.song import SongDocument


def _now_ms() -> int:
    return int(time.time() * 1000)


class SongStore:
    """Thread-safe in-memory song store keyed by song id.

    Production deployment should swap this for Redis-backed storage.
    The interface stays the same. Documents handed out are copies.
    """

    def __init__(self) -> None:
        self._songs: dict[str, SongDocument] = {}
        self._lock = threading.Lock()

    def get_song(
        self,
        song_id: str,
        include_lyrics: bool = True,
        include_translations: bool | list[str] = True,
        include_furigana: bool = True,
        include_soramimi: bool = True,
    ) -> SongDocument | None:
        with self._lock:
            song = self._songs.get(song_id)
            if song is None:
                return None
            song = song.model_copy(deep=True)

        updates: dict = {}
        if not include_lyrics:
            updates["lyrics"] = None
        if include_translations is False:
            updates["translations"] = {}
        elif isinstance(include_translations, list):
            updates["translations"] = {
                lang: lrc for lang, lrc in song.translations.items() if lang in include_translations
            }
        if not include_furigana:
            updates["furigana"] = []
        if not include_soramimi:
            updates["soramimi"] = []
        return song.model_copy(update=updates) if updates else song

    def save_song(self, song: SongDocument) -> SongDocument:
        stored = song.model_copy(deep=True, update={"updated_at": _now_ms()})
        with self._lock:
            self._songs[song.id] = stored
        return stored.model_copy(deep=True)

    def _update(self, song_id: str, **changes) -> SongDocument:
        with self._lock:
            song = self._songs.get(song_id)
            if song is None:
                raise NotFoundError("Song not found", {"song_id": song_id})
            song = song.model_copy(deep=True, update={**changes, "updated_at": _now_ms()})
            self._songs[song_id] = song
        return song.model_copy(deep=True)

    def save_lyrics(self, song_id: str, lyrics: SongLyrics, source: LyricsSource | None = None) -> SongDocument:
        changes: dict = {"lyrics": lyrics}
        if source is not None:
            changes["lyrics_source"] = source
        return self._update(song_id, **changes)

    def save_translation(self, song_id: str, language: str, lrc: str) -> SongDocument:
        with self._lock:
            song = self._songs.get(song_id)
            if song is None:
                raise NotFoundError("Song not found", {"song_id": song_id})
            translations = {**song.translations, language: lrc}
            song = song.model_copy(deep=True, update={"translations": translations, "updated_at": _now_ms()})
            self._songs[song_id] = song
        return song.model_copy(deep=True)

    def save_furigana(self, song_id: str, furigana: list[list[AnnotationSegment]]) -> SongDocument:
        return self._update(song_id, furigana=furigana)

    def save_soramimi(self, song_id: str, soramimi: list[list[AnnotationSegment]]) -> SongDocument:
        return self._update(song_id, soramimi=soramimi)

    def clear_translations(self, song_id: str) -> SongDocument:
        return self._update(song_id, translations={})

    def clear_furigana(self, song_id: str) -> SongDocument:
        return self._update(song_id, furigana=[])

    def clear_soramimi(self, song_id: str) -> SongDocument:
        return self._update(song_id, soramimi=[])

    def delete_song(self, song_id: str) -> None:
        with self._lock:
            self._songs.pop(song_id, None)

    def list_songs(self) -> list[str]:
        with self._lock:
            return list(self._songs.keys())


# Singleton instance
song_store = SongStore()
