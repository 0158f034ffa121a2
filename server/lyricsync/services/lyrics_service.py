"""Lyrics fetching service: provider search, download and canonical parsing."""

import logging

from lyricsync.errors import NotFoundError
from lyricsync.models.lyrics import Candidate, LyricsSource, SongLyrics
from lyricsync.models.song import SongDocument
from lyricsync.services.lyrics_parser import LyricsParser
from lyricsync.services.lyrics_provider import KugouClient
from lyricsync.services.storage import SongStore, song_store

logger = logging.getLogger(__name__)


class LyricsService:
    """Fetches lyrics from the provider and keeps the song record current."""

    def __init__(
        self,
        provider: KugouClient | None = None,
        store: SongStore | None = None,
        parser: LyricsParser | None = None,
    ) -> None:
        self.provider = provider or KugouClient()
        self.store = store or song_store
        self.parser = parser or LyricsParser()

    async def close(self) -> None:
        await self.provider.close()

    async def search(self, query: str | None, title: str, artist: str) -> list[Candidate]:
        query = (query or f"{title} {artist}").strip()
        if not query:
            return []
        return await self.provider.search_candidates(query, title, artist)

    async def fetch_lyrics(
        self,
        song_id: str,
        title: str | None = None,
        artist: str | None = None,
        source: LyricsSource | None = None,
        force: bool = False,
    ) -> SongDocument:
        """Return the song with lyrics, fetching them when needed.

        Stored lyrics are reused unless ``force`` is set or ``source``
        points at a different provider entry. A changed source clears every
        consolidated annotation, since their line indexes no longer apply.
        """
        song = self.store.get_song(song_id)
        source_changed = bool(source and song and song.content_hash != source.hash)

        if song and song.lyrics and not force and not source_changed:
            logger.info("Returning cached lyrics for %s", song_id)
            return self.ensure_parsed_lines(song)

        if song is None:
            song = self.store.save_song(SongDocument(id=song_id, title=title or "", artist=artist))

        if source is None:
            source = song.lyrics_source or await self._best_candidate(
                title or song.title, artist or song.artist or ""
            )

        payload = await self.provider.fetch_candidate_lyrics(source)
        if payload is None:
            raise NotFoundError("No lyrics found", {"song_id": song_id, "hash": source.hash})

        lines = self.parser.parse(payload, source.title, source.artist)
        lyrics = SongLyrics(lrc=payload.lrc, krc=payload.krc, cover=payload.cover, parsed_lines=lines)
        logger.info("Fetched lyrics for %s: %d lines", song_id, len(lines))

        if song.content_hash != source.hash:
            self.store.clear_translations(song_id)
            self.store.clear_furigana(song_id)
            self.store.clear_soramimi(song_id)

        return self.store.save_lyrics(song_id, lyrics, source)

    async def _best_candidate(self, title: str, artist: str) -> LyricsSource:
        candidates = await self.search(None, title, artist)
        if not candidates:
            logger.info("No lyrics found for '%s' by '%s'", title, artist)
            raise NotFoundError("No matching song found", {"title": title, "artist": artist})
        best = candidates[0]
        logger.info("Auto-selected '%s' by '%s' (score %.3f)", best.title, best.artist, best.score)
        return best.to_source()

    def ensure_parsed_lines(self, song: SongDocument) -> SongDocument:
        """Derive and persist canonical lines for records stored without them."""
        if song.lyrics is None or song.lyrics.parsed_lines:
            return song
        lines = self.parser.parse(song.lyrics.payload, song.filter_title, song.filter_artist)
        if not lines:
            return song
        lyrics = song.lyrics.model_copy(update={"parsed_lines": lines})
        return self.store.save_lyrics(song.id, lyrics)
