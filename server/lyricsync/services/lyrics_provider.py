"""Kugou lyric provider client.

Search, candidate lookup and lyric downloads all run with an explicit
timeout. Timeouts and transport failures raise :class:`NetworkError`;
"nothing found" comes back as an empty result.
"""

import logging
from typing import Any

import httpx

from lyricsync.config import settings
from lyricsync.errors import NetworkError
from lyricsync.models.lyrics import Candidate, LyricsSource, RawLyricsPayload
from lyricsync.services import candidate_scorer
from lyricsync.services.krc_decoder import KrcDecoder, build_payload

logger = logging.getLogger(__name__)

SEARCH_URL = "http://mobilecdn.kugou.com/api/v3/search/song"
CANDIDATE_URL = "https://krcs.kugou.com/search"
DOWNLOAD_URL = "http://lyrics.kugou.com/download"
ALBUM_INFO_URL = "http://mobilecdn.kugou.com/api/v3/album/info"

KUGOU_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36"
    ),
}


def normalize_artist_separator(artist: str) -> str:
    """Kugou joins multiple artists with an ideographic comma."""
    return artist.replace("、", " & ")


class KugouClient:
    """Async client for Kugou search and lyric downloads."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        search_timeout: float | None = None,
        cover_timeout: float | None = None,
        decoder: KrcDecoder | None = None,
    ) -> None:
        self._http = http
        self.timeout = timeout if timeout is not None else settings.lyrics_provider_timeout
        self.search_timeout = search_timeout if search_timeout is not None else settings.lyrics_search_timeout
        self.cover_timeout = cover_timeout if cover_timeout is not None else settings.cover_timeout
        self.decoder = decoder or KrcDecoder()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(headers=KUGOU_HEADERS, timeout=self.timeout)
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "KugouClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_json(self, url: str, params: dict[str, Any], timeout: float, what: str) -> Any:
        try:
            resp = await self._client().get(url, params=params, timeout=timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Kugou {what} timed out after {timeout:g} seconds", timed_out=True) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Kugou {what} network error: {e}") from e

        if resp.status_code >= 400:
            raise NetworkError(
                f"Kugou {what} failed with status {resp.status_code}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"Kugou {what} returned invalid JSON") from e

    async def search_candidates(self, query: str, title: str, artist: str) -> list[Candidate]:
        data = await self._get_json(
            SEARCH_URL,
            {"format": "json", "keyword": query, "page": 1, "pagesize": 20, "showtype": 1},
            self.search_timeout,
            "search",
        )
        info = ((data or {}).get("data") or {}).get("info") or []

        candidates = [
            Candidate(
                title=song.get("songname", ""),
                artist=normalize_artist_separator(song.get("singername", "")),
                album=song.get("album_name") or None,
                hash=song["hash"],
                album_id=song.get("album_id", ""),
            )
            for song in info
            if song.get("hash")
        ]
        return candidate_scorer.rank(candidates, title, artist)

    async def _download(self, lyrics_id: Any, access_key: str, fmt: str) -> str | None:
        params = {
            "ver": 1, "client": "pc", "id": lyrics_id,
            "accesskey": access_key, "fmt": fmt, "charset": "utf8",
        }
        try:
            data = await self._get_json(DOWNLOAD_URL, params, self.timeout, f"{fmt} download")
        except NetworkError as e:
            logger.info("%s download failed: %s", fmt.upper(), e)
            return None
        return (data or {}).get("content") or None

    async def fetch_candidate_lyrics(self, source: LyricsSource) -> RawLyricsPayload | None:
        """Download and decode both lyric formats for a search result.

        Returns None when the provider has no lyrics for the hash.
        """
        data = await self._get_json(
            CANDIDATE_URL,
            {"ver": 1, "man": "yes", "client": "mobi", "keyword": "", "duration": "",
             "hash": source.hash, "album_audio_id": ""},
            self.timeout,
            "lyrics candidate",
        )
        candidates = (data or {}).get("candidates") or []
        if not candidates:
            logger.info("No lyrics candidate found for hash %s", source.hash)
            return None

        lyrics_id = candidates[0].get("id")
        access_key = candidates[0].get("accesskey", "")

        krc_b64 = await self._download(lyrics_id, access_key, "krc")
        lrc_b64 = await self._download(lyrics_id, access_key, "lrc")
        if not krc_b64 and not lrc_b64:
            return None

        payload = build_payload(lrc_b64, krc_b64, decoder=self.decoder)
        if not payload.krc and not payload.lrc:
            return None

        cover = await self.fetch_cover_image(source.album_id)
        return payload.model_copy(update={"cover": cover})

    async def fetch_cover_image(self, album_id: str | int) -> str:
        """Album art URL (with a ``{size}`` placeholder) or "" when unavailable."""
        if not album_id:
            return ""
        try:
            data = await self._get_json(ALBUM_INFO_URL, {"albumid": album_id}, self.cover_timeout, "album info")
        except NetworkError as e:
            logger.info("Cover lookup failed for album %s: %s", album_id, e)
            return ""
        imgurl = ((data or {}).get("data") or {}).get("imgurl") or ""
        if imgurl.startswith("http://"):
            imgurl = "https://" + imgurl[len("http://"):]
        return imgurl


def format_cover_url(url: str, size: int = 400) -> str:
    return url.replace("{size}", str(size)) if url else ""
