"""Tests for the Settings configuration."""

from lyricsync.config import DEFAULT_KRC_KEY, Settings


class TestSettings:
    def test_cors_origin_list_single(self):
        s = Settings(cors_origins="http://localhost:5173")
        assert s.cors_origin_list == ["http://localhost:5173"]

    def test_cors_origin_list_multiple(self):
        s = Settings(cors_origins="http://localhost:5173, http://example.com , https://app.test")
        assert s.cors_origin_list == [
            "http://localhost:5173",
            "http://example.com",
            "https://app.test",
        ]

    def test_krc_key_bytes(self):
        s = Settings(_env_file=None)
        assert s.krc_key_bytes == bytes(DEFAULT_KRC_KEY)
        assert len(s.krc_key_bytes) == 16

    def test_custom_key(self):
        s = Settings(krc_decryption_key=[1, 2, 3])
        assert s.krc_key_bytes == b"\x01\x02\x03"

    def test_defaults(self):
        s = Settings(
            _env_file=None,
            google_ai_api_key="",
        )
        assert s.redis_url == "redis://localhost:6379/0"
        assert s.cache_backend == "memory"
        assert s.chunk_size == 15
        assert s.chunk_cache_ttl_seconds == 30 * 24 * 60 * 60
        assert s.krc_header_size == 4
        assert s.opencc_config == "s2tw"
        assert s.lyrics_provider_timeout == 10.0
        assert s.lyrics_search_timeout == 15.0
        assert s.cover_timeout == 5.0
        assert s.ai_timeout_seconds == 30.0
        assert s.google_ai_api_key == ""
        assert "作词" in s.skip_prefixes
        assert "Produced by" in s.skip_prefixes

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CHUNK_SIZE", "20")
        monkeypatch.setenv("CACHE_BACKEND", "redis")
        s = Settings(_env_file=None)
        assert s.chunk_size == 20
        assert s.cache_backend == "redis"
