from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root (one level above server/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

# Kugou's fixed XOR key for .krc payloads
DEFAULT_KRC_KEY = [64, 71, 97, 119, 94, 50, 116, 71, 81, 54, 49, 45, 206, 210, 110, 105]

# Credit and production lines. Every parser shares this list so line
# counts stay identical between formats.
DEFAULT_SKIP_PREFIXES = [
    "作词", "作曲", "编曲", "制作", "发行", "出品", "监制", "策划", "统筹",
    "录音", "混音", "母带", "和声", "合声", "合声编写", "版权", "吉他", "贝斯", "鼓", "键盘",
    "企划", "词：", "詞：", "词曲：", "詞曲：", "曲", "男：", "女：", "合：", "OP", "SP", "TME享有",
    "Produced", "Composed", "Arranged", "Mixed", "Lyrics", "Keyboard",
    "Guitar", "Bass", "Drum", "Vocal", "Original Publisher", "Sub-publisher",
    "Electric Piano", "Synth by", "Recorded by", "Mixed by", "Mastered by",
    "Produced by", "Composed by", "Digital Editing by", "Mix Assisted by",
    "Mix by", "Mix Engineer", "Background vocals", "Background vocals by",
    "Chorus by", "Percussion by", "String by", "Harp by", "Piano by",
    "Piano Arranged by", "Written by", "Additional Production by",
    "Synthesizer", "Programming", "Background Vocals", "Recording Engineer",
    "Digital Editing",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # AI enrichment
    google_ai_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    ai_timeout_seconds: float = 30.0

    # Infrastructure
    redis_url: str = "redis://localhost:6379/0"
    cache_backend: str = "memory"

    # Lyric provider
    lyrics_provider_timeout: float = 10.0
    lyrics_search_timeout: float = 15.0
    cover_timeout: float = 5.0

    # Lyric pipeline
    chunk_size: int = 15
    chunk_cache_ttl_seconds: int = 60 * 60 * 24 * 30
    krc_decryption_key: list[int] = DEFAULT_KRC_KEY
    krc_header_size: int = 4
    skip_prefixes: list[str] = DEFAULT_SKIP_PREFIXES
    # OpenCC profile for Kugou text (Simplified) shown as Traditional
    opencc_config: str = "s2tw"

    # App settings
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def krc_key_bytes(self) -> bytes:
        return bytes(self.krc_decryption_key)


settings = Settings()
