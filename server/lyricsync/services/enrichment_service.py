"""AI enrichment using Google Gemini: translation, furigana and soramimi.

Each call returns a tagged result instead of raising. The orchestrator
decides how to reconcile it against the input batch.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lyricsync.config import settings
from lyricsync.errors import NetworkError
from lyricsync.models.annotation import AnnotationSegment, Operation

logger = logging.getLogger(__name__)

_KANJI_PATTERN = re.compile(r"[\u4e00-\u9fff]")
_KANA_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
_HANGUL_OR_KANA_PATTERN = re.compile(r"[\uac00-\ud7af\u1100-\u11ff\u3130-\u318f\u3040-\u309f\u30a0-\u30ff]")
_FURIGANA_ANNOTATION_PATTERN = re.compile(r"\([\u3040-\u309f\u30a0-\u30ff]+\)")
_RUBY_PATTERN = re.compile(r"<([^:>]+):([^>]+)>")
_BARE_CJK_TAG_PATTERN = re.compile(r"<([^:>]+)>(?!:)")
_CJK_PATTERN = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf]")
_NUMBERED_LINE_PATTERN = re.compile(r"^(\d+):\s*(.*)$")

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ja": "Japanese (日本語)",
    "ko": "Korean (한국어)",
    "zh-TW": "Traditional Chinese (繁體中文)",
    "zh-CN": "Simplified Chinese (简体中文)",
    "zh": "Chinese (中文)",
    "es": "Spanish (Español)",
    "fr": "French (Français)",
    "de": "German (Deutsch)",
    "pt": "Portuguese (Português)",
    "it": "Italian (Italiano)",
    "ru": "Russian (Русский)",
}

FURIGANA_SYSTEM_PROMPT = """Add furigana (reading annotations) to kanji in Japanese lyrics (one line per input line).

For each line, return segments with "text" (original portion) and optional "reading" (hiragana for kanji only).

CRITICAL: Separate kanji from trailing hiragana (okurigana)
- "text" with "reading" must contain ONLY kanji
- Okurigana goes in separate segment WITHOUT reading

Example input:
夜空の星
私は走る

Example output:
{"annotatedLines":[[{"text":"夜空","reading":"よぞら"},{"text":"の"},{"text":"星","reading":"ほし"}],[{"text":"私","reading":"わたし"},{"text":"は"},{"text":"走","reading":"はし"},{"text":"る"}]]}

Rules: Only add readings to kanji. Use standard hiragana readings."""

SORAMIMI_SYSTEM_PROMPT = """Create 空耳 (soramimi) - Chinese "misheard lyrics" (繁體字) that SOUND like Japanese/Korean lyrics while carrying poetic meaning.

CRITICAL RULES:
1. You MUST wrap EVERY non-English word in <original:chinese> format
2. Chinese readings must be ONLY Chinese characters - no Hangul or kana!
3. English words stay unwrapped (no angle brackets)

Format: <original_text:chinese_phonetic_reading>

EXAMPLE INPUT:
1: Oh no 시간이 갈수록 널
2: 사랑해요

EXAMPLE OUTPUT:
1: Oh no <시간이:時光裡> <갈수록:割愁錄> <널:念>
2: <사랑해요:思浪海喲>

Find Chinese characters that BOTH sound right AND carry meaning.
Output one numbered line per input line. Never output plain Korean/Japanese without the <:> wrapper."""


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def translation_prompt(target_language: str) -> str:
    name = language_name(target_language)
    return f"""Translate lyrics to {name} (one line per input line).
Return translations in same order. If already in {name}, return as-is.
For instrumental lines (e.g., "---"), return original. No punctuation at end of lines.
Preserve artistic intent and rhythm.

Respond with JSON: {{"translatedTexts": ["line 1", "line 2", ...]}}"""


def contains_kanji(text: str) -> bool:
    return bool(_KANJI_PATTERN.search(text))


def contains_kana(text: str) -> bool:
    return bool(_KANA_PATTERN.search(text))


def lyrics_are_mostly_chinese(texts: list[str]) -> bool:
    """True when over 70% of the lines containing hanzi carry no kana."""
    cjk_lines = [t for t in texts if contains_kanji(t)]
    if not cjk_lines:
        return False
    chinese_lines = sum(1 for t in cjk_lines if not contains_kana(t))
    return chinese_lines / len(cjk_lines) > 0.7


def strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[1] if "\n" in raw else raw[3:]
    if raw.endswith("```"):
        raw = raw[: raw.rfind("```")]
    return raw.strip()


def parse_ruby_markup(line: str) -> list[AnnotationSegment]:
    """Parse ``<original:reading>`` markup into segments.

    Plain text between tags is kept as-is apart from ``|`` delimiters and
    inline furigana hints. Readings lose any kana or hangul the model
    echoed back.
    """
    cleaned = _BARE_CJK_TAG_PATTERN.sub(
        lambda m: "" if _CJK_PATTERN.search(m.group(1)) else m.group(0),
        line,
    )

    segments: list[AnnotationSegment] = []

    def add_plain(text: str) -> None:
        text = _FURIGANA_ANNOTATION_PATTERN.sub("", text.replace("|", ""))
        if text:
            segments.append(AnnotationSegment(text=text))

    last = 0
    for match in _RUBY_PATTERN.finditer(cleaned):
        add_plain(cleaned[last:match.start()])
        text = _FURIGANA_ANNOTATION_PATTERN.sub("", match.group(1))
        reading = _HANGUL_OR_KANA_PATTERN.sub("", match.group(2))
        if text:
            segments.append(AnnotationSegment(text=text, reading=reading or None))
        last = match.end()
    add_plain(cleaned[last:])

    return segments or [AnnotationSegment(text=line)]


def parse_numbered_lines(raw: str, expected: int) -> list[str | None]:
    """Map ``"3: text"`` output lines back to 0-based input positions."""
    results: list[str | None] = [None] * expected
    for line in raw.splitlines():
        match = _NUMBERED_LINE_PATTERN.match(line.strip())
        if not match:
            continue
        index = int(match.group(1)) - 1
        if 0 <= index < expected and match.group(2).strip():
            results[index] = match.group(2).strip()
    return results


# ── Tagged results ────────────────────────────────────────────


@dataclass(frozen=True)
class Ok:
    items: list[Any]


@dataclass(frozen=True)
class Malformed:
    raw: str
    reason: str = ""


@dataclass(frozen=True)
class Failed:
    error: Exception


EnrichmentResult = Ok | Malformed | Failed


class _TranslationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    translated_texts: list[str] = Field(alias="translatedTexts")


class _AnnotatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    annotated_lines: list[list[AnnotationSegment]] = Field(alias="annotatedLines")


class EnrichmentService:
    """Gemini integration for per-chunk lyric enrichment."""

    def __init__(self, model: str | None = None, timeout: float | None = None) -> None:
        self._client: genai.Client | None = None
        self.model = model or settings.gemini_model
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds

    def _get_client(self) -> genai.Client:
        if self._client is None:
            api_key = settings.google_ai_api_key
            if not api_key:
                raise RuntimeError(
                    "GOOGLE_AI_API_KEY is not set. Please set it in your .env file or environment."
                )
            self._client = genai.Client(api_key=api_key)
        return self._client

    async def _generate(self, system_prompt: str, user_text: str, temperature: float, json_output: bool) -> str:
        client = self._get_client()
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            response_mime_type="application/json" if json_output else None,
        )
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=user_text,
                    config=config,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Gemini call timed out after {self.timeout}s", timed_out=True) from e
        return response.text or ""

    async def annotate(self, operation: Operation, line_texts: list[str], language: str | None = None) -> EnrichmentResult:
        if not line_texts:
            return Ok([])
        try:
            if operation == "translate":
                return await self.translate(line_texts, language or "en")
            if operation == "furigana":
                return await self.furigana(line_texts)
            return await self.soramimi(line_texts)
        except Exception as e:
            logger.exception("Gemini %s call failed", operation)
            return Failed(e)

    async def translate(self, line_texts: list[str], target_language: str) -> EnrichmentResult:
        raw = await self._generate(
            translation_prompt(target_language),
            "\n".join(line_texts),
            temperature=0.3,
            json_output=True,
        )
        try:
            parsed = _TranslationResponse.model_validate(json.loads(strip_fences(raw)))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("Failed to parse translation JSON from Gemini response")
            return Malformed(raw, str(e))
        return Ok(parsed.translated_texts)

    async def furigana(self, line_texts: list[str]) -> EnrichmentResult:
        needing = [t for t in line_texts if contains_kanji(t)]
        if not needing:
            return Ok([[AnnotationSegment(text=t)] for t in line_texts])

        raw = await self._generate(
            FURIGANA_SYSTEM_PROMPT,
            "\n".join(needing),
            temperature=0.1,
            json_output=True,
        )
        try:
            parsed = _AnnotatedResponse.model_validate(json.loads(strip_fences(raw)))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("Failed to parse furigana JSON from Gemini response")
            return Malformed(raw, str(e))

        annotated = parsed.annotated_lines
        if len(annotated) != len(needing):
            logger.warning(
                "Furigana response length mismatch - expected %d, got %d",
                len(needing), len(annotated),
            )

        # Re-align: only kanji lines were sent
        items: list[list[AnnotationSegment]] = []
        cursor = 0
        for text in line_texts:
            if contains_kanji(text):
                segments = annotated[cursor] if cursor < len(annotated) else None
                cursor += 1
                items.append(segments or [AnnotationSegment(text=text)])
            else:
                items.append([AnnotationSegment(text=text)])
        return Ok(items)

    async def soramimi(self, line_texts: list[str]) -> EnrichmentResult:
        numbered = "\n".join(f"{i + 1}: {text}" for i, text in enumerate(line_texts))
        raw = await self._generate(
            SORAMIMI_SYSTEM_PROMPT,
            numbered,
            temperature=0.7,
            json_output=False,
        )
        lines = parse_numbered_lines(raw, len(line_texts))
        if not any(lines):
            return Malformed(raw, "no numbered lines in response")

        missing = sum(1 for text in lines if text is None)
        if missing:
            logger.warning("Soramimi response missed %d of %d lines", missing, len(line_texts))

        return Ok([
            parse_ruby_markup(text) if text else [AnnotationSegment(text=source)]
            for text, source in zip(lines, line_texts)
        ])
