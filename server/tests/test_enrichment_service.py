"""Tests for the Gemini enrichment service and its response parsers."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lyricsync.errors import NetworkError
from lyricsync.models.annotation import AnnotationSegment
from lyricsync.services.enrichment_service import (
    EnrichmentService,
    Failed,
    Malformed,
    Ok,
    language_name,
    lyrics_are_mostly_chinese,
    parse_numbered_lines,
    parse_ruby_markup,
    strip_fences,
    translation_prompt,
)


def _mock_genai(mock_genai: MagicMock, text: str | None = None, side_effect=None) -> AsyncMock:
    """Wire client.aio.models.generate_content and return it."""
    response = MagicMock()
    response.text = text
    generate = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client = MagicMock()
    mock_client.aio.models.generate_content = generate
    mock_genai.Client.return_value = mock_client
    return generate


class TestEnrichmentServiceInit:
    def test_lazy_client(self) -> None:
        service = EnrichmentService()
        assert service._client is None

    @patch("lyricsync.services.enrichment_service.settings")
    def test_raises_without_api_key(self, mock_settings: MagicMock) -> None:
        mock_settings.google_ai_api_key = ""
        service = EnrichmentService(model="m", timeout=1.0)
        with pytest.raises(RuntimeError, match="GOOGLE_AI_API_KEY is not set"):
            service._get_client()

    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    def test_reuses_client(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        service = EnrichmentService(model="m", timeout=1.0)
        assert service._get_client() is service._get_client()
        mock_genai.Client.assert_called_once_with(api_key="test-key")


class TestAnnotate:
    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        assert await EnrichmentService().annotate("translate", [], "en") == Ok([])

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_missing_key_is_failed(self, mock_settings: MagicMock) -> None:
        mock_settings.google_ai_api_key = ""
        result = await EnrichmentService(model="m", timeout=1.0).annotate("translate", ["a"], "en")
        assert isinstance(result, Failed)
        assert isinstance(result.error, RuntimeError)

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_api_error_is_failed(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        _mock_genai(mock_genai, side_effect=Exception("API down"))
        result = await EnrichmentService(model="m", timeout=1.0).annotate("furigana", ["漢字"])
        assert isinstance(result, Failed)
        assert "API down" in str(result.error)

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_timeout_is_failed_network_error(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        _mock_genai(mock_genai, side_effect=asyncio.TimeoutError())
        result = await EnrichmentService(model="m", timeout=1.0).annotate("soramimi", ["君"])
        assert isinstance(result, Failed)
        assert isinstance(result.error, NetworkError)
        assert result.error.timed_out


class TestTranslate:
    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_parses_json(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        generate = _mock_genai(mock_genai, json.dumps({"translatedTexts": ["Hello", "World"]}))

        result = await EnrichmentService(model="gemini-test", timeout=1.0).annotate(
            "translate", ["こんにちは", "世界"], "en"
        )

        assert result == Ok(["Hello", "World"])
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "こんにちは\n世界"
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_fenced_json(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        _mock_genai(mock_genai, '```json\n{"translatedTexts": ["Hi"]}\n```')
        result = await EnrichmentService(model="m", timeout=1.0).annotate("translate", ["やあ"], "en")
        assert result == Ok(["Hi"])

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_malformed(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        _mock_genai(mock_genai, "Sorry, I can't do that")
        result = await EnrichmentService(model="m", timeout=1.0).annotate("translate", ["a"], "en")
        assert isinstance(result, Malformed)
        assert result.raw == "Sorry, I can't do that"

    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_wrong_shape_is_malformed(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        _mock_genai(mock_genai, json.dumps({"translations": ["a"]}))
        result = await EnrichmentService(model="m", timeout=1.0).annotate("translate", ["a"], "en")
        assert isinstance(result, Malformed)

    def test_prompt_names_language(self) -> None:
        assert "Traditional Chinese" in translation_prompt("zh-TW")
        assert language_name("xx") == "xx"


class TestFurigana:
    @pytest.mark.asyncio
    @patch("lyricsync.services.enrichment_service.genai")
    @patch("lyricsync.services.enrichment_service.settings")
    async def test_only_kanji_lines_sent(self, mock_settings: MagicMock, mock_genai: MagicMock) -> None:
        mock_settings.google_ai_api_key = "test-key"
        response = {"annotatedLines": [[{"text": "夜空", "reading": "よぞら"}, {"text": "の"}]]}
        generate = _mock_genai(mock_genai, json.dumps(response, ensure_ascii=False))

        result = await EnrichmentService(model="m", timeout=1.0).annotate("furigana", ["hello", "夜空の"])

        assert generate.call_args.kwargs["contents"] == "夜空の"
        assert result == Ok([
            [AnnotationSegment(text="hello")],
            [AnnotationSegment(text="夜空", reading="よぞら"), AnnotationSegment(text="の")],
        ])

    @pytest.mark.asyncio
    async def test_no_kanji_skips_model(self) -> None:
        service = EnrichmentService()
        service._generate = AsyncMock()
        result = await service.annotate("furigana", ["ひらがな", "abc"])
        service._generate.assert_not_called()
        assert result == Ok([[AnnotationSegment(text="ひらがな")], [AnnotationSegment(text="abc")]])

    @pytest.mark.asyncio
    async def test_short_response_falls_back(self) -> None:
        service = EnrichmentService()
        service._generate = AsyncMock(return_value='{"annotatedLines": []}')
        result = await service.annotate("furigana", ["漢字"])
        assert result == Ok([[AnnotationSegment(text="漢字")]])


class TestSoramimi:
    @pytest.mark.asyncio
    async def test_numbered_output(self) -> None:
        service = EnrichmentService()
        service._generate = AsyncMock(return_value="1: <君:急>の<名前:那麼>\n2: Oh no")
        result = await service.annotate("soramimi", ["君の名前", "Oh no"])

        prompt_lines = service._generate.call_args.args[1]
        assert prompt_lines == "1: 君の名前\n2: Oh no"
        assert result == Ok([
            [
                AnnotationSegment(text="君", reading="急"),
                AnnotationSegment(text="の"),
                AnnotationSegment(text="名前", reading="那麼"),
            ],
            [AnnotationSegment(text="Oh no")],
        ])

    @pytest.mark.asyncio
    async def test_missing_line_falls_back(self) -> None:
        service = EnrichmentService()
        service._generate = AsyncMock(return_value="2: <愛:愛>")
        result = await service.annotate("soramimi", ["夢", "愛"])
        assert isinstance(result, Ok)
        assert result.items[0] == [AnnotationSegment(text="夢")]

    @pytest.mark.asyncio
    async def test_unnumbered_is_malformed(self) -> None:
        service = EnrichmentService()
        service._generate = AsyncMock(return_value="no numbers here")
        assert isinstance(await service.annotate("soramimi", ["夢"]), Malformed)


class TestParsers:
    def test_strip_fences(self) -> None:
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_fences('{"a": 1}') == '{"a": 1}'

    def test_ruby_strips_kana_from_reading(self) -> None:
        assert parse_ruby_markup("<사랑:思浪해>") == [AnnotationSegment(text="사랑", reading="思浪")]

    def test_ruby_removes_pipes_and_hints(self) -> None:
        assert parse_ruby_markup("a|b(よ)") == [AnnotationSegment(text="ab")]

    def test_ruby_plain_line(self) -> None:
        assert parse_ruby_markup("plain") == [AnnotationSegment(text="plain")]

    def test_numbered_lines(self) -> None:
        raw = "1: one\n3: three\n9: out of range\nnoise\n2:   "
        assert parse_numbered_lines(raw, 3) == ["one", None, "three"]

    def test_mostly_chinese(self) -> None:
        assert lyrics_are_mostly_chinese(["我爱你", "你好吗", "月亮代表我的心", "hello"])
        assert not lyrics_are_mostly_chinese(["君の名は", "夜空の星", "我爱你"])
        assert not lyrics_are_mostly_chinese(["hello", "world"])
