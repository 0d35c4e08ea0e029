"""Unit tests for LLM price extraction."""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from pantry.integration.extraction_client import (
    SYSTEM_PROMPT,
    PriceExtractor,
    parse_extraction,
    strip_code_fences,
)
from pantry.pipeline.errors import ConfigurationError, ExtractionError
from pantry.pipeline.types import Extraction


def _completion(content):
    """Shape of an openai chat completion, reduced to what extract() reads."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


class TestStripCodeFences:
    def test_plain_json_untouched(self):
        assert strip_code_fences('{"price": 1}') == '{"price": 1}'

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"price": 1}\n```') == '{"price": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"price": 1}\n```') == '{"price": 1}'

    def test_surrounding_whitespace(self):
        assert strip_code_fences('  \n```json {"price": 1} ```\n') == '{"price": 1}'


class TestParseExtraction:
    def test_price_and_unit(self):
        result = parse_extraction('{"price": 2.99, "unit": "gallon"}')

        assert result == Extraction(price=Decimal("2.99"), unit="gallon")

    def test_fenced_reply(self):
        result = parse_extraction('```json\n{"price": 3.5, "unit": "lb"}\n```')

        assert result.price == Decimal("3.50")
        assert result.unit == "lb"

    def test_null_price_means_not_found(self):
        assert parse_extraction('{"price": null, "unit": ""}') is None

    def test_missing_price_means_not_found(self):
        assert parse_extraction('{"unit": "lb"}') is None

    def test_numeric_string_accepted(self):
        assert parse_extraction('{"price": "4.25"}').price == Decimal("4.25")

    def test_price_quantized_to_cents(self):
        assert parse_extraction('{"price": 1.005}').price == Decimal("1.00")

    def test_integer_price(self):
        assert parse_extraction('{"price": 5}').price == Decimal("5.00")

    def test_empty_unit_becomes_none(self):
        assert parse_extraction('{"price": 1.25, "unit": "  "}').unit is None

    def test_non_string_unit_becomes_none(self):
        assert parse_extraction('{"price": 1.25, "unit": 3}').unit is None

    @pytest.mark.parametrize("reply", ['{"price": 0}', '{"price": 0.004}', '{"price": "0.00"}'])
    def test_price_rounding_to_zero_means_not_found(self, reply):
        assert parse_extraction(reply) is None

    def test_smallest_cent_kept(self):
        assert parse_extraction('{"price": 0.006}').price == Decimal("0.01")

    @pytest.mark.parametrize(
        "reply",
        [
            "The price is $2.99",
            "",
            "[2.99]",
            '{"price": true}',
            '{"price": "cheap"}',
            '{"price": {"amount": 2}}',
            '{"price": -1.5}',
            '{"price": "NaN"}',
            '{"price": "Infinity"}',
        ],
    )
    def test_malformed_replies_raise(self, reply):
        with pytest.raises(ExtractionError):
            parse_extraction(reply)


class TestPriceExtractor:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            PriceExtractor(api_key=None)

        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_injected_client_needs_no_key(self, openai_client):
        extractor = PriceExtractor(client=openai_client)

        assert extractor.client is openai_client

    def test_from_config(self, app_config):
        extractor = PriceExtractor.from_config(app_config)

        assert extractor.model == "gpt-4o-mini"
        assert extractor.max_tokens == 100
        assert extractor.temperature == 0.0

    def test_user_prompt_names_pair(self, aldi_milk):
        prompt = PriceExtractor.build_user_prompt(aldi_milk, "Milk: $2.99 a gallon")

        assert "Ingredient: Milk" in prompt
        assert "Vendor: Aldi" in prompt
        assert "Usual unit: gallon" in prompt
        assert prompt.endswith("Milk: $2.99 a gallon")

    @pytest.mark.asyncio
    async def test_extract_sends_prompts_and_parses(self, openai_client, aldi_milk):
        openai_client.chat.completions.create.return_value = _completion(
            '{"price": 2.99, "unit": "gallon"}'
        )
        extractor = PriceExtractor(client=openai_client, model="gpt-test", max_tokens=50)

        result = await extractor.extract(aldi_milk, "Aldi milk $2.99")

        assert result == Extraction(price=Decimal("2.99"), unit="gallon")
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["max_tokens"] == 50
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert "Aldi milk $2.99" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_extract_no_price(self, openai_client, aldi_milk):
        openai_client.chat.completions.create.return_value = _completion(
            '{"price": null, "unit": ""}'
        )

        assert await PriceExtractor(client=openai_client).extract(aldi_milk, "x") is None

    @pytest.mark.asyncio
    async def test_extract_empty_reply_raises(self, openai_client, aldi_milk):
        openai_client.chat.completions.create.return_value = _completion(None)

        with pytest.raises(ExtractionError):
            await PriceExtractor(client=openai_client).extract(aldi_milk, "x")

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self, openai_client, aldi_milk):
        openai_client.chat.completions.create.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await PriceExtractor(client=openai_client).extract(aldi_milk, "x")

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, openai_client):
        async with PriceExtractor(client=openai_client):
            pass

        openai_client.close.assert_awaited_once()
