"""LLM-backed price extraction from search snippets."""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from openai import AsyncOpenAI

from pantry.config import AppConfig
from pantry.pipeline.errors import ConfigurationError, ExtractionError
from pantry.pipeline.types import Candidate, Extraction

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = """You read grocery search results and report a vendor's current price for one ingredient.

Respond with ONLY a JSON object, no prose and no markdown:
{"price": <number or null>, "unit": "<unit the price is quoted per>"}

Rules:
- Use a price only if it appears in the search results for the named vendor.
- Do NOT estimate, average, convert or guess. If no real price is present, return {"price": null, "unit": ""}.
- The price is a plain number in US dollars without a currency symbol.
"""

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a ``` or ```json wrapper if the model added one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_extraction(text: str) -> Extraction | None:
    """Turn the model's reply into an Extraction.

    Returns:
        Extraction when a real price is present, None when the model
        reported that there is no price or the price rounds to $0.00

    Raises:
        ExtractionError: If the reply is not the expected JSON object
    """
    body = strip_code_fences(text)
    try:
        data: Any = json.loads(body)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Reply is not JSON: {body[:80]!r}") from e

    if not isinstance(data, dict):
        raise ExtractionError(f"Reply is not a JSON object: {body[:80]!r}")

    raw_price = data.get("price")
    if raw_price is None:
        return None

    # bool is an int subclass; true/false is not a price
    if isinstance(raw_price, bool) or not isinstance(raw_price, (int, float, str)):
        raise ExtractionError(f"Price is not a number: {raw_price!r}")

    try:
        price = Decimal(str(raw_price))
    except InvalidOperation as e:
        raise ExtractionError(f"Price is not a number: {raw_price!r}") from e

    if not price.is_finite():
        raise ExtractionError(f"Price is not finite: {raw_price!r}")
    if price < 0:
        raise ExtractionError(f"Negative price: {raw_price!r}")

    unit = data.get("unit")
    unit = unit.strip() if isinstance(unit, str) and unit.strip() else None

    price = price.quantize(Decimal("0.01"))
    if price == 0:
        logger.debug("Extracted price rounds to zero", raw_price=raw_price)
        return None

    return Extraction(price=price, unit=unit)


class PriceExtractor:
    """Asks the text-generation service for a {price, unit} payload."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 100,
        temperature: float = 0.0,
        client: AsyncOpenAI | None = None,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for price extraction")
            client = AsyncOpenAI(api_key=api_key)

        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_config(cls, config: AppConfig) -> PriceExtractor:
        return cls(
            api_key=config.llm.api_key,
            model=config.llm.llm_model,
            max_tokens=config.llm.max_tokens,
            temperature=config.llm.temperature,
        )

    @staticmethod
    def build_user_prompt(candidate: Candidate, snippets: str) -> str:
        return (
            f"Ingredient: {candidate.ingredient.name}\n"
            f"Vendor: {candidate.vendor.name}\n"
            f"Usual unit: {candidate.ingredient.unit}\n\n"
            f"SEARCH RESULTS:\n{snippets}"
        )

    async def extract(self, candidate: Candidate, snippets: str) -> Extraction | None:
        """Read a price for one pair out of its snippets.

        Returns:
            Extraction, or None when the model found no price

        Raises:
            ExtractionError: If the reply cannot be parsed
            openai.OpenAIError: If the API call fails
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_user_prompt(candidate, snippets)},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        content = response.choices[0].message.content
        if not content:
            raise ExtractionError("Empty response from LLM")

        extraction = parse_extraction(content)
        logger.debug(
            "price_extracted",
            pair=str(candidate),
            price=str(extraction.price) if extraction else None,
        )
        return extraction

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
