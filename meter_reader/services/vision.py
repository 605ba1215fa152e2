"""Vision extractor: asks an image model for the number shown on a meter.

The model answers in free text, so nothing it returns is trusted until
parse_reading_value() has turned it into a Decimal.
"""

import base64
import logging
import re
import time
from decimal import Decimal
from functools import lru_cache
from typing import Protocol

import httpx
from fastapi import status
from openai import APIError, OpenAI

from meter_reader.core.config import settings
from meter_reader.core.errors import ExtractionFailed
from meter_reader.models.enums import MeterKind

logger = logging.getLogger(__name__)

_METER_LABELS = {
    MeterKind.WATER: "water",
    MeterKind.GAS: "gas",
}

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
VALUE_QUANTUM = Decimal("0.001")

# Largest value the Numeric(12, 3) column holds
MAX_READING_VALUE = Decimal("999999999.999")


class VisionExtractor(Protocol):
    """Anything that can read the raw text value off a meter photo."""

    def extract(self, image_bytes: bytes, meter_kind: MeterKind, content_type: str | None) -> str:
        ...


def build_prompt(meter_kind: MeterKind) -> str:
    """Instruction sent to the model along with the photo."""
    label = _METER_LABELS[meter_kind]
    return (
        f"This photo shows a {label} meter. Read the number displayed on the meter "
        "register and reply with that number only, using a dot as decimal separator "
        "and no units or other text. If the register cannot be read, reply with "
        "UNREADABLE."
    )


def to_data_url(image_bytes: bytes, content_type: str | None) -> str:
    mime = content_type if content_type and content_type.startswith("image/") else "image/jpeg"
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime};base64,{b64}"


def parse_reading_value(text: str | None) -> Decimal:
    """
    Parse the model's answer into a meter value.

    Exactly one number must appear in the text. A comma is accepted as the
    decimal separator. The result is rounded to three decimal places.

    Raises:
        ExtractionFailed: With status 422 if the text holds no number,
            several different numbers, or a negative value

    """
    if text is None or not text.strip():
        raise ExtractionFailed("Vision model returned an empty answer", status.HTTP_422_UNPROCESSABLE_ENTITY)

    candidate = text.strip()
    tokens = {token.replace(",", ".") for token in _NUMBER_RE.findall(candidate)}
    if not tokens:
        raise ExtractionFailed(
            f"Vision model answer is not a number: {candidate[:80]!r}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    if len(tokens) > 1:
        raise ExtractionFailed(
            f"Vision model answer holds more than one number: {candidate[:80]!r}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    token = tokens.pop()
    if token.startswith("-"):
        raise ExtractionFailed(
            f"Vision model returned a negative value: {candidate[:80]!r}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    # Range check first: quantize() overflows the context on very long numbers
    value = Decimal(token)
    if value > MAX_READING_VALUE:
        raise ExtractionFailed(
            f"Vision model returned an out of range value: {candidate[:80]!r}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    value = value.quantize(VALUE_QUANTUM)
    if value > MAX_READING_VALUE:
        raise ExtractionFailed(
            f"Vision model returned an out of range value: {candidate[:80]!r}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    return value


class OpenAIVisionExtractor:
    """Reads meter photos through an OpenAI-compatible chat completions API."""

    def __init__(self, client: OpenAI, model: str, timeout: float = 60.0) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout

    def extract(self, image_bytes: bytes, meter_kind: MeterKind, content_type: str | None) -> str:
        t0 = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": build_prompt(meter_kind)},
                            {
                                "type": "image_url",
                                "image_url": {"url": to_data_url(image_bytes, content_type)},
                            },
                        ],
                    }
                ],
                timeout=self._timeout,
            )
        except APIError as exc:
            logger.warning(
                "Vision model call failed: %s",
                exc,
                extra={"meter_kind": meter_kind.value, "kind": type(exc).__name__},
            )
            raise ExtractionFailed("Vision model request failed") from exc

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        if not response.choices:
            raise ExtractionFailed("Vision model returned no choices")
        text = response.choices[0].message.content
        if not text:
            raise ExtractionFailed("Vision model returned an empty message")

        logger.debug(
            "Vision model answered %r",
            text[:80],
            extra={"meter_kind": meter_kind.value, "elapsed_ms": elapsed_ms},
        )
        return text


class UnconfiguredExtractor:
    """Stands in when no API key is set; fails only once an extraction is attempted."""

    def extract(self, image_bytes: bytes, meter_kind: MeterKind, content_type: str | None) -> str:
        raise ExtractionFailed("Vision model is not configured (OPENAI_API_KEY is unset)")


@lru_cache
def get_vision_extractor() -> VisionExtractor:
    """Process-wide extractor, built on first use and shared by all requests."""
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is unset; photo uploads will fail extraction")
        return UnconfiguredExtractor()

    http_client = httpx.Client(
        timeout=httpx.Timeout(connect=10.0, read=settings.VISION_TIMEOUT_SECONDS, write=30.0, pool=10.0),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=30),
    )
    client = OpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        http_client=http_client,
        max_retries=0,
    )
    return OpenAIVisionExtractor(client, settings.VISION_MODEL, settings.VISION_TIMEOUT_SECONDS)
