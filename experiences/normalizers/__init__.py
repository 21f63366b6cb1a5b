"""Shared normalization helpers for provider payloads."""

from __future__ import annotations

import re
import zlib
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from experiences.models import ExperienceImage, Money

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_AMOUNT = re.compile(r"(\d+(?:\.\d+)?)")
_CURRENCY_CODE = re.compile(r"\b([A-Z]{3})\b")

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY", "₺": "TRY"}

COUNTRY_CODES = {
    "united states": "US",
    "canada": "CA",
    "united kingdom": "GB",
    "germany": "DE",
    "france": "FR",
    "italy": "IT",
    "spain": "ES",
    "turkey": "TR",
    "japan": "JP",
}


def canonical_id(native_id: Any) -> int:
    """Deterministic unsigned 32-bit id for a provider-native identifier.

    CRC32 of the UTF-8 text. Collisions between different native ids are
    possible and are not detected.
    """
    return zlib.crc32(str(native_id).encode("utf-8")) & 0xFFFFFFFF


def slugify(title: str) -> str:
    return _NON_ALNUM.sub("-", (title or "").lower())


def country_code(country: Optional[str]) -> Optional[str]:
    if not country:
        return None
    cleaned = country.strip()
    if len(cleaned) == 2 and cleaned.isalpha():
        return cleaned.upper()
    return COUNTRY_CODES.get(cleaned.casefold())


def parse_money(value: Any, default_currency: Optional[str] = "USD") -> Optional[Money]:
    """Parse a numeric or free-text price ("$99.99", "99.99 USD") into Money."""
    if value is None or isinstance(value, bool):
        return None

    currency = default_currency
    if isinstance(value, (int, float, Decimal)):
        amount_text = str(value)
    else:
        text = str(value).strip()
        for symbol, code in CURRENCY_SYMBOLS.items():
            if symbol in text:
                currency = code
                break
        code_match = _CURRENCY_CODE.search(text)
        if code_match:
            currency = code_match.group(1)
        amount_match = _AMOUNT.search(text.replace(",", ""))
        if not amount_match:
            return None
        amount_text = amount_match.group(1)

    try:
        amount = Decimal(amount_text)
    except InvalidOperation:
        return None
    if amount < 0 or not currency:
        return None
    try:
        return Money(amount=amount, currency=currency)
    except ValueError:
        return None


def first_photo(photos: Optional[Iterable[Any]]) -> Optional[str]:
    for photo in photos or []:
        if isinstance(photo, str) and photo:
            return photo
    return None


def normalize_images(photos: Optional[Iterable[Any]]) -> List[ExperienceImage]:
    """First photo is the thumbnail, the rest form the gallery."""
    images: List[ExperienceImage] = []
    for photo in photos or []:
        if not isinstance(photo, str) or not photo:
            continue
        images.append(ExperienceImage(url=photo, role="gallery" if images else "thumbnail"))
    return images


def optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "canonical_id",
    "country_code",
    "first_photo",
    "normalize_images",
    "optional_float",
    "parse_money",
    "slugify",
]
