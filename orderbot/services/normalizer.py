"""Phone number and delivery address normalisation for Mongolian input.

Two phone rules exist on purpose:

* ``normalize_phone_number`` only canonicalises (digits only, exactly 8).
* ``validate_phone_number`` additionally requires a mobile prefix (6-9).

Orders only accept numbers that pass both, see ``canonical_phone``.
"""
from __future__ import annotations

import re

PHONE_LENGTH = 8
_NON_DIGITS = re.compile(r"\D")
_VALID_PHONE = re.compile(r"^[6-9]\d{7}$")

# Ulaanbaatar districts, Cyrillic abbreviation plus the usual Latin spellings
_DISTRICTS = (
    (("бзд", "bzd"), "Баянзүрх"),
    (("схд", "shd", "skhd", "sxd"), "Сонгинохайрхан"),
    (("худ", "hud", "khud", "xud"), "Хан-Уул"),
    (("сбд", "sbd"), "Сүхбаатар"),
    (("чд", "chd"), "Чингэлтэй"),
    (("бгд", "bgd"), "Баянгол"),
    (("бнд", "bnd"), "Багануур"),
    (("бхд", "bhd"), "Багахангай"),
    (("нд", "nd"), "Налайх"),
)

_DISTRICT_PATTERNS = [
    (re.compile(r"(?<!\w)(?:" + "|".join(aliases) + r")\.?(?!\w)", re.IGNORECASE), f"{name} дүүрэг")
    for aliases, name in _DISTRICTS
]

_KHOROO_PATTERN = re.compile(
    r"(\d{1,2})\s*(?:-\s*)?(?:р|r|дүгээр|дугаар|th)?\.?\s*(?:хороо|khoroo|horoo)(?!\w)",
    re.IGNORECASE,
)
_SPACES = re.compile(r"\s+")


def _digits(raw: str | None) -> str:
    if not raw:
        return ""
    return _NON_DIGITS.sub("", str(raw))


def validate_phone_number(raw: str | None) -> bool:
    cleaned = _digits(raw)
    return len(cleaned) == PHONE_LENGTH and bool(_VALID_PHONE.match(cleaned))


def normalize_phone_number(raw: str | None) -> str | None:
    cleaned = _digits(raw)
    if len(cleaned) == PHONE_LENGTH:
        return cleaned
    return None


def canonical_phone(raw: str | None) -> str | None:
    normalized = normalize_phone_number(raw)
    if normalized and validate_phone_number(normalized):
        return normalized
    return None


def normalize_address(raw: str | None) -> str | None:
    if raw is None:
        return None
    text = _SPACES.sub(" ", str(raw)).strip(" ,;")
    if not text:
        return None
    for pattern, replacement in _DISTRICT_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _KHOROO_PATTERN.sub(lambda match: f"{int(match.group(1))}-р хороо", text)
    return _SPACES.sub(" ", text).strip()
