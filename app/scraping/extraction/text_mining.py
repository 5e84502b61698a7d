"""
Regex mining utilities for contact, location and review metadata.

Every function here is pure: text in, value (or None / empty list) out.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

DETAIL_PATH_REGEX = re.compile(r"/review/([^/?#\s]+)")

EMAIL_REGEX = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", flags=re.IGNORECASE)

PHONE_PATTERNS = (
    # International: +39 02 1234567
    re.compile(r"\+\d{1,3}\s?\d{1,4}\s?\d{1,4}\s?\d{1,9}"),
    # US/Canada: (123) 456-7890
    re.compile(r"\(\d{3}\)\s?\d{3}-?\d{4}"),
    # Grouped: 123-456-7890, 123.456.7890
    re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),
    # European leading zero: 0123 456 789
    re.compile(r"\b0\d{1,4}\s?\d{1,4}\s?\d{1,9}\b"),
    # Italian mobile: +39 3xx xxx xxxx
    re.compile(r"\+\d{2}\s?3\d{2}\s?\d{3}\s?\d{4}"),
)
PHONE_FORMATTING_REGEX = re.compile(r"[\s\-.()]")

STREET_SUFFIXES = (
    "Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr|Way|Circle|Cir|Court|Ct|Place|Pl"
)
ADDRESS_PATTERNS = (
    re.compile(
        rf"\b\d{{1,5}}\s+(?:[A-Za-z'.]+\s+){{0,4}}(?:{STREET_SUFFIXES})\b\.?",
        flags=re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:Via|Viale|Piazza|Corso|Strada|Largo)\s+[A-Za-zÀ-ÿ'.]+"
        r"(?:\s+[A-Za-zÀ-ÿ'.]+){0,3}(?:,?\s*\d{1,4}[A-Za-z]?\b)?"
    ),
    re.compile(r"\bP\.?\s*O\.?\s*Box\s+\d+", flags=re.IGNORECASE),
)
MIN_ADDRESS_LENGTH = 10

_CITY_WORDS = r"[A-Z][A-Za-zÀ-ÿ'\-]+(?:\s[A-Z][A-Za-zÀ-ÿ'\-]+){0,2}"
CITY_PATTERNS = (
    # "..., Springfield, 62704" / "..., Milano 20121"
    re.compile(rf",\s*({_CITY_WORDS}),?\s*\d{{5}}\b"),
    # "..., 20121 Milano"
    re.compile(rf",\s*\d{{5}}\s+({_CITY_WORDS})"),
    # "..., Milano (MI)"
    re.compile(rf",\s*({_CITY_WORDS})\s*\([A-Z]{{2}}\)"),
)

RATING_PATTERNS = (
    re.compile(r"(\d(?:[.,]\d+)?)\s*(?:/\s*5\b|out\s+of\s+5\b|stars?\b|★)", flags=re.IGNORECASE),
    re.compile(
        r"(?:trust\s?score|rating|rated|valutazione)\s*:?\s*(\d(?:[.,]\d+)?)\b",
        flags=re.IGNORECASE,
    ),
    re.compile(r"\b(\d[.,]\d)\b"),
)

# a count never starts inside a decimal such as the "5" of "4.5"
_COUNT = r"(?<![\d.,])(\d{1,3}(?:[,.]\d{3})+|\d+)"
REVIEW_COUNT_PATTERNS = (
    re.compile(rf"{_COUNT}\s*(?:total\s+)?(?:reviews?|recensioni|recensione)\b", flags=re.IGNORECASE),
    re.compile(rf"based\s+on\s+{_COUNT}", flags=re.IGNORECASE),
    re.compile(rf"{_COUNT}\s*(?:ratings?|opinions?|opinioni)\b", flags=re.IGNORECASE),
    re.compile(rf"\b(?:reviews?|recensioni)\s*:?\s*\(?{_COUNT}", flags=re.IGNORECASE),
)

_WHITESPACE_REGEX = re.compile(r"\s+")


def clean_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_REGEX.sub(" ", value).strip()


def extract_emails(text: str | None) -> list[str]:
    """
    Return email addresses in order of appearance, deduplicated on the raw match.
    """

    if not text or "@" not in text:
        return []
    seen: set[str] = set()
    emails: list[str] = []
    for match in EMAIL_REGEX.finditer(text):
        value = match.group(0)
        if value in seen:
            continue
        seen.add(value)
        emails.append(value)
    return emails


def is_valid_email(email: str | None) -> bool:
    if not email:
        return False
    return re.fullmatch(r"[^\s@]+@[^\s@]+\.[^\s@]+", email) is not None


def _is_trivial_sequence(digits: str) -> bool:
    steps = {(int(right) - int(left)) % 10 for left, right in zip(digits, digits[1:])}
    return steps == {1} or steps == {9}


def is_valid_phone(phone: str | None) -> bool:
    """
    Accept 7-15 digits once formatting is stripped; reject degenerate sequences.
    """

    if not phone:
        return False
    compact = PHONE_FORMATTING_REGEX.sub("", phone)
    if not re.fullmatch(r"\+?\d+", compact):
        return False
    digits = compact.lstrip("+")
    if not 7 <= len(digits) <= 15:
        return False
    if len(set(digits)) == 1:
        return False
    if _is_trivial_sequence(digits):
        return False
    return True


def extract_phones(text: str | None) -> list[str]:
    """
    Return valid phone numbers found by any regional pattern, in text order.

    Matches overlapping an earlier, longer match are dropped so a number is
    reported once even when several patterns recognize it.
    """

    if not text:
        return []

    spans: list[tuple[int, int, str]] = []
    for pattern in PHONE_PATTERNS:
        for match in pattern.finditer(text):
            spans.append((match.start(), match.end(), match.group(0).strip()))
    spans.sort(key=lambda item: (item[0], -(item[1] - item[0])))

    phones: list[str] = []
    seen: set[str] = set()
    covered_until = -1
    for start, end, value in spans:
        if start < covered_until:
            continue
        if not is_valid_phone(value):
            continue
        covered_until = end
        if value in seen:
            continue
        seen.add(value)
        phones.append(value)
    return phones


def extract_domain(url: str | None) -> str | None:
    """
    Domain surrogate for a URL: detail-page slug, else host without "www.".
    """

    if not url:
        return None
    value = url.strip()
    if not value:
        return None

    detail_match = DETAIL_PATH_REGEX.search(value)
    if detail_match:
        return detail_match.group(1)

    try:
        parsed = urlparse(value if value.startswith(("http://", "https://")) else f"https://{value}")
        host = parsed.hostname
    except ValueError:
        host = None
    if host:
        return host[4:] if host.startswith("www.") else host

    fallback = re.search(r"(?:https?://)?(?:www\.)?([^/\s?]+)", value)
    return fallback.group(1) if fallback else None


def is_detail_url(url: str | None) -> bool:
    return bool(url) and DETAIL_PATH_REGEX.search(url) is not None


def slug_to_name(slug: str) -> str:
    """
    Turn a URL path segment into a display name: hyphens to spaces, title-case.
    """

    words = re.sub(r"[-_]+", " ", slug).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def extract_address(text: str | None) -> str | None:
    if not text:
        return None
    for pattern in ADDRESS_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        candidate = match.group(0).strip(" ,")
        if len(candidate) > MIN_ADDRESS_LENGTH:
            return candidate
    return None


def extract_city(text: str | None) -> str | None:
    if not text:
        return None
    for pattern in CITY_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        city = match.group(1).strip()
        if len(city) > 2:
            return city
    return None


def parse_rating(text: str | None) -> float | None:
    """
    First rating-like decimal in [0, 5]; None otherwise.
    """

    if not text:
        return None
    for pattern in RATING_PATTERNS:
        for match in pattern.finditer(text):
            value = to_rating(match.group(1))
            if value is not None:
                return value
    return None


def to_rating(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    if 0.0 <= rating <= 5.0:
        return rating
    return None


def to_review_count(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value >= 1 and value.is_integer() else None
    digits = re.sub(r"[,.]", "", str(value).strip())
    if not digits.isdigit():
        return None
    count = int(digits)
    return count if count > 0 else None


def parse_review_count(text: str | None) -> int | None:
    """
    First positive integer co-located with a reviews-like label.
    """

    if not text:
        return None
    for pattern in REVIEW_COUNT_PATTERNS:
        for match in pattern.finditer(text):
            count = to_review_count(match.group(1))
            if count is not None:
                return count
    return None
