"""
Per-field extraction strategies applied to one business container.

Each field is resolved by an ordered list of strategies; the first strategy
that yields a usable value wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TypeVar
from urllib.parse import urlparse

from bs4 import Tag

from app.domain.scraping import ExtractedCompany
from app.scraping.extraction.text_mining import (
    STREET_SUFFIXES,
    clean_text,
    extract_address,
    extract_city,
    extract_domain,
    extract_emails,
    extract_phones,
    is_valid_email,
    is_valid_phone,
    parse_rating,
    parse_review_count,
    to_rating,
    to_review_count,
)

T = TypeVar("T")

NAME_NOISE_REGEX = re.compile(
    r"\b(?:most\s+relevant|più\s+rilevanti|sponsored|sponsorizzato|promoted|advertisement|annuncio)\b",
    flags=re.IGNORECASE,
)
# "Ad" is a badge only when a separator sets it off at the start or end
NAME_AD_BADGE_REGEX = re.compile(r"^\s*ad\s*[·•|:]\s*|\s*[·•|:]\s*ad\s*$", flags=re.IGNORECASE)
NAME_TRUNCATION_PATTERNS = (
    re.compile(r"\|"),
    re.compile(r"\btrust\s?score\b", flags=re.IGNORECASE),
    re.compile(r"\brated\b", flags=re.IGNORECASE),
    re.compile(r"\b\d[.,]\d\b"),
    re.compile(r"\b\d[\d,.]*\s*(?:reviews?|recensioni)\b", flags=re.IGNORECASE),
    re.compile(r"\b(?:reviews?|recensioni)\b", flags=re.IGNORECASE),
    re.compile(
        rf"\b\d{{1,5}}\s+(?:[A-Za-z'.]+\s+){{0,4}}(?:{STREET_SUFFIXES})\b",
        flags=re.IGNORECASE,
    ),
    re.compile(r"\b(?:Via|Viale|Piazza|Corso|Strada|Largo)\s+[A-Z]"),
)
REJECTED_NAMES = frozenset({"unknown", "unknown company", "untitled"})
MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 150
MAX_ADDRESS_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500

SOCIAL_HOSTS = (
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "tiktok.com",
    "pinterest.com",
)


def clean_name(raw: str | None) -> str | None:
    """
    Strip banner noise and trailing rating/review/address fragments from a name.
    """

    text = clean_text(raw)
    if not text:
        return None
    text = clean_text(NAME_AD_BADGE_REGEX.sub(" ", NAME_NOISE_REGEX.sub(" ", text)))

    cut = len(text)
    for pattern in NAME_TRUNCATION_PATTERNS:
        match = pattern.search(text)
        if match is not None and 0 < match.start() < cut:
            cut = match.start()
    text = text[:cut].strip(" -–|,·•:;")

    if len(text) < MIN_NAME_LENGTH or text.lower() in REJECTED_NAMES:
        return None
    return text[:MAX_NAME_LENGTH]


def first_result(strategies: Iterable[Callable[[], T | None]]) -> T | None:
    for strategy in strategies:
        value = strategy()
        if value is not None:
            return value
    return None


class FieldExtractor:
    """
    Selector and regex strategies for the fields of one company record.
    """

    NAME_SELECTORS = (
        "[data-business-unit-title]",
        "[data-testid*='business-unit-title']",
        "[class*='displayName']",
        "[class*='businessUnitName']",
        "[class*='title']",
        "h2",
        "h3",
        "h4",
        "a[href*='/review/'] p",
        "a[href*='/review/']",
        "p",
    )
    DETAIL_NAME_SELECTORS = (
        "h1 [class*='displayName']",
        "[class*='displayName']",
        "h1",
    )
    RATING_ATTRIBUTES = ("data-rating", "data-score", "data-trustscore")
    RATING_LABEL_SELECTORS = (
        "[aria-label*='Rated']",
        "[aria-label*='rated']",
        "img[alt*='Rated']",
        "img[alt*='star']",
        "img[alt*='TrustScore']",
    )
    RATING_TEXT_SELECTORS = (
        "[data-rating-typography]",
        "[class*='trustScore']",
        "[class*='rating']",
    )
    REVIEW_COUNT_ATTRIBUTES = ("data-review-count", "data-reviews-count", "data-number-of-reviews")
    REVIEW_COUNT_SELECTORS = (
        "[data-reviews-count-typography]",
        "[class*='reviewCount']",
        "[class*='review']",
    )
    LOCATION_SELECTORS = (
        "address",
        "[data-business-location]",
        "[class*='address']",
        "[class*='location']",
    )
    CITY_SELECTORS = (
        "[data-business-location-city]",
        "[class*='city']",
    )
    CATEGORY_SELECTORS = (
        "[data-business-unit-category]",
        "[class*='categor']",
    )
    DESCRIPTION_SELECTORS = (
        "[data-business-unit-description]",
        "[class*='description']",
    )

    @classmethod
    def build_record(
        cls,
        node: Tag,
        *,
        source_url: str,
        review_site_host: str,
    ) -> ExtractedCompany | None:
        name = cls.extract_name(node)
        if name is None:
            return None

        text = clean_text(node.get_text(" ", strip=True))
        address, city = cls.extract_location(node, text)
        email, phone = cls.extract_contact(node, text)
        website = cls.extract_website(node, excluded_hosts=(review_site_host,))
        return ExtractedCompany(
            name=name,
            source_url=source_url,
            type=cls.extract_category(node),
            domain=cls.extract_review_domain(node) or extract_domain(website),
            city=city,
            address=address,
            phone=phone,
            email=email,
            rating=cls.extract_rating(node, text),
            review_count=cls.extract_review_count(node, text),
            description=cls.extract_description(node),
            website=website,
        )

    @classmethod
    def extract_name(cls, node: Tag, *, selectors: Iterable[str] | None = None) -> str | None:
        for selector in selectors or cls.NAME_SELECTORS:
            for element in node.select(selector):
                name = clean_name(element.get_text(" ", strip=True))
                if name is not None:
                    return name
        return None

    @classmethod
    def extract_rating(cls, node: Tag, text: str) -> float | None:
        return first_result(
            (
                lambda: cls._rating_from_attributes(node),
                lambda: cls._rating_from_labels(node),
                lambda: cls._rating_from_elements(node),
                lambda: parse_rating(text),
            )
        )

    @classmethod
    def extract_review_count(cls, node: Tag, text: str) -> int | None:
        return first_result(
            (
                lambda: cls._review_count_from_attributes(node),
                lambda: cls._review_count_from_elements(node),
                lambda: parse_review_count(text),
            )
        )

    @classmethod
    def extract_location(cls, node: Tag, text: str) -> tuple[str | None, str | None]:
        """
        Return ``(address, city)``; structured location elements beat free-text regexes.
        """

        structured = cls._first_text(node, cls.LOCATION_SELECTORS)
        city = cls._first_text(node, cls.CITY_SELECTORS)

        address: str | None = None
        if structured:
            address = structured[:MAX_ADDRESS_LENGTH]
            city = city or extract_city(structured) or cls._leading_segment_city(structured)
        else:
            address = extract_address(text)

        city = city or extract_city(text)
        return address, city

    @classmethod
    def extract_contact(cls, node: Tag, text: str) -> tuple[str | None, str | None]:
        """
        Return ``(email, phone)``; ``mailto:``/``tel:`` links beat text matches.
        """

        email = first_result(
            (
                lambda: cls._href_value(node, "mailto:", is_valid_email),
                lambda: next(iter(extract_emails(text)), None),
            )
        )
        phone = first_result(
            (
                lambda: cls._href_value(node, "tel:", is_valid_phone),
                lambda: next(iter(extract_phones(text)), None),
            )
        )
        return email, phone

    @classmethod
    def extract_category(cls, node: Tag) -> str | None:
        return cls._first_text(node, cls.CATEGORY_SELECTORS)

    @classmethod
    def extract_description(cls, node: Tag) -> str | None:
        description = cls._first_text(node, cls.DESCRIPTION_SELECTORS)
        if description is None:
            meta = node.select_one("meta[name='description']")
            if meta is not None:
                description = clean_text(meta.get("content")) or None
        return description[:MAX_DESCRIPTION_LENGTH] if description else None

    @staticmethod
    def extract_website(node: Tag, *, excluded_hosts: Iterable[str]) -> str | None:
        """
        First absolute http(s) link leaving the review site and social networks.
        """

        excluded = tuple(host.lower() for host in excluded_hosts if host) + SOCIAL_HOSTS
        for anchor in node.select("a[href]"):
            href = str(anchor.get("href") or "").strip()
            if not href.startswith(("http://", "https://")):
                continue
            try:
                host = (urlparse(href).hostname or "").lower()
            except ValueError:
                continue
            if not host:
                continue
            if any(host == blocked or host.endswith(f".{blocked}") for blocked in excluded):
                continue
            return href
        return None

    @staticmethod
    def extract_review_domain(node: Tag) -> str | None:
        anchor = node.select_one("a[href*='/review/']")
        if anchor is None:
            return None
        return extract_domain(str(anchor.get("href") or ""))

    @classmethod
    def _rating_from_attributes(cls, node: Tag) -> float | None:
        for attribute in cls.RATING_ATTRIBUTES:
            for element in cls._self_and_descendants_with(node, attribute):
                rating = to_rating(element.get(attribute))
                if rating is not None:
                    return rating
        return None

    @classmethod
    def _rating_from_labels(cls, node: Tag) -> float | None:
        for selector in cls.RATING_LABEL_SELECTORS:
            for element in node.select(selector):
                label = element.get("aria-label") or element.get("alt") or ""
                rating = parse_rating(str(label))
                if rating is not None:
                    return rating
        return None

    @classmethod
    def _rating_from_elements(cls, node: Tag) -> float | None:
        for selector in cls.RATING_TEXT_SELECTORS:
            for element in node.select(selector):
                value = clean_text(element.get_text(" ", strip=True))
                rating = to_rating(value) if value else None
                if rating is None:
                    rating = parse_rating(value)
                if rating is not None:
                    return rating
        return None

    @classmethod
    def _review_count_from_attributes(cls, node: Tag) -> int | None:
        for attribute in cls.REVIEW_COUNT_ATTRIBUTES:
            for element in cls._self_and_descendants_with(node, attribute):
                count = to_review_count(element.get(attribute))
                if count is not None:
                    return count
        return None

    @classmethod
    def _review_count_from_elements(cls, node: Tag) -> int | None:
        for selector in cls.REVIEW_COUNT_SELECTORS:
            for element in node.select(selector):
                value = clean_text(element.get_text(" ", strip=True))
                count = parse_review_count(value) or to_review_count(value)
                if count is not None:
                    return count
        return None

    @staticmethod
    def _self_and_descendants_with(node: Tag, attribute: str) -> list[Tag]:
        found = [node] if node.has_attr(attribute) else []
        found.extend(node.find_all(attrs={attribute: True}))
        return found

    @staticmethod
    def _href_value(node: Tag, scheme: str, validator: Callable[[str], bool]) -> str | None:
        for anchor in node.select(f"a[href^='{scheme}']"):
            value = str(anchor.get("href") or "")[len(scheme):].split("?", 1)[0].strip()
            if validator(value):
                return value
        return None

    @staticmethod
    def _first_text(node: Tag, selectors: Iterable[str]) -> str | None:
        for selector in selectors:
            for element in node.select(selector):
                value = clean_text(element.get_text(" ", strip=True))
                if len(value) >= 2:
                    return value
        return None

    @staticmethod
    def _leading_segment_city(location: str) -> str | None:
        if any(char.isdigit() for char in location):
            return None
        segment = location.split(",", 1)[0].strip()
        if 3 <= len(segment) <= 40 and re.fullmatch(r"[A-Za-zÀ-ÿ' \-]+", segment):
            return segment
        return None
