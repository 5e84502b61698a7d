"""
HTML to company-record extraction for review-site listing and detail pages.

Listing pages go through a cascade of strategies, from the most structured
(embedded JSON payloads) to the most generic (headings). The first strategy
that finds candidates decides the page's records.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import replace
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from app.domain.scraping import ExtractedCompany, ScrapeSettings
from app.scraping.errors import ExtractionAnomaly
from app.scraping.extraction.fields import FieldExtractor, clean_name
from app.scraping.extraction.text_mining import (
    DETAIL_PATH_REGEX,
    clean_text,
    extract_city,
    extract_domain,
    is_detail_url,
    slug_to_name,
    to_rating,
    to_review_count,
)
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_RECORD_CAP = 100

EMBEDDED_JSON_ATTRIBUTES = ("data-business-unit-json", "data-business-unit", "data-props", "data-json")
EMBEDDED_JSON_SCRIPTS = ("script#__NEXT_DATA__", "script[type='application/ld+json']")
SCHEMA_ORG_BUSINESS_TYPES = frozenset(
    {"Organization", "LocalBusiness", "Corporation", "Store", "OnlineBusiness", "ProfessionalService"}
)
CONTAINER_SELECTORS = (
    "[data-business-unit-card]",
    "[data-testid='business-unit-card']",
    "[data-testid*='business-unit']",
    "[class*='businessUnitCard']",
    "[class*='styles_businessUnitMain']",
    "[class*='business-card']",
    "[class*='company-card']",
    "article[class*='card']",
)
HEADING_TAGS = ("h1", "h2", "h3", "h4")
BLOCK_TAGS = frozenset({"li", "article", "div", "section"})
MAX_BLOCK_TEXT_LENGTH = 600
MAX_WALK_DEPTH = 40

StrategyResult = tuple[bool, list[ExtractedCompany]]


class ExtractionEngine:
    """
    Turns fetched HTML into deduplicated, capped company records.

    Never raises for malformed markup: the worst case is an empty result.
    """

    def __init__(
        self,
        *,
        review_site_host: str = "trustpilot.com",
        default_record_cap: int = DEFAULT_RECORD_CAP,
    ) -> None:
        self._review_site_host = review_site_host.lower()
        self._default_record_cap = default_record_cap

    @staticmethod
    def is_detail_url(url: str) -> bool:
        return is_detail_url(url)

    def extract_listing(
        self,
        html: str,
        source_url: str,
        settings: ScrapeSettings | None = None,
    ) -> list[ExtractedCompany]:
        try:
            soup = BeautifulSoup(html or "", "html.parser")
            strategies: tuple[tuple[str, Callable[[BeautifulSoup, str], StrategyResult]], ...] = (
                ("embedded_json", self._from_embedded_json),
                ("semantic_containers", self._from_containers),
                ("detail_links", self._from_detail_links),
                ("headings", self._from_headings),
            )
            for strategy_name, strategy in strategies:
                found, candidates = strategy(soup, source_url)
                if not found:
                    continue
                records = self._finalize(candidates, settings)
                log_event(
                    logger,
                    logging.INFO,
                    "listing_extracted",
                    source_url=source_url,
                    strategy=strategy_name,
                    candidates=len(candidates),
                    records=len(records),
                )
                return records
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "listing_extraction_failed",
                source_url=source_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return []

        log_event(logger, logging.INFO, "listing_extracted", source_url=source_url, strategy=None, records=0)
        return []

    def extract_detail(self, html: str, source_url: str) -> ExtractedCompany | None:
        """
        Extract the single business described by a detail page.

        Embedded payload fields win; DOM strategies fill whatever they left empty.
        """

        try:
            soup = BeautifulSoup(html or "", "html.parser")
            embedded = next(iter(self._embedded_records(soup, source_url, include_schema_org=True)), None)
            dom_record = self._detail_from_dom(soup, source_url)
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "detail_extraction_failed",
                source_url=source_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        if embedded is None:
            return dom_record
        if dom_record is None:
            return embedded
        missing = {
            field_name: getattr(dom_record, field_name)
            for field_name in ExtractedCompany.__dataclass_fields__
            if getattr(embedded, field_name) is None and getattr(dom_record, field_name) is not None
        }
        return replace(embedded, **missing) if missing else embedded

    def _finalize(
        self,
        candidates: list[ExtractedCompany],
        settings: ScrapeSettings | None,
    ) -> list[ExtractedCompany]:
        seen: set[str] = set()
        unique: list[ExtractedCompany] = []
        for record in candidates:
            key = record.dedupe_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(record)

        limit = settings.review_limit if settings is not None and settings.review_limit > 0 else 0
        return unique[: limit or self._default_record_cap]

    # Strategy 1: embedded structured data

    def _from_embedded_json(self, soup: BeautifulSoup, source_url: str) -> StrategyResult:
        records = list(self._embedded_records(soup, source_url, include_schema_org=False))
        return bool(records), records

    def _embedded_records(
        self,
        soup: BeautifulSoup,
        source_url: str,
        *,
        include_schema_org: bool,
    ) -> Iterator[ExtractedCompany]:
        for origin, raw in self._embedded_payloads(soup):
            try:
                payload = self._parse_json(raw, origin)
            except ExtractionAnomaly as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "extraction_anomaly",
                    source_url=source_url,
                    origin=origin,
                    error=str(exc),
                )
                continue

            for unit in self._walk_business_units(payload, include_schema_org=include_schema_org):
                record = self._company_from_payload(unit, source_url)
                if record is not None:
                    yield record

    @staticmethod
    def _embedded_payloads(soup: BeautifulSoup) -> Iterator[tuple[str, str]]:
        for attribute in EMBEDDED_JSON_ATTRIBUTES:
            for element in soup.find_all(attrs={attribute: True}):
                raw = element.get(attribute)
                if isinstance(raw, str) and raw.strip()[:1] in ("{", "["):
                    yield attribute, raw

        for selector in EMBEDDED_JSON_SCRIPTS:
            for script in soup.select(selector):
                raw = script.string or script.get_text()
                if raw and raw.strip():
                    yield selector, raw

    @staticmethod
    def _parse_json(raw: str, origin: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ExtractionAnomaly(f"Malformed embedded JSON in {origin}: {exc}") from exc

    @classmethod
    def _walk_business_units(
        cls,
        payload: Any,
        *,
        include_schema_org: bool,
        depth: int = 0,
    ) -> Iterator[dict[str, Any]]:
        if depth > MAX_WALK_DEPTH:
            return
        if isinstance(payload, list):
            for item in payload:
                yield from cls._walk_business_units(item, include_schema_org=include_schema_org, depth=depth + 1)
            return
        if not isinstance(payload, dict):
            return

        if cls._is_business_unit(payload, include_schema_org=include_schema_org):
            yield payload
            return
        for value in payload.values():
            yield from cls._walk_business_units(value, include_schema_org=include_schema_org, depth=depth + 1)

    @staticmethod
    def _is_business_unit(payload: dict[str, Any], *, include_schema_org: bool) -> bool:
        if isinstance(payload.get("displayName"), str) and "categoryId" not in payload:
            return True
        if not include_schema_org or not isinstance(payload.get("name"), str):
            return False
        schema_type = payload.get("@type")
        types = set(schema_type) if isinstance(schema_type, list) else {schema_type}
        return bool(types & SCHEMA_ORG_BUSINESS_TYPES)

    def _company_from_payload(self, unit: dict[str, Any], source_url: str) -> ExtractedCompany | None:
        name = clean_name(_as_text(unit.get("displayName") or unit.get("name")))
        if name is None:
            return None
        # schema.org blocks also describe the review site itself
        if "@type" in unit and unit.get("url") and self._external_url(_as_text(unit.get("url"))) is None:
            return None

        aggregate = unit.get("aggregateRating") if isinstance(unit.get("aggregateRating"), dict) else {}
        score = unit.get("score")
        if isinstance(score, dict):
            score = score.get("trustScore")
        rating = to_rating(unit.get("trustScore"))
        if rating is None:
            rating = to_rating(score)
        if rating is None:
            rating = to_rating(aggregate.get("ratingValue"))

        reviews = unit.get("numberOfReviews")
        if isinstance(reviews, dict):
            reviews = reviews.get("total")
        review_count = to_review_count(reviews)
        if review_count is None:
            review_count = to_review_count(unit.get("reviewCount") or aggregate.get("reviewCount"))

        contact = unit.get("contact") or unit.get("contactInfo")
        contact = contact if isinstance(contact, dict) else {}
        website = self._external_url(
            _as_text(unit.get("websiteUrl") or unit.get("website") or contact.get("website") or unit.get("url"))
        )
        identifying_name = _as_text(unit.get("identifyingName"))

        address, city = _location_fields(unit.get("location") or unit.get("address"))

        return ExtractedCompany(
            name=name,
            source_url=source_url,
            type=_category_name(unit.get("categories") or unit.get("category")),
            domain=identifying_name or extract_domain(website),
            city=city,
            address=address,
            phone=_as_text(contact.get("phone") or unit.get("telephone")),
            email=_as_text(contact.get("email") or unit.get("email")),
            rating=rating,
            review_count=review_count,
            description=_as_text(unit.get("description")),
            website=website,
        )

    def _external_url(self, url: str | None) -> str | None:
        if not url:
            return None
        try:
            host = (urlparse(url if "://" in url else f"https://{url}").hostname or "").lower()
        except ValueError:
            return None
        if host == self._review_site_host or host.endswith(f".{self._review_site_host}"):
            return None
        return url

    # Strategy 2: semantic containers

    def _from_containers(self, soup: BeautifulSoup, source_url: str) -> StrategyResult:
        for selector in CONTAINER_SELECTORS:
            nodes = _outermost(soup.select(selector))
            if not nodes:
                continue
            records: list[ExtractedCompany] = []
            for node in nodes:
                record = self._safe_build(node, source_url)
                if record is not None:
                    records.append(record)
            return True, records
        return False, []

    def _safe_build(self, node: Tag, source_url: str) -> ExtractedCompany | None:
        try:
            return FieldExtractor.build_record(
                node,
                source_url=source_url,
                review_site_host=self._review_site_host,
            )
        except (ExtractionAnomaly, AttributeError, TypeError, ValueError) as exc:
            log_event(
                logger,
                logging.WARNING,
                "extraction_anomaly",
                source_url=source_url,
                origin=node.name,
                error=str(exc),
            )
            return None

    # Strategy 3: links to detail pages

    def _from_detail_links(self, soup: BeautifulSoup, source_url: str) -> StrategyResult:
        own_slug = extract_domain(source_url) if is_detail_url(source_url) else None
        seen: set[str] = set()
        records: list[ExtractedCompany] = []
        for anchor in soup.select("a[href*='/review/']"):
            match = DETAIL_PATH_REGEX.search(str(anchor.get("href") or ""))
            if match is None:
                continue
            slug = match.group(1)
            if slug in seen or slug == own_slug:
                continue
            seen.add(slug)

            name = clean_name(anchor.get_text(" ", strip=True)) or clean_name(slug_to_name(slug))
            if name is None:
                continue

            block = _enclosing_block(anchor, slug)
            text = clean_text(block.get_text(" ", strip=True))
            address, city = FieldExtractor.extract_location(block, text)
            email, phone = FieldExtractor.extract_contact(block, text)
            records.append(
                ExtractedCompany(
                    name=name,
                    source_url=source_url,
                    type=FieldExtractor.extract_category(block),
                    domain=slug,
                    city=city,
                    address=address,
                    phone=phone,
                    email=email,
                    rating=FieldExtractor.extract_rating(block, text),
                    review_count=FieldExtractor.extract_review_count(block, text),
                )
            )
        return bool(records), records

    # Strategy 4: headings

    @staticmethod
    def _from_headings(soup: BeautifulSoup, source_url: str) -> StrategyResult:
        records: list[ExtractedCompany] = []
        for heading in soup.find_all(list(HEADING_TAGS)):
            text = clean_text(heading.get_text(" ", strip=True))
            if not 5 <= len(text) <= 100:
                continue
            name = clean_name(text)
            if name is not None:
                records.append(ExtractedCompany(name=name, source_url=source_url))
        return bool(records), records

    def _detail_from_dom(self, soup: BeautifulSoup, source_url: str) -> ExtractedCompany | None:
        name = FieldExtractor.extract_name(soup, selectors=FieldExtractor.DETAIL_NAME_SELECTORS)
        if name is None:
            og_title = soup.select_one("meta[property='og:title']")
            if og_title is not None:
                name = clean_name(str(og_title.get("content") or ""))
        if name is None:
            return None

        root = soup.body or soup
        text = clean_text(root.get_text(" ", strip=True))
        address, city = FieldExtractor.extract_location(root, text)
        email, phone = FieldExtractor.extract_contact(root, text)
        source_host = ""
        try:
            source_host = urlparse(source_url).hostname or ""
        except ValueError:
            pass
        return ExtractedCompany(
            name=name,
            source_url=source_url,
            type=FieldExtractor.extract_category(root),
            domain=extract_domain(source_url),
            city=city,
            address=address,
            phone=phone,
            email=email,
            rating=FieldExtractor.extract_rating(root, text),
            review_count=FieldExtractor.extract_review_count(root, text),
            description=FieldExtractor.extract_description(soup),
            website=FieldExtractor.extract_website(root, excluded_hosts=(self._review_site_host, source_host)),
        )


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = clean_text(str(value))
    return text or None


def _category_name(categories: Any) -> str | None:
    if isinstance(categories, list):
        categories = categories[0] if categories else None
    if isinstance(categories, dict):
        return _as_text(categories.get("displayName") or categories.get("name"))
    return _as_text(categories)


def _location_fields(location: Any) -> tuple[str | None, str | None]:
    if isinstance(location, str):
        address = _as_text(location)
        return address, extract_city(address)
    if not isinstance(location, dict):
        return None, None

    street = _as_text(location.get("address") or location.get("street") or location.get("streetAddress"))
    city = _as_text(location.get("city") or location.get("addressLocality"))
    zip_code = _as_text(location.get("zipCode") or location.get("postalCode"))
    country = _as_text(location.get("country") or location.get("addressCountry"))
    locality = " ".join(part for part in (zip_code, city) if part)
    parts = [part for part in (street, locality, country) if part]
    return (", ".join(parts) if parts else None), city


def _outermost(nodes: list[Tag]) -> list[Tag]:
    ids = {id(node) for node in nodes}
    return [node for node in nodes if not any(id(parent) in ids for parent in node.parents)]


def _enclosing_block(anchor: Tag, slug: str) -> Tag:
    """
    Climb to the largest nearby block that still describes only this business.
    """

    block: Tag = anchor
    for parent in anchor.parents:
        if not isinstance(parent, Tag) or parent.name not in BLOCK_TAGS:
            break
        if len(parent.get_text(" ", strip=True)) > MAX_BLOCK_TEXT_LENGTH:
            break
        other_slugs = {
            match.group(1)
            for link in parent.select("a[href*='/review/']")
            if (match := DETAIL_PATH_REGEX.search(str(link.get("href") or ""))) is not None
        }
        if other_slugs - {slug}:
            break
        block = parent
    return block
