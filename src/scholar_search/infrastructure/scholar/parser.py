"""
Scholar Result Parser - HTML result page → ScholarSearchResult list.

Each hit on a results page is a ``div.gs_r`` block containing:

    h3.gs_rt > a        title and link
    div.gs_a            "Authors - Journal, Year - publisher"
    div.gs_rs           snippet used as abstract
    div.gs_fl           "Cited by N" and other links

The parser never raises: empty pages, "no results" pages and malformed
blocks all yield a (possibly empty) list. Blocks without a title or
without any plausible author are skipped.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag

from scholar_search.domain.entities import ScholarSearchResult

logger = logging.getLogger(__name__)

MAX_AUTHORS = 10

NO_RESULTS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"did not match any articles",
        r"no results found",
        r"your search.*did not match",
        r"try different keywords",
        r"no articles found",
    )
]

_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")
_CITED_BY = [
    re.compile(r"Cited by (\d+)", re.IGNORECASE),
    re.compile(r"Citations: (\d+)", re.IGNORECASE),
]
_DOI_PATTERNS = [
    re.compile(r"(?:doi\.org/|DOI:\s*)(10\.\d+/[^\s<>\"']+)", re.IGNORECASE),
    re.compile(r"\bdoi:\s*(10\.\d+/[^\s<>\"']+)", re.IGNORECASE),
    re.compile(r"\b(10\.\d{4,}/[^\s<>\"']+)"),
]
_VALID_DOI = re.compile(r"^10\.\d{4,}/\S+$")
_LAST_NAME = re.compile(r"^[A-Z][a-z]*(?:[-'\s][A-Z]?[a-z]*)*$")
_INITIALS = re.compile(r"^[A-Z]\.?(?:\s*[A-Z]\.?)*$")
_INVALID_AUTHOR = [
    re.compile(r"^\d+$"),
    re.compile(r"^[^a-zA-Z]*$"),
    re.compile(r"^(and|et|al|etc|vol|pp|page|pages)\.?$", re.IGNORECASE),
    re.compile(r"^(doi|isbn|issn|url|http|www)\.?", re.IGNORECASE),
]
_INVALID_ABSTRACT = [
    re.compile(r"^(pdf|html|full text|download|view|access)$", re.IGNORECASE),
    re.compile(r"^[^a-zA-Z]*$"),
    re.compile(r"^\d+\s*(pages?|pp\.)", re.IGNORECASE),
    re.compile(r"^(abstract|summary):\s*$", re.IGNORECASE),
    re.compile(r"^see\s+(full|complete)\s+", re.IGNORECASE),
]
_JOURNAL_PART = re.compile(r"^([^,]+?)(?:,\s*\d{4}|$)")
_WHITESPACE = re.compile(r"\s+")
_ELLIPSIS = "…"


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def has_no_results(html: str) -> bool:
    return any(p.search(html) for p in NO_RESULTS_PATTERNS)


# =============================================================================
# Field extraction
# =============================================================================


def _looks_like_initials(text: str) -> bool:
    return bool(_INITIALS.match(text)) and len(text) <= 10


def _looks_like_last_name(text: str) -> bool:
    return bool(_LAST_NAME.match(text)) and len(text) > 1 and not _looks_like_initials(text)


def is_valid_author_name(author: str) -> bool:
    author = author.strip()
    if len(author) < 2 or len(author) > 100:
        return False
    return not any(p.search(author) for p in _INVALID_AUTHOR)


def split_author_names(authors: str) -> list[str]:
    """Split on ';' or ',' keeping "Smith, J." pairs together."""
    if ";" in authors:
        return [a.strip() for a in authors.split(";")]

    parts = [p.strip() for p in authors.split(",")]
    names: list[str] = []
    i = 0
    while i < len(parts):
        part = parts[i]
        if i + 1 < len(parts) and _looks_like_last_name(part) and _looks_like_initials(parts[i + 1]):
            names.append(f"{part}, {parts[i + 1]}")
            i += 2
            continue
        if part:
            names.append(part)
        i += 1
    return names


def parse_byline(byline: str) -> tuple[list[str], str | None]:
    """Split a ``gs_a`` line into (authors, journal)."""
    parts = byline.split(" - ")
    authors_part = parts[0].strip()
    # Scholar truncates long author lists with an ellipsis
    authors_part = authors_part.rstrip(_ELLIPSIS).rstrip(".").rstrip(",").strip()
    authors = [a for a in split_author_names(authors_part) if is_valid_author_name(a)] if authors_part else []

    journal = None
    if len(parts) >= 2:
        match = _JOURNAL_PART.match(parts[1].strip())
        if match:
            candidate = match.group(1).strip().lstrip(_ELLIPSIS).strip()
            if len(candidate) > 3 and not candidate.isdigit() and candidate.lower() not in {"and", "et", "al"}:
                journal = candidate
    return authors[:MAX_AUTHORS], journal


def extract_year(text: str, current_year: int | None = None) -> int | None:
    limit = (current_year or datetime.now().year) + 1
    for match in _YEAR.finditer(text):
        year = int(match.group(0))
        if 1900 <= year <= limit:
            return year
    return None


def extract_citations(text: str) -> int | None:
    for pattern in _CITED_BY:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def extract_doi(text: str) -> str | None:
    for pattern in _DOI_PATTERNS:
        match = pattern.search(text)
        if match:
            doi = match.group(1).rstrip(".,;)")
            if _VALID_DOI.match(doi):
                return doi
    return None


def resolve_url(href: str | None) -> str | None:
    """Unwrap ``/scholar_url?url=...`` redirects."""
    if not href:
        return None
    if href.startswith("/scholar_url?"):
        target = parse_qs(urlparse(href).query).get("url")
        if target:
            return target[0]
    return href


def is_valid_abstract(text: str) -> bool:
    if len(text) < 10 or any(p.search(text) for p in _INVALID_ABSTRACT):
        return False
    return len(text.split()) >= 3


def result_confidence(title: str, authors: list[str], journal: str | None, year: int | None) -> float:
    confidence = 0.3
    if len(title) > 10:
        confidence += 0.2
    if authors:
        confidence += 0.2
    if journal and len(journal) > 3:
        confidence += 0.2
    if year and year > 1900:
        confidence += 0.1
    return min(confidence, 1.0)


def result_relevance(title: str, abstract: str | None) -> float:
    score = 0.5
    if len(title) > 20:
        score += 0.1
    if abstract and len(abstract) > 100:
        score += 0.2
    return min(score, 1.0)


# =============================================================================
# ScholarResultParser
# =============================================================================


class ScholarResultParser:
    """
    Parse scholarly-index result pages with BeautifulSoup.

    Usage:
        parser = ScholarResultParser()
        results = parser.parse(html)
    """

    def __init__(self, *, current_year: int | None = None) -> None:
        self._current_year = current_year

    def parse(self, html: str) -> list[ScholarSearchResult]:
        if not html or not html.strip():
            logger.debug("Empty result page")
            return []
        if has_no_results(html):
            logger.debug("Result page reports no matching articles")
            return []

        soup = BeautifulSoup(html, "html.parser")
        blocks = [b for b in soup.select("div.gs_r") if b.select_one(".gs_rt, .gs_a")]
        logger.debug(f"Found {len(blocks)} result blocks")

        results: list[ScholarSearchResult] = []
        for block in blocks:
            try:
                result = self.parse_block(block)
            except (AttributeError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed result block: {e}")
                continue
            if result is not None:
                results.append(result)

        if len(results) < len(blocks):
            logger.debug(f"Parsed {len(results)}/{len(blocks)} result blocks")
        return results

    def parse_block(self, block: Tag) -> ScholarSearchResult | None:
        heading = block.select_one(".gs_rt")
        if heading is None:
            return None
        # Drop "[PDF]" / "[HTML]" / "[CITATION]" markers
        for marker in heading.select(".gs_ctg2, .gs_ct1, .gs_ctc"):
            marker.decompose()
        link = heading.find("a")
        title = clean_text((link or heading).get_text(" "))
        if not title:
            return None

        byline_tag = block.select_one(".gs_a")
        byline = clean_text(byline_tag.get_text(" ")) if byline_tag else ""
        authors, journal = parse_byline(byline)
        if not authors:
            return None

        abstract_tag = block.select_one(".gs_rs")
        abstract = clean_text(abstract_tag.get_text(" ")) if abstract_tag else ""
        footer = block.select_one(".gs_fl")
        footer_text = clean_text(footer.get_text(" ")) if footer else ""

        href = link.get("href") if isinstance(link, Tag) else None
        url = resolve_url(href if isinstance(href, str) else None)
        year = extract_year(byline, self._current_year)
        abstract_value = abstract if is_valid_abstract(abstract) else None

        return ScholarSearchResult(
            title=title,
            authors=tuple(authors),
            journal=journal,
            year=year,
            citations=extract_citations(footer_text),
            doi=extract_doi(f"{url or ''} {byline} {abstract}"),
            url=url,
            abstract=abstract_value,
            confidence=result_confidence(title, authors, journal, year),
            relevance_score=result_relevance(title, abstract_value),
        )
