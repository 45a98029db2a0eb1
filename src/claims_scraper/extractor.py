"""Pull claim records out of listing pages and claim detail pages.

Listing pages come in two shapes: an HTML results table, or a JSON payload
whose column values may themselves hold the same label/content HTML fragment.
Detail pages are always HTML.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup, Tag

from claims_scraper.normalizer import normalize_text

logger = logging.getLogger(__name__)

MARKUP = "markup"
JSON = "json"

RESULTS_TABLE_ID = "results-table"
TOTAL_PAGES_ID = "p-total-pages"
LABEL_CLASS = "tablesaw-cell-label"
CONTENT_CLASS = "tablesaw-cell-content"
DETAIL_LABEL_SELECTOR = ".label.label--small"
DETAIL_VALUE_CLASS = "value"

_SHOW_CLAIMS_RE = re.compile(r"ShowClaims\s*\(\s*(.+?)\s*\)", re.DOTALL)
_CLAIM_TABLE_RE = re.compile(r"^claim-table")
_DIGITS_RE = re.compile(r"\d+")

ClaimRecord = dict[str, Any]
AmountRecord = dict[str, str]


class ExtractionFailure(Exception):
    """Raised when content cannot be parsed into records at all."""


@dataclass
class ListingRow:
    """One listing row: its record and the claim ids found in its cells."""

    claim: ClaimRecord
    claim_ids: list[str] = field(default_factory=list)


@dataclass
class ListingPage:
    rows: list[ListingRow] = field(default_factory=list)
    total_pages: int = 1


@dataclass
class ClaimDetails:
    fields: dict[str, str] = field(default_factory=dict)
    amounts: list[AmountRecord] = field(default_factory=list)


def new_claim() -> ClaimRecord:
    return {"amounts": []}


def is_empty_claim(claim: ClaimRecord) -> bool:
    """True when no field carries a value and there are no amounts."""
    if claim.get("amounts"):
        return False
    return not any(str(v).strip() for k, v in claim.items() if k != "amounts")


def content_kind(content_type: str, text: str) -> str | None:
    """Pick the parser for a response, or None if neither applies."""
    content_type = content_type.lower()
    if "application/json" in content_type:
        return JSON
    if content_type.startswith("text/") and "<frameset" not in text.lower():
        return MARKUP
    return None


def _text(element: Tag) -> str:
    return element.get_text(" ", strip=True)


def _parse_claim_id(onclick: str) -> str | None:
    match = _SHOW_CLAIMS_RE.search(onclick)
    if not match:
        return None
    first_arg = match.group(1).split(",")[0]
    return first_arg.strip("'\" ") or None


def _cell_pair(cell: Tag) -> tuple[str, str, str | None] | None:
    """Return (label, value, claim id) for a label/content cell."""
    label = cell.find(class_=LABEL_CLASS)
    content = cell.find(class_=CONTENT_CLASS)
    if label is None or content is None:
        return None

    claim_id = None
    value = _text(content)
    link = content.find("a", onclick=_SHOW_CLAIMS_RE)
    if link is not None:
        claim_id = _parse_claim_id(link["onclick"])
        value = _text(link)
    return _text(label), value, claim_id


def _own_rows(table: Tag, container: Tag | None = None, **attrs: str) -> list[Tag]:
    """Rows that belong to *table* itself and not to a table nested inside it."""
    container = container or table
    return [
        row for row in container.find_all("tr", attrs=attrs or None)
        if row.find_parent("table") is table
    ]


def _fill_from_cells(row: Tag, record: dict, claim_ids: list[str] | None = None) -> None:
    for cell in row.find_all("td", attrs={"role": "gridcell"}, recursive=False):
        pair = _cell_pair(cell)
        if pair is None:
            continue
        label, value, claim_id = pair
        if not label:
            continue
        if claim_id and claim_ids is not None:
            claim_ids.append(claim_id)
        record[label] = value


def parse_listing_html(html: str) -> ListingPage:
    soup = BeautifulSoup(html, "html.parser")

    total_pages = 1
    marker = soup.find("span", id=TOTAL_PAGES_ID)
    if marker is not None:
        match = _DIGITS_RE.search(marker.get_text())
        if match:
            total_pages = max(int(match.group()), 1)

    table = soup.find("table", id=RESULTS_TABLE_ID)
    if table is None:
        logger.debug("No #%s on page; nothing to extract", RESULTS_TABLE_ID)
        return ListingPage(total_pages=total_pages)

    rows: list[ListingRow] = []
    for tr in _own_rows(table, role="row"):
        row = ListingRow(claim=new_claim())
        _fill_from_cells(tr, row.claim, row.claim_ids)
        rows.append(row)

    logger.debug("Found %d rows in #%s (%d pages)", len(rows), RESULTS_TABLE_ID, total_pages)
    return ListingPage(rows=rows, total_pages=total_pages)


def _fragment_pair(fragment: str) -> tuple[str, str, str | None] | None:
    if LABEL_CLASS not in fragment:
        return None
    return _cell_pair(BeautifulSoup(fragment, "html.parser"))


def parse_listing_json(text: str) -> ListingPage:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionFailure(f"Content cannot be decoded as JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ExtractionFailure("JSON listing must be an object")

    raw_rows = payload.get("rows", [])
    if not isinstance(raw_rows, list):
        raise ExtractionFailure("JSON listing 'rows' must be a list")

    try:
        total_pages = max(int(payload.get("total") or 1), 1)
    except (TypeError, ValueError):
        total_pages = 1

    rows: list[ListingRow] = []
    for raw_row in raw_rows:
        if not isinstance(raw_row, dict):
            logger.debug("Skipping non-object JSON row: %r", raw_row)
            continue
        row = ListingRow(claim=new_claim())
        for column, value in raw_row.items():
            value = "" if value is None else normalize_text(str(value))
            pair = _fragment_pair(value)
            if pair is None:
                row.claim[column] = value
                continue
            label, cell_value, claim_id = pair
            if claim_id:
                row.claim_ids.append(claim_id)
            row.claim[label or column] = cell_value
        rows.append(row)

    return ListingPage(rows=rows, total_pages=total_pages)


def parse_listing(text: str, content_type: str) -> ListingPage:
    """Parse a listing page, raising :class:`ExtractionFailure` on unknown content."""
    kind = content_kind(content_type, text)
    if kind == MARKUP:
        return parse_listing_html(text)
    if kind == JSON:
        return parse_listing_json(text)
    raise ExtractionFailure(f"Content type {content_type!r} could not be parsed")


def parse_claim_details(html: str) -> ClaimDetails:
    """Read the labeled fields and the amounts table of a claim detail page."""
    soup = BeautifulSoup(html, "html.parser")
    details = ClaimDetails()

    for label in soup.select(DETAIL_LABEL_SELECTOR):
        value = label.find_next(class_=DETAIL_VALUE_CLASS)
        name = _text(label)
        if value is not None and name:
            details.fields[name] = _text(value)

    table = soup.find("table", id=_CLAIM_TABLE_RE)
    if table is None:
        return details

    for tr in _own_rows(table, table.find("tbody")):
        amount: AmountRecord = {}
        _fill_from_cells(tr, amount)
        if amount:
            details.amounts.append(amount)

    logger.debug(
        "Claim details: %d fields, %d amounts", len(details.fields), len(details.amounts)
    )
    return details
