"""Recursive claims scrape: walk listing pages, enrich rows from detail pages.

Per listing page:
  Fetch:      POST the page number to the listing endpoint
  Normalize:  clean the body into UTF-8 text
  Extract:    rows from the results table (or JSON rows)
  Details:    one sub-fetch per "show claims" id, merged into its row
  Recurse:    next page while the site reports more and the budget allows
"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field, replace

import httpx

from claims_scraper.config import Settings
from claims_scraper.extractor import (
    MARKUP,
    ClaimRecord,
    ExtractionFailure,
    content_kind,
    is_empty_claim,
    parse_claim_details,
    parse_listing,
)
from claims_scraper.fetcher import FetchRequest, FetchResult, fetch, open_client
from claims_scraper.models import ScrapeRequest, ScrapeResult
from claims_scraper.normalizer import normalize_bytes
from claims_scraper.resolver import ScrapeTarget, UnauthorizedURL, resolve_target

logger = logging.getLogger(__name__)

LINE = "=" * 60


def _out(msg: str = "") -> None:
    """Print a status message to stderr so it doesn't mix with report output."""
    print(msg, file=sys.stderr, flush=True)


def _elapsed(t: float) -> str:
    """Format elapsed seconds as human-readable string."""
    secs = time.time() - t
    if secs < 60:
        return f"{secs:.1f}s"
    return f"{secs / 60:.1f}m"


@dataclass(frozen=True)
class ScrapeBudget:
    """Recursion limits. Each level gets its own copy via :meth:`descend`."""

    current_level: int
    max_level: int
    max_links_per_page: int

    @property
    def exhausted(self) -> bool:
        return self.current_level > self.max_level

    def descend(self) -> ScrapeBudget:
        return replace(self, current_level=self.current_level + 1)


@dataclass
class LevelResult:
    """Everything one level produced, including what deeper levels handed back."""

    claims: list[ClaimRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    pages_fetched: int = 0
    detail_fetches: int = 0

    def merge(self, deeper: LevelResult) -> None:
        self.claims.extend(deeper.claims)
        self.errors.extend(deeper.errors)
        self.pages_fetched += deeper.pages_fetched
        self.detail_fetches += deeper.detail_fetches

    def record_error(self, message: str) -> None:
        logger.warning(message)
        self.errors.append(message)


def _redirect_base(
    result: FetchResult,
    target: ScrapeTarget,
    settings: Settings,
    outcome: LevelResult,
) -> ScrapeTarget:
    """Where sibling endpoints live: the redirected location if it is authorized."""
    if not result.redirected_to:
        return target
    try:
        return resolve_target(result.redirected_to, settings)
    except UnauthorizedURL as exc:
        outcome.record_error(f"Redirect from {target.url} ignored: {exc}")
        return target


def _fetch_claim_details(
    claim: ClaimRecord,
    claim_id: str,
    base: ScrapeTarget,
    settings: Settings,
    client: httpx.Client,
    outcome: LevelResult,
) -> None:
    """Single fetch of a claim's detail page, merged into *claim*. Never recurses."""
    url = base.sibling_url(settings.detail_endpoint)
    try:
        target = resolve_target(url, settings)
    except UnauthorizedURL as exc:
        outcome.record_error(str(exc))
        return

    result = fetch(
        FetchRequest(target=target, method=settings.default_method, body_params={"id": claim_id}),
        settings,
        client,
    )
    outcome.detail_fetches += 1
    if not result.ok:
        outcome.record_error(f"Claim {claim_id} details at {url}: {result.error}")
        return

    text = normalize_bytes(result.body, max_bytes=settings.max_response_bytes)
    if text.is_opaque or content_kind(result.content_type, text.text) != MARKUP:
        outcome.record_error(
            f"Claim {claim_id} details at {url} could not be parsed ({result.content_type})"
        )
        return

    details = parse_claim_details(text.text)
    for name, value in details.fields.items():
        claim.setdefault(name, value)
    claim.setdefault("amounts", []).extend(details.amounts)


def _scrape_level(
    url: str,
    budget: ScrapeBudget,
    settings: Settings,
    client: httpx.Client,
) -> LevelResult:
    """Fetch and extract one listing page, then recurse into the next one."""
    outcome = LevelResult()
    if budget.exhausted:
        logger.info("Reached maximum recursion depth = %d", budget.max_level)
        return outcome

    level = budget.current_level
    try:
        target = resolve_target(url, settings)
    except UnauthorizedURL as exc:
        outcome.record_error(str(exc))
        return outcome

    _out(f"[{level}] {target.url}")
    t0 = time.time()
    params = {**settings.post_params, "page": str(level)}
    result = fetch(
        FetchRequest(target=target, method=settings.default_method, body_params=params),
        settings,
        client,
    )
    outcome.pages_fetched += 1
    if not result.ok:
        _out(f"  [!] Failed to fetch: {result.error}")
        outcome.record_error(f"Page {level} at {target.url}: {result.error}")
        return outcome

    text = normalize_bytes(result.body, max_bytes=settings.max_response_bytes)
    if text.is_opaque:
        _out(f"  [!] Not text: {text.mime or result.content_type}")
        outcome.record_error(
            f"Page {level} at {target.url}: content could not be decoded as text "
            f"({text.mime or result.content_type})"
        )
        return outcome
    try:
        page = parse_listing(text.text, result.content_type)
    except ExtractionFailure as exc:
        _out(f"  [!] Extraction failed: {exc}")
        outcome.record_error(f"Page {level} at {target.url}: {exc}")
        return outcome

    base = _redirect_base(result, target, settings, outcome)
    links_followed = 0
    for row in page.rows:
        for claim_id in row.claim_ids:
            if links_followed >= budget.max_links_per_page:
                logger.info(
                    "Skipping details for claim %s: %d detail links already followed on page %d",
                    claim_id, links_followed, level,
                )
                continue
            links_followed += 1
            _fetch_claim_details(row.claim, claim_id, base, settings, client, outcome)
        if is_empty_claim(row.claim):
            logger.debug("Dropping empty row on page %d", level)
            continue
        outcome.claims.append(row.claim)

    _out(
        f"  Results:  {len(outcome.claims)} claims, {links_followed} detail pages "
        f"(page {level} of {page.total_pages}, {_elapsed(t0)})"
    )

    if level < page.total_pages and level < budget.max_level:
        next_url = base.sibling_url(settings.listing_endpoint)
        logger.debug(
            "%d: following %s to page %d (current level %d, authorized recursion %d)",
            level, next_url, level + 1, level, budget.max_level,
        )
        outcome.merge(_scrape_level(next_url, budget.descend(), settings, client))

    return outcome


def scrape_claims(
    url: str,
    recursion_depth: int = 1,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> ScrapeResult:
    """
    Scrape every claim reachable from *url*, up to *recursion_depth* listing pages.

    The depth is capped by ``settings.max_links``. A depth of zero returns an
    empty result without touching the network.
    """
    if settings is None:
        settings = Settings.from_env()

    request = ScrapeRequest(url=url, recursion_depth=recursion_depth)
    budget = ScrapeBudget(
        current_level=1,
        max_level=min(request.recursion_depth, settings.max_links),
        max_links_per_page=settings.max_links_per_page,
    )

    wall_start = time.perf_counter()
    cpu_start = time.process_time()
    crawl_start = time.time()

    _out(f"\n{LINE}")
    _out("  Claims Scraper")
    _out(LINE)
    _out(f"  URL:      {request.url}")
    _out(f"  Depth:    {budget.max_level} (requested {request.recursion_depth})")
    _out(LINE)

    if client is None:
        with open_client(settings) as owned:
            outcome = _scrape_level(request.url, budget, settings, owned)
    else:
        outcome = _scrape_level(request.url, budget, settings, client)

    wall_time = round(time.perf_counter() - wall_start, 3)
    cpu_time = round(time.process_time() - cpu_start, 3)

    _out()
    _out(LINE)
    _out("  SCRAPE COMPLETE")
    _out(LINE)
    _out(f"  Pages fetched:    {outcome.pages_fetched}")
    _out(f"  Detail pages:     {outcome.detail_fetches}")
    _out(f"  Claims found:     {len(outcome.claims)}")
    if outcome.errors:
        _out(f"  Errors:           {len(outcome.errors)}")
    _out(f"  Total time:       {_elapsed(crawl_start)}")
    _out(LINE)
    _out()

    logger.info(
        "Scrape complete. Pages: %d, Details: %d, Claims: %d, Errors: %d",
        outcome.pages_fetched, outcome.detail_fetches, len(outcome.claims), len(outcome.errors),
    )

    return ScrapeResult(
        url=request.url,
        recursion_depth=request.recursion_depth,
        claims=outcome.claims,
        claim_count=len(outcome.claims),
        pages_fetched=outcome.pages_fetched,
        detail_fetches=outcome.detail_fetches,
        errors=outcome.errors,
        wall_time=wall_time,
        cpu_time=cpu_time,
    )
