"""Claims Scraper - walk a paginated claims register and build a claim tree."""

__version__ = "0.1.0"

from claims_scraper.crawler import scrape_claims
from claims_scraper.models import ScrapeRequest, ScrapeResult

__all__ = ["ScrapeRequest", "ScrapeResult", "scrape_claims"]
