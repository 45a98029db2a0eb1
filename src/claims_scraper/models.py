"""Pydantic models for the scrape request and its result tree."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OutputFormat(str, Enum):
    TXT = "txt"
    JSON = "json"


class ScrapeRequest(BaseModel):
    """What the caller asks for."""

    url: str = Field(min_length=1, description="Listing page to start from")
    recursion_depth: int = Field(
        default=0,
        ge=0,
        description="How many listing pages to follow; 0 fetches nothing",
    )
    output_format: OutputFormat = Field(default=OutputFormat.TXT)


class ScrapeResult(BaseModel):
    """Final aggregated output from a scrape session."""

    url: str = Field(description="Starting URL")
    recursion_depth: int = Field(default=0)
    claims: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Claim records in page and row order, each with an 'amounts' list",
    )
    claim_count: int = Field(default=0)
    pages_fetched: int = Field(default=0, description="Listing page requests sent")
    detail_fetches: int = Field(default=0, description="Claim detail requests sent")
    errors: list[str] = Field(
        default_factory=list,
        description="Fetch, authorization and extraction failures, in order",
    )
    wall_time: float = Field(default=0.0, description="Seconds, wall clock")
    cpu_time: float = Field(default=0.0, description="Seconds, CPU")
