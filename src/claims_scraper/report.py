"""Save, reload and render scrape reports."""

from __future__ import annotations

import fcntl
import json
import logging
from pathlib import Path
from typing import IO

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from claims_scraper.models import OutputFormat, ScrapeResult

logger = logging.getLogger(__name__)


@retry(
    stop=stop_after_attempt(5),
    wait=wait_fixed(3),
    retry=retry_if_exception_type(BlockingIOError),
    reraise=True,
)
def _lock(handle: IO, operation: int) -> None:
    try:
        fcntl.flock(handle, operation | fcntl.LOCK_NB)
    except BlockingIOError:
        logger.debug("Contention: cannot get a lock on %s yet", handle.name)
        raise


def write_report(result: ScrapeResult, path: Path) -> None:
    """Write *result* as JSON under an exclusive lock."""
    with path.open("a+", encoding="utf-8") as fh:
        _lock(fh, fcntl.LOCK_EX)
        try:
            fh.seek(0)
            fh.truncate()
            fh.write(result.model_dump_json(indent=2))
        finally:
            fcntl.flock(fh, fcntl.LOCK_UN)
    logger.info("Wrote report with %d claims to %s", result.claim_count, path)


def read_report(path: Path) -> ScrapeResult:
    """Load a report written by :func:`write_report` (or ``--format json``)."""
    if not path.exists():
        raise FileNotFoundError(f"Report file {path} does not exist")
    with path.open("r", encoding="utf-8") as fh:
        _lock(fh, fcntl.LOCK_SH)
        try:
            text = fh.read()
        finally:
            fcntl.flock(fh, fcntl.LOCK_UN)
    result = ScrapeResult.model_validate_json(text)
    logger.debug("Loaded %d claims from %s", result.claim_count, path)
    return result


def render(result: ScrapeResult, fmt: OutputFormat) -> str:
    if fmt is OutputFormat.JSON:
        return result.model_dump_json(indent=2)

    lines = [
        f"Found {result.claim_count} claims at {result.url}"
        + (", recursively" if result.recursion_depth > 1 else ""),
        f"Total time to scrape and analyze: {result.wall_time}s wall, {result.cpu_time}s cpu",
    ]
    for error in result.errors:
        lines.append(f"Error: {error}")
    lines.append("Results: " + json.dumps(result.claims, indent=2, ensure_ascii=False))
    return "\n".join(lines)
