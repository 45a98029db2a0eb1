"""Centralized configuration loaded from a commented JSON file and .env."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_CONFIG_FILE = "claims_scraper.conf"

METHODS = ("GET", "POST")

# A quoted string is kept as-is; a '#' outside of one starts a comment.
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|#[^\n]*')


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def strip_comments(text: str) -> str:
    """Remove ``#`` comments that are not inside a JSON string."""
    return _COMMENT_RE.sub(lambda m: m.group(1) or "", text)


@dataclass(frozen=True)
class Settings:
    allowed_prefixes: tuple[str, ...] = ()
    user_agent: str = "CourtDrive Web Client"

    # Request limits
    max_response_bytes: int = 1_048_576
    request_timeout: float = 12.0
    default_method: str = "POST"
    custom_headers: dict[str, str] = field(default_factory=dict)
    post_params: dict[str, str] = field(default_factory=dict)

    # Recursion limits
    max_links: int = 100
    max_links_per_page: int = 500

    # Sibling endpoints on the claims site
    listing_endpoint: str = "Home-LoadClaimData"
    detail_endpoint: str = "Home-CreditorDetailsForClaim"

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """Build settings from a JSON document that may carry ``#`` comments."""
        text = Path(path).read_text(encoding="utf-8")
        try:
            conf = json.loads(strip_comments(text))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Config file {path} is not valid JSON: {exc}") from exc
        if not isinstance(conf, dict):
            raise ValueError(f"Config file {path} must hold a JSON object")

        thresholds = conf.get("thresholds", {})
        timeouts = conf.get("timeouts", {})
        endpoints = conf.get("endpoints", {})
        defaults = cls()

        method = str(conf.get("method", defaults.default_method)).upper()
        if method not in METHODS:
            raise ValueError(
                f"Config file {path} has unsupported method {method!r}; use one of {', '.join(METHODS)}"
            )
        return cls(
            allowed_prefixes=tuple(u for u in conf.get("urls", []) if u),
            user_agent=conf.get("browser", {}).get("AGENT", defaults.user_agent),
            max_response_bytes=int(thresholds.get("RESPONSE_LIMIT", defaults.max_response_bytes)),
            request_timeout=(
                float(timeouts["REQUEST"]) / 1000 if "REQUEST" in timeouts else defaults.request_timeout
            ),
            default_method=method,
            custom_headers={str(k): str(v) for k, v in conf.get("headers", {}).items()},
            post_params={str(k): str(v) for k, v in conf.get("params", {}).items()},
            max_links=int(thresholds.get("MAX_LINKS", defaults.max_links)),
            max_links_per_page=int(thresholds.get("MAX_LINKS_PER_PAGE", defaults.max_links_per_page)),
            listing_endpoint=endpoints.get("LISTING", defaults.listing_endpoint),
            detail_endpoint=endpoints.get("DETAIL", defaults.detail_endpoint),
        )

    @classmethod
    def from_env(cls, config_path: str | Path | None = None) -> Settings:
        _load_env()
        path = Path(config_path or os.getenv("CLAIMS_SCRAPER_CONFIG", DEFAULT_CONFIG_FILE))
        settings = cls.from_file(path) if path.is_file() else cls()

        overrides: dict = {}
        allowed = os.getenv("CLAIMS_ALLOWED_URLS", "")
        if allowed:
            overrides["allowed_prefixes"] = tuple(u.strip() for u in allowed.split(",") if u.strip())
        if os.getenv("CLAIMS_USER_AGENT"):
            overrides["user_agent"] = os.environ["CLAIMS_USER_AGENT"]
        if os.getenv("CLAIMS_REQUEST_TIMEOUT"):
            overrides["request_timeout"] = float(os.environ["CLAIMS_REQUEST_TIMEOUT"])
        if os.getenv("CLAIMS_MAX_LINKS"):
            overrides["max_links"] = int(os.environ["CLAIMS_MAX_LINKS"])
        if os.getenv("CLAIMS_MAX_RESPONSE_BYTES"):
            overrides["max_response_bytes"] = int(os.environ["CLAIMS_MAX_RESPONSE_BYTES"])
        if overrides:
            settings = replace(settings, **overrides)

        if not settings.allowed_prefixes:
            raise ValueError(
                "At least one authorized URL is required. "
                f"List it under \"urls\" in {path} or set CLAIMS_ALLOWED_URLS."
            )
        return settings
