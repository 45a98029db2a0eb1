"""Break a URL into its parts and check it against the authorized list."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl

from claims_scraper.config import Settings

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^(https?://)(.*)$", re.IGNORECASE | re.DOTALL)
_DOMAIN_RE = re.compile(r"^((?:[^/?]+/)+)(.*)$", re.DOTALL)
_EMBEDDED_URL_RE = re.compile(r"https?:/?/?", re.IGNORECASE)


class UnauthorizedURL(Exception):
    """Raised when a URL falls outside every authorized prefix."""

    def __init__(self, origin: str, allowed: tuple[str, ...]) -> None:
        self.origin = origin
        self.allowed = allowed
        super().__init__(
            f"Unauthorized url {origin}. Authorized URLs: {', '.join(allowed) or '(none)'}"
        )


@dataclass(frozen=True)
class ScrapeTarget:
    """An authorized URL, split into the pieces pagination needs."""

    protocol: str
    domain: str
    path: str
    file: str
    extension: str
    query: str
    url: str
    directories: tuple[str, ...] = ()

    @property
    def query_params(self) -> dict[str, str]:
        return dict(parse_qsl(self.query, keep_blank_values=True))

    @property
    def request_url(self) -> str:
        """Canonical URL with the original query string reattached."""
        return f"{self.url}?{self.query}" if self.query else self.url

    def sibling_url(self, name: str) -> str:
        """URL of another endpoint living in the same directory."""
        return f"{self.protocol}{self.domain}{self.path.rstrip('/')}/{name}"


def is_authorized(origin: str, allowed: tuple[str, ...]) -> bool:
    """Exact match, or an allowed entry is a literal prefix of *origin*."""
    return any(origin == prefix or origin.startswith(prefix) for prefix in allowed if prefix)


def _split_file(file: str) -> tuple[str, str]:
    base, dot, ext = file.rpartition(".")
    if dot and base and ext:
        return base, f".{ext}"
    return file, ""


def resolve_target(url: str, settings: Settings) -> ScrapeTarget:
    """Decompose *url* and authorize it, raising :class:`UnauthorizedURL`."""
    remainder = url.strip()

    protocol = ""
    match = _SCHEME_RE.match(remainder)
    if match:
        protocol, remainder = match.group(1), match.group(2)

    match = _DOMAIN_RE.match(remainder)
    if match:
        domain, remainder = match.group(1), match.group(2)
    else:
        # Bare host such as "example.com" or "example.com?x=1"
        host, sep, query = remainder.partition("?")
        domain, remainder = f"{host}/", f"{sep}{query}"

    file, _, query = remainder.partition("?")

    origin = protocol + domain
    if not is_authorized(origin, settings.allowed_prefixes):
        logger.warning("Rejected unauthorized URL %s", origin)
        raise UnauthorizedURL(origin, settings.allowed_prefixes)

    if _EMBEDDED_URL_RE.search(file):
        file = ""
    file, extension = _split_file(file)

    canonical = protocol + domain + file + extension

    parts = domain.rstrip("/").split("/")
    host, directories = parts[0], tuple(parts[1:])
    path = "/" + "/".join(directories)

    return ScrapeTarget(
        protocol=protocol,
        domain=host,
        path=path,
        file=file,
        extension=extension,
        query=query,
        url=canonical,
        directories=directories,
    )
