"""Issue one bounded HTTP request against an authorized target."""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlencode

import httpx

from claims_scraper.config import METHODS, Settings
from claims_scraper.resolver import ScrapeTarget

logger = logging.getLogger(__name__)

# Control keys that must never leak into a GET query string.
RESERVED_PARAMS = frozenset({"URL", "NL", "DEBUG"})


class FetchError(Exception):
    """Base class for everything that can go wrong during a fetch."""


class RequestTimeout(FetchError):
    """The server did not answer within the configured timeout."""


class NetworkError(FetchError):
    """Connection, TLS, protocol or redirect-loop failure."""


class AuthenticationRequired(FetchError):
    """HTTP 401. Carries the challenge so the caller can resubmit with credentials."""

    def __init__(self, url: str, challenge: str) -> None:
        self.url = url
        self.challenge = challenge
        super().__init__(f"Authenticate: {url}, {challenge}")


class HttpError(FetchError):
    """Any other non-2xx status."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"HTTP {code} {message}".rstrip())


@dataclass(frozen=True)
class FetchRequest:
    target: ScrapeTarget
    method: str = "POST"
    body_params: dict[str, str] = field(default_factory=dict)
    upload_file: Path | None = None
    authorization: str | None = None

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in METHODS:
            raise ValueError(f"Unknown request method: {self.method}")
        object.__setattr__(self, "method", method)


@dataclass
class FetchResult:
    url: str
    status_code: int | None = None
    content_type: str = "text/html"
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    redirected_to: str | None = None
    truncated: bool = False
    elapsed: float = 0.0
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def open_client(settings: Settings) -> httpx.Client:
    """
    Client shared across a scrape so session cookies carry between pages.

    Redirects are followed by :func:`_send` so a redirected POST keeps its
    method and form body.
    """
    return httpx.Client(
        timeout=settings.request_timeout,
        follow_redirects=False,
        headers={"User-Agent": settings.user_agent},
    )


def build_headers(request: FetchRequest, settings: Settings) -> dict[str, str]:
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Cache-Control": "no-cache",
        "Accept-Ranges": "none",
    }
    headers.update(settings.custom_headers)
    # A client coming back after a 401 prompt gets its header passed as is.
    if request.authorization:
        headers["Authorization"] = request.authorization
    return headers


def build_get_url(target: ScrapeTarget, body_params: dict[str, str]) -> str:
    if target.query:
        return target.request_url
    params = {k: v for k, v in body_params.items() if k.upper() not in RESERVED_PARAMS}
    if not params:
        return target.url
    return f"{target.url}?{urlencode(params)}"


def _read_limited(response: httpx.Response, limit: int | None) -> tuple[bytes, bool]:
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_bytes():
        if limit is not None and size + len(chunk) > limit:
            chunks.append(chunk[: limit - size])
            return b"".join(chunks), True
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks), False


def _classify(response: httpx.Response) -> FetchError | None:
    if response.status_code == 401:
        return AuthenticationRequired(
            str(response.request.url),
            response.headers.get("WWW-Authenticate", ""),
        )
    if not response.is_success:
        return HttpError(response.status_code, response.reason_phrase)
    return None


def _redirect_method(status_code: int, method: str) -> str:
    # 303 switches to GET; 301, 302, 307 and 308 re-send the request as it was.
    if status_code == httpx.codes.SEE_OTHER:
        return "GET"
    return method


def _send(client: httpx.Client, request: FetchRequest, settings: Settings) -> FetchResult:
    target = request.target
    headers = build_headers(request, settings)
    start = time.perf_counter()

    method = request.method
    url = build_get_url(target, request.body_params) if method == "GET" else target.request_url
    redirected = False

    with ExitStack() as stack:
        upload = handle = None
        if method == "POST" and request.upload_file is not None:
            upload = Path(request.upload_file)
            handle = stack.enter_context(upload.open("rb"))

        try:
            for _ in range(client.max_redirects + 1):
                kwargs: dict = {}
                if method == "POST":
                    kwargs["data"] = dict(request.body_params)
                    if handle is not None:
                        handle.seek(0)
                        kwargs["files"] = {"upload": (upload.name, handle)}

                logger.debug("%s %s", method, url)
                with client.stream(
                    method, url,
                    headers=headers, timeout=settings.request_timeout,
                    follow_redirects=False, **kwargs,
                ) as response:
                    if response.next_request is None:
                        body, truncated = _read_limited(response, settings.max_response_bytes)
                        break
                    next_url = str(response.next_request.url)
                    logger.debug("%d redirect from %s to %s", response.status_code, url, next_url)
                    method = _redirect_method(response.status_code, method)
                    url = next_url
                    redirected = True
            else:
                raise httpx.TooManyRedirects(
                    f"Exceeded {client.max_redirects} redirects", request=response.request
                )
        except httpx.TimeoutException as exc:
            logger.warning("Timeout after %ss fetching %s", settings.request_timeout, url)
            return FetchResult(
                url=url, elapsed=time.perf_counter() - start,
                error=RequestTimeout(f"Timeout after {settings.request_timeout}s: {exc}"),
            )
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            return FetchResult(
                url=url, elapsed=time.perf_counter() - start,
                error=NetworkError(f"Request to {url} failed: {exc}"),
            )

    if truncated:
        logger.warning(
            "Response from %s exceeded %d bytes; truncated", url, settings.max_response_bytes
        )

    error = _classify(response)
    if error is not None:
        logger.warning("%s request to %s failed: %s", method, url, error)
    else:
        logger.info("Fetched %d bytes from %s", len(body), url)

    return FetchResult(
        url=str(response.request.url),
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type") or "text/html",
        body=body,
        headers=dict(response.headers),
        redirected_to=str(response.url) if redirected else None,
        truncated=truncated,
        elapsed=time.perf_counter() - start,
        error=error,
    )


def fetch(
    request: FetchRequest,
    settings: Settings,
    client: httpx.Client | None = None,
) -> FetchResult:
    """
    Perform exactly one logical request, following redirects, and classify it.

    Never raises for transport or HTTP failures and never retries; failures
    are carried on ``FetchResult.error``.
    """
    if client is None:
        with open_client(settings) as owned:
            return _send(owned, request, settings)
    return _send(client, request, settings)
