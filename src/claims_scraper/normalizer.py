"""Turn response bytes of unknown or mixed encoding into clean UTF-8 text.

The work happens in a fixed order:

  1. Detect:   run a leading sample through the detector chain
  2. Verify:   cross-check an ASCII verdict against the byte/character count
  3. Decode:   UTF-8 with a Windows-1252 fallback for stray bytes
  4. Repair:   C1 controls, then mojibake (ftfy)
  5. Clean:    drop non-printable characters, keep newlines

Nothing in here raises for malformed input. The worst case is the original
bytes handed back tagged as ``raw``.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

import ftfy
import ftfy.bad_codecs  # noqa: F401  (registers "sloppy-windows-1252")
from ftfy.fixes import fix_c1_controls

from claims_scraper.detectors import RAW, EncodingDetector, detect_encoding

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 1000
VERIFY_THRESHOLD = 5000

_TEXTUAL_RE = re.compile(r"text|ascii|utf[-_]?8", re.IGNORECASE)
_ASCII_RE = re.compile(r"ascii", re.IGNORECASE)
_OUTSIDE_PRINTABLE_ASCII_RE = re.compile(rb"[^\x20-\x7e]")
_SPACE_RE = re.compile(r"[^\S\n]")

_FALLBACK_ERRORS = "claims_scraper.cp1252"


def _cp1252_fallback(exc: UnicodeError) -> tuple[str, int]:
    if not isinstance(exc, UnicodeDecodeError):
        raise exc
    bad = exc.object[exc.start:exc.end]
    return bad.decode("sloppy-windows-1252"), exc.end


codecs.register_error(_FALLBACK_ERRORS, _cp1252_fallback)


@dataclass(frozen=True)
class NormalizedText:
    text: str
    encoding: str
    byte_length: int
    was_truncated: bool = False
    mime: str = ""
    raw: bytes = b""

    @property
    def is_opaque(self) -> bool:
        return self.encoding == RAW


def strip_non_printable(text: str) -> str:
    """Flatten whitespace to spaces (newlines excepted) and drop control characters."""
    text = _SPACE_RE.sub(" ", text)
    return "".join(ch for ch in text if ch == "\n" or ch.isprintable())


def repair_text(text: str) -> str:
    """Fix common Windows-1252 / Latin-1 artifacts in already-decoded text."""
    text = fix_c1_controls(text)
    return ftfy.fix_encoding(text)


def looks_non_ascii(data: bytes) -> bool:
    """Byte-count versus character-count check, independent of any detector."""
    if not data.isascii():
        return True
    return len(data) > len(data.decode("utf-8", errors="replace"))


def _decode(data: bytes, encoding: str) -> str:
    if _TEXTUAL_RE.search(encoding):
        if _OUTSIDE_PRINTABLE_ASCII_RE.search(data):
            return repair_text(data.decode("utf-8", errors=_FALLBACK_ERRORS))
        return data.decode("ascii")
    return data.decode(encoding, errors="replace")


def _writes_through(text: str, encoding: str) -> bool:
    python_codec = "utf-8" if _TEXTUAL_RE.search(encoding) else encoding
    try:
        text.encode(python_codec)
    except (LookupError, UnicodeEncodeError) as exc:
        logger.debug("Write-through check with %s failed: %s", python_codec, exc)
        return False
    return True


def normalize_bytes(
    data: bytes,
    *,
    max_bytes: int | None = None,
    detectors: Iterable[EncodingDetector] | None = None,
) -> NormalizedText:
    """
    Detect, decode, repair and clean a response body.

    Args:
        data: Raw response bytes.
        max_bytes: Optional cap; longer input is cut before decoding and the
            result is flagged ``was_truncated``.
        detectors: Detector chain override (defaults to the registry chain).

    Returns:
        NormalizedText whose ``text`` holds only printable characters and newlines.
    """
    byte_length = len(data)
    if not data or data.startswith(b"\x00"):
        logger.debug("Body is empty or starts with a null byte; returning blank text")
        return NormalizedText(text="", encoding="utf-8", byte_length=byte_length)

    was_truncated = False
    if max_bytes is not None and byte_length > max_bytes:
        logger.warning("Truncating %d bytes of content to %d", byte_length, max_bytes)
        data = data[:max_bytes]
        was_truncated = True

    guess = detect_encoding(data[:SAMPLE_SIZE], detectors)
    encoding = guess.encoding if guess else RAW
    mime = guess.mime if guess else ""

    if _ASCII_RE.search(encoding) and looks_non_ascii(data):
        logger.debug("Encoding %s disagrees with byte/character count, using utf-8", encoding)
        encoding = "utf-8"

    def opaque() -> NormalizedText:
        return NormalizedText(
            text="", encoding=RAW, byte_length=byte_length,
            was_truncated=was_truncated, mime=mime, raw=data,
        )

    if encoding == RAW:
        return opaque()

    try:
        text = _decode(data, encoding)
    except (LookupError, UnicodeError) as exc:
        logger.warning("Decoding as %s failed (%s); keeping raw bytes", encoding, exc)
        return opaque()

    text = strip_non_printable(text)

    if len(text) > VERIFY_THRESHOLD and not _writes_through(text, encoding):
        logger.warning("Text does not survive a write through %s; keeping raw bytes", encoding)
        return opaque()

    return NormalizedText(
        text=text, encoding=encoding, byte_length=byte_length,
        was_truncated=was_truncated, mime=mime,
    )


def normalize_text(value: str) -> str:
    """
    Repair and clean a string that is already decoded (a JSON value, say).

    Detection and decoding are skipped; only the repair and clean stages run.
    """
    return strip_non_printable(repair_text(value))
