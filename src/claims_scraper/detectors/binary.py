"""Last resort: sniff the MIME type and tag the content as raw bytes."""

from __future__ import annotations

import logging

import filetype

from claims_scraper.detectors.base import RAW, EncodingDetector, EncodingGuess

logger = logging.getLogger(__name__)

FALLBACK_MIME = "application/octet-stream"


class BinaryDetector(EncodingDetector):
    name = "binary"

    def detect(self, sample: bytes) -> EncodingGuess | None:
        mime = filetype.guess_mime(sample) or FALLBACK_MIME
        logger.debug("Treating content as raw binary (%s)", mime)
        return EncodingGuess(encoding=RAW, confidence=0.0, detector=self.name, mime=mime)
