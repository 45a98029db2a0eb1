"""Guess an encoding by trying a short list of suspects in order."""

from __future__ import annotations

import codecs
import logging

from claims_scraper.detectors.base import EncodingDetector, EncodingGuess

logger = logging.getLogger(__name__)

# Longest BOMs first so UTF-32 is not mistaken for UTF-16.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)

DEFAULT_SUSPECTS: tuple[str, ...] = ("ascii", "utf-8")


class HeuristicDetector(EncodingDetector):
    name = "heuristic"

    def __init__(self, suspects: tuple[str, ...] = DEFAULT_SUSPECTS) -> None:
        self.suspects = suspects

    def detect(self, sample: bytes) -> EncodingGuess | None:
        for bom, encoding in _BOMS:
            if sample.startswith(bom):
                return EncodingGuess(encoding=encoding, confidence=1.0, detector=self.name)

        for encoding in self.suspects:
            if self.decodes_cleanly(encoding, sample):
                return EncodingGuess(encoding=encoding, confidence=0.5, detector=self.name)

        logger.debug("None of %s decode the sample", ", ".join(self.suspects))
        return None
