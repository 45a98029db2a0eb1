"""Statistical charset detection via charset-normalizer."""

from __future__ import annotations

import logging

from charset_normalizer import from_bytes

from claims_scraper.detectors.base import EncodingDetector, EncodingGuess

logger = logging.getLogger(__name__)


class StatisticalDetector(EncodingDetector):
    name = "statistical"

    def detect(self, sample: bytes) -> EncodingGuess | None:
        # Short non-ASCII UTF-8 ("€500") is often scored as a CJK code page.
        # A strict UTF-8 decode of non-ASCII bytes is trusted over the model.
        if not sample.isascii() and self.decodes_cleanly("utf-8", sample):
            return EncodingGuess(encoding="utf-8", confidence=1.0, detector=self.name)

        best = from_bytes(sample).best()
        if best is None:
            logger.debug("charset-normalizer found no plausible encoding")
            return None

        encoding = best.encoding
        if not self.decodes_cleanly(encoding, sample):
            logger.debug("Detected encoding %s failed to decode the sample", encoding)
            return None

        return EncodingGuess(
            encoding=encoding,
            confidence=round(1.0 - best.chaos, 3),
            detector=self.name,
        )
