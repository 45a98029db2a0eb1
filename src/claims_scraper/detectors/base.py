"""Abstract base class for all encoding detectors."""

from __future__ import annotations

import codecs
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Encoding tag for content that is not text at all.
RAW = "raw"


@dataclass(frozen=True)
class EncodingGuess:
    """One detector's verdict about a byte sample."""

    encoding: str
    confidence: float
    detector: str
    mime: str = ""

    @property
    def is_raw(self) -> bool:
        return self.encoding == RAW


class EncodingDetector(ABC):
    """Contract for the pluggable stages of the encoding detector chain."""

    name: str

    @abstractmethod
    def detect(self, sample: bytes) -> EncodingGuess | None:
        """
        Guess the character encoding of a leading byte sample.

        Args:
            sample: The first bytes of a response body (never empty).

        Returns:
            An EncodingGuess, or None when this detector cannot decide and
            the next one in the chain should be asked.
        """
        ...

    @staticmethod
    def decodes_cleanly(encoding: str, sample: bytes) -> bool:
        """
        Strictly decode *sample* with *encoding*.

        An incremental decoder is used so a multibyte sequence cut off at the
        end of the sample does not count as a failure.
        """
        try:
            decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
            decoder.decode(sample, final=False)
        except (LookupError, UnicodeDecodeError) as exc:
            logger.debug("Sample does not decode as %s: %s", encoding, exc)
            return False
        return True
