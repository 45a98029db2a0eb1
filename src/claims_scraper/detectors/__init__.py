"""Detector registry and factory with lazy imports."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable

from claims_scraper.detectors.base import RAW, EncodingDetector, EncodingGuess

logger = logging.getLogger(__name__)

_DETECTOR_REGISTRY: dict[str, str] = {
    "statistical": "claims_scraper.detectors.statistical.StatisticalDetector",
    "heuristic": "claims_scraper.detectors.heuristic.HeuristicDetector",
    "binary": "claims_scraper.detectors.binary.BinaryDetector",
}

DEFAULT_CHAIN: tuple[str, ...] = ("statistical", "heuristic", "binary")


def get_detector(name: str) -> EncodingDetector:
    """Instantiate a detector by name. Uses lazy imports."""
    if name not in _DETECTOR_REGISTRY:
        available = ", ".join(sorted(_DETECTOR_REGISTRY))
        raise ValueError(f"Unknown detector '{name}'. Available: {available}")

    module_path, class_name = _DETECTOR_REGISTRY[name].rsplit(".", 1)
    module = importlib.import_module(module_path)
    detector_class = getattr(module, class_name)
    return detector_class()


def list_detectors() -> list[str]:
    return sorted(_DETECTOR_REGISTRY)


def detect_encoding(
    sample: bytes,
    detectors: Iterable[EncodingDetector] | None = None,
) -> EncodingGuess | None:
    """Ask each detector in order; the first one with an answer wins."""
    if detectors is None:
        detectors = [get_detector(name) for name in DEFAULT_CHAIN]

    for detector in detectors:
        guess = detector.detect(sample)
        if guess is not None:
            logger.debug(
                "%s detector chose %s (confidence %.2f)",
                detector.name, guess.encoding, guess.confidence,
            )
            return guess
        logger.debug("%s detector gave no answer, trying the next one", detector.name)
    return None


__all__ = [
    "DEFAULT_CHAIN",
    "RAW",
    "EncodingDetector",
    "EncodingGuess",
    "detect_encoding",
    "get_detector",
    "list_detectors",
]
