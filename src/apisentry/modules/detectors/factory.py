"""Detector factory helpers."""

from .base import Detector
from .bola import BOLADetector
from .business_flow import BusinessFlowDetector
from .injection import InjectionDetector
from .rate_limit import RateLimitDetector
from .third_party import ThirdPartyDetector


def create_default_detectors() -> list[Detector]:
    """Return the built-in detectors in dispatch order."""
    return [
        BOLADetector(),
        InjectionDetector(),
        RateLimitDetector(),
        BusinessFlowDetector(),
        ThirdPartyDetector(),
    ]
