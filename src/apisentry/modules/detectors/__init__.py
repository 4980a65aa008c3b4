"""Dynamic vulnerability detectors and their dispatcher."""

from .base import Detector
from .bola import BOLADetector
from .business_flow import BusinessFlowDetector, is_business_critical
from .dispatcher import DynamicProbeDispatcher, ProbePlan
from .factory import create_default_detectors
from .injection import InjectionDetector
from .rate_limit import RateLimitDetector
from .session import ProbeSession
from .third_party import ThirdPartyDetector, is_third_party_integration

__all__ = [
    "BOLADetector",
    "BusinessFlowDetector",
    "Detector",
    "DynamicProbeDispatcher",
    "InjectionDetector",
    "ProbePlan",
    "ProbeSession",
    "RateLimitDetector",
    "ThirdPartyDetector",
    "create_default_detectors",
    "is_business_critical",
    "is_third_party_integration",
]
