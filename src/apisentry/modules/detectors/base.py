"""Base contract for dynamic vulnerability detectors."""

from abc import ABC, abstractmethod

from apisentry.modules.findings import Vulnerability
from apisentry.modules.openapi import EndpointDescriptor

from .session import ProbeSession


class Detector(ABC):
    """One probing strategy for a single OWASP API category."""

    name: str
    category: str
    # Methods are tried in this order for each path.
    method_priority: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")
    # Probe only the first applicable method of a path.
    one_method_per_path: bool = False

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        """Whether this detector should run for ``method`` on ``endpoint``."""
        return True

    @abstractmethod
    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        """Probe one endpoint and return any findings."""
