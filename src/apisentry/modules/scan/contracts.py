"""Protocols for the collaborators a scan pipeline depends on."""

from typing import Any, Protocol

from apisentry.modules.findings import ContractMismatch, Vulnerability
from apisentry.modules.openapi import EndpointModel

from .models import ScanSnapshot


class SpecParser(Protocol):
    async def parse(self, source: str) -> EndpointModel: ...


class StaticAnalyzer(Protocol):
    def analyze(self, model: EndpointModel) -> list[Vulnerability]: ...


class DynamicTester(Protocol):
    async def test(
        self,
        model: EndpointModel,
        base_url: str,
        auth_token: str | None = None,
        max_concurrency: int | None = None,
    ) -> list[Vulnerability]: ...


class ContractValidator(Protocol):
    async def validate(
        self, model: EndpointModel, base_url: str, auth_token: str | None = None
    ) -> list[ContractMismatch]: ...


class TokenProvider(Protocol):
    async def get_access_token(self) -> str: ...


class Triage(Protocol):
    async def filter_false_positives(
        self, findings: list[Vulnerability]
    ) -> list[Vulnerability]: ...

    async def analyze(self, findings: list[Vulnerability]) -> list[Vulnerability]: ...

    async def recommend(self, finding: Vulnerability) -> str: ...


class ReportStore(Protocol):
    def save(self, snapshot: ScanSnapshot) -> None: ...

    def get(self, scan_id: str) -> dict[str, Any] | None: ...

    def delete(self, scan_id: str) -> bool: ...
