"""Wire the default collaborators into a ScanOrchestrator."""

from apisentry.ai import LLMClient, LLMTriage
from apisentry.modules.contract import ResponseContractValidator
from apisentry.modules.detectors import DynamicProbeDispatcher
from apisentry.modules.openapi import OpenApiParser
from apisentry.modules.ratelimit import RateLimiter
from apisentry.modules.static import RuleBasedAnalyzer
from apisentry.tools.http import HTTPClient

from .contracts import ReportStore, TokenProvider
from .orchestrator import ScanOrchestrator
from .registry import ScanRegistry
from .store import InMemoryReportStore


def create_default_orchestrator(
    client: HTTPClient,
    limiter: RateLimiter,
    *,
    store: ReportStore | None = None,
    registry: ScanRegistry | None = None,
    token_provider: TokenProvider | None = None,
    llm: LLMClient | None = None,
    max_concurrency: int = 10,
) -> ScanOrchestrator:
    """Return an orchestrator using the built-in parser, rules, detectors and triage.

    The client and limiter are shared by dynamic testing and contract validation.
    """
    store = store if store is not None else InMemoryReportStore()
    return ScanOrchestrator(
        parser=OpenApiParser(timeout=client.timeout),
        dynamic_tester=DynamicProbeDispatcher(client, limiter, max_concurrency=max_concurrency),
        registry=registry if registry is not None else ScanRegistry(store=store),
        store=store,
        static_analyzer=RuleBasedAnalyzer(),
        contract_validator=ResponseContractValidator(client, limiter),
        token_provider=token_provider,
        triage=LLMTriage(llm),
    )
