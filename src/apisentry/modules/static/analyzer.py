"""Run static rules over a parsed API description."""

import logging
from collections.abc import Iterable

from apisentry.modules.findings import Vulnerability
from apisentry.modules.openapi import EndpointModel

from .rules import StaticRule, default_rules

logger = logging.getLogger(__name__)


class RuleBasedAnalyzer:
    """Apply each rule in order; a failing rule is logged and skipped."""

    def __init__(self, rules: Iterable[StaticRule] | None = None):
        self.rules = list(rules) if rules is not None else default_rules()

    def analyze(self, model: EndpointModel) -> list[Vulnerability]:
        findings: list[Vulnerability] = []
        for rule in self.rules:
            try:
                rule_findings = rule.check(model)
            except Exception as exc:
                logger.error("Static rule %s failed: %s", rule.rule_id, exc, exc_info=True)
                continue
            logger.debug("Rule %s produced %d findings", rule.rule_id, len(rule_findings))
            findings.extend(rule_findings)
        logger.info("Static analysis completed: %d findings", len(findings))
        return findings
