"""Severity re-ranking, false-positive filtering and remediation advice."""

import json
import logging
import re

from apisentry.modules.findings import Severity, Vulnerability

from .llm import LLMClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an API security analyst reviewing automated scanner findings "
    "classified by the OWASP API Security Top 10 (2023)."
)

JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def _describe(finding: Vulnerability) -> str:
    return (
        f"OWASP category: {finding.category}\n"
        f"Title: {finding.title}\n"
        f"Description: {finding.description}\n"
        f"Endpoint: {finding.method} {finding.endpoint}\n"
        f"Severity: {finding.severity.value}\n"
        f"Evidence: {finding.evidence}\n"
    )


class LLMTriage:
    """Triage findings with an LLM. Without credentials every step is a pass-through.

    A failure on one finding leaves that finding unchanged.
    """

    def __init__(self, llm: LLMClient | None):
        self.llm = llm

    @property
    def enabled(self) -> bool:
        return self.llm is not None and self.llm.configured

    async def filter_false_positives(self, findings: list[Vulnerability]) -> list[Vulnerability]:
        if not self.enabled or not findings:
            return findings
        kept = []
        for finding in findings:
            try:
                answer = await self.llm.chat(
                    "Is the following finding a false positive?\n\n"
                    f"{_describe(finding)}\nAnswer only 'true' or 'false'.",
                    SYSTEM_PROMPT,
                )
            except Exception as exc:
                logger.error("False positive check failed for %s: %s", finding.title, exc)
                kept.append(finding)
                continue
            if answer.strip().lower().startswith("true"):
                logger.info("Dropping false positive: %s %s", finding.title, finding.endpoint)
                continue
            kept.append(finding)
        logger.info(
            "Filtered %d false positives, %d remaining", len(findings) - len(kept), len(kept)
        )
        return kept

    async def analyze(self, findings: list[Vulnerability]) -> list[Vulnerability]:
        if not self.enabled or not findings:
            return findings
        for finding in findings:
            try:
                answer = await self.llm.chat(
                    "Assess the severity (CRITICAL, HIGH, MEDIUM, LOW) of this API "
                    f"vulnerability and recommend a fix.\n\n{_describe(finding)}\n"
                    'Reply as JSON: {"severity": "HIGH", "recommendation": "..."}',
                    SYSTEM_PROMPT,
                )
            except Exception as exc:
                logger.error("AI analysis failed for %s: %s", finding.title, exc)
                continue
            self._apply_analysis(finding, answer)
        return findings

    def _apply_analysis(self, finding: Vulnerability, answer: str) -> None:
        match = JSON_OBJECT_RE.search(answer)
        try:
            result = json.loads(match.group(0)) if match else None
        except ValueError:
            result = None
        if not isinstance(result, dict):
            if answer.strip():
                finding.recommendation = answer.strip()
            return

        severity = result.get("severity")
        if severity:
            try:
                new_severity = Severity.parse(severity)
            except ValueError:
                logger.debug("Ignoring unknown severity %r", severity)
            else:
                if new_severity is not finding.severity:
                    logger.info(
                        "AI updated severity %s -> %s for %s",
                        finding.severity.value,
                        new_severity.value,
                        finding.title,
                    )
                finding.severity = new_severity
        recommendation = result.get("recommendation")
        if isinstance(recommendation, str) and recommendation.strip():
            finding.recommendation = recommendation.strip()

    async def recommend(self, finding: Vulnerability) -> str:
        if not self.enabled:
            return finding.recommendation
        try:
            answer = await self.llm.chat(
                "Write an improved remediation recommendation for this API "
                f"vulnerability.\n\n{_describe(finding)}\n"
                f"Current recommendation: {finding.recommendation or '(none)'}",
                SYSTEM_PROMPT,
            )
        except Exception as exc:
            logger.error("Recommendation generation failed for %s: %s", finding.title, exc)
            return finding.recommendation
        return answer.strip() or finding.recommendation
