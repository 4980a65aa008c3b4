"""Tests for the LLM client and finding triage."""

import json

import pytest
import respx
from conftest import finding
from httpx import Response

from apisentry.ai import LLMClient, LLMTriage
from apisentry.config import LLMSettings
from apisentry.modules.findings import Severity

SETTINGS = LLMSettings(api_key="sk-test", base_url="https://llm.example.com/v1/", model="m")
COMPLETIONS = "https://llm.example.com/v1/chat/completions"


def _reply(content: str) -> Response:
    return Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


class TestLLMClient:
    @respx.mock
    async def test_chat_request_shape(self):
        route = respx.post(COMPLETIONS).mock(return_value=_reply("hello"))

        answer = await LLMClient(SETTINGS).chat("hi", system_prompt="be brief")

        assert answer == "hello"
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "m"
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @respx.mock
    async def test_missing_choices(self):
        respx.post(COMPLETIONS).mock(return_value=Response(200, json={"choices": []}))

        with pytest.raises(ValueError, match="no choices"):
            await LLMClient(SETTINGS).chat("hi")

    async def test_unconfigured(self):
        with pytest.raises(RuntimeError):
            await LLMClient(LLMSettings()).chat("hi")


class TestLLMTriage:
    """Test filtering, re-ranking and recommendations."""

    async def test_disabled_triage_passes_through(self):
        findings = [finding(recommendation="keep")]
        triage = LLMTriage(LLMClient(LLMSettings()))

        assert not triage.enabled
        assert await triage.filter_false_positives(findings) is findings
        assert await triage.analyze(findings) is findings
        assert await triage.recommend(findings[0]) == "keep"
        assert not LLMTriage(None).enabled

    @respx.mock
    async def test_false_positives_are_dropped(self):
        answers = iter([_reply("true"), _reply("False, this is real")])
        respx.post(COMPLETIONS).mock(side_effect=lambda request: next(answers))
        findings = [finding(title="noise"), finding(title="real")]

        kept = await LLMTriage(LLMClient(SETTINGS)).filter_false_positives(findings)

        assert [f.title for f in kept] == ["real"]

    @respx.mock
    async def test_llm_error_keeps_finding(self):
        respx.post(COMPLETIONS).mock(return_value=Response(500))
        findings = [finding()]

        kept = await LLMTriage(LLMClient(SETTINGS)).filter_false_positives(findings)

        assert kept == findings

    @respx.mock
    async def test_analysis_updates_severity_and_recommendation(self):
        respx.post(COMPLETIONS).mock(
            return_value=_reply(
                'Sure: {"severity": "critical", "recommendation": "Check ownership."}'
            )
        )
        vuln = finding(severity=Severity.MEDIUM)

        await LLMTriage(LLMClient(SETTINGS)).analyze([vuln])

        assert vuln.severity is Severity.CRITICAL
        assert vuln.recommendation == "Check ownership."

    @respx.mock
    async def test_unknown_severity_is_ignored(self):
        respx.post(COMPLETIONS).mock(
            return_value=_reply('{"severity": "catastrophic", "recommendation": ""}')
        )
        vuln = finding(severity=Severity.LOW, recommendation="original")

        await LLMTriage(LLMClient(SETTINGS)).analyze([vuln])

        assert vuln.severity is Severity.LOW
        assert vuln.recommendation == "original"

    @respx.mock
    async def test_recommend(self):
        respx.post(COMPLETIONS).mock(return_value=_reply("  Rotate keys.  "))

        advice = await LLMTriage(LLMClient(SETTINGS)).recommend(finding())

        assert advice == "Rotate keys."
