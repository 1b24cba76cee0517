from __future__ import annotations

import pytest

from briefing_agent.core.errors import InvalidTransitionError
from briefing_agent.core.knowledge_check import (
    ERROR_MESSAGE,
    KnowledgeCheck,
    confidence_band,
    status_display,
    synthesize_result,
)
from briefing_agent.core.types import Brief
from briefing_agent.llm.context_builder import build_knowledge_query


def test_run_walks_statuses(coach):
    seen = []
    kc = KnowledgeCheck(coach, on_status=seen.append)
    brief = Brief(business_problem="Churn", knowledge_gap="Why they leave")

    result = kc.run(brief)

    assert seen == ["searching", "analyzing", "complete"]
    assert kc.status == "complete"
    assert kc.take_result() is result
    assert coach.calls[0]["phase"] == "knowledge_check"
    assert kc.query == "Churn Why they leave"


def test_result_shape_ignores_coach_text(make_coach):
    kc = KnowledgeCheck(make_coach(replies=["totally sufficient, 99% sure"]))
    result = kc.run(Brief(knowledge_gap="Why they leave"))

    assert result.status == "partial"
    assert result.confidence == 45
    assert result.source_count == 3
    assert len(result.findings) == 3
    assert result.remaining_gaps[0] == "Why they leave"


def test_default_gap_when_brief_has_none():
    result = synthesize_result(Brief())
    assert result.remaining_gaps == (
        "Specific customer decision factors remain unknown",
        "Direct user feedback on pain points is limited",
    )


def test_failure_returns_to_idle_with_error(make_coach):
    seen = []
    kc = KnowledgeCheck(make_coach(fail=True), on_status=seen.append)

    assert kc.run(Brief()) is None
    assert seen == ["searching", "analyzing", "idle"]
    assert kc.status == "idle"
    assert kc.error == ERROR_MESSAGE
    assert kc.result is None


def test_run_only_from_idle(coach):
    kc = KnowledgeCheck(coach)
    kc.run(Brief())
    with pytest.raises(InvalidTransitionError):
        kc.run(Brief())
    kc.reset()
    assert kc.status == "idle"
    with pytest.raises(InvalidTransitionError):
        kc.take_result()


def test_query_skips_research_objective_and_caps_length():
    brief = Brief(
        business_problem="P",
        business_objective="O",
        research_objective="R",
        target_audience="A",
        knowledge_gap="",
    )
    assert build_knowledge_query(brief) == "P O A"
    assert len(build_knowledge_query(Brief(business_problem="x" * 900))) == 500


@pytest.mark.parametrize("value,band", [(90, "high"), (70, "high"), (45, "medium"), (40, "medium"), (10, "low")])
def test_confidence_bands(value, band):
    assert confidence_band(value) == band


def test_status_display():
    assert status_display("sufficient").color == "green"
    assert status_display("partial").label == "Partial Coverage"
    assert status_display("needs_research").color == "red"
