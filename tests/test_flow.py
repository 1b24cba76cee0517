from __future__ import annotations

import pytest

from briefing_agent.core.constants import PHASE_ORDER
from briefing_agent.core.errors import (
    BusyError,
    InvalidActionError,
    InvalidTransitionError,
    NoContentError,
)
from briefing_agent.core.flow import BriefingFlow
from briefing_agent.core.phases import EDIT_HINT, FAILURE_NOTICE, WELCOME_MESSAGE, phase_spec
from briefing_agent.core.state import create_session


def _flow(coach, scheduler=None, phase=None):
    session = create_session()
    if phase:
        session.phase = phase
    kwargs = {"scheduler": scheduler} if scheduler else {}
    return BriefingFlow(session, coach, **kwargs)


def _action_ids(flow):
    return [a.id for a in flow.available_actions()]


# -----------------------------
# Start + submit
# -----------------------------
def test_fresh_session_gets_welcome_message(coach):
    flow = _flow(coach)
    assert flow.phase == "problem"
    assert [m.content for m in flow.messages] == [WELCOME_MESSAGE]
    assert flow.available_actions() == []


def test_existing_transcript_is_not_reseeded(coach):
    session = create_session()
    BriefingFlow(session, coach)
    BriefingFlow(session, coach)
    assert len(session.messages) == 1


@pytest.mark.parametrize(
    "phase",
    [p for p in PHASE_ORDER if phase_spec(p).field],
)
def test_submit_sets_field_even_when_coach_fails(make_coach, phase):
    flow = _flow(make_coach(fail=True), phase=phase)
    ok = flow.submit("  Churn is rising in premium  ")

    assert ok is False
    assert flow.brief.get(phase_spec(phase).field) == "Churn is rising in premium"
    assert flow.messages[-1].content == FAILURE_NOTICE
    assert flow.input_count == 0
    assert flow.available_actions() == []
    assert flow.busy is False


def test_submit_sends_transcript_with_phase_and_brief(coach):
    flow = _flow(coach)
    flow.submit("Premium churn is 15%")

    call = coach.calls[0]
    assert call["phase"] == "problem"
    assert call["messages"][-1].content == "Premium churn is 15%"
    assert call["brief"].business_problem == "Premium churn is 15%"
    assert flow.messages[-1].role == "assistant"
    assert flow.messages[-1].content == "coach reply 1"


def test_empty_submit_is_rejected(coach):
    flow = _flow(coach)
    with pytest.raises(NoContentError):
        flow.submit("   ")
    assert coach.calls == []
    assert len(flow.messages) == 1


def test_busy_guard_blocks_second_call(coach):
    flow = _flow(coach)
    flow.busy = True
    with pytest.raises(BusyError):
        flow.submit("hello")
    with pytest.raises(BusyError):
        flow.handle_action("suggest")


def test_actions_hidden_while_busy(coach):
    flow = _flow(coach)
    flow.submit("one")
    assert _action_ids(flow)
    flow.busy = True
    assert flow.available_actions() == []


# -----------------------------
# Suggestion flag
# -----------------------------
def test_has_suggestion_after_two_submissions(coach):
    flow = _flow(coach)

    flow.submit("first try")
    assert flow.has_suggestion is False
    assert _action_ids(flow) == ["suggest", "edit", "help"]

    flow.submit("second try")
    assert flow.has_suggestion is True
    assert _action_ids(flow) == ["accept", "edit", "suggest", "help", "regenerate"]


@pytest.mark.parametrize("action_id", ["help", "suggest"])
def test_has_suggestion_after_single_action(coach, action_id):
    flow = _flow(coach)
    flow.submit("first try")
    flow.handle_action(action_id)
    assert flow.has_suggestion is True
    assert "accept" in _action_ids(flow)


def test_regenerate_sets_suggestion_and_does_not_store_instruction(coach):
    flow = _flow(coach)
    flow.submit("one")
    flow.submit("two")
    before = len(flow.messages)

    flow.handle_action("regenerate")

    sent = coach.calls[-1]["messages"][-1].content
    assert sent.startswith("Please help me rephrase my problem statement.")
    assert len(flow.messages) == before + 1
    assert flow.messages[-1].role == "assistant"
    assert flow.has_suggestion is True


def test_suggest_quotes_current_value(coach):
    flow = _flow(coach)
    flow.submit("Renewals dropped")
    flow.handle_action("suggest")
    sent = coach.calls[-1]["messages"][-1].content
    assert sent == 'Please suggest an alternative way to phrase this problem: "Renewals dropped"'


def test_suggest_failure_hides_actions(make_coach):
    coach = make_coach()
    flow = _flow(coach)
    flow.submit("Renewals dropped")
    coach.fail = True

    assert flow.handle_action("suggest") is False
    assert flow.available_actions() == []
    assert flow.has_suggestion is False


def test_help_posts_tips_without_calling_coach(coach):
    flow = _flow(coach)
    flow.submit("x")
    calls = len(coach.calls)
    flow.handle_action("help")
    assert len(coach.calls) == calls
    assert flow.messages[-1].content.startswith("**Tips for a strong business problem:**")


def test_edit_posts_hint(coach):
    flow = _flow(coach)
    flow.submit("x")
    flow.handle_action("edit")
    assert flow.messages[-1].content == EDIT_HINT
    assert flow.available_actions() == []


def test_action_outside_current_set_is_rejected(coach):
    flow = _flow(coach)
    flow.submit("x")
    with pytest.raises(InvalidActionError):
        flow.handle_action("accept")
    with pytest.raises(InvalidActionError):
        flow.handle_action("finalize")


# -----------------------------
# Advance
# -----------------------------
def test_accept_end_to_end(coach):
    flow = _flow(coach)
    flow.submit("Premium churn is 15%")
    flow.submit("Premium churn is 15% and we don't know why")
    assert "accept" in _action_ids(flow)

    flow.handle_action("accept")

    assert flow.phase == "objective"
    assert flow.completed_phases == ["problem"]
    assert flow.input_count == 0
    assert flow.has_suggestion is False
    assert flow.available_actions() == []
    assert "**business objective**" in flow.messages[-1].content


def test_advance_walks_fixed_order(coach):
    flow = _flow(coach)
    seen = [flow.phase]
    while flow.advance():
        assert flow.input_count == 0
        assert flow.has_suggestion is False
        seen.append(flow.phase)
    assert seen == PHASE_ORDER
    assert flow.advance() is False
    assert flow.phase == "done"


def test_advance_into_knowledge_check_adds_no_message(coach):
    flow = _flow(coach, phase="gap")
    before = len(flow.messages)
    flow.advance()
    assert flow.phase == "knowledge_check"
    assert len(flow.messages) == before


def test_completed_phases_never_shrink(coach):
    flow = _flow(coach)
    flow.submit("a")
    flow.submit("b")
    flow.handle_action("accept")
    flow.jump("problem")
    assert flow.completed_phases == ["problem"]
    flow.submit("c")
    flow.submit("d")
    flow.handle_action("accept")
    assert flow.completed_phases == ["problem"]


# -----------------------------
# Jump
# -----------------------------
def test_jump_resets_counters_and_shows_actions(coach):
    flow = _flow(coach)
    flow.submit("a")
    flow.submit("b")

    flow.jump("audience")

    assert flow.phase == "audience"
    assert flow.input_count == 0
    assert flow.has_suggestion is False
    assert _action_ids(flow) == ["suggest", "edit", "help"]


def test_jump_to_knowledge_check_hides_actions(coach):
    flow = _flow(coach)
    flow.jump("knowledge_check")
    assert flow.available_actions() == []


def test_jump_refuses_unknown_and_done(coach):
    flow = _flow(coach)
    with pytest.raises(InvalidTransitionError):
        flow.jump("nowhere")
    with pytest.raises(InvalidTransitionError):
        flow.jump("done")


# -----------------------------
# Review + finalize
# -----------------------------
def test_finalize_is_terminal(coach):
    flow = _flow(coach, phase="review")
    flow.show_actions = True
    assert _action_ids(flow) == ["finalize", "edit_section"]

    flow.handle_action("finalize")

    assert flow.phase == "done"
    assert flow.status == "complete"
    assert "review" in flow.completed_phases
    assert flow.messages[-1].content.startswith("Your research brief is complete!")
    assert flow.available_actions() == []
    assert flow.advance() is False
    with pytest.raises(InvalidActionError):
        flow.handle_action("accept")
    with pytest.raises(InvalidTransitionError):
        flow.jump("review")
    assert flow.phase == "done"


def test_finalize_unavailable_outside_review(coach):
    flow = _flow(coach, phase="gap")
    with pytest.raises(InvalidActionError):
        flow.handle_action("finalize")


def test_edit_section_in_review(coach):
    flow = _flow(coach, phase="review")
    flow.handle_action("edit_section")
    assert flow.messages[-1].content == EDIT_HINT
    assert flow.phase == "review"


# -----------------------------
# Direct edits + extraction
# -----------------------------
def test_edit_field_leaves_transcript_alone(coach):
    flow = _flow(coach)
    before = list(flow.messages)
    flow.edit_field("target_audience", "IT buyers")
    assert flow.brief.target_audience == "IT buyers"
    assert flow.messages == before


def test_edit_field_rejects_unknown_field(coach):
    flow = _flow(coach)
    with pytest.raises(InvalidActionError):
        flow.edit_field("budget", "1M")


def test_extraction_with_problem_moves_to_objective(coach):
    flow = _flow(coach)
    flow.brief.knowledge_gap = "kept"

    applied = flow.apply_extraction({"business_problem": "Churn", "target_audience": "Premium users"})

    assert applied == ["business_problem", "target_audience"]
    assert flow.brief.business_problem == "Churn"
    assert flow.brief.knowledge_gap == "kept"
    assert flow.phase == "objective"
    assert flow.completed_phases == ["problem"]
    assert flow.messages[0].content == WELCOME_MESSAGE
    assert flow.messages[-1].content.startswith("I've extracted the following from your document:")
    assert "**Business Problem:** Churn..." in flow.messages[-1].content


def test_extraction_without_problem_stays(coach):
    flow = _flow(coach)
    flow.apply_extraction({})
    assert flow.phase == "problem"
    assert "No specific brief elements found." in flow.messages[-1].content
    assert flow.completed_phases == []


def test_extraction_does_not_move_past_problem_phase(coach):
    flow = _flow(coach, phase="audience")
    flow.apply_extraction({"business_problem": "Churn"})
    assert flow.phase == "audience"


# -----------------------------
# Knowledge check
# -----------------------------
def test_skip_knowledge_check_lands_in_review(coach):
    flow = _flow(coach, phase="knowledge_check")
    flow.skip_knowledge_check()

    assert flow.phase == "review"
    assert "knowledge_check" in flow.completed_phases
    assert flow.session.knowledge_check_result is None
    assert flow.messages[-1].content.startswith("Let's review your complete brief:")
    assert _action_ids(flow) == ["finalize", "edit_section"]


def test_continue_knowledge_check_stores_result_and_delays_review(coach, scheduler):
    flow = _flow(coach, scheduler=scheduler, phase="knowledge_check")
    flow.brief.knowledge_gap = "Why premium users leave"

    result = flow.run_knowledge_check()
    assert result is not None
    assert flow.knowledge_check.status == "complete"

    flow.continue_knowledge_check()

    assert flow.phase == "review"
    assert "knowledge_check" in flow.completed_phases
    assert flow.session.knowledge_check_result == result
    assert flow.messages[-1].content.startswith("Knowledge check complete!")
    assert "- Why premium users leave" in flow.messages[-1].content
    assert flow.available_actions() == []

    assert len(scheduler.scheduled) == 1
    assert scheduler.scheduled[0][0] == 0.5
    scheduler.fire_all()

    assert flow.messages[-1].content.startswith("Here's your complete brief:")
    assert _action_ids(flow) == ["finalize", "edit_section"]


def test_pending_review_message_dropped_after_close(coach, scheduler):
    flow = _flow(coach, scheduler=scheduler, phase="knowledge_check")
    flow.run_knowledge_check()
    flow.continue_knowledge_check()
    before = len(flow.messages)

    _delay, fire, handle = scheduler.scheduled[0]
    flow.close()
    fire()

    assert handle.cancelled is True
    assert len(flow.messages) == before


def test_pending_review_message_dropped_after_jump(coach, scheduler):
    flow = _flow(coach, scheduler=scheduler, phase="knowledge_check")
    flow.run_knowledge_check()
    flow.continue_knowledge_check()
    flow.jump("audience")
    before = len(flow.messages)

    scheduler.fire_all()

    assert len(flow.messages) == before


def test_pending_review_message_dropped_after_finalize(coach, scheduler):
    flow = _flow(coach, scheduler=scheduler, phase="knowledge_check")
    flow.run_knowledge_check()
    flow.continue_knowledge_check()
    flow.handle_action("finalize")
    before = len(flow.messages)

    scheduler.fire_all()

    assert flow.phase == "done"
    assert len(flow.messages) == before
    assert flow.messages[-1].content.startswith("Your research brief is complete!")


def test_pending_review_message_dropped_after_advance(coach, scheduler):
    flow = _flow(coach, scheduler=scheduler, phase="knowledge_check")
    flow.run_knowledge_check()
    flow.continue_knowledge_check()
    flow.advance()
    before = len(flow.messages)

    scheduler.fire_all()

    assert flow.phase == "done"
    assert len(flow.messages) == before


def test_knowledge_check_failure_is_recoverable(make_coach):
    flow = _flow(make_coach(fail=True), phase="knowledge_check")

    assert flow.run_knowledge_check() is None
    assert flow.knowledge_check.status == "idle"
    assert flow.knowledge_check.error.startswith("Failed to complete knowledge check.")
    assert flow.busy is False

    flow.skip_knowledge_check()
    assert flow.phase == "review"


def test_knowledge_check_ops_require_phase(coach):
    flow = _flow(coach, phase="gap")
    with pytest.raises(InvalidTransitionError):
        flow.run_knowledge_check()
    with pytest.raises(InvalidTransitionError):
        flow.skip_knowledge_check()
    with pytest.raises(InvalidTransitionError):
        flow.continue_knowledge_check()


def test_continue_before_run_is_rejected(coach):
    flow = _flow(coach, phase="knowledge_check")
    with pytest.raises(InvalidTransitionError):
        flow.continue_knowledge_check()


def test_reentering_knowledge_check_resets_sub_flow(coach):
    flow = _flow(coach, phase="knowledge_check")
    flow.run_knowledge_check()
    flow.jump("gap")
    flow.jump("knowledge_check")
    assert flow.knowledge_check.status == "idle"
    assert flow.knowledge_check.result is None
