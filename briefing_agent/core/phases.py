from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .constants import FIELD_LABELS, PHASE_ORDER, TERMINAL_PHASE
from .types import ActionChip, Brief, FieldName, Phase


# -----------------------------
# Action chips
# -----------------------------
ACCEPT = "accept"
EDIT = "edit"
EDIT_SECTION = "edit_section"
SUGGEST = "suggest"
HELP = "help"
REGENERATE = "regenerate"
FINALIZE = "finalize"


def _chips(*specs: Tuple[str, str, bool]) -> Tuple[ActionChip, ...]:
    return tuple(ActionChip(id=i, label=label, primary=primary) for i, label, primary in specs)


# -----------------------------
# Messages
# -----------------------------
def brief_summary(brief: Brief) -> str:
    return (
        f"**Business Problem:** {brief.business_problem}\n\n"
        f"**Business Objective:** {brief.business_objective}\n\n"
        f"**Research Objective:** {brief.research_objective}\n\n"
        f"**Target Audience:** {brief.target_audience}\n\n"
        f"**Knowledge Gap:** {brief.knowledge_gap}"
    )


def review_message(brief: Brief, lead: str = "Let's review your complete brief:") -> str:
    return (
        f"{lead}\n\n{brief_summary(brief)}\n\n"
        "Would you like to finalize this brief or make any changes?"
    )


def finalized_message(brief: Brief) -> str:
    return (
        "Your research brief is complete!\n\n**Summary:**\n\n"
        f"- **Business Problem:** {brief.business_problem}\n"
        f"- **Business Objective:** {brief.business_objective}\n"
        f"- **Research Objective:** {brief.research_objective}\n"
        f"- **Target Audience:** {brief.target_audience}\n"
        f"- **Knowledge Gap:** {brief.knowledge_gap}\n\n"
        "You can copy the brief using the Export button, or click on any section to make edits."
    )


WELCOME_MESSAGE = """# Welcome to the Briefing Agent

I'll help you build a high-quality research brief through a guided conversation.

**Here's what we'll cover:**

1. **Business Problem** - The challenge driving this research
2. **Objectives** - What success looks like
3. **Target Audience** - Who we're studying
4. **Knowledge Gap** - What we need to learn
5. **Knowledge Check** - See what's already known

---

**Let's start with the business problem.**

A good problem statement is specific and actionable. For example:

> "We're seeing 15% customer churn in the premium segment but don't understand why customers are leaving or where they're going."

**What challenge or question is driving your research need?**"""

EDIT_HINT = (
    "You can click on any section in the Brief Preview panel to edit it directly. "
    "Or type your changes here and I'll update the brief."
)

FAILURE_NOTICE = "Sorry, I encountered an error. Please try again."
SUGGEST_FAILURE_NOTICE = "Sorry, I encountered an error generating alternatives."


# -----------------------------
# Transition table
# -----------------------------
@dataclass(frozen=True)
class PhaseSpec:
    phase: Phase
    label: str
    description: str
    field: Optional[FieldName]
    next_phase: Optional[Phase]
    # None => entering this phase adds no message (own sub-flow UI)
    announcement: Optional[Callable[[Brief], str]]
    help_text: str
    initial_actions: Tuple[ActionChip, ...] = ()
    suggestion_actions: Tuple[ActionChip, ...] = ()


def _static(text: str) -> Callable[[Brief], str]:
    return lambda _brief: text


_REVIEW_ACTIONS = _chips((FINALIZE, "Finalize brief", True), (EDIT_SECTION, "Edit a section", False))

PHASES: Dict[Phase, PhaseSpec] = {
    "problem": PhaseSpec(
        phase="problem",
        label="Business Problem",
        description="Define the challenge",
        field="business_problem",
        next_phase="objective",
        announcement=None,
        help_text=(
            "**Tips for a strong business problem:**\n\n"
            "1. Be specific about what's at stake\n"
            "2. Quantify the impact if possible\n"
            "3. Explain who needs to make a decision\n"
            "4. Clarify why this matters now\n\n"
            'For example: "Our enterprise segment has seen a 20% drop in renewal rates over the past '
            "2 quarters. The VP of Sales needs to decide whether to invest in customer success or "
            'adjust our pricing strategy by Q3."'
        ),
        initial_actions=_chips(
            (SUGGEST, "Suggest alternative", True),
            (EDIT, "Edit myself", False),
            (HELP, "Help me improve", False),
        ),
        suggestion_actions=_chips(
            (ACCEPT, "Accept & continue", True),
            (EDIT, "Edit myself", False),
            (SUGGEST, "Suggest alternative", False),
            (HELP, "Help me improve", False),
            (REGENERATE, "Try again", False),
        ),
    ),
    "objective": PhaseSpec(
        phase="objective",
        label="Business Objective",
        description="What success looks like",
        field="business_objective",
        next_phase="research_objective",
        announcement=_static(
            "Great progress! Now let's define your **business objective**.\n\n"
            "What does success look like for this research? "
            "What specific business outcomes are you hoping to achieve?"
        ),
        help_text=(
            "**Tips for clear business objectives:**\n\n"
            "1. Make them measurable\n"
            "2. Link to business outcomes\n"
            "3. Be realistic about scope\n\n"
            'For example: "Identify the top 3 factors driving non-renewal and quantify the potential '
            'revenue impact of addressing each."'
        ),
        initial_actions=_chips((SUGGEST, "Suggest alternatives", True), (EDIT, "Edit", False)),
        suggestion_actions=_chips(
            (ACCEPT, "Accept & continue", True),
            (EDIT, "Edit", False),
            (SUGGEST, "Suggest alternatives", False),
            (REGENERATE, "Try again", False),
        ),
    ),
    "research_objective": PhaseSpec(
        phase="research_objective",
        label="Research Objective",
        description="What to learn",
        field="research_objective",
        next_phase="audience",
        announcement=_static(
            "Now let's define the **research objective**.\n\n"
            "What specific questions should this research answer? "
            "What insights do you need to make better decisions?"
        ),
        help_text=(
            "**Tips for research objectives:**\n\n"
            "1. Focus on specific questions the research should answer\n"
            "2. Distinguish from business objectives: these are about insights, not outcomes\n"
            "3. Be actionable\n\n"
            'For example: "Understand the key decision factors and pain points that lead premium '
            'customers to cancel their subscriptions."'
        ),
        initial_actions=_chips((SUGGEST, "Suggest alternatives", True), (EDIT, "Edit", False)),
        suggestion_actions=_chips(
            (ACCEPT, "Accept & continue", True),
            (EDIT, "Edit", False),
            (SUGGEST, "Suggest alternatives", False),
            (REGENERATE, "Try again", False),
        ),
    ),
    "audience": PhaseSpec(
        phase="audience",
        label="Target Audience",
        description="Who to study",
        field="target_audience",
        next_phase="gap",
        announcement=_static(
            "Now let's identify the **target audience**.\n\n"
            "Who should this research focus on? "
            "Be specific about demographics, behaviors, or characteristics."
        ),
        help_text=(
            "**Tips for defining target audience:**\n\n"
            "1. Be specific about demographics\n"
            "2. Include behavioral characteristics\n"
            "3. Consider decision-making roles\n\n"
            'For example: "IT decision-makers at mid-market companies (500-2000 employees) who have '
            'evaluated but not purchased our solution in the last 12 months."'
        ),
        initial_actions=_chips(
            (SUGGEST, "Suggest alternatives", True),
            (EDIT, "Edit", False),
            (HELP, "Help me define", False),
        ),
        suggestion_actions=_chips(
            (ACCEPT, "Accept & continue", True),
            (EDIT, "Edit", False),
            (SUGGEST, "Suggest alternatives", False),
            (HELP, "Help me define", False),
        ),
    ),
    "gap": PhaseSpec(
        phase="gap",
        label="Knowledge Gap",
        description="What we need to learn",
        field="knowledge_gap",
        next_phase="knowledge_check",
        announcement=_static(
            "Finally, let's clarify the **knowledge gap**.\n\n"
            "What don't you currently know that this research needs to answer?"
        ),
        help_text=(
            "**Tips for knowledge gaps:**\n\n"
            "1. Focus on what you don't know, not what you want to confirm\n"
            "2. Be specific about what evidence would change your decision\n\n"
            'For example: "We don\'t know whether customers who churn are leaving for competitors '
            'or leaving the category entirely."'
        ),
        initial_actions=_chips((SUGGEST, "Suggest more gaps", True), (EDIT, "Edit", False)),
        suggestion_actions=_chips(
            (ACCEPT, "Accept & continue", True),
            (EDIT, "Edit", False),
            (SUGGEST, "Suggest more gaps", False),
        ),
    ),
    "knowledge_check": PhaseSpec(
        phase="knowledge_check",
        label="Knowledge Check",
        description="Search existing research",
        field=None,
        next_phase="review",
        announcement=None,
        help_text="The knowledge check will search for existing research that may address your questions.",
    ),
    "review": PhaseSpec(
        phase="review",
        label="Review & Finalize",
        description="Complete your brief",
        field=None,
        next_phase="done",
        announcement=review_message,
        help_text="Review your brief sections and make any final edits.",
        initial_actions=_REVIEW_ACTIONS,
        suggestion_actions=_REVIEW_ACTIONS,
    ),
    "done": PhaseSpec(
        phase="done",
        label="Done",
        description="Brief finalized",
        field=None,
        next_phase=None,
        announcement=_static("Your brief is complete!"),
        help_text="Your brief is complete!",
    ),
}

def phase_spec(phase: Phase) -> PhaseSpec:
    try:
        return PHASES[phase]
    except KeyError:
        raise ValueError(f"Unknown phase: {phase!r}") from None


def field_for(phase: Phase) -> Optional[FieldName]:
    return phase_spec(phase).field


def next_phase(phase: Phase) -> Optional[Phase]:
    return phase_spec(phase).next_phase


def actions_for(phase: Phase, has_suggestion: bool) -> List[ActionChip]:
    spec = phase_spec(phase)
    return list(spec.suggestion_actions if has_suggestion else spec.initial_actions)


def is_terminal(phase: Phase) -> bool:
    return phase == TERMINAL_PHASE


# -----------------------------
# Progress indicator
# -----------------------------
@dataclass(frozen=True)
class ProgressStep:
    phase: Phase
    label: str
    description: str
    state: str                    # "completed" | "current" | "pending"


def progress_steps(current: Phase, completed_phases) -> List[ProgressStep]:
    """Every phase but done; earlier phases count as completed even if never accepted."""
    current_index = PHASE_ORDER.index(current)
    steps = []
    for idx, p in enumerate(PHASE_ORDER):
        if p == TERMINAL_PHASE:
            continue
        spec = PHASES[p]
        if p in completed_phases or current_index > idx:
            state = "completed"
        elif p == current:
            state = "current"
        else:
            state = "pending"
        steps.append(ProgressStep(phase=p, label=spec.label, description=spec.description, state=state))
    return steps


def field_label(field_name: FieldName) -> str:
    return FIELD_LABELS.get(field_name, field_name)
