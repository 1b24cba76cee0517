from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

from .constants import (
    EXTRACTED_PREVIEW_CHARS,
    FIELD_LABELS,
    PHASE_ORDER,
    REVIEW_FOLLOWUP_DELAY_SEC,
    STATUS_COMPLETE,
    STATUS_DRAFT,
    TERMINAL_PHASE,
)
from .errors import BusyError, InvalidActionError, InvalidTransitionError, NoContentError
from .knowledge_check import IDLE, KnowledgeCheck
from .phases import (
    ACCEPT,
    EDIT,
    EDIT_HINT,
    EDIT_SECTION,
    FAILURE_NOTICE,
    FINALIZE,
    HELP,
    REGENERATE,
    SUGGEST,
    SUGGEST_FAILURE_NOTICE,
    WELCOME_MESSAGE,
    actions_for,
    finalized_message,
    phase_spec,
    progress_steps,
    review_message,
)
from .types import ActionChip, Brief, KnowledgeCheckResult, Message, Phase, SavedBrief

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, fn: Callable[[], None]):
    t = threading.Timer(delay, fn)
    t.daemon = True
    t.start()
    return t


class BriefingFlow:
    """
    Phase state machine for one session.

    Works on the SavedBrief it is given and never touches storage; the caller
    snapshots `session` whenever it wants to persist. Interaction counters and
    action visibility are transient and reset on every phase change.
    """

    def __init__(
        self,
        session: SavedBrief,
        coach,
        *,
        scheduler: Scheduler = timer_scheduler,
        followup_delay: float = REVIEW_FOLLOWUP_DELAY_SEC,
    ):
        self.session = session
        self.coach = coach
        self.scheduler = scheduler
        self.followup_delay = followup_delay

        self.input_count = 0
        self.has_suggestion = False
        self.show_actions = False
        self.busy = False

        self.knowledge_check = KnowledgeCheck(coach)

        self._lock = threading.RLock()
        self._pending = None
        self._pending_token = None
        self._closed = False

        if not self.session.messages:
            self._append("assistant", WELCOME_MESSAGE)

    # -----------------------------
    # Read-only views
    # -----------------------------
    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def brief(self) -> Brief:
        return self.session.data

    @property
    def messages(self) -> List[Message]:
        return self.session.messages

    @property
    def completed_phases(self) -> List[Phase]:
        return self.session.completed_phases

    @property
    def status(self) -> str:
        return STATUS_COMPLETE if self.phase == TERMINAL_PHASE else STATUS_DRAFT

    def available_actions(self) -> List[ActionChip]:
        if not self.show_actions or self.busy:
            return []
        return actions_for(self.phase, self.has_suggestion)

    def progress(self):
        return progress_steps(self.phase, self.completed_phases)

    # -----------------------------
    # Internals
    # -----------------------------
    def _append(self, role: str, content: str) -> Message:
        msg = Message(role=role, content=content)
        with self._lock:
            self.session.messages.append(msg)
        return msg

    def _say(self, content: str, with_actions: bool) -> None:
        self._append("assistant", content)
        self.show_actions = with_actions

    def _complete(self, phase: Phase) -> None:
        if phase not in self.session.completed_phases:
            self.session.completed_phases.append(phase)

    def _enter(self, phase: Phase) -> None:
        self.cancel_pending()
        self.session.phase = phase
        self.input_count = 0
        self.has_suggestion = False
        if phase == "knowledge_check":
            self.knowledge_check.reset()

    def _begin_call(self) -> None:
        if self.busy:
            raise BusyError("A request is already in progress for this brief")
        self.busy = True

    def _ask(self, instruction: str, failure_notice: str) -> bool:
        """Sends transcript + an instruction the user never typed; the instruction is not stored."""
        self._begin_call()
        try:
            extra = Message(role="user", content=instruction)
            result = self.coach.reply(self.messages + [extra], self.phase, self.brief)
        except Exception:
            logger.exception("Coach call failed in phase %s", self.phase)
            self._say(failure_notice, False)
            return False
        finally:
            self.busy = False

        self.has_suggestion = True
        self._say(result.text, True)
        return True

    # -----------------------------
    # Transitions
    # -----------------------------
    def advance(self) -> bool:
        nxt = phase_spec(self.phase).next_phase
        if nxt is None:
            return False

        self._enter(nxt)
        self.show_actions = False

        announce = phase_spec(nxt).announcement
        if announce is not None:
            self._say(announce(self.brief), False)
        return True

    def jump(self, target: Phase) -> None:
        if target not in PHASE_ORDER:
            raise InvalidTransitionError(f"Unknown phase: {target!r}")
        if self.phase == TERMINAL_PHASE:
            raise InvalidTransitionError("The brief is finalized")
        if target == TERMINAL_PHASE:
            raise InvalidTransitionError("Only finalize can complete a brief")

        self._enter(target)
        self.show_actions = target != "knowledge_check"

    def submit(self, text: str) -> bool:
        """
        The active phase's field is overwritten before the coach is called, so
        a failed call still keeps what the user typed.
        """
        text = (text or "").strip()
        if not text:
            raise NoContentError("Please type something first")

        self._begin_call()
        try:
            self._append("user", text)
            self.show_actions = False

            field = phase_spec(self.phase).field
            if field:
                self.brief.set(field, text)

            result = self.coach.reply(self.messages, self.phase, self.brief)
        except Exception:
            logger.exception("Coach call failed in phase %s", self.phase)
            self._say(FAILURE_NOTICE, False)
            return False
        finally:
            self.busy = False

        self.input_count += 1
        if self.input_count >= 2:
            self.has_suggestion = True
        self._say(result.text, True)
        return True

    def handle_action(self, action_id: str) -> bool:
        if action_id not in {a.id for a in actions_for(self.phase, self.has_suggestion)}:
            raise InvalidActionError(action_id, self.phase)

        self.show_actions = False

        if action_id == ACCEPT:
            self._complete(self.phase)
            return self.advance()

        if action_id == FINALIZE:
            self._complete("review")
            self._enter(TERMINAL_PHASE)
            self._say(finalized_message(self.brief), False)
            return True

        if action_id in (EDIT, EDIT_SECTION):
            self._say(EDIT_HINT, False)
            return True

        if action_id == SUGGEST:
            field = phase_spec(self.phase).field
            current_value = self.brief.get(field) if field else ""
            return self._ask(
                f'Please suggest an alternative way to phrase this {self.phase}: "{current_value}"',
                SUGGEST_FAILURE_NOTICE,
            )

        if action_id == REGENERATE:
            return self._ask(
                f"Please help me rephrase my {self.phase} statement. "
                "Here's what I have so far, but I'd like a different approach.",
                FAILURE_NOTICE,
            )

        if action_id == HELP:
            self.has_suggestion = True
            self._say(phase_spec(self.phase).help_text, True)
            return True

        raise InvalidActionError(action_id, self.phase)

    def edit_field(self, field: str, value: str) -> None:
        """Direct edit from the preview panel; the transcript is untouched."""
        if field not in FIELD_LABELS:
            raise InvalidActionError(f"edit:{field}", self.phase)
        self.brief.set(field, value)

    def apply_extraction(self, partial: dict) -> List[str]:
        applied = self.brief.merge(partial)

        extracted = "\n".join(
            f"**{FIELD_LABELS[k]}:** {self.brief.get(k)[:EXTRACTED_PREVIEW_CHARS]}..." for k in applied
        )
        if "business_problem" in applied:
            follow = (
                "I see you have a business problem defined. Would you like me to help strengthen it, "
                "or shall we move on to objectives?"
            )
        else:
            follow = "Let's start by defining the business problem. What challenge is driving this research?"

        self._say(
            "I've extracted the following from your document:\n\n"
            f"{extracted or 'No specific brief elements found.'}\n\n"
            f"Let me review and help you refine each section. {follow}",
            False,
        )

        if "business_problem" in applied and self.phase == "problem":
            self._complete("problem")
            self._enter("objective")
        return applied

    # -----------------------------
    # Knowledge check
    # -----------------------------
    def _require_knowledge_check(self) -> None:
        if self.phase != "knowledge_check":
            raise InvalidTransitionError(f"Knowledge check is not active in phase '{self.phase}'")

    def run_knowledge_check(self) -> Optional[KnowledgeCheckResult]:
        self._require_knowledge_check()
        self._begin_call()
        try:
            return self.knowledge_check.run(self.brief)
        finally:
            self.busy = False

    def skip_knowledge_check(self) -> None:
        self._require_knowledge_check()
        if self.knowledge_check.status != IDLE:
            raise InvalidTransitionError("Knowledge check can only be skipped before it runs")

        self._complete("knowledge_check")
        self._enter("review")
        self._say(review_message(self.brief), True)

    def continue_knowledge_check(self) -> KnowledgeCheckResult:
        self._require_knowledge_check()
        result = self.knowledge_check.take_result()

        self.session.knowledge_check_result = result
        self._complete("knowledge_check")

        findings = ""
        if result.findings:
            findings = "\n\n**What We Found:**\n" + "\n".join(f"- {f}" for f in result.findings)
        gaps = ""
        if result.remaining_gaps:
            gaps = "\n\n**Remaining Gaps:**\n" + "\n".join(f"- {g}" for g in result.remaining_gaps)

        self._say(f"Knowledge check complete!{findings}{gaps}\n\nLet's review your complete brief.", False)
        self._enter("review")
        self._schedule(lambda: self._say(review_message(self.brief, "Here's your complete brief:"), True))
        return result

    # -----------------------------
    # Delayed emission
    # -----------------------------
    def _schedule(self, emit: Callable[[], None]) -> None:
        self.cancel_pending()
        session_id = self.session.id
        token = object()

        def fire():
            with self._lock:
                if self._closed or self._pending_token is not token or self.session.id != session_id:
                    return
                self._pending = None
                self._pending_token = None
                emit()

        with self._lock:
            self._pending_token = token
            self._pending = self.scheduler(self.followup_delay, fire)

    def cancel_pending(self) -> None:
        with self._lock:
            if self._pending is not None and hasattr(self._pending, "cancel"):
                self._pending.cancel()
            self._pending = None
            self._pending_token = None

    def close(self) -> None:
        """Called when the UI moves to another session."""
        with self._lock:
            self.cancel_pending()
            self._closed = True
