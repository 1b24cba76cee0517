from __future__ import annotations

from typing import List

import pytest

from briefing_agent.llm.client import CompletionResult


class FakeCoach:
    """Scripted completion collaborator; records every call it receives."""

    def __init__(self, replies=None, fail=False):
        self.replies: List[str] = list(replies or [])
        self.fail = fail
        self.calls = []

    def reply(self, messages, phase, brief):
        self.calls.append({"messages": list(messages), "phase": phase, "brief": brief.copy()})
        if self.fail:
            raise RuntimeError("coach unavailable")
        text = self.replies.pop(0) if self.replies else f"coach reply {len(self.calls)}"
        return CompletionResult(text=text)


class _Handle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Collects delayed callbacks; tests fire them explicitly."""

    def __init__(self):
        self.scheduled = []

    def __call__(self, delay, fn):
        handle = _Handle()
        self.scheduled.append((delay, fn, handle))
        return handle

    def fire_all(self):
        pending, self.scheduled = self.scheduled, []
        for _delay, fn, _handle in pending:
            fn()


class FakeTimer:
    """threading.Timer stand-in: never runs on its own."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture
def coach():
    return FakeCoach()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def fake_timer():
    FakeTimer.created = []
    return FakeTimer


@pytest.fixture(autouse=True)
def _stub_llm(monkeypatch, tmp_path):
    monkeypatch.setenv("USE_LLM", "0")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def make_coach():
    return FakeCoach
