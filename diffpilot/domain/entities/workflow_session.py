"""Workflow session - per-conversation state of the change/preview/apply flow.

The session moves forward only through ``mark_analyzed`` and
``mark_diff_generated``; the only way back is ``clear`` (cancel or a
successful apply). ``generation`` changes on every ``begin`` and ``clear`` so
that a tool result which arrives after a cancel can be recognised as stale.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from diffpilot.domain.errors import SessionStateError


class Step(str, Enum):
    """Workflow steps."""

    IDLE = "idle"
    ANALYZED = "analyzed"
    DIFF_GENERATED = "diff_generated"


@dataclass(frozen=True)
class SessionKey:
    """Addressing key of a workflow session: (user, conversation)."""

    user_id: str
    conversation_id: str

    @classmethod
    def of(cls, user_id: object, conversation_id: object) -> "SessionKey":
        """Build a key from opaque ids (Telegram ints, HTTP path strings...)."""
        return cls(str(user_id), str(conversation_id))


@dataclass
class WorkflowSession:
    """Mutable state of one conversation's workflow."""

    project_path: str | None = None
    requirement: str | None = None
    change_plan: dict[str, Any] | None = None
    diff: str | None = None
    step: Step = Step.IDLE
    generation: int = 0
    pending: str | None = None  # operation awaiting the tool server

    def begin(self, operation: str) -> int:
        """Mark an operation as in flight; return its token."""
        self.generation += 1
        self.pending = operation
        return self.generation

    def is_current(self, token: int) -> bool:
        """True if nothing reset or restarted the session since ``begin``."""
        return self.generation == token

    def finish(self, token: int) -> None:
        """Release the in-flight marker if it still belongs to ``token``."""
        if self.is_current(token):
            self.pending = None

    def mark_analyzed(self, project_path: str, requirement: str, change_plan: dict[str, Any]) -> None:
        self.project_path = project_path
        self.requirement = requirement
        self.change_plan = change_plan
        self.diff = None
        self.step = Step.ANALYZED

    def mark_diff_generated(self, diff: str) -> None:
        if self.requirement is None or self.change_plan is None:
            raise ValueError("Cannot store a diff before the change plan")
        self.diff = diff
        self.step = Step.DIFF_GENERATED

    def clear(self) -> None:
        """Reset to idle; the slot itself is kept for reuse."""
        self.project_path = None
        self.requirement = None
        self.change_plan = None
        self.diff = None
        self.step = Step.IDLE
        self.pending = None
        self.generation += 1

    def check_invariants(self) -> None:
        """Raise SessionStateError if artifacts do not match the step."""
        artifacts = (self.requirement, self.change_plan, self.diff)
        if self.step is Step.IDLE:
            problem = None if artifacts == (None, None, None) else "idle session holds artifacts"
        elif self.step is Step.ANALYZED:
            if self.requirement is None or self.change_plan is None:
                problem = "analyzed without plan"
            else:
                problem = None if self.diff is None else "analyzed session holds a diff"
        else:
            problem = "diff_generated with missing artifacts" if None in artifacts else None
        if problem is not None:
            raise SessionStateError(problem)
