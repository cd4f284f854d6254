"""Workflow DTOs - outcomes rendered by the chat or HTTP transport."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from diffpilot.domain.entities.workflow_session import Step


class OutcomeStatus(str, Enum):
    """How a workflow operation ended."""

    OK = "ok"
    REJECTED = "rejected"  # precondition violated, nothing changed
    FAILED = "failed"  # tool call failed, step unchanged
    DISCARDED = "discarded"  # result arrived after the session was reset


class WorkflowOutcome(BaseModel):
    """Common part of every workflow outcome."""

    operation: str
    status: OutcomeStatus
    step: Step  # step after the operation
    reason: str | None = None  # machine-readable code for rejections / failures
    message: str | None = None  # short, safe to show to end users
    expected_next: str | None = None
    project_alias: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK


class AnalysisOutcome(WorkflowOutcome):
    """Result of start_change (analyze_change_plan)."""

    requirement: str | None = None
    summary: str | None = None
    files: list[str] = []
    modules: list[str] = []
    estimated_complexity: str | None = None


class PreviewOutcome(WorkflowOutcome):
    """Result of preview (generate_code_diff, dry run)."""

    diff: str | None = None
    changed_files: list[str] = []


class ApplyOutcome(WorkflowOutcome):
    """Result of apply (apply_code_diff)."""

    applied_files: list[str] = []
    summary: str | None = None


class CancelOutcome(WorkflowOutcome):
    """Result of cancel."""

    cancelled: bool = False


class StatusOutcome(WorkflowOutcome):
    """Snapshot of a conversation's workflow."""

    project_path: str | None = None
    requirement: str | None = None
    has_plan: bool = False
    has_diff: bool = False
    pending: str | None = None


class RequirementOutcome(WorkflowOutcome):
    """Result of the stateless requirement structuring tool."""

    content: Any = None
