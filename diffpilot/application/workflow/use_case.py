"""Workflow use case - guarded change -> preview -> apply state machine.

Applying a diff rewrites project files, so it is only reachable from a
session whose diff has been generated (and shown) in the same conversation.
All transitions go through ``_guard``; callers cannot skip a step.

Tool results only advance the session after a ``success: true`` payload.
Anything else (tool error, timeout, dead process, malformed payload) leaves
the step as it was; the raw detail is logged, the outcome carries a generic
message.
"""

import json
import logging
from typing import Any, TypeVar

from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.application.workflow.diff_utils import changed_files
from diffpilot.application.workflow.dto import (
    AnalysisOutcome,
    ApplyOutcome,
    CancelOutcome,
    OutcomeStatus,
    PreviewOutcome,
    RequirementOutcome,
    StatusOutcome,
    WorkflowOutcome,
)
from diffpilot.application.workflow.session_store import WorkflowSessionRepository
from diffpilot.domain.entities.workflow_session import Step, WorkflowSession
from diffpilot.domain.errors import PreconditionViolation
from diffpilot.domain.ports.tool_server import (
    FailureReason,
    ToolCallResult,
    ToolFailure,
    ToolServerPort,
)

logger = logging.getLogger(__name__)

START_CHANGE = "start_change"
PREVIEW = "preview"
APPLY = "apply"
CANCEL = "cancel"
STATUS = "status"
STRUCTURE_REQUIREMENT = "structure_requirement"

ANALYZE_TOOL = "analyze_change_plan"
DIFF_TOOL = "generate_code_diff"
APPLY_TOOL = "apply_code_diff"
REQUIREMENT_TOOL = "structure_client_requirement"

NEXT_OPERATION: dict[Step, str] = {
    Step.IDLE: START_CHANGE,
    Step.ANALYZED: PREVIEW,
    Step.DIFF_GENERATED: APPLY,
}

_REJECTIONS: dict[tuple[str, Step], str] = {
    (START_CHANGE, Step.ANALYZED): "flow_in_progress",
    (START_CHANGE, Step.DIFF_GENERATED): "flow_in_progress",
    (PREVIEW, Step.IDLE): "run_start_change_first",
    (PREVIEW, Step.DIFF_GENERATED): "diff_already_generated",
    (APPLY, Step.IDLE): "run_start_change_first",
    (APPLY, Step.ANALYZED): "run_preview_first",
}

_MESSAGES: dict[str, str] = {
    "no_active_project": "No active project selected.",
    "empty_requirement": "The requirement text is empty.",
    "flow_in_progress": "A change flow is already in progress.",
    "operation_in_progress": "Another operation is still running for this conversation.",
    "run_start_change_first": "Start a change first.",
    "run_preview_first": "Preview the diff before applying it.",
    "diff_already_generated": "A diff has already been generated.",
    "nothing_to_cancel": "Nothing to cancel.",
    "cancelled": "The flow was cancelled while the tool was running; result discarded.",
}

_FAILURES: dict[str, str] = {
    START_CHANGE: "Analysis failed, see server log.",
    PREVIEW: "Diff generation failed, see server log.",
    APPLY: "Applying the diff failed, see server log.",
    STRUCTURE_REQUIREMENT: "Requirement analysis failed, see server log.",
}

_FAILURE_REASONS: dict[FailureReason, str] = {
    FailureReason.TIMEOUT: "tool_timeout",
    FailureReason.TRANSPORT: "tool_transport",
    FailureReason.TOOL_ERROR: "tool_error",
}

O = TypeVar("O", bound=WorkflowOutcome)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _log_payload(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)[:2000]
    except (TypeError, ValueError):
        return repr(payload)[:2000]


class WorkflowOrchestrator:
    """Drives one conversation's workflow against the tool server."""

    def __init__(
        self,
        projects: ProjectRegistry,
        sessions: WorkflowSessionRepository,
        tool_server: ToolServerPort,
        allow_regenerate_diff: bool = False,
    ) -> None:
        self._projects = projects
        self._sessions = sessions
        self._tool_server = tool_server
        self._allow_regenerate_diff = allow_regenerate_diff

    # -- transitions ---------------------------------------------------------

    async def start_change(
        self, user_id: object, conversation_id: object, requirement: str
    ) -> AnalysisOutcome:
        """Idle -> Analyzed via analyze_change_plan."""
        session = self._sessions.get(user_id, conversation_id)
        requirement = (requirement or "").strip()
        project = self._projects.get_active(user_id)
        try:
            if project is None:
                raise PreconditionViolation(
                    operation=START_CHANGE,
                    step=session.step.value,
                    reason="no_active_project",
                    expected_next="set_active_project",
                )
            if not requirement:
                raise PreconditionViolation(
                    operation=START_CHANGE,
                    step=session.step.value,
                    reason="empty_requirement",
                    expected_next=START_CHANGE,
                )
            self._guard(session, START_CHANGE)
        except PreconditionViolation as e:
            return self._rejected(AnalysisOutcome, session, e)

        result, stale = await self._invoke(
            session,
            START_CHANGE,
            ANALYZE_TOOL,
            {"projectPath": project.path, "requirement": requirement},
        )
        if stale:
            return self._discarded(AnalysisOutcome, session, START_CHANGE, user_id, conversation_id)

        plan = self._verified_payload(START_CHANGE, ANALYZE_TOOL, result)
        if plan is None:
            return self._failed(AnalysisOutcome, session, START_CHANGE, result, project_alias=project.alias)

        session.mark_analyzed(project.path, requirement, plan)
        logger.info(
            "Change plan stored for user=%s conversation=%s project=%s",
            user_id, conversation_id, project.alias,
        )
        return AnalysisOutcome(
            operation=START_CHANGE,
            status=OutcomeStatus.OK,
            step=session.step,
            expected_next=PREVIEW,
            project_alias=project.alias,
            requirement=requirement,
            summary=_optional_str(plan.get("summary")),
            files=_string_list(plan.get("files")),
            modules=_string_list(plan.get("modules")),
            estimated_complexity=_optional_str(plan.get("estimatedComplexity")),
        )

    async def preview(self, user_id: object, conversation_id: object) -> PreviewOutcome:
        """Analyzed -> DiffGenerated via generate_code_diff (dry run)."""
        session = self._sessions.get(user_id, conversation_id)
        try:
            self._guard(session, PREVIEW)
        except PreconditionViolation as e:
            return self._rejected(PreviewOutcome, session, e)

        result, stale = await self._invoke(
            session,
            PREVIEW,
            DIFF_TOOL,
            {"projectPath": session.project_path, "requirement": session.requirement, "dryRun": True},
        )
        if stale:
            return self._discarded(PreviewOutcome, session, PREVIEW, user_id, conversation_id)

        payload = self._verified_payload(PREVIEW, DIFF_TOOL, result)
        diff = payload.get("diff") if payload is not None else None
        if not isinstance(diff, str) or not diff.strip():
            if payload is not None:
                logger.error("%s succeeded without a diff: %s", DIFF_TOOL, _log_payload(payload))
            return self._failed(PreviewOutcome, session, PREVIEW, result)

        session.mark_diff_generated(diff)
        logger.info("Diff stored for user=%s conversation=%s", user_id, conversation_id)
        return PreviewOutcome(
            operation=PREVIEW,
            status=OutcomeStatus.OK,
            step=session.step,
            expected_next=APPLY,
            diff=diff,
            changed_files=changed_files(diff),
        )

    async def apply(self, user_id: object, conversation_id: object) -> ApplyOutcome:
        """DiffGenerated -> Idle via apply_code_diff."""
        session = self._sessions.get(user_id, conversation_id)
        try:
            self._guard(session, APPLY)
        except PreconditionViolation as e:
            return self._rejected(ApplyOutcome, session, e)

        result, stale = await self._invoke(
            session,
            APPLY,
            APPLY_TOOL,
            {"projectPath": session.project_path, "diff": session.diff},
        )
        if stale:
            return self._discarded(ApplyOutcome, session, APPLY, user_id, conversation_id)

        payload = self._verified_payload(APPLY, APPLY_TOOL, result)
        if payload is None:
            return self._failed(ApplyOutcome, session, APPLY, result)

        session.clear()
        logger.info("Diff applied and session cleared for user=%s conversation=%s", user_id, conversation_id)
        return ApplyOutcome(
            operation=APPLY,
            status=OutcomeStatus.OK,
            step=session.step,
            expected_next=START_CHANGE,
            applied_files=_string_list(payload.get("appliedFiles")),
            summary=_optional_str(payload.get("summary")),
        )

    def cancel(self, user_id: object, conversation_id: object) -> CancelOutcome:
        """Any step -> Idle. Does not interrupt a running tool call."""
        session = self._sessions.get(user_id, conversation_id)
        if session.step is Step.IDLE and session.pending is None:
            return CancelOutcome(
                operation=CANCEL,
                status=OutcomeStatus.OK,
                step=session.step,
                reason="nothing_to_cancel",
                message=_MESSAGES["nothing_to_cancel"],
                expected_next=START_CHANGE,
                cancelled=False,
            )
        previous = session.step
        session.clear()
        logger.info(
            "Flow cancelled for user=%s conversation=%s (was %s)",
            user_id, conversation_id, previous.value,
        )
        return CancelOutcome(
            operation=CANCEL,
            status=OutcomeStatus.OK,
            step=session.step,
            expected_next=START_CHANGE,
            cancelled=True,
        )

    # -- queries -------------------------------------------------------------

    def status(self, user_id: object, conversation_id: object) -> StatusOutcome:
        session = self._sessions.get(user_id, conversation_id)
        project = self._projects.get_active(user_id)
        return StatusOutcome(
            operation=STATUS,
            status=OutcomeStatus.OK,
            step=session.step,
            expected_next=NEXT_OPERATION[session.step],
            project_alias=project.alias if project else None,
            project_path=session.project_path,
            requirement=session.requirement,
            has_plan=session.change_plan is not None,
            has_diff=session.diff is not None,
            pending=session.pending,
        )

    async def structure_requirement(self, requirement_text: str) -> RequirementOutcome:
        """Stateless requirement analysis; does not touch any session."""
        text = (requirement_text or "").strip()
        if not text:
            return RequirementOutcome(
                operation=STRUCTURE_REQUIREMENT,
                status=OutcomeStatus.REJECTED,
                step=Step.IDLE,
                reason="empty_requirement",
                message=_MESSAGES["empty_requirement"],
            )
        result = await self._tool_server.call(REQUIREMENT_TOOL, {"requirementText": text})
        if isinstance(result, ToolFailure):
            logger.error("%s failed (%s): %s", REQUIREMENT_TOOL, result.reason.value, result.message)
            return RequirementOutcome(
                operation=STRUCTURE_REQUIREMENT,
                status=OutcomeStatus.FAILED,
                step=Step.IDLE,
                reason=_FAILURE_REASONS[result.reason],
                message=_FAILURES[STRUCTURE_REQUIREMENT],
            )
        return RequirementOutcome(
            operation=STRUCTURE_REQUIREMENT,
            status=OutcomeStatus.OK,
            step=Step.IDLE,
            content=result.payload,
        )

    # -- internals -----------------------------------------------------------

    def _allowed_steps(self, operation: str) -> set[Step]:
        if operation == START_CHANGE:
            return {Step.IDLE}
        if operation == PREVIEW:
            if self._allow_regenerate_diff:
                return {Step.ANALYZED, Step.DIFF_GENERATED}
            return {Step.ANALYZED}
        if operation == APPLY:
            return {Step.DIFF_GENERATED}
        raise ValueError(f"Unknown workflow operation: {operation}")

    def _guard(self, session: WorkflowSession, operation: str) -> None:
        """Raise PreconditionViolation unless ``operation`` may run now."""
        step = session.step
        if session.pending is not None:
            raise PreconditionViolation(
                operation=operation,
                step=step.value,
                reason="operation_in_progress",
            )
        if step not in self._allowed_steps(operation):
            raise PreconditionViolation(
                operation=operation,
                step=step.value,
                reason=_REJECTIONS[(operation, step)],
                expected_next=NEXT_OPERATION[step],
            )
        # artifacts must match the step; a mismatch means the session was tampered with
        if operation == PREVIEW and (session.requirement is None or session.change_plan is None):
            raise PreconditionViolation(
                operation=operation, step=step.value, reason="run_start_change_first", expected_next=START_CHANGE
            )
        if operation == APPLY and not session.diff:
            raise PreconditionViolation(
                operation=operation, step=step.value, reason="run_preview_first", expected_next=PREVIEW
            )

    async def _invoke(
        self,
        session: WorkflowSession,
        operation: str,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> tuple[ToolCallResult, bool]:
        """Call a tool on behalf of a session; report whether the result is stale."""
        token = session.begin(operation)
        try:
            result = await self._tool_server.call(tool_name, arguments)
        finally:
            stale = not session.is_current(token)
            session.finish(token)
        return result, stale

    def _verified_payload(self, operation: str, tool_name: str, result: ToolCallResult) -> dict[str, Any] | None:
        if isinstance(result, ToolFailure):
            logger.error("%s: %s failed (%s): %s", operation, tool_name, result.reason.value, result.message)
            return None
        payload = result.payload
        if not isinstance(payload, dict) or payload.get("success") is not True:
            logger.error("%s: %s reported failure: %s", operation, tool_name, _log_payload(payload))
            return None
        return payload

    @staticmethod
    def _rejected(outcome_type: type[O], session: WorkflowSession, error: PreconditionViolation) -> O:
        logger.info("Rejected %s in step %s: %s", error.operation, error.step, error.reason)
        return outcome_type(
            operation=error.operation,
            status=OutcomeStatus.REJECTED,
            step=session.step,
            reason=error.reason,
            message=_MESSAGES.get(error.reason, str(error)),
            expected_next=error.expected_next,
        )

    @staticmethod
    def _failed(
        outcome_type: type[O],
        session: WorkflowSession,
        operation: str,
        result: ToolCallResult,
        **extra: Any,
    ) -> O:
        reason = _FAILURE_REASONS[result.reason] if isinstance(result, ToolFailure) else "operation_failed"
        return outcome_type(
            operation=operation,
            status=OutcomeStatus.FAILED,
            step=session.step,
            reason=reason,
            message=_FAILURES[operation],
            expected_next=NEXT_OPERATION[session.step],
            **extra,
        )

    @staticmethod
    def _discarded(
        outcome_type: type[O],
        session: WorkflowSession,
        operation: str,
        user_id: object,
        conversation_id: object,
    ) -> O:
        logger.info(
            "Discarding %s result for user=%s conversation=%s: session was reset meanwhile",
            operation, user_id, conversation_id,
        )
        return outcome_type(
            operation=operation,
            status=OutcomeStatus.DISCARDED,
            step=session.step,
            reason="cancelled",
            message=_MESSAGES["cancelled"],
            expected_next=NEXT_OPERATION[session.step],
        )
