"""Workflow API routes - the change -> preview -> apply flow over HTTP."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from diffpilot.api.dependencies import get_orchestrator, limiter, rate_limit
from diffpilot.application.workflow.dto import OutcomeStatus, WorkflowOutcome
from diffpilot.application.workflow.use_case import WorkflowOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow", tags=["workflow"])


class ChangeRequest(BaseModel):
    """Request to start a change."""
    requirement: str


def _respond(outcome: WorkflowOutcome) -> dict:
    """Outcome as JSON; rejections and failures become HTTP errors."""
    if outcome.status is OutcomeStatus.OK:
        return outcome.model_dump(mode="json")
    detail = {
        "operation": outcome.operation,
        "status": outcome.status.value,
        "step": outcome.step.value,
        "reason": outcome.reason,
        "message": outcome.message,
        "expected_next": outcome.expected_next,
    }
    if outcome.status in (OutcomeStatus.REJECTED, OutcomeStatus.DISCARDED):
        raise HTTPException(status_code=409, detail=detail)
    if outcome.reason == "tool_timeout":
        raise HTTPException(status_code=504, detail=detail)
    raise HTTPException(status_code=502, detail=detail)


@router.get("/{user_id}/{conversation_id}")
@limiter.limit(rate_limit)
async def workflow_status(
    request: Request,
    user_id: str,
    conversation_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Current step, requirement and next expected operation."""
    return _respond(orchestrator.status(user_id, conversation_id))


@router.post("/{user_id}/{conversation_id}/change")
@limiter.limit(rate_limit)
async def start_change(
    request: Request,
    user_id: str,
    conversation_id: str,
    body: ChangeRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Analyze a requirement against the user's active project."""
    return _respond(await orchestrator.start_change(user_id, conversation_id, body.requirement))


@router.post("/{user_id}/{conversation_id}/preview")
@limiter.limit(rate_limit)
async def preview(
    request: Request,
    user_id: str,
    conversation_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Generate the diff without applying it."""
    return _respond(await orchestrator.preview(user_id, conversation_id))


@router.post("/{user_id}/{conversation_id}/apply")
@limiter.limit(rate_limit)
async def apply(
    request: Request,
    user_id: str,
    conversation_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Apply the previewed diff."""
    return _respond(await orchestrator.apply(user_id, conversation_id))


@router.post("/{user_id}/{conversation_id}/cancel")
@limiter.limit(rate_limit)
async def cancel(
    request: Request,
    user_id: str,
    conversation_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Drop the conversation's flow."""
    return _respond(orchestrator.cancel(user_id, conversation_id))
