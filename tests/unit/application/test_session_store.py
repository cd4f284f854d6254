"""Tests for WorkflowSessionRepository."""

from diffpilot.application.workflow.session_store import WorkflowSessionRepository
from diffpilot.domain.entities.workflow_session import SessionKey, Step


def test_get_creates_idle_session():
    repo = WorkflowSessionRepository()
    session = repo.get("u1", "c1")

    assert session.step is Step.IDLE
    assert SessionKey.of("u1", "c1") in repo
    assert len(repo) == 1


def test_get_returns_same_session():
    repo = WorkflowSessionRepository()
    assert repo.get("u1", "c1") is repo.get("u1", "c1")


def test_int_and_str_ids_address_the_same_session():
    repo = WorkflowSessionRepository()
    assert repo.get(7, 7) is repo.get("7", "7")


def test_sessions_are_isolated_per_conversation():
    repo = WorkflowSessionRepository()
    first = repo.get("u1", "c1")
    first.mark_analyzed("/srv/web", "req", {"success": True})

    assert repo.get("u1", "c2").step is Step.IDLE
    assert repo.get("u2", "c1").step is Step.IDLE


def test_clear_resets_in_place():
    repo = WorkflowSessionRepository()
    session = repo.get("u1", "c1")
    session.mark_analyzed("/srv/web", "req", {"success": True})

    cleared = repo.clear("u1", "c1")

    assert cleared is session
    assert session.step is Step.IDLE
    assert list(repo) == [SessionKey("u1", "c1")]
