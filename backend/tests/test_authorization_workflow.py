"""
Tests for the EU Space Act authorization workflow definition and the
authorization context builder.
"""
import pytest
from datetime import datetime, timezone

from services.authorization_context import (
    AuthorizationContext,
    build_context,
    build_context_from_record,
    parse_timestamp,
)
from services.authorization_workflow import (
    AUTHORIZATION_STATE_ORDER,
    AUTHORIZATION_WORKFLOW,
    AuthorizationEvent,
    AuthorizationStatus,
    get_authorization_progress,
    get_authorization_status_info,
    is_authorization_terminal,
)
from services.workflow_engine import WorkflowConfigurationError, WorkflowEngine
from unittest.mock import AsyncMock, MagicMock


def _doc(status, required=True, doc_type="doc"):
    return {"document_type": doc_type, "name": doc_type, "status": status, "required": required}


def _workflow(documents, status="not_started", **extra):
    record = {
        "id": "wf-1",
        "user_id": "user-1",
        "operator_type": "SCO",
        "primary_nca": "DE_BMWK",
        "status": status,
        "documents": documents,
    }
    record.update(extra)
    return record


def _context(**overrides):
    values = dict(
        workflow_id="wf-1", user_id="user-1", operator_type="SCO", primary_nca="DE_BMWK",
        total_documents=0, ready_documents=0, mandatory_documents=0, mandatory_ready=0,
        completeness_percentage=0, all_mandatory_complete=True, has_blockers=False,
    )
    values.update(overrides)
    return AuthorizationContext(**values)


@pytest.fixture
def engine():
    return WorkflowEngine(AUTHORIZATION_WORKFLOW)


# =============================================================================
# CONTEXT BUILDER
# =============================================================================

class TestContextBuilder:
    """Counts and flags derived from the workflow's documents."""

    def test_half_of_mandatory_ready(self):
        ctx = build_context_from_record(_workflow([
            _doc("ready"), _doc("approved"), _doc("in_progress"), _doc("not_started"),
            _doc("ready", required=False),
        ]))
        assert ctx.total_documents == 5
        assert ctx.ready_documents == 3
        assert ctx.mandatory_documents == 4
        assert ctx.mandatory_ready == 2
        assert ctx.completeness_percentage == 50
        assert ctx.all_mandatory_complete is False
        assert ctx.has_blockers is False

    def test_no_mandatory_uses_overall_ratio(self):
        ctx = build_context_from_record(_workflow([
            _doc("submitted", required=False),
            _doc("in_progress", required=False),
            _doc("not_started", required=False),
        ]))
        # 1/3 rounds to 33
        assert ctx.completeness_percentage == 33
        assert ctx.all_mandatory_complete is True

    def test_half_rounds_up(self):
        ctx = build_context_from_record(_workflow([
            _doc("ready"), _doc("in_progress"),
            _doc("ready", required=False), _doc("ready", required=False),
            _doc("ready", required=False), _doc("ready", required=False),
            _doc("ready", required=False), _doc("ready", required=False),
        ]))
        assert ctx.completeness_percentage == 50

        ctx = build_context_from_record(_workflow(
            [_doc("ready")] + [_doc("in_progress")] * 7
        ))
        # 12.5 -> 13
        assert ctx.completeness_percentage == 13

    def test_empty_workflow_is_vacuously_complete(self):
        ctx = build_context_from_record(_workflow([]))
        assert ctx.completeness_percentage == 0
        assert ctx.all_mandatory_complete is True
        assert ctx.has_blockers is False

    @pytest.mark.parametrize("status", ["rejected", "blocked"])
    def test_blockers(self, status):
        ctx = build_context_from_record(_workflow([_doc("ready"), _doc(status, required=False)]))
        assert ctx.has_blockers is True

    def test_timestamps_parsed(self):
        ctx = build_context_from_record(_workflow(
            [], started_at="2026-03-01T10:00:00+00:00", target_submission="2026-06-01T00:00:00Z",
        ))
        assert ctx.started_at == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)
        assert ctx.target_submission == datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert ctx.submitted_at is None
        assert ctx.to_dict()["started_at"] == "2026-03-01T10:00:00+00:00"

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2026-01-01T00:00:00").tzinfo == timezone.utc
        assert parse_timestamp(None) is None

    @pytest.mark.asyncio
    async def test_build_context_missing_workflow(self):
        repository = MagicMock()
        repository.get_workflow = AsyncMock(return_value=None)
        assert await build_context(repository, "missing") is None

    @pytest.mark.asyncio
    async def test_build_context_loads_workflow(self):
        repository = MagicMock()
        repository.get_workflow = AsyncMock(return_value=_workflow([_doc("ready")]))
        ctx = await build_context(repository, "wf-1")
        assert ctx.workflow_id == "wf-1"
        assert ctx.all_mandatory_complete is True
        repository.get_workflow.assert_awaited_once_with("wf-1")


# =============================================================================
# WORKFLOW DEFINITION
# =============================================================================

class TestAuthorizationDefinition:

    def test_definition_is_valid(self, engine):
        assert engine.get_definition().initial_state == AuthorizationStatus.NOT_STARTED.value
        assert set(engine.get_all_states()) == {s.value for s in AuthorizationStatus}

    def test_terminal_states(self, engine):
        assert set(engine.get_terminal_states()) == {"approved", "rejected", "withdrawn"}

    def test_first_ready_document_starts_workflow(self, engine):
        ctx = _context(total_documents=3, ready_documents=1, mandatory_documents=3,
                       mandatory_ready=1, all_mandatory_complete=False)
        result = engine.evaluate_transitions("not_started", ctx)
        assert result.final_state == "in_progress"
        assert [t.transition_event for t in result.transitions] == ["start"]

    def test_complete_workflow_chains_to_ready(self, engine):
        ctx = _context(total_documents=2, ready_documents=2, mandatory_documents=2,
                       mandatory_ready=2, completeness_percentage=100)
        result = engine.evaluate_transitions("not_started", ctx)
        assert result.final_state == "ready_for_submission"
        assert [t.transition_event for t in result.transitions] == ["start", "complete"]

    def test_no_documents_stays_not_started(self, engine):
        result = engine.evaluate_transitions("not_started", _context())
        assert result.transitioned is False

    def test_blocker_regresses_ready_workflow(self, engine):
        ctx = _context(total_documents=2, ready_documents=1, mandatory_documents=2,
                       mandatory_ready=1, all_mandatory_complete=False, has_blockers=True)
        result = engine.evaluate_transitions("ready_for_submission", ctx)
        assert result.final_state == "in_progress"
        assert result.transitions[0].transition_event == "incomplete"

    def test_submit_requires_complete_documents(self, engine):
        ctx = _context(total_documents=2, ready_documents=1, mandatory_documents=2,
                       mandatory_ready=1, all_mandatory_complete=False)
        result = engine.execute_transition("ready_for_submission", AuthorizationEvent.SUBMIT.value, ctx)
        assert result.success is False
        assert "mandatory" in result.error

    def test_submit_when_complete(self, engine):
        ctx = _context(total_documents=1, ready_documents=1, mandatory_documents=1, mandatory_ready=1)
        result = engine.execute_transition("ready_for_submission", "submit", ctx)
        assert result.success is True
        assert result.current_state == "submitted"

    @pytest.mark.parametrize("source,event,target", [
        ("not_started", "manual_start", "in_progress"),
        ("submitted", "review", "under_review"),
        ("submitted", "request_info", "in_progress"),
        ("under_review", "approve", "approved"),
        ("under_review", "reject", "rejected"),
        ("rejected", "appeal", "under_review"),
        ("rejected", "resubmit", "not_started"),
        ("withdrawn", "restart", "not_started"),
        ("in_progress", "withdraw", "withdrawn"),
    ])
    def test_manual_transitions(self, engine, source, event, target):
        result = engine.execute_transition(source, event, _context())
        assert result.success is True
        assert result.current_state == target

    def test_approved_has_no_exits(self, engine):
        assert engine.get_available_transitions("approved", _context()) == []

    def test_every_reachable_context_has_at_most_one_auto_transition(self, engine):
        """No combination of guard inputs makes two auto-transitions eligible."""
        for total, ready in [(0, 0), (1, 0), (1, 1), (3, 2)]:
            for complete in (True, False):
                for blockers in (True, False):
                    ctx = _context(total_documents=total, ready_documents=ready,
                                   all_mandatory_complete=complete, has_blockers=blockers)
                    for state in engine.get_all_states():
                        engine.evaluate_transitions(state, ctx)

    def test_conflicting_definition_would_be_rejected(self):
        """Sanity check that the engine catches conflicts in authorization-shaped tables."""
        from services.workflow_engine import TransitionDefinition, WorkflowDefinition
        broken = WorkflowDefinition(
            id="broken", name="Broken", version="0", initial_state="not_started",
            states=AUTHORIZATION_WORKFLOW.states,
            transitions=AUTHORIZATION_WORKFLOW.transitions + (
                TransitionDefinition("not_started", "withdrawn", guard=lambda c: c.total_documents > 0),
            ),
        )
        ctx = _context(total_documents=1, ready_documents=1, mandatory_documents=1, mandatory_ready=1)
        with pytest.raises(WorkflowConfigurationError):
            WorkflowEngine(broken).evaluate_transitions("not_started", ctx)


# =============================================================================
# DISPLAY HELPERS
# =============================================================================

class TestDisplayHelpers:

    def test_status_info(self):
        info = get_authorization_status_info("ready_for_submission")
        assert info == {
            "label": "Ready for Submission",
            "color": "#22C55E",
            "icon": "CheckCircle",
            "phase": "pre_authorization",
        }

    def test_status_info_fallback(self):
        info = get_authorization_status_info("mystery")
        assert info["label"] == "mystery"
        assert info["icon"] == "Circle"
        assert info["phase"] == "unknown"

    @pytest.mark.parametrize("status,progress", [
        ("not_started", 0),
        ("in_progress", 20),
        ("ready_for_submission", 40),
        ("submitted", 60),
        ("under_review", 80),
        ("approved", 100),
        ("rejected", 0),
        ("withdrawn", 0),
    ])
    def test_progress(self, status, progress):
        assert get_authorization_progress(status) == progress

    def test_state_order_is_happy_path(self):
        assert AUTHORIZATION_STATE_ORDER[0] == "not_started"
        assert AUTHORIZATION_STATE_ORDER[-1] == "approved"

    def test_terminal_helper(self):
        assert is_authorization_terminal("withdrawn") is True
        assert is_authorization_terminal("submitted") is False
        assert is_authorization_terminal("mystery") is False
