"""
Caelex Compliance Core - Authorization Service

Orchestrates the authorization workflow: loads the workflow, derives the
context, asks the engine what to do and persists the outcome.

Every status write is a compare-and-swap on the status the engine was given,
so two concurrent transitions on the same workflow cannot both succeed.
Lifecycle timestamps (started_at, submitted_at, approved_at, rejected_at) are
written only when still unset.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from services.app_config import MAX_AUTO_TRANSITIONS
from services.audit import AuditLogger
from services.authorization_context import (
    AuthorizationContext,
    build_context,
    build_context_from_record,
)
from services.authorization_workflow import (
    AUTHORIZATION_WORKFLOW,
    STATE_TIMESTAMP_FIELDS,
    AuthorizationEvent,
    AuthorizationStatus,
    get_authorization_progress,
    get_authorization_status_info,
)
from services.repository import ComplianceRepository
from services.workflow_engine import (
    AvailableTransition,
    EvaluationResult,
    TransitionResult,
    WorkflowEngine,
    create_workflow_engine,
)

logger = logging.getLogger(__name__)

WORKFLOW_NOT_FOUND = "Workflow not found"
UNAUTHORIZED = "Unauthorized"
CONCURRENT_UPDATE = "Workflow status changed concurrently"
UNKNOWN_STATE = "unknown"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class WorkflowEvaluation:
    """Auto-transition outcome plus the context it was evaluated against."""
    result: EvaluationResult
    context: Optional[AuthorizationContext] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        data["context"] = self.context.to_dict() if self.context else None
        return data


@dataclass
class ManualTransitionOutcome:
    result: TransitionResult
    context: Optional[AuthorizationContext] = None

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def error(self) -> Optional[str]:
        return self.result.error

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        data["context"] = self.context.to_dict() if self.context else None
        return data


@dataclass
class WorkflowSummary:
    id: str
    status: str
    status_info: Dict[str, str]
    progress: int
    context: AuthorizationContext
    available_transitions: List[AvailableTransition] = field(default_factory=list)
    is_terminal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "status_info": dict(self.status_info),
            "progress": self.progress,
            "context": self.context.to_dict(),
            "available_transitions": [t.to_dict() for t in self.available_transitions],
            "is_terminal": self.is_terminal,
        }


def lifecycle_timestamp_updates(
    workflow: Dict[str, Any],
    entered_states: Iterable[str],
    timestamp: datetime,
) -> Dict[str, str]:
    """Timestamp fields to set for the entered states, skipping any already set."""
    updates: Dict[str, str] = {}
    for state in entered_states:
        field_name = STATE_TIMESTAMP_FIELDS.get(state)
        if field_name and not workflow.get(field_name) and field_name not in updates:
            updates[field_name] = timestamp.isoformat()
    return updates


def _failed_transition(event: str, error: str, state: str = UNKNOWN_STATE) -> TransitionResult:
    return TransitionResult(
        success=False,
        previous_state=state,
        current_state=state,
        transition_event=event,
        timestamp=datetime.now(timezone.utc),
        error=error,
    )


# =============================================================================
# SERVICE
# =============================================================================

class AuthorizationService:
    """
    Authorization workflow operations over a ComplianceRepository.

    Args:
        repository: persistence collaborator
        audit_logger: optional fire-and-forget audit sink
        engine: workflow engine; defaults to the EU Space Act definition
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        audit_logger: Optional[AuditLogger] = None,
        engine: Optional[WorkflowEngine] = None,
    ):
        self.repository = repository
        self.audit_logger = audit_logger
        self.engine = engine or create_workflow_engine(
            AUTHORIZATION_WORKFLOW, max_auto_transitions=MAX_AUTO_TRANSITIONS
        )

    def _audit(self, **kwargs) -> None:
        if self.audit_logger is not None:
            self.audit_logger.log_event(entity_type="workflow", **kwargs)

    async def build_authorization_context(self, workflow_id: str) -> Optional[AuthorizationContext]:
        return await build_context(self.repository, workflow_id)

    # -------------------------------------------------------------------------
    # Auto-transitions
    # -------------------------------------------------------------------------

    async def evaluate_workflow_transitions(self, workflow_id: str) -> WorkflowEvaluation:
        """
        Apply every eligible auto-transition and persist the final state.

        Returns transitioned=False with an error when the workflow is missing
        or another writer changed its status first.
        """
        workflow = await self.repository.get_workflow(workflow_id)
        if workflow is None:
            return WorkflowEvaluation(EvaluationResult(
                transitioned=False, transitions=[], final_state=UNKNOWN_STATE,
                errors=[WORKFLOW_NOT_FOUND],
            ))

        context = build_context_from_record(workflow)
        status = workflow["status"]
        result = self.engine.evaluate_transitions(status, context)

        if not result.transitioned or result.final_state == status:
            return WorkflowEvaluation(result, context)

        updates: Dict[str, Any] = {"status": result.final_state}
        updates.update(lifecycle_timestamp_updates(
            workflow,
            [t.current_state for t in result.transitions],
            result.transitions[-1].timestamp,
        ))

        written = await self.repository.update_workflow_status(workflow_id, status, updates)
        if not written:
            return WorkflowEvaluation(EvaluationResult(
                transitioned=False, transitions=[], final_state=status,
                errors=[CONCURRENT_UPDATE],
            ), context)

        logger.info(
            "Workflow %s auto-transitioned: %s -> %s (%d steps)",
            workflow_id, status, result.final_state, len(result.transitions)
        )
        self._audit(
            user_id=context.user_id,
            action="workflow_status_changed",
            entity_id=workflow_id,
            previous_value={"status": status},
            new_value={
                "status": result.final_state,
                "transitions": [
                    {"from": t.previous_state, "to": t.current_state, "event": t.transition_event}
                    for t in result.transitions
                ],
            },
            description=f"Workflow auto-transitioned: {status} -> {result.final_state}",
        )
        return WorkflowEvaluation(result, context)

    # -------------------------------------------------------------------------
    # Manual transitions
    # -------------------------------------------------------------------------

    async def get_available_transitions(self, workflow_id: str) -> List[AvailableTransition]:
        workflow = await self.repository.get_workflow(workflow_id)
        if workflow is None:
            return []
        context = build_context_from_record(workflow)
        return self.engine.get_available_transitions(workflow["status"], context)

    async def execute_manual_transition(
        self,
        workflow_id: str,
        event: str,
        user_id: str,
        additional_data: Optional[Dict[str, Any]] = None,
    ) -> ManualTransitionOutcome:
        """
        Fire a manual event on behalf of user_id.

        Only the workflow owner may transition it. On reject, a
        rejection_reason in additional_data is stored on the workflow.
        """
        workflow = await self.repository.get_workflow(workflow_id)
        if workflow is None:
            return ManualTransitionOutcome(_failed_transition(event, WORKFLOW_NOT_FOUND))

        context = build_context_from_record(workflow)
        if context.user_id != user_id:
            logger.warning(
                "Unauthorized transition attempt: workflow=%s, event=%s, user=%s",
                workflow_id, event, user_id
            )
            return ManualTransitionOutcome(_failed_transition(event, UNAUTHORIZED), context)

        status = workflow["status"]
        result = self.engine.execute_transition(status, event, context)
        if not result.success:
            return ManualTransitionOutcome(result, context)

        additional_data = additional_data or {}
        updates: Dict[str, Any] = {"status": result.current_state}
        updates.update(lifecycle_timestamp_updates(workflow, [result.current_state], result.timestamp))
        if result.current_state == AuthorizationStatus.REJECTED.value and additional_data.get("rejection_reason"):
            updates["rejection_reason"] = additional_data["rejection_reason"]

        written = await self.repository.update_workflow_status(workflow_id, status, updates)
        if not written:
            return ManualTransitionOutcome(_failed_transition(event, CONCURRENT_UPDATE, status), context)

        self._audit(
            user_id=user_id,
            action=f"workflow_{event}",
            entity_id=workflow_id,
            previous_value={"status": result.previous_state},
            new_value={"status": result.current_state, **additional_data},
            description=(
                f"Workflow transition: {result.previous_state} -> "
                f"{result.current_state} ({event})"
            ),
        )
        return ManualTransitionOutcome(result, context)

    async def submit_workflow_to_nca(self, workflow_id: str, user_id: str) -> ManualTransitionOutcome:
        """Settle auto-transitions first so a ready workflow can be submitted."""
        await self.evaluate_workflow_transitions(workflow_id)
        return await self.execute_manual_transition(workflow_id, AuthorizationEvent.SUBMIT.value, user_id)

    async def withdraw_workflow(
        self,
        workflow_id: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> ManualTransitionOutcome:
        return await self.execute_manual_transition(
            workflow_id, AuthorizationEvent.WITHDRAW.value, user_id,
            {"withdrawal_reason": reason},
        )

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    async def get_workflow_summary(self, workflow_id: str) -> Optional[WorkflowSummary]:
        workflow = await self.repository.get_workflow(workflow_id)
        if workflow is None:
            return None

        context = build_context_from_record(workflow)
        status = workflow["status"]
        return WorkflowSummary(
            id=workflow["id"],
            status=status,
            status_info=get_authorization_status_info(status),
            progress=get_authorization_progress(status),
            context=context,
            available_transitions=self.engine.get_available_transitions(status, context),
            is_terminal=self.engine.is_terminal_state(status),
        )
