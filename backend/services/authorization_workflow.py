"""
Caelex Compliance Core - EU Space Act Authorization Workflow Definition

States:
- not_started: workflow created, no documents ready
- in_progress: documents being prepared
- ready_for_submission: all mandatory documents ready, no blockers
- submitted: application submitted to the NCA
- under_review: NCA reviewing the application
- approved / rejected: NCA decision (terminal)
- withdrawn: operator withdrew the application (terminal)

Auto-transitions:
- not_started -> in_progress: first document uploaded and ready
- in_progress -> ready_for_submission: all mandatory docs complete, no blockers
- ready_for_submission -> in_progress: a mandatory doc regressed or a blocker appeared
"""

from enum import Enum
from typing import Dict, List

from services.authorization_context import AuthorizationContext
from services.workflow_engine import (
    StateDefinition,
    StateMetadata,
    TransitionDefinition,
    WorkflowDefinition,
)


# =============================================================================
# STATES & EVENTS
# =============================================================================

class AuthorizationStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    READY_FOR_SUBMISSION = "ready_for_submission"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class AuthorizationEvent(str, Enum):
    """Manually triggered events."""
    MANUAL_START = "manual_start"
    WITHDRAW = "withdraw"
    SUBMIT = "submit"
    REVIEW = "review"
    REQUEST_INFO = "request_info"
    APPROVE = "approve"
    REJECT = "reject"
    APPEAL = "appeal"
    RESUBMIT = "resubmit"
    RESTART = "restart"


# =============================================================================
# GUARDS
# =============================================================================

def has_ready_documents(ctx: AuthorizationContext) -> bool:
    return ctx.total_documents > 0 and ctx.ready_documents > 0


def is_submittable(ctx: AuthorizationContext) -> bool:
    return ctx.all_mandatory_complete and not ctx.has_blockers


def is_not_submittable(ctx: AuthorizationContext) -> bool:
    return not is_submittable(ctx)


# =============================================================================
# DEFINITION
# =============================================================================

S = AuthorizationStatus
E = AuthorizationEvent

_STATES = (
    StateDefinition(
        S.NOT_STARTED.value, "Not Started",
        "Authorization workflow created but no documents uploaded",
        StateMetadata(color="#6B7280", icon="Circle", phase="pre_authorization"),
    ),
    StateDefinition(
        S.IN_PROGRESS.value, "In Progress",
        "Documents being prepared, not all mandatory documents complete",
        StateMetadata(color="#3B82F6", icon="Clock", phase="pre_authorization"),
    ),
    StateDefinition(
        S.READY_FOR_SUBMISSION.value, "Ready for Submission",
        "All mandatory documents ready, can submit to NCA",
        StateMetadata(color="#22C55E", icon="CheckCircle", phase="pre_authorization"),
    ),
    StateDefinition(
        S.SUBMITTED.value, "Submitted",
        "Application submitted to National Competent Authority",
        StateMetadata(color="#8B5CF6", icon="Send", phase="under_review"),
    ),
    StateDefinition(
        S.UNDER_REVIEW.value, "Under Review",
        "NCA actively reviewing the application",
        StateMetadata(color="#F59E0B", icon="Eye", phase="under_review"),
    ),
    StateDefinition(
        S.APPROVED.value, "Approved",
        "Authorization granted by NCA",
        StateMetadata(color="#22C55E", icon="CheckCircle2", phase="authorized", is_terminal=True),
    ),
    StateDefinition(
        S.REJECTED.value, "Rejected",
        "Authorization denied by NCA",
        StateMetadata(color="#EF4444", icon="XCircle", phase="closed", is_terminal=True),
    ),
    StateDefinition(
        S.WITHDRAWN.value, "Withdrawn",
        "Application withdrawn by operator",
        StateMetadata(color="#6B7280", icon="MinusCircle", phase="closed", is_terminal=True),
    ),
)

# Format: (source, event or None for auto, guard, target)
_TRANSITIONS = (
    # not_started
    TransitionDefinition(S.NOT_STARTED.value, S.IN_PROGRESS.value, guard=has_ready_documents,
                         name="start", description="First document uploaded or started"),
    TransitionDefinition(S.NOT_STARTED.value, S.IN_PROGRESS.value, event=E.MANUAL_START.value,
                         description="Manually start the workflow"),

    # in_progress
    TransitionDefinition(S.IN_PROGRESS.value, S.READY_FOR_SUBMISSION.value, guard=is_submittable,
                         name="complete", description="All mandatory documents ready and no blockers"),
    TransitionDefinition(S.IN_PROGRESS.value, S.WITHDRAWN.value, event=E.WITHDRAW.value,
                         description="Withdraw the application"),

    # ready_for_submission
    TransitionDefinition(S.READY_FOR_SUBMISSION.value, S.IN_PROGRESS.value, guard=is_not_submittable,
                         name="incomplete",
                         description="Mandatory document became incomplete or new blocker detected"),
    TransitionDefinition(S.READY_FOR_SUBMISSION.value, S.SUBMITTED.value, event=E.SUBMIT.value,
                         guard=is_submittable, description="Submit application to NCA",
                         guard_failure_message="Not all mandatory documents are ready or a blocker remains"),
    TransitionDefinition(S.READY_FOR_SUBMISSION.value, S.WITHDRAWN.value, event=E.WITHDRAW.value,
                         description="Withdraw the application"),

    # submitted
    TransitionDefinition(S.SUBMITTED.value, S.UNDER_REVIEW.value, event=E.REVIEW.value,
                         description="NCA begins formal review"),
    TransitionDefinition(S.SUBMITTED.value, S.IN_PROGRESS.value, event=E.REQUEST_INFO.value,
                         description="NCA requests additional information"),
    TransitionDefinition(S.SUBMITTED.value, S.WITHDRAWN.value, event=E.WITHDRAW.value,
                         description="Withdraw the application"),

    # under_review
    TransitionDefinition(S.UNDER_REVIEW.value, S.APPROVED.value, event=E.APPROVE.value,
                         description="NCA approves the authorization"),
    TransitionDefinition(S.UNDER_REVIEW.value, S.REJECTED.value, event=E.REJECT.value,
                         description="NCA rejects the authorization"),
    TransitionDefinition(S.UNDER_REVIEW.value, S.IN_PROGRESS.value, event=E.REQUEST_INFO.value,
                         description="NCA requests additional information"),

    # rejected / withdrawn
    TransitionDefinition(S.REJECTED.value, S.UNDER_REVIEW.value, event=E.APPEAL.value,
                         description="Appeal the rejection decision"),
    TransitionDefinition(S.REJECTED.value, S.NOT_STARTED.value, event=E.RESUBMIT.value,
                         description="Start a new application"),
    TransitionDefinition(S.WITHDRAWN.value, S.NOT_STARTED.value, event=E.RESTART.value,
                         description="Start a new application"),
)

AUTHORIZATION_WORKFLOW = WorkflowDefinition(
    id="authorization",
    name="EU Space Act Authorization",
    description="Multi-authority authorization workflow for EU space operations",
    version="1.0.0",
    initial_state=S.NOT_STARTED.value,
    states=_STATES,
    transitions=_TRANSITIONS,
)


# =============================================================================
# DISPLAY HELPERS
# =============================================================================

# Happy path used for progress indicators
AUTHORIZATION_STATE_ORDER: List[str] = [
    S.NOT_STARTED.value,
    S.IN_PROGRESS.value,
    S.READY_FOR_SUBMISSION.value,
    S.SUBMITTED.value,
    S.UNDER_REVIEW.value,
    S.APPROVED.value,
]

# Lifecycle timestamp field set the first time a state is entered
STATE_TIMESTAMP_FIELDS: Dict[str, str] = {
    S.IN_PROGRESS.value: "started_at",
    S.SUBMITTED.value: "submitted_at",
    S.APPROVED.value: "approved_at",
    S.REJECTED.value: "rejected_at",
}

_STATES_BY_ID = {s.id: s for s in _STATES}


def get_authorization_status_info(status: str) -> Dict[str, str]:
    """Label/color/icon/phase for a status, with a neutral fallback."""
    state = _STATES_BY_ID.get(status)
    if state is None:
        return {"label": status, "color": "#6B7280", "icon": "Circle", "phase": "unknown"}
    return {
        "label": state.name,
        "color": state.metadata.color,
        "icon": state.metadata.icon,
        "phase": state.metadata.phase,
    }


def get_authorization_progress(status: str) -> int:
    """Percent along the happy path; 0 for states off the path."""
    if status not in AUTHORIZATION_STATE_ORDER:
        return 0
    index = AUTHORIZATION_STATE_ORDER.index(status)
    steps = len(AUTHORIZATION_STATE_ORDER) - 1
    return (200 * index + steps) // (2 * steps)


def is_authorization_terminal(status: str) -> bool:
    state = _STATES_BY_ID.get(status)
    return state is not None and state.metadata.is_terminal
