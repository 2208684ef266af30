"""
Caelex Compliance Core - Authorization Context Builder

Derives a point-in-time AuthorizationContext from a persisted workflow record
and its embedded documents. The context is the sole input to guard
evaluation and is rebuilt on every evaluation; it is never cached or stored.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class DocumentStatus(str, Enum):
    """Status values for a workflow document."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    READY = "ready"
    APPROVED = "approved"
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


# Statuses that count a document as ready for submission
READY_STATUSES = frozenset({
    DocumentStatus.READY.value,
    DocumentStatus.APPROVED.value,
    DocumentStatus.SUBMITTED.value,
})

# Started but not complete
IN_PROGRESS_STATUSES = frozenset({
    DocumentStatus.IN_PROGRESS.value,
    DocumentStatus.UNDER_REVIEW.value,
})

BLOCKER_STATUSES = frozenset({
    DocumentStatus.REJECTED.value,
    DocumentStatus.BLOCKED.value,
})


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Accept ISO strings (as stored) or datetimes; naive values are UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class AuthorizationContext:
    workflow_id: str
    user_id: str
    operator_type: str
    primary_nca: str

    # Document status
    total_documents: int
    ready_documents: int
    mandatory_documents: int
    mandatory_ready: int

    # Completeness
    completeness_percentage: int
    all_mandatory_complete: bool
    has_blockers: bool

    # Timeline
    target_submission: Optional[datetime] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    pathway: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key in ("target_submission", "started_at", "submitted_at"):
            if result[key] is not None:
                result[key] = result[key].isoformat()
        return result


def round_ratio(numerator: int, denominator: int) -> int:
    """Percentage rounded half-up."""
    return (200 * numerator + denominator) // (2 * denominator)


def build_context_from_record(workflow: Dict[str, Any]) -> AuthorizationContext:
    """
    Compute the context for a workflow record.

    A workflow with no required documents is vacuously complete.
    """
    documents: List[Dict[str, Any]] = workflow.get("documents") or []

    total_documents = len(documents)
    ready_documents = sum(1 for d in documents if d.get("status") in READY_STATUSES)
    mandatory_documents = sum(1 for d in documents if d.get("required"))
    mandatory_ready = sum(
        1 for d in documents
        if d.get("required") and d.get("status") in READY_STATUSES
    )

    if mandatory_documents > 0:
        completeness = round_ratio(mandatory_ready, mandatory_documents)
    elif total_documents > 0:
        completeness = round_ratio(ready_documents, total_documents)
    else:
        completeness = 0

    has_blockers = any(d.get("status") in BLOCKER_STATUSES for d in documents)

    return AuthorizationContext(
        workflow_id=workflow["id"],
        user_id=workflow["user_id"],
        operator_type=workflow.get("operator_type") or "",
        primary_nca=workflow.get("primary_nca") or "",
        total_documents=total_documents,
        ready_documents=ready_documents,
        mandatory_documents=mandatory_documents,
        mandatory_ready=mandatory_ready,
        completeness_percentage=completeness,
        all_mandatory_complete=mandatory_documents == mandatory_ready,
        has_blockers=has_blockers,
        target_submission=parse_timestamp(workflow.get("target_submission")),
        started_at=parse_timestamp(workflow.get("started_at")),
        submitted_at=parse_timestamp(workflow.get("submitted_at")),
        pathway=workflow.get("pathway") or "",
    )


async def build_context(repository, workflow_id: str) -> Optional[AuthorizationContext]:
    """Load the workflow and build its context; None when it does not exist."""
    workflow = await repository.get_workflow(workflow_id)
    if workflow is None:
        return None
    return build_context_from_record(workflow)
