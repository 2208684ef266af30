"""
Caelex Compliance Core - Document Completeness Engine

Compares a workflow's documents against the template set for its operator
type and reports gaps, submission blockers, per-category progress and a
rough completion-time estimate.

Classification per template:
- required, no document          -> mandatory gap (missing) + blocker
- required, ready/approved/submitted -> completed
- required, rejected             -> mandatory gap (rejected) + blocker
- required, in_progress/under_review -> mandatory gap (incomplete), no blocker
- required, anything else        -> mandatory gap (incomplete) + blocker
- optional templates never block; missing or in-progress ones are
  recommended gaps. A rejected, blocked or not-started optional document
  is not reported as a gap.
"""

import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from services.authorization_context import (
    IN_PROGRESS_STATUSES,
    READY_STATUSES,
    DocumentStatus,
    round_ratio,
)
from services.document_templates import DocumentTemplate, EffortLevel
from services.repository import ComplianceRepository

logger = logging.getLogger(__name__)

DEFAULT_OPERATOR_TYPE = "SCO"

# Working days per remaining mandatory document
EFFORT_DAYS = {
    EffortLevel.LOW.value: 2,
    EffortLevel.MEDIUM.value: 5,
    EffortLevel.HIGH.value: 10,
}

_EFFORT_ORDER = {
    EffortLevel.LOW.value: 0,
    EffortLevel.MEDIUM.value: 1,
    EffortLevel.HIGH.value: 2,
}


class GapCriticality(str, Enum):
    MANDATORY = "mandatory"
    RECOMMENDED = "recommended"
    CONDITIONAL = "conditional"


class GapReason(str, Enum):
    MISSING = "missing"
    INCOMPLETE = "incomplete"
    REJECTED = "rejected"
    EXPIRED = "expired"


class BlockerType(str, Enum):
    MISSING_MANDATORY = "missing_mandatory"
    REJECTED_DOCUMENT = "rejected_document"
    VALIDATION_ERROR = "validation_error"


# =============================================================================
# REPORT TYPES
# =============================================================================

@dataclass
class DocumentGap:
    document_type: str
    name: str
    description: str
    criticality: str
    category: str
    estimated_effort: str
    suggested_action: str
    reason: str
    article_ref: Optional[str] = None
    tips: List[str] = field(default_factory=list)
    current_status: Optional[str] = None


@dataclass
class CompletedDocument:
    document_type: str
    name: str
    status: str
    required: bool
    completed_at: Optional[str] = None
    article_ref: Optional[str] = None


@dataclass
class SubmissionBlocker:
    type: str
    message: str
    severity: str = "error"
    document_type: Optional[str] = None
    document_name: Optional[str] = None


@dataclass
class CategorySummary:
    category: str
    total: int
    complete: int
    percentage: int


@dataclass
class CompletenessReport:
    workflow_id: str
    operator_type: str
    evaluated_at: str

    overall_percentage: int
    mandatory_percentage: int
    optional_percentage: int

    total_documents: int
    total_required: int
    total_optional: int
    completed_documents: int
    completed_mandatory: int
    completed_optional: int
    in_progress_documents: int

    mandatory_complete: bool
    ready_for_submission: bool

    gaps: List[DocumentGap] = field(default_factory=list)
    blockers: List[SubmissionBlocker] = field(default_factory=list)
    completed_list: List[CompletedDocument] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    by_category: List[CategorySummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompletionEstimate:
    low_effort_days: int
    medium_effort_days: int
    high_effort_days: int
    total_estimated_days: int
    confidence: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _percentage(part: int, whole: int) -> int:
    """Half-up percentage; an empty set counts as fully complete."""
    return round_ratio(part, whole) if whole > 0 else 100


def _gap(template: DocumentTemplate, criticality: str, reason: str, action: str,
         status: Optional[str] = None) -> DocumentGap:
    return DocumentGap(
        document_type=template.type,
        name=template.name,
        description=template.description,
        criticality=criticality,
        category=template.category,
        estimated_effort=template.estimated_effort,
        suggested_action=action,
        reason=reason,
        article_ref=template.article_ref,
        tips=list(template.tips),
        current_status=status,
    )


def _completed(document: Dict[str, Any]) -> CompletedDocument:
    return CompletedDocument(
        document_type=document.get("document_type", ""),
        name=document.get("name", ""),
        status=document["status"],
        required=bool(document.get("required")),
        completed_at=document.get("completed_at"),
        article_ref=document.get("article_ref"),
    )


def build_recommendations(
    blockers: List[SubmissionBlocker],
    gaps: List[DocumentGap],
    category_stats: Dict[str, Dict[str, int]],
) -> List[str]:
    recommendations: List[str] = []

    if not blockers:
        recommendations.append("All mandatory documents are complete. You can proceed with submission.")
    elif len(blockers) <= 3:
        recommendations.append(
            f"You have {len(blockers)} mandatory document(s) remaining before you can submit."
        )
    else:
        recommendations.append(
            f"Focus on completing mandatory documents first. {len(blockers)} items require attention."
        )

    for category, stats in category_stats.items():
        if stats["complete"] == 0 and stats["total"] > 0:
            recommendations.append(f"No {category} documents completed yet. Consider starting with these.")
        elif stats["complete"] < stats["total"]:
            remaining = stats["total"] - stats["complete"]
            recommendations.append(f"{remaining} {category} document(s) remaining.")

    high_effort = [
        g for g in gaps
        if g.estimated_effort == EffortLevel.HIGH.value and g.criticality == GapCriticality.MANDATORY.value
    ]
    if high_effort:
        recommendations.append(
            f"{len(high_effort)} mandatory document(s) require significant effort. Plan accordingly."
        )
    return recommendations


def evaluate_completeness(
    workflow: Dict[str, Any],
    templates: List[DocumentTemplate],
    evaluated_at: Optional[datetime] = None,
) -> CompletenessReport:
    """Build the report for a workflow record against its template set."""
    operator_type = workflow.get("operator_type") or DEFAULT_OPERATOR_TYPE
    evaluated_at = evaluated_at or datetime.now(timezone.utc)

    required_templates = [t for t in templates if t.required]
    optional_templates = [t for t in templates if not t.required]

    documents_by_type: Dict[str, Dict[str, Any]] = {}
    for document in workflow.get("documents") or []:
        documents_by_type[document.get("document_type")] = document

    gaps: List[DocumentGap] = []
    blockers: List[SubmissionBlocker] = []
    completed_list: List[CompletedDocument] = []
    category_stats: Dict[str, Dict[str, int]] = {}

    completed_mandatory = 0
    completed_optional = 0
    in_progress = 0

    mandatory = GapCriticality.MANDATORY.value
    recommended = GapCriticality.RECOMMENDED.value

    for template in required_templates:
        stats = category_stats.setdefault(template.category, {"total": 0, "complete": 0})
        stats["total"] += 1
        document = documents_by_type.get(template.type)
        status = document.get("status") if document else None

        if document is None:
            gaps.append(_gap(
                template, mandatory, GapReason.MISSING.value,
                f'Create and complete "{template.name}" as required by {template.article_ref}',
            ))
            blockers.append(SubmissionBlocker(
                type=BlockerType.MISSING_MANDATORY.value,
                message=f"Missing mandatory document: {template.name}",
                document_type=template.type,
                document_name=template.name,
            ))
        elif status in READY_STATUSES:
            completed_mandatory += 1
            stats["complete"] += 1
            completed_list.append(_completed(document))
        elif status == DocumentStatus.REJECTED.value:
            gaps.append(_gap(
                template, mandatory, GapReason.REJECTED.value,
                f'Revise and resubmit "{template.name}" addressing rejection feedback', status,
            ))
            blockers.append(SubmissionBlocker(
                type=BlockerType.REJECTED_DOCUMENT.value,
                message=f"Document rejected: {template.name}. Please revise and resubmit.",
                document_type=template.type,
                document_name=template.name,
            ))
        elif status in IN_PROGRESS_STATUSES:
            in_progress += 1
            gaps.append(_gap(
                template, mandatory, GapReason.INCOMPLETE.value,
                f'Complete "{template.name}" to mark as ready', status,
            ))
        else:
            gaps.append(_gap(
                template, mandatory, GapReason.INCOMPLETE.value,
                f'Start working on "{template.name}"', status,
            ))
            blockers.append(SubmissionBlocker(
                type=BlockerType.MISSING_MANDATORY.value,
                message=f"Document not started: {template.name}",
                document_type=template.type,
                document_name=template.name,
            ))

    for template in optional_templates:
        stats = category_stats.setdefault(template.category, {"total": 0, "complete": 0})
        stats["total"] += 1
        document = documents_by_type.get(template.type)
        status = document.get("status") if document else None

        if document is None:
            gaps.append(_gap(
                template, recommended, GapReason.MISSING.value,
                f'Consider adding "{template.name}" to strengthen your application',
            ))
        elif status in READY_STATUSES:
            completed_optional += 1
            stats["complete"] += 1
            completed_list.append(_completed(document))
        elif status in IN_PROGRESS_STATUSES:
            in_progress += 1
            gaps.append(_gap(
                template, recommended, GapReason.INCOMPLETE.value,
                f'Consider completing "{template.name}" for a stronger application', status,
            ))

    total_required = len(required_templates)
    total_optional = len(optional_templates)
    total_documents = total_required + total_optional
    mandatory_complete = completed_mandatory == total_required

    return CompletenessReport(
        workflow_id=workflow["id"],
        operator_type=operator_type,
        evaluated_at=evaluated_at.isoformat(),
        overall_percentage=_percentage(completed_mandatory + completed_optional, total_documents),
        mandatory_percentage=_percentage(completed_mandatory, total_required),
        optional_percentage=_percentage(completed_optional, total_optional),
        total_documents=total_documents,
        total_required=total_required,
        total_optional=total_optional,
        completed_documents=completed_mandatory + completed_optional,
        completed_mandatory=completed_mandatory,
        completed_optional=completed_optional,
        in_progress_documents=in_progress,
        mandatory_complete=mandatory_complete,
        ready_for_submission=mandatory_complete and not blockers,
        gaps=gaps,
        blockers=blockers,
        completed_list=completed_list,
        recommendations=build_recommendations(blockers, gaps, category_stats),
        by_category=[
            CategorySummary(category, s["total"], s["complete"], _percentage(s["complete"], s["total"]))
            for category, s in category_stats.items()
        ],
    )


def estimate_from_gaps(gaps: List[DocumentGap]) -> CompletionEstimate:
    """Sum effort days over mandatory gaps, discounted to 70% for parallel work."""
    mandatory_gaps = [g for g in gaps if g.criticality == GapCriticality.MANDATORY.value]

    days = {level: 0 for level in EFFORT_DAYS}
    for gap in mandatory_gaps:
        if gap.estimated_effort in days:
            days[gap.estimated_effort] += EFFORT_DAYS[gap.estimated_effort]

    raw_total = sum(days.values())
    # ceil(raw_total * 0.7) in integer arithmetic
    total = -(-raw_total * 7 // 10)

    if len(mandatory_gaps) <= 2:
        confidence = "high"
    elif len(mandatory_gaps) <= 5:
        confidence = "medium"
    else:
        confidence = "low"

    return CompletionEstimate(
        low_effort_days=days[EffortLevel.LOW.value],
        medium_effort_days=days[EffortLevel.MEDIUM.value],
        high_effort_days=days[EffortLevel.HIGH.value],
        total_estimated_days=total,
        confidence=confidence,
    )


# =============================================================================
# SERVICE
# =============================================================================

class DocumentCompletenessService:
    """Completeness queries for persisted workflows."""

    def __init__(self, repository: ComplianceRepository):
        self.repository = repository

    async def calculate_completeness_report(self, workflow_id: str) -> Optional[CompletenessReport]:
        workflow = await self.repository.get_workflow(workflow_id)
        if workflow is None:
            return None
        operator_type = workflow.get("operator_type") or DEFAULT_OPERATOR_TYPE
        templates = await self.repository.get_document_templates(operator_type)
        report = evaluate_completeness(workflow, templates)
        logger.debug(
            "Completeness for workflow %s: %d%% mandatory, %d blockers",
            workflow_id, report.mandatory_percentage, len(report.blockers)
        )
        return report

    async def is_workflow_ready_for_submission(self, workflow_id: str) -> Dict[str, Any]:
        report = await self.calculate_completeness_report(workflow_id)
        if report is None:
            return {
                "ready": False,
                "blockers": [SubmissionBlocker(
                    type=BlockerType.VALIDATION_ERROR.value,
                    message="Workflow not found",
                )],
            }
        return {"ready": report.ready_for_submission, "blockers": report.blockers}

    async def get_prioritized_actions(self, workflow_id: str, limit: int = 5) -> List[DocumentGap]:
        """Mandatory gaps first, then quick wins (low effort) first."""
        report = await self.calculate_completeness_report(workflow_id)
        if report is None:
            return []
        ordered = sorted(
            report.gaps,
            key=lambda g: (
                g.criticality != GapCriticality.MANDATORY.value,
                _EFFORT_ORDER.get(g.estimated_effort, len(_EFFORT_ORDER)),
            ),
        )
        return ordered[:limit]

    async def get_missing_document_types(self, workflow_id: str) -> List[str]:
        report = await self.calculate_completeness_report(workflow_id)
        if report is None:
            return []
        return [g.document_type for g in report.gaps if g.reason == GapReason.MISSING.value]

    async def estimate_completion_time(self, workflow_id: str) -> Optional[CompletionEstimate]:
        report = await self.calculate_completeness_report(workflow_id)
        if report is None:
            return None
        return estimate_from_gaps(report.gaps)
