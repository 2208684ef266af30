"""
Caelex Compliance Core - Authorization Router

Workflow summary, auto-transition evaluation, manual transitions and
document completeness for authorization workflows.
"""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query
from typing import Optional
from pydantic import BaseModel
import logging

from services.authorization_service import (
    CONCURRENT_UPDATE,
    UNAUTHORIZED,
    WORKFLOW_NOT_FOUND,
    AuthorizationService,
    ManualTransitionOutcome,
)
from services.document_completeness import DocumentCompletenessService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/authorization/workflows", tags=["authorization"])

# Services - set by main app
authorization_service: Optional[AuthorizationService] = None
completeness_service: Optional[DocumentCompletenessService] = None


def set_dependencies(auth_service: AuthorizationService, doc_service: DocumentCompletenessService):
    global authorization_service, completeness_service
    authorization_service = auth_service
    completeness_service = doc_service


# ==================== MODELS ====================

class TransitionRequest(BaseModel):
    event: str
    user_id: str
    data: Optional[dict] = None


class SubmitRequest(BaseModel):
    user_id: str


class WithdrawRequest(BaseModel):
    user_id: str
    reason: Optional[str] = None


_FAILURE_STATUS = {
    WORKFLOW_NOT_FOUND: 404,
    UNAUTHORIZED: 403,
    CONCURRENT_UPDATE: 409,
}


def _transition_response(outcome: ManualTransitionOutcome) -> dict:
    if not outcome.success:
        raise HTTPException(
            status_code=_FAILURE_STATUS.get(outcome.error, 400),
            detail=outcome.error,
        )
    return outcome.to_dict()


# ==================== WORKFLOW STATE ====================

@router.get("/{workflow_id}/summary")
async def get_workflow_summary(workflow_id: str):
    summary = await authorization_service.get_workflow_summary(workflow_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=WORKFLOW_NOT_FOUND)
    return summary.to_dict()


@router.post("/{workflow_id}/evaluate")
async def evaluate_workflow(workflow_id: str):
    """Apply any eligible auto-transitions."""
    evaluation = await authorization_service.evaluate_workflow_transitions(workflow_id)
    if WORKFLOW_NOT_FOUND in evaluation.result.errors:
        raise HTTPException(status_code=404, detail=WORKFLOW_NOT_FOUND)
    if CONCURRENT_UPDATE in evaluation.result.errors:
        raise HTTPException(status_code=409, detail=CONCURRENT_UPDATE)
    return evaluation.to_dict()


@router.get("/{workflow_id}/transitions")
async def list_available_transitions(workflow_id: str):
    transitions = await authorization_service.get_available_transitions(workflow_id)
    return {"transitions": [t.to_dict() for t in transitions]}


@router.post("/{workflow_id}/transitions")
async def execute_transition(workflow_id: str, request: TransitionRequest):
    outcome = await authorization_service.execute_manual_transition(
        workflow_id, request.event, request.user_id, request.data
    )
    return _transition_response(outcome)


@router.post("/{workflow_id}/submit")
async def submit_workflow(workflow_id: str, request: SubmitRequest):
    outcome = await authorization_service.submit_workflow_to_nca(workflow_id, request.user_id)
    return _transition_response(outcome)


@router.post("/{workflow_id}/withdraw")
async def withdraw_workflow(workflow_id: str, request: WithdrawRequest):
    outcome = await authorization_service.withdraw_workflow(workflow_id, request.user_id, request.reason)
    return _transition_response(outcome)


# ==================== DOCUMENT COMPLETENESS ====================

@router.get("/{workflow_id}/completeness")
async def get_completeness_report(workflow_id: str):
    report = await completeness_service.calculate_completeness_report(workflow_id)
    if report is None:
        raise HTTPException(status_code=404, detail=WORKFLOW_NOT_FOUND)
    return report.to_dict()


@router.get("/{workflow_id}/completeness/ready")
async def get_submission_readiness(workflow_id: str):
    readiness = await completeness_service.is_workflow_ready_for_submission(workflow_id)
    return {
        "ready": readiness["ready"],
        "blockers": [asdict(b) for b in readiness["blockers"]],
    }


@router.get("/{workflow_id}/completeness/actions")
async def get_prioritized_actions(workflow_id: str, limit: int = Query(5, ge=1, le=50)):
    actions = await completeness_service.get_prioritized_actions(workflow_id, limit)
    return {"actions": [asdict(a) for a in actions]}


@router.get("/{workflow_id}/completeness/missing")
async def get_missing_documents(workflow_id: str):
    return {"document_types": await completeness_service.get_missing_document_types(workflow_id)}


@router.get("/{workflow_id}/completeness/estimate")
async def get_completion_estimate(workflow_id: str):
    estimate = await completeness_service.estimate_completion_time(workflow_id)
    if estimate is None:
        raise HTTPException(status_code=404, detail=WORKFLOW_NOT_FOUND)
    return estimate.to_dict()
