"""
Caelex Compliance Core - Compliance Score Router
"""

from fastapi import APIRouter, Query
from typing import Optional
import logging

from services.compliance_scoring import ComplianceScoringService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compliance", tags=["compliance"])

scoring_service: Optional[ComplianceScoringService] = None


def set_dependencies(service: ComplianceScoringService):
    global scoring_service
    scoring_service = service


@router.get("/score")
async def get_compliance_score(user_id: str = Query(...)):
    """Weighted compliance score, module breakdown and top recommendations."""
    score = await scoring_service.calculate_compliance_score(user_id)
    return score.to_dict()
