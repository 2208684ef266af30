"""
Caelex Compliance Core - Persistence Collaborator

Thin motor-backed access to the MongoDB collections the core reads and the
single write it performs (workflow status + lifecycle timestamps).

Collections:
- authorization_workflows: one record per workflow, documents embedded
- debris_assessments, cybersecurity_assessments, insurance_assessments
  (policies embedded), environmental_assessments
- supplier_data_requests, supervision_configs, incidents, supervision_reports
- audit_logs (written by services.audit)

All timestamps are stored as ISO-8601 strings.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from services.document_templates import DocumentTemplate, get_documents_for_operator_type

logger = logging.getLogger(__name__)

# Upper bound for list reads; per-user record counts are small
MAX_LIST_RESULTS = 1000

NEWEST_FIRST = [("updated_at", -1)]


class ComplianceRepository:
    """Read/write access for one database handle."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # =========================================================================
    # WORKFLOWS
    # =========================================================================

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.authorization_workflows.find_one({"id": workflow_id}, {"_id": 0})

    async def get_document_templates(self, operator_type: str) -> List[DocumentTemplate]:
        """Templates come from the static catalog, not the database."""
        return get_documents_for_operator_type(operator_type)

    async def update_workflow_status(
        self,
        workflow_id: str,
        expected_status: str,
        updates: Dict[str, Any],
    ) -> bool:
        """
        Compare-and-swap write of status and lifecycle fields.

        The filter includes the status the caller validated against, so a
        concurrent transition makes this a no-op and returns False.
        """
        fields = dict(updates)
        fields["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = await self.db.authorization_workflows.update_one(
            {"id": workflow_id, "status": expected_status},
            {"$set": fields},
        )
        if result.matched_count == 0:
            logger.warning(
                "Workflow status update lost: workflow=%s, expected_status=%s",
                workflow_id, expected_status
            )
            return False
        return True

    # =========================================================================
    # SCORING READS (keyed by user)
    # =========================================================================

    async def get_authorization_data(self, user_id: str) -> Dict[str, Any]:
        cursor = self.db.authorization_workflows.find(
            {"user_id": user_id}, {"_id": 0}
        ).sort(NEWEST_FIRST)
        return {"workflows": await cursor.to_list(MAX_LIST_RESULTS)}

    async def get_debris_data(self, user_id: str) -> Dict[str, Any]:
        assessment = await self.db.debris_assessments.find_one(
            {"user_id": user_id}, {"_id": 0}, sort=NEWEST_FIRST
        )
        return {"assessment": assessment}

    async def get_cybersecurity_data(self, user_id: str, incidents_since: datetime) -> Dict[str, Any]:
        """Latest assessment plus cyber incidents detected since incidents_since."""
        assessment = await self.db.cybersecurity_assessments.find_one(
            {"user_id": user_id}, {"_id": 0}, sort=NEWEST_FIRST
        )
        cursor = self.db.incidents.find(
            {
                "user_id": user_id,
                "category": "cyber_incident",
                "detected_at": {"$gte": incidents_since.isoformat()},
            },
            {"_id": 0},
        )
        return {"assessment": assessment, "incidents": await cursor.to_list(MAX_LIST_RESULTS)}

    async def get_insurance_data(self, user_id: str) -> Dict[str, Any]:
        assessment = await self.db.insurance_assessments.find_one(
            {"user_id": user_id}, {"_id": 0}, sort=NEWEST_FIRST
        )
        return {"assessment": assessment}

    async def get_environmental_data(self, user_id: str) -> Dict[str, Any]:
        assessment = await self.db.environmental_assessments.find_one(
            {"user_id": user_id}, {"_id": 0}, sort=NEWEST_FIRST
        )
        cursor = self.db.supplier_data_requests.find({"user_id": user_id}, {"_id": 0})
        return {"assessment": assessment, "supplier_requests": await cursor.to_list(MAX_LIST_RESULTS)}

    async def get_reporting_data(self, user_id: str) -> Dict[str, Any]:
        config = await self.db.supervision_configs.find_one({"user_id": user_id}, {"_id": 0})
        incidents = await self.db.incidents.find(
            {"user_id": user_id}, {"_id": 0}
        ).to_list(MAX_LIST_RESULTS)
        reports = await self.db.supervision_reports.find(
            {"user_id": user_id}, {"_id": 0}
        ).sort([("created_at", -1)]).to_list(MAX_LIST_RESULTS)
        return {"supervision_config": config, "incidents": incidents, "reports": reports}

    # =========================================================================
    # INDEXES
    # =========================================================================

    async def create_indexes(self) -> None:
        """Create database indexes for the collections above."""
        await self.db.authorization_workflows.create_index("id", unique=True)
        await self.db.authorization_workflows.create_index([("user_id", 1), ("updated_at", -1)])
        await self.db.authorization_workflows.create_index("status")

        for name in (
            "debris_assessments",
            "cybersecurity_assessments",
            "insurance_assessments",
            "environmental_assessments",
        ):
            await self.db[name].create_index([("user_id", 1), ("updated_at", -1)])

        await self.db.supplier_data_requests.create_index("user_id")
        await self.db.supervision_configs.create_index("user_id", unique=True)
        await self.db.incidents.create_index([("user_id", 1), ("category", 1), ("detected_at", -1)])
        await self.db.supervision_reports.create_index([("user_id", 1), ("created_at", -1)])

        await self.db.audit_logs.create_index([("entity_type", 1), ("entity_id", 1)])
        await self.db.audit_logs.create_index("timestamp")

        logger.info("Compliance indexes created")
