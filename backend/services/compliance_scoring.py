"""
Caelex Compliance Core - Compliance Scoring Engine

Weighted 0-100 compliance score across six regulatory modules. Each module is
a fixed list of named factors whose max points sum to 100; the module score is
the earned share, the overall score is the sum of weight-scaled module scores.

Scoring is a pure function of the fetched data and the evaluation time, so
identical inputs always produce identical results. All rounding is half-up.

Modules and weights (ModuleWeights):
- authorization 0.25 (Art. 6-27)
- debris        0.20 (Art. 55-73)
- cybersecurity 0.20 (Art. 74-95)
- insurance     0.15 (Art. 28-32)
- environmental 0.10 (Art. 96-100)
- reporting     0.10 (Art. 33-54)
"""

import asyncio
import logging
import math
from dataclasses import dataclass, asdict, field, fields
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from services.authorization_context import parse_timestamp
from services.incident_classification import calculate_nca_deadline
from services.repository import ComplianceRepository

logger = logging.getLogger(__name__)


class ModuleStatus(str, Enum):
    COMPLIANT = "compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non_compliant"
    NOT_STARTED = "not_started"


class OverallStatus(str, Enum):
    COMPLIANT = "compliant"
    MOSTLY_COMPLIANT = "mostly_compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non_compliant"
    NOT_ASSESSED = "not_assessed"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {
    Priority.CRITICAL.value: 0,
    Priority.HIGH.value: 1,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 3,
}

MAX_RECOMMENDATIONS = 10

MODULE_ARTICLES = {
    "authorization": ["Art. 6-27"],
    "debris": ["Art. 55-73"],
    "cybersecurity": ["Art. 74-95"],
    "insurance": ["Art. 28-32"],
    "environmental": ["Art. 96-100"],
    "reporting": ["Art. 33-54"],
}


def round_half_up(value: Union[int, float, Decimal]) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def scaled_ratio(numerator: int, denominator: int, scale: int) -> int:
    """round_half_up(numerator / denominator * scale) in exact integer arithmetic."""
    return (2 * numerator * scale + denominator) // (2 * denominator)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class ModuleWeights:
    """Per-module weights; must sum to exactly 1."""
    authorization: float = 0.25
    debris: float = 0.20
    cybersecurity: float = 0.20
    insurance: float = 0.15
    environmental: float = 0.10
    reporting: float = 0.10

    def __post_init__(self):
        if self.total() != Decimal("1"):
            raise ValueError(f"Module weights must sum to 1.0, got {self.total()}")

    def total(self) -> Decimal:
        return sum((Decimal(str(getattr(self, f.name))) for f in fields(self)), Decimal("0"))

    def modules(self) -> List[str]:
        return [f.name for f in fields(self)]

    def weight_for(self, module: str) -> float:
        return getattr(self, module)


DEFAULT_MODULE_WEIGHTS = ModuleWeights()


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ScoringFactor:
    id: str
    name: str
    description: str
    max_points: int
    earned_points: int
    is_critical: bool
    article_ref: Optional[str] = None

    @property
    def missing_points(self) -> int:
        return self.max_points - self.earned_points


@dataclass
class ModuleScore:
    score: int
    weight: float
    weighted_score: int
    status: str
    factors: List[ScoringFactor] = field(default_factory=list)
    article_references: List[str] = field(default_factory=list)


@dataclass
class Recommendation:
    priority: str
    module: str
    action: str
    impact: str
    estimated_effort: str
    article_ref: Optional[str] = None


@dataclass
class ComplianceScore:
    overall: int
    grade: str
    status: str
    breakdown: Dict[str, ModuleScore]
    recommendations: List[Recommendation]
    last_calculated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "grade": self.grade,
            "status": self.status,
            "breakdown": {name: asdict(module) for name, module in self.breakdown.items()},
            "recommendations": [asdict(r) for r in self.recommendations],
            "last_calculated": self.last_calculated.isoformat(),
        }


# =============================================================================
# MODULE FACTORS
# =============================================================================

def _factor(factor_id: str, name: str, description: str, max_points: int, earned: int,
            critical: bool, article_ref: str) -> ScoringFactor:
    return ScoringFactor(factor_id, name, description, max_points, earned, critical, article_ref)


def authorization_factors(data: Dict[str, Any]) -> List[ScoringFactor]:
    workflows = data.get("workflows") or []

    status_points = 0
    doc_points = 0
    if workflows:
        # workflows are newest first
        status_points = {
            "approved": 40,
            "submitted": 30,
            "ready_for_submission": 25,
            "in_progress": 15,
        }.get(workflows[0].get("status"), 5)

        documents = [d for w in workflows for d in (w.get("documents") or [])]
        ready = sum(1 for d in documents if d.get("status") == "ready")
        doc_points = scaled_ratio(ready, len(documents), 35) if documents else 0

    return [
        _factor("auth_status", "Authorization Status", "Current status of authorization workflow",
                40, status_points, True, "Art. 6-10"),
        _factor("doc_completeness", "Document Completeness", "Required documents uploaded and verified",
                35, doc_points, False, "Art. 11-14"),
        _factor("nca_designation", "NCA Designation", "Proper NCA authority designated",
                25, 25 if workflows else 0, False, "Art. 15-17"),
    ]


def debris_factors(data: Dict[str, Any]) -> List[ScoringFactor]:
    assessment = data.get("assessment") or {}
    plan = bool(assessment.get("plan_generated"))
    return [
        _factor("debris_assessment", "Debris Assessment", "Debris mitigation assessment completed",
                30, 30 if plan else 0, True, "Art. 55-57"),
        _factor("passivation_plan", "Passivation Plan", "End-of-life passivation procedures defined",
                25, 25 if assessment.get("has_passivation_cap") else 0, True, "Art. 58-62"),
        _factor("deorbit_strategy", "Deorbit Strategy", "25-year deorbit compliance plan",
                25, 25 if assessment.get("deorbit_strategy") else 0, True, "Art. 63-67"),
        _factor("collision_avoidance", "Collision Avoidance", "Collision avoidance procedures in place",
                20, 20 if plan else 0, False, "Art. 68-73"),
    ]


def cybersecurity_factors(data: Dict[str, Any]) -> List[ScoringFactor]:
    assessment = data.get("assessment")
    incidents = data.get("incidents") or []
    a = assessment or {}

    maturity = a.get("maturity_score")
    maturity_points = round_half_up(Decimal(str(maturity)) / 4) if maturity is not None else 0

    # Full credit minus 5 per open incident, once the module has any record
    incident_points = 0
    if assessment is not None or incidents:
        unresolved = sum(1 for i in incidents if i.get("status") not in ("resolved", "closed"))
        incident_points = max(0, 20 - unresolved * 5)

    return [
        _factor("risk_assessment", "Risk Assessment", "NIS2-compliant risk assessment completed",
                35, 35 if a.get("framework_generated_at") else 0, True, "Art. 74-78"),
        _factor("maturity_score", "Security Maturity", "Security maturity level achieved",
                25, maturity_points, False, "Art. 79-82"),
        _factor("incident_response_plan", "Incident Response Plan", "Incident response procedures documented",
                20, 20 if a.get("has_incident_response_plan") else 0, False, "Art. 83-88"),
        _factor("incident_response", "Incident Response", "Cyber incidents properly managed",
                20, incident_points, False, "Art. 89-95"),
    ]


def _policy_validity_points(active_policies: List[Dict[str, Any]], now: datetime) -> int:
    expiries = [parse_timestamp(p.get("expiration_date")) for p in active_policies]
    expiries = [e for e in expiries if e is not None]
    if not expiries:
        return 0
    earliest = min(expiries)
    if earliest <= now:
        return 0
    days = math.ceil((earliest - now).total_seconds() / 86400)
    if days > 90:
        return 30
    if days > 30:
        return 20
    return 10


def insurance_factors(data: Dict[str, Any], now: datetime) -> List[ScoringFactor]:
    a = data.get("assessment") or {}

    assessment_points = 0
    if a.get("report_generated"):
        assessment_points = 40
    elif (a.get("calculated_tpl") or 0) > 0:
        assessment_points = 20

    active = [p for p in (a.get("policies") or []) if p.get("status") == "active"]

    return [
        _factor("insurance_assessment", "Insurance Assessment", "Insurance requirements assessed",
                40, assessment_points, True, "Art. 28-29"),
        _factor("active_policies", "Active Policies", "Active insurance policies in place",
                30, 30 if active else 0, True, "Art. 30"),
        _factor("policy_validity", "Policy Validity", "Insurance policy is current and valid",
                30, _policy_validity_points(active, now), True, "Art. 31-32"),
    ]


def environmental_factors(data: Dict[str, Any]) -> List[ScoringFactor]:
    assessment = data.get("assessment")
    requests = data.get("supplier_requests") or []
    a = assessment or {}

    if requests:
        completed = sum(1 for r in requests if r.get("status") == "completed")
        supplier_points = scaled_ratio(completed, len(requests), 30)
    elif assessment is not None:
        # partial credit when no supplier data was needed
        supplier_points = 15
    else:
        supplier_points = 0

    return [
        _factor("efd_submission", "EFD Submission", "Environmental Footprint Declaration submitted",
                50, 50 if a.get("status") in ("submitted", "approved") else 0, True, "Art. 96-97"),
        _factor("supplier_data", "Supplier Data", "LCA data collected from suppliers",
                30, supplier_points, False, "Art. 98-99"),
        _factor("gwp_calculation", "GWP Calculation", "Global Warming Potential calculated",
                20, 20 if a.get("total_gwp") is not None else 0, False, "Art. 100"),
    ]


def _is_overdue(incident: Dict[str, Any], now: datetime) -> bool:
    if not incident.get("requires_nca_notification") or incident.get("reported_to_nca"):
        return False
    if not incident.get("detected_at"):
        return False
    return now > calculate_nca_deadline(incident.get("category"), incident["detected_at"])


def reporting_factors(data: Dict[str, Any], now: datetime) -> List[ScoringFactor]:
    config = data.get("supervision_config")
    incidents = data.get("incidents") or []
    reports = data.get("reports") or []
    has_records = config is not None or bool(incidents) or bool(reports)

    notification_points = 0
    if has_records:
        overdue = sum(1 for i in incidents if _is_overdue(i, now))
        notification_points = max(0, 40 - overdue * 20)

    if reports:
        submitted = sum(1 for r in reports if r.get("status") in ("submitted", "acknowledged"))
        report_points = scaled_ratio(submitted, len(reports), 30)
    elif has_records:
        # nothing due yet
        report_points = 30
    else:
        report_points = 0

    return [
        _factor("nca_config", "NCA Configuration", "Supervision and NCA reporting configured",
                30, 30 if config is not None else 0, False, "Art. 33-37"),
        _factor("incident_notifications", "Incident Notifications", "Incidents reported to NCA within deadlines",
                40, notification_points, True, "Art. 38-42"),
        _factor("report_submissions", "Report Submissions", "Required reports submitted to NCA",
                30, report_points, False, "Art. 43-54"),
    ]


# =============================================================================
# AGGREGATION
# =============================================================================

def get_module_status(score: int) -> str:
    if score >= 80:
        return ModuleStatus.COMPLIANT.value
    if score >= 50:
        return ModuleStatus.PARTIAL.value
    if score > 0:
        return ModuleStatus.NON_COMPLIANT.value
    return ModuleStatus.NOT_STARTED.value


def get_grade(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def get_overall_status(score: int, breakdown: Dict[str, ModuleScore]) -> str:
    """A non-compliant module with a zeroed critical factor overrides the score."""
    critical_failure = any(
        module.status == ModuleStatus.NON_COMPLIANT.value
        and any(f.is_critical and f.earned_points == 0 for f in module.factors)
        for module in breakdown.values()
    )
    if critical_failure:
        return OverallStatus.NON_COMPLIANT.value
    if score >= 80:
        return OverallStatus.COMPLIANT.value
    if score >= 60:
        return OverallStatus.MOSTLY_COMPLIANT.value
    if score > 0:
        return OverallStatus.PARTIAL.value
    return OverallStatus.NOT_ASSESSED.value


def build_module_score(module: str, factors: List[ScoringFactor], weights: ModuleWeights) -> ModuleScore:
    total = sum(f.max_points for f in factors)
    earned = sum(f.earned_points for f in factors)
    score = scaled_ratio(earned, total, 100) if total > 0 else 0
    weight = weights.weight_for(module)
    return ModuleScore(
        score=score,
        weight=weight,
        weighted_score=round_half_up(Decimal(score) * Decimal(str(weight))),
        status=get_module_status(score),
        factors=factors,
        article_references=list(MODULE_ARTICLES.get(module, [])),
    )


def _priority(factor: ScoringFactor) -> str:
    missing = factor.missing_points
    if factor.is_critical and factor.earned_points == 0:
        return Priority.CRITICAL.value
    # missing share compared in integers: 2*missing > max is "more than half"
    if factor.is_critical or 2 * missing > factor.max_points:
        return Priority.HIGH.value
    if 4 * missing > factor.max_points:
        return Priority.MEDIUM.value
    return Priority.LOW.value


def _effort(missing_points: int) -> str:
    if missing_points > 25:
        return "high"
    if missing_points > 10:
        return "medium"
    return "low"


def generate_recommendations(breakdown: Dict[str, ModuleScore]) -> List[Recommendation]:
    """One recommendation per unmet factor, most urgent first, top 10."""
    recommendations: List[Recommendation] = []
    for module_id, module in breakdown.items():
        for factor in module.factors:
            if factor.earned_points >= factor.max_points:
                continue
            missing = factor.missing_points
            recommendations.append(Recommendation(
                priority=_priority(factor),
                module=module_id,
                action=f"Complete {factor.name}",
                impact=f"+{missing} points on {module_id} module",
                estimated_effort=_effort(missing),
                article_ref=factor.article_ref,
            ))

    # stable: ties keep module/factor order
    recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
    return recommendations[:MAX_RECOMMENDATIONS]


def compute_compliance_score(
    module_data: Dict[str, Dict[str, Any]],
    now: datetime,
    weights: ModuleWeights = DEFAULT_MODULE_WEIGHTS,
) -> ComplianceScore:
    """Score already-fetched module data; module_data is keyed by module name."""
    factors = {
        "authorization": authorization_factors(module_data.get("authorization") or {}),
        "debris": debris_factors(module_data.get("debris") or {}),
        "cybersecurity": cybersecurity_factors(module_data.get("cybersecurity") or {}),
        "insurance": insurance_factors(module_data.get("insurance") or {}, now),
        "environmental": environmental_factors(module_data.get("environmental") or {}),
        "reporting": reporting_factors(module_data.get("reporting") or {}, now),
    }
    breakdown = {
        module: build_module_score(module, factors[module], weights)
        for module in weights.modules()
    }

    overall = sum(m.weighted_score for m in breakdown.values())
    overall = max(0, min(100, overall))

    return ComplianceScore(
        overall=overall,
        grade=get_grade(overall),
        status=get_overall_status(overall, breakdown),
        breakdown=breakdown,
        recommendations=generate_recommendations(breakdown),
        last_calculated=now,
    )


# =============================================================================
# SERVICE
# =============================================================================

class ComplianceScoringService:
    """Fetches a user's module data concurrently and scores it."""

    def __init__(self, repository: ComplianceRepository, weights: ModuleWeights = DEFAULT_MODULE_WEIGHTS):
        self.repository = repository
        self.weights = weights

    async def calculate_compliance_score(self, user_id: str, now: Optional[datetime] = None) -> ComplianceScore:
        now = parse_timestamp(now) or datetime.now(timezone.utc)
        year_start = datetime(now.year, 1, 1, tzinfo=timezone.utc)

        (
            authorization,
            debris,
            cybersecurity,
            insurance,
            environmental,
            reporting,
        ) = await asyncio.gather(
            self.repository.get_authorization_data(user_id),
            self.repository.get_debris_data(user_id),
            self.repository.get_cybersecurity_data(user_id, year_start),
            self.repository.get_insurance_data(user_id),
            self.repository.get_environmental_data(user_id),
            self.repository.get_reporting_data(user_id),
        )

        score = compute_compliance_score(
            {
                "authorization": authorization,
                "debris": debris,
                "cybersecurity": cybersecurity,
                "insurance": insurance,
                "environmental": environmental,
                "reporting": reporting,
            },
            now,
            self.weights,
        )
        logger.info(
            "Compliance score for user %s: %d (%s, %s)",
            user_id, score.overall, score.grade, score.status
        )
        return score
