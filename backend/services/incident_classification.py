"""
Caelex Compliance Core - Incident Classification

Per-category NCA notification rules for operational incidents, plus the
deadline and severity arithmetic the reporting module relies on.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional, Union

from services.authorization_context import parse_timestamp


class IncidentCategory(str, Enum):
    LOSS_OF_CONTACT = "loss_of_contact"
    DEBRIS_GENERATION = "debris_generation"
    CYBER_INCIDENT = "cyber_incident"
    SPACECRAFT_ANOMALY = "spacecraft_anomaly"
    CONJUNCTION_EVENT = "conjunction_event"
    REGULATORY_BREACH = "regulatory_breach"
    OTHER = "other"


class IncidentSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class IncidentClassification:
    default_severity: str
    nca_deadline_hours: int
    requires_nca_notification: bool
    requires_euspa_notification: bool
    description: str
    article_ref: str


INCIDENT_CLASSIFICATION: Dict[str, IncidentClassification] = {
    IncidentCategory.LOSS_OF_CONTACT.value: IncidentClassification(
        "critical", 4, True, True,
        "Loss of communication or control with spacecraft", "Art. 33-34",
    ),
    IncidentCategory.DEBRIS_GENERATION.value: IncidentClassification(
        "critical", 4, True, True,
        "Debris-generating event or fragmentation", "Art. 58-72",
    ),
    IncidentCategory.CYBER_INCIDENT.value: IncidentClassification(
        "critical", 4, True, True,
        "Cybersecurity breach or attack on space systems", "Art. 74-95",
    ),
    IncidentCategory.SPACECRAFT_ANOMALY.value: IncidentClassification(
        "high", 24, True, False,
        "Significant spacecraft malfunction or anomaly", "Art. 33-34",
    ),
    IncidentCategory.CONJUNCTION_EVENT.value: IncidentClassification(
        "high", 72, True, True,
        "Close approach or collision avoidance maneuver", "Art. 55-57",
    ),
    IncidentCategory.REGULATORY_BREACH.value: IncidentClassification(
        "medium", 72, True, False,
        "Non-compliance with regulatory requirements", "Art. 33-34",
    ),
    IncidentCategory.OTHER.value: IncidentClassification(
        "low", 168, False, False,
        "Other operational incident", "Art. 33-34",
    ),
}

# Used for categories outside the table
DEFAULT_DEADLINE_HOURS = 72

_SEVERITY_SCORES = {"low": 1, "medium": 2, "high": 3, "critical": 4}


def calculate_severity(
    category: str,
    affected_asset_count: int = 0,
    has_debris_generated: bool = False,
    has_data_breach: bool = False,
    has_third_party_impact: bool = False,
    has_media_attention: bool = False,
    is_recurring: bool = False,
) -> str:
    """
    Escalate the category's default severity by incident factors.

    Starts from the default severity score (low=1 .. critical=4), adds the
    escalation weights and maps the total back: >=4 critical, >=3 high,
    >=2 medium, else low. Unknown categories start at medium.
    """
    classification = INCIDENT_CLASSIFICATION.get(category)
    base = classification.default_severity if classification else IncidentSeverity.MEDIUM.value
    score = float(_SEVERITY_SCORES[base])

    if affected_asset_count > 1:
        score += 0.5
    if affected_asset_count > 5:
        score += 0.5
    if has_debris_generated:
        score += 1
    if has_data_breach:
        score += 1
    if has_third_party_impact:
        score += 0.5
    if has_media_attention:
        score += 0.5
    if is_recurring:
        score += 0.5

    if score >= 4:
        return IncidentSeverity.CRITICAL.value
    if score >= 3:
        return IncidentSeverity.HIGH.value
    if score >= 2:
        return IncidentSeverity.MEDIUM.value
    return IncidentSeverity.LOW.value


def calculate_nca_deadline(category: str, detected_at: Union[str, datetime]) -> datetime:
    classification = INCIDENT_CLASSIFICATION.get(category)
    hours = classification.nca_deadline_hours if classification else DEFAULT_DEADLINE_HOURS
    return parse_timestamp(detected_at) + timedelta(hours=hours)


def is_nca_notification_overdue(
    category: str,
    detected_at: Union[str, datetime],
    reported_to_nca: bool,
    now: Optional[datetime] = None,
) -> bool:
    if reported_to_nca:
        return False
    now = now or datetime.now(timezone.utc)
    return now > calculate_nca_deadline(category, detected_at)
