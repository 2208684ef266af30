"""
Tests for incident classification, severity escalation and NCA deadlines.
"""
import pytest
from datetime import datetime, timedelta, timezone

from services.incident_classification import (
    DEFAULT_DEADLINE_HOURS,
    INCIDENT_CLASSIFICATION,
    IncidentCategory,
    calculate_nca_deadline,
    calculate_severity,
    is_nca_notification_overdue,
)

DETECTED = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


class TestClassificationTable:

    def test_every_category_classified(self):
        assert set(INCIDENT_CLASSIFICATION) == {c.value for c in IncidentCategory}

    def test_other_does_not_require_notification(self):
        assert INCIDENT_CLASSIFICATION["other"].requires_nca_notification is False
        assert INCIDENT_CLASSIFICATION["other"].nca_deadline_hours == 168


class TestSeverity:

    def test_default_severity(self):
        assert calculate_severity("spacecraft_anomaly") == "high"
        assert calculate_severity("other") == "low"

    def test_escalation(self):
        # low (1) + 0.5 + 0.5 = 2 -> medium
        assert calculate_severity("other", has_third_party_impact=True, is_recurring=True) == "medium"
        # medium (2) + 1 + 1 = 4 -> critical
        assert calculate_severity("regulatory_breach", has_data_breach=True, has_debris_generated=True) == "critical"

    @pytest.mark.parametrize("assets,expected", [(1, "low"), (2, "low"), (6, "medium")])
    def test_asset_count(self, assets, expected):
        assert calculate_severity("other", affected_asset_count=assets) == expected

    def test_unknown_category_starts_at_medium(self):
        assert calculate_severity("solar_flare") == "medium"


class TestNcaDeadline:

    def test_deadline_by_category(self):
        assert calculate_nca_deadline("cyber_incident", DETECTED) == DETECTED + timedelta(hours=4)
        assert calculate_nca_deadline("spacecraft_anomaly", DETECTED) == DETECTED + timedelta(hours=24)

    def test_unknown_category_uses_default(self):
        assert calculate_nca_deadline("solar_flare", DETECTED) == DETECTED + timedelta(hours=DEFAULT_DEADLINE_HOURS)

    def test_accepts_stored_iso_string(self):
        assert calculate_nca_deadline("cyber_incident", "2026-05-01T08:00:00Z") == DETECTED + timedelta(hours=4)

    def test_overdue(self):
        late = DETECTED + timedelta(hours=5)
        assert is_nca_notification_overdue("cyber_incident", DETECTED, False, now=late) is True
        assert is_nca_notification_overdue("cyber_incident", DETECTED, True, now=late) is False
        assert is_nca_notification_overdue("spacecraft_anomaly", DETECTED, False, now=late) is False

    def test_exact_deadline_not_overdue(self):
        deadline = DETECTED + timedelta(hours=4)
        assert is_nca_notification_overdue("cyber_incident", DETECTED, False, now=deadline) is False
