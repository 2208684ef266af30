"""
Tests for the document completeness engine and the authorization document
template catalog.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from services.document_completeness import (
    DocumentCompletenessService,
    DocumentGap,
    estimate_from_gaps,
    evaluate_completeness,
)
from services.document_templates import (
    AUTHORIZATION_DOCUMENTS,
    DocumentTemplate,
    get_documents_by_category,
    get_documents_for_operator_type,
    get_required_documents,
)


def _template(doc_type, required=True, category="technical", effort="medium"):
    return DocumentTemplate(
        type=doc_type,
        name=doc_type.replace("_", " ").title(),
        description=f"{doc_type} description",
        article_ref="Art. 7",
        required=required,
        applicable_to=("ALL",),
        category=category,
        estimated_effort=effort,
        tips=("tip",),
    )


def _doc(doc_type, status, required=True):
    return {"document_type": doc_type, "name": doc_type, "status": status, "required": required}


def _workflow(documents, operator_type="SCO"):
    return {"id": "wf-1", "user_id": "user-1", "operator_type": operator_type, "documents": documents}


FOUR_MANDATORY = [_template("a"), _template("b"), _template("c"), _template("d")]


# =============================================================================
# TEMPLATE CATALOG
# =============================================================================

class TestTemplateCatalog:

    def test_catalog_types_are_unique(self):
        types = [t.type for t in AUTHORIZATION_DOCUMENTS]
        assert len(types) == len(set(types))

    def test_all_tag_applies_to_every_operator(self):
        """Templates tagged ALL are returned for any operator type."""
        sco = {t.type for t in get_documents_for_operator_type("SCO")}
        pdp = {t.type for t in get_documents_for_operator_type("PDP")}
        assert "mission_description" in pdp
        assert "eu_representative" not in sco

    def test_operator_specific_templates(self):
        lso = {t.type for t in get_documents_for_operator_type("LSO")}
        tco = {t.type for t in get_documents_for_operator_type("TCO")}
        assert "launch_site_license" in lso
        assert "eu_representative" in tco
        assert "launch_site_license" not in tco

    def test_required_documents_exclude_optional(self):
        required = {t.type for t in get_required_documents("SCO")}
        assert "efd" not in required
        assert "financial_guarantee" not in required
        assert "debris_mitigation_plan" in required

    def test_by_category(self):
        legal = get_documents_by_category("legal")
        assert legal
        assert all(t.category == "legal" for t in legal)


# =============================================================================
# COMPLETENESS REPORT
# =============================================================================

class TestEvaluateCompleteness:

    def test_two_of_four_mandatory_ready(self):
        report = evaluate_completeness(
            _workflow([_doc("a", "ready"), _doc("b", "approved"), _doc("c", "in_progress"),
                       _doc("d", "under_review")]),
            FOUR_MANDATORY,
        )
        assert report.mandatory_percentage == 50
        assert report.mandatory_complete is False
        assert report.ready_for_submission is False
        mandatory_gaps = [g for g in report.gaps if g.criticality == "mandatory"]
        assert len(mandatory_gaps) == 2
        assert report.blockers == []
        assert report.in_progress_documents == 2
        assert report.recommendations[0] == (
            "All mandatory documents are complete. You can proceed with submission."
        )

    def test_no_mandatory_templates_is_vacuously_complete(self):
        report = evaluate_completeness(
            _workflow([]),
            [_template("opt", required=False)],
        )
        assert report.mandatory_complete is True
        assert report.mandatory_percentage == 100
        assert report.optional_percentage == 0
        assert report.ready_for_submission is True

    def test_empty_template_set(self):
        report = evaluate_completeness(_workflow([]), [])
        assert report.overall_percentage == 100
        assert report.optional_percentage == 100
        assert report.by_category == []

    def test_missing_mandatory_is_gap_and_blocker(self):
        report = evaluate_completeness(_workflow([]), [_template("a")])
        gap = report.gaps[0]
        assert gap.reason == "missing"
        assert gap.criticality == "mandatory"
        assert gap.suggested_action == 'Create and complete "A" as required by Art. 7'
        assert gap.tips == ["tip"]
        blocker = report.blockers[0]
        assert blocker.type == "missing_mandatory"
        assert blocker.message == "Missing mandatory document: A"

    def test_rejected_mandatory(self):
        report = evaluate_completeness(_workflow([_doc("a", "rejected")]), [_template("a")])
        assert report.gaps[0].reason == "rejected"
        assert report.gaps[0].current_status == "rejected"
        assert report.blockers[0].type == "rejected_document"
        assert report.blockers[0].message == "Document rejected: A. Please revise and resubmit."

    def test_not_started_mandatory_blocks(self):
        report = evaluate_completeness(_workflow([_doc("a", "not_started")]), [_template("a")])
        assert report.gaps[0].reason == "incomplete"
        assert report.gaps[0].suggested_action == 'Start working on "A"'
        assert report.blockers[0].message == "Document not started: A"

    def test_blocked_document_counts_as_not_started(self):
        report = evaluate_completeness(_workflow([_doc("a", "blocked")]), [_template("a")])
        assert len(report.blockers) == 1
        assert report.blockers[0].type == "missing_mandatory"

    def test_optional_documents_never_block(self):
        templates = [_template("o1", False), _template("o2", False), _template("o3", False),
                     _template("o4", False)]
        report = evaluate_completeness(
            _workflow([_doc("o1", "ready"), _doc("o2", "in_progress"), _doc("o3", "rejected")]),
            templates,
        )
        assert report.blockers == []
        assert report.completed_optional == 1
        reasons = {g.document_type: (g.criticality, g.reason) for g in report.gaps}
        assert reasons == {
            "o2": ("recommended", "incomplete"),
            "o4": ("recommended", "missing"),
        }
        assert report.optional_percentage == 25

    @pytest.mark.parametrize("status", ["rejected", "blocked", "not_started"])
    def test_stalled_optional_document_is_not_a_gap(self, status):
        report = evaluate_completeness(
            _workflow([_doc("o1", status, required=False)]),
            [_template("o1", required=False)],
        )
        assert report.gaps == []
        assert report.blockers == []
        assert report.completed_optional == 0
        assert report.optional_percentage == 0

    def test_completed_list(self):
        document = dict(_doc("a", "submitted"), completed_at="2026-04-01T00:00:00+00:00", article_ref="Art. 7")
        report = evaluate_completeness(_workflow([document]), [_template("a")])
        completed = report.completed_list[0]
        assert completed.status == "submitted"
        assert completed.completed_at == "2026-04-01T00:00:00+00:00"
        assert completed.required is True

    def test_blocker_count_messages(self):
        three = evaluate_completeness(_workflow([]), FOUR_MANDATORY[:3])
        assert three.recommendations[0] == "You have 3 mandatory document(s) remaining before you can submit."

        four = evaluate_completeness(_workflow([]), FOUR_MANDATORY)
        assert four.recommendations[0] == (
            "Focus on completing mandatory documents first. 4 items require attention."
        )

    def test_category_recommendations(self):
        templates = [
            _template("t1", category="technical"),
            _template("t2", category="technical"),
            _template("l1", category="legal"),
            _template("f1", category="financial"),
        ]
        report = evaluate_completeness(
            _workflow([_doc("t1", "ready"), _doc("f1", "ready")]),
            templates,
        )
        assert "1 technical document(s) remaining." in report.recommendations
        assert "No legal documents completed yet. Consider starting with these." in report.recommendations
        assert not any("financial" in r for r in report.recommendations)

        by_category = {c.category: c for c in report.by_category}
        assert by_category["technical"].percentage == 50
        assert by_category["financial"].percentage == 100

    def test_high_effort_warning(self):
        report = evaluate_completeness(
            _workflow([]),
            [_template("a", effort="high"), _template("b", effort="high"),
             _template("c", required=False, effort="high")],
        )
        assert report.recommendations[-1] == (
            "2 mandatory document(s) require significant effort. Plan accordingly."
        )

    def test_operator_type_defaults(self):
        report = evaluate_completeness({"id": "wf-1", "documents": []}, [])
        assert report.operator_type == "SCO"

    def test_report_serializes(self):
        data = evaluate_completeness(_workflow([]), [_template("a")]).to_dict()
        assert data["gaps"][0]["document_type"] == "a"
        assert data["blockers"][0]["severity"] == "error"


# =============================================================================
# COMPLETION ESTIMATE
# =============================================================================

def _gap(effort, criticality="mandatory"):
    return DocumentGap(
        document_type="x", name="X", description="", criticality=criticality,
        category="technical", estimated_effort=effort, suggested_action="", reason="missing",
    )


class TestCompletionEstimate:

    def test_parallelization_discount_rounds_up(self):
        estimate = estimate_from_gaps([_gap("low"), _gap("medium"), _gap("high")])
        assert estimate.low_effort_days == 2
        assert estimate.medium_effort_days == 5
        assert estimate.high_effort_days == 10
        # ceil(17 * 0.7) = ceil(11.9)
        assert estimate.total_estimated_days == 12
        assert estimate.confidence == "medium"

    def test_exact_discount(self):
        estimate = estimate_from_gaps([_gap("high")])
        assert estimate.total_estimated_days == 7
        assert estimate.confidence == "high"

    def test_optional_gaps_ignored(self):
        estimate = estimate_from_gaps([_gap("high", criticality="recommended")])
        assert estimate.total_estimated_days == 0
        assert estimate.confidence == "high"

    def test_confidence_drops_with_many_gaps(self):
        assert estimate_from_gaps([_gap("low")] * 5).confidence == "medium"
        assert estimate_from_gaps([_gap("low")] * 6).confidence == "low"


# =============================================================================
# SERVICE
# =============================================================================

@pytest.fixture
def repository():
    repo = MagicMock()
    repo.get_workflow = AsyncMock(return_value=None)
    repo.get_document_templates = AsyncMock(return_value=FOUR_MANDATORY + [_template("opt", False, effort="low")])
    return repo


@pytest.fixture
def service(repository):
    return DocumentCompletenessService(repository)


class TestCompletenessService:

    @pytest.mark.asyncio
    async def test_missing_workflow(self, service):
        assert await service.calculate_completeness_report("missing") is None
        assert await service.get_prioritized_actions("missing") == []
        assert await service.get_missing_document_types("missing") == []
        assert await service.estimate_completion_time("missing") is None

    @pytest.mark.asyncio
    async def test_readiness_for_missing_workflow(self, service):
        readiness = await service.is_workflow_ready_for_submission("missing")
        assert readiness["ready"] is False
        assert readiness["blockers"][0].type == "validation_error"
        assert readiness["blockers"][0].message == "Workflow not found"

    @pytest.mark.asyncio
    async def test_templates_loaded_for_operator_type(self, service, repository):
        repository.get_workflow.return_value = _workflow([], operator_type="LO")
        await service.calculate_completeness_report("wf-1")
        repository.get_document_templates.assert_awaited_once_with("LO")

    @pytest.mark.asyncio
    async def test_readiness(self, service, repository):
        repository.get_workflow.return_value = _workflow([_doc(t, "ready") for t in "abcd"])
        readiness = await service.is_workflow_ready_for_submission("wf-1")
        assert readiness == {"ready": True, "blockers": []}

    @pytest.mark.asyncio
    async def test_prioritized_actions(self, service, repository):
        repository.get_document_templates.return_value = [
            _template("opt_low", required=False, effort="low"),
            _template("hard", effort="high"),
            _template("easy", effort="low"),
            _template("mid", effort="medium"),
        ]
        repository.get_workflow.return_value = _workflow([])
        actions = await service.get_prioritized_actions("wf-1", limit=3)
        assert [a.document_type for a in actions] == ["easy", "mid", "hard"]

    @pytest.mark.asyncio
    async def test_missing_document_types(self, service, repository):
        repository.get_workflow.return_value = _workflow([_doc("a", "ready"), _doc("b", "in_progress")])
        assert await service.get_missing_document_types("wf-1") == ["c", "d", "opt"]

    @pytest.mark.asyncio
    async def test_estimate(self, service, repository):
        repository.get_workflow.return_value = _workflow([_doc("a", "ready")])
        estimate = await service.estimate_completion_time("wf-1")
        # three medium mandatory gaps: ceil(15 * 0.7)
        assert estimate.total_estimated_days == 11
        assert estimate.confidence == "medium"
