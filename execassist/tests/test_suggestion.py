"""Tests for suggestion schemas and the pure transition functions"""

import pytest
from datetime import date, datetime, timezone

from pydantic import TypeAdapter, ValidationError

from execassist.common.schemas import (
    DecisionSuggestion,
    TaskSuggestion,
    Suggestion,
    SourceReference,
    SourceType,
    SuggestionStatus,
    SuggestionAction,
    can_transition,
    get_target_status,
    create_decision_suggestion,
    create_task_suggestion,
    approve_decision,
    modify_decision,
    approve_modified_decision,
    approve_task,
    modify_task,
    reject_suggestion,
    get_confidence_level,
)

NOW = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def source():
    return SourceReference(type=SourceType.MEETING, source_id="m1", timestamp_ref="00:12:30")


@pytest.fixture
def decision(source):
    return create_decision_suggestion(
        decision_text="Use PostgreSQL for billing",
        confidence_score=90,
        source_reference=source,
        context="Database discussion",
    )


@pytest.fixture
def task(source):
    return create_task_suggestion(
        description="Draft the migration plan",
        confidence_score=75,
        source_reference=source,
        suggested_assignee="alice",
        suggested_due_date=date(2024, 3, 8),
    )


class TestTransitionTable:
    @pytest.mark.parametrize("status", [SuggestionStatus.SUGGESTED, SuggestionStatus.MODIFIED])
    def test_pending_statuses_allow_every_action(self, status):
        for action in SuggestionAction:
            assert can_transition(status, action)

    @pytest.mark.parametrize("status", [SuggestionStatus.APPROVED, SuggestionStatus.REJECTED])
    def test_terminal_statuses_allow_nothing(self, status):
        for action in SuggestionAction:
            assert not can_transition(status, action)
            assert get_target_status(status, action) is None

    def test_targets(self):
        assert get_target_status(SuggestionStatus.SUGGESTED, SuggestionAction.MODIFY) == SuggestionStatus.MODIFIED
        assert get_target_status(SuggestionStatus.MODIFIED, SuggestionAction.MODIFY) == SuggestionStatus.MODIFIED
        assert get_target_status(SuggestionStatus.MODIFIED, SuggestionAction.APPROVE) == SuggestionStatus.APPROVED
        assert get_target_status(SuggestionStatus.SUGGESTED, SuggestionAction.REJECT) == SuggestionStatus.REJECTED


class TestFactories:
    def test_new_decision_is_suggested(self, decision):
        assert decision.kind == "decision"
        assert decision.status == SuggestionStatus.SUGGESTED
        assert decision.id.startswith("dec_")
        assert decision.modified_text is None
        assert decision.approved_by is None
        assert decision.final_text == "Use PostgreSQL for billing"
        assert decision.is_pending
        assert not decision.is_processed

    def test_new_task_is_suggested(self, task):
        assert task.kind == "task"
        assert task.status == SuggestionStatus.SUGGESTED
        assert task.id.startswith("task_")
        assert task.final_assignee is None
        assert task.final_description == "Draft the migration plan"

    def test_ids_are_unique(self, source):
        ids = {
            create_decision_suggestion("x", 50, source).id
            for _ in range(100)
        }
        assert len(ids) == 100

    def test_explicit_id(self, source):
        d = create_decision_suggestion("x", 50, source, suggestion_id="dec-fixed")
        assert d.id == "dec-fixed"

    @pytest.mark.parametrize("score", [-1, 101])
    def test_confidence_out_of_range_rejected(self, source, score):
        with pytest.raises(ValidationError):
            create_decision_suggestion("x", score, source)

    def test_source_reference_is_frozen(self, source):
        with pytest.raises(ValidationError):
            source.source_id = "other"


class TestDiscriminatedUnion:
    def test_parses_by_kind(self, decision, task):
        adapter = TypeAdapter(Suggestion)
        parsed_decision = adapter.validate_python(decision.model_dump())
        parsed_task = adapter.validate_python(task.model_dump())
        assert isinstance(parsed_decision, DecisionSuggestion)
        assert isinstance(parsed_task, TaskSuggestion)

    def test_unknown_kind_rejected(self, decision):
        data = decision.model_dump()
        data["kind"] = "memo"
        with pytest.raises(ValidationError):
            TypeAdapter(Suggestion).validate_python(data)


class TestDecisionTransitions:
    def test_approve(self, decision):
        approved = approve_decision(decision, "bob", now=NOW)
        assert approved.status == SuggestionStatus.APPROVED
        assert approved.approved_by == "bob"
        assert approved.approval_timestamp == NOW
        assert approved.is_processed

    def test_transitions_return_copies(self, decision):
        approve_decision(decision, "bob")
        modify_decision(decision, "Edited")
        assert decision.status == SuggestionStatus.SUGGESTED
        assert decision.modified_text is None

    def test_modify_keeps_original(self, decision):
        modified = modify_decision(decision, "Use PostgreSQL 16 for billing")
        assert modified.status == SuggestionStatus.MODIFIED
        assert modified.decision_text == "Use PostgreSQL for billing"
        assert modified.modified_text == "Use PostgreSQL 16 for billing"
        assert modified.final_text == "Use PostgreSQL 16 for billing"

    def test_approve_modified_keeps_edit(self, decision):
        approved = approve_modified_decision(modify_decision(decision, "Edited"), "bob", now=NOW)
        assert approved.status == SuggestionStatus.APPROVED
        assert approved.modified_text == "Edited"
        assert approved.decision_text == "Use PostgreSQL for billing"

    def test_approve_modified_with_new_text(self, decision):
        approved = approve_modified_decision(modify_decision(decision, "Edited"), "bob", final_text="Final")
        assert approved.final_text == "Final"

    def test_approve_after_modify_keeps_modified_text(self, decision):
        approved = approve_decision(modify_decision(decision, "Edited"), "bob")
        assert approved.final_text == "Edited"

    def test_reject_records_rejecter_in_approved_by(self, decision):
        rejected = reject_suggestion(decision, "carol", "Not decided yet", now=NOW)
        assert rejected.status == SuggestionStatus.REJECTED
        assert rejected.approved_by == "carol"
        assert rejected.rejection_reason == "Not decided yet"
        assert rejected.approval_timestamp == NOW


class TestTaskTransitions:
    def test_approve_uses_given_values(self, task):
        approved = approve_task(task, "bob", "dave", date(2024, 4, 1), now=NOW)
        assert approved.status == SuggestionStatus.APPROVED
        assert approved.final_assignee == "dave"
        assert approved.final_due_date == date(2024, 4, 1)
        assert approved.suggested_assignee == "alice"

    def test_approve_due_date_falls_back_to_suggested(self, task):
        approved = approve_task(task, "bob", "dave")
        assert approved.final_due_date == date(2024, 3, 8)

    def test_modify_falls_back_to_suggested(self, task):
        modified = modify_task(task, "Draft and review the migration plan")
        assert modified.status == SuggestionStatus.MODIFIED
        assert modified.description == "Draft the migration plan"
        assert modified.final_description == "Draft and review the migration plan"
        assert modified.final_assignee == "alice"
        assert modified.final_due_date == date(2024, 3, 8)

    def test_modify_with_overrides(self, task):
        modified = modify_task(task, "Other", modified_assignee="erin", modified_due_date=date(2024, 5, 1))
        assert modified.final_assignee == "erin"
        assert modified.final_due_date == date(2024, 5, 1)

    def test_reject(self, task):
        rejected = reject_suggestion(task, "carol", "Duplicate")
        assert isinstance(rejected, TaskSuggestion)
        assert rejected.status == SuggestionStatus.REJECTED
        assert rejected.approved_by == "carol"


class TestConfidenceLevel:
    @pytest.mark.parametrize("score,level", [
        (100, "high"), (80, "high"), (79, "medium"), (60, "medium"), (59, "low"), (0, "low"),
    ])
    def test_levels(self, score, level):
        assert get_confidence_level(score) == level
