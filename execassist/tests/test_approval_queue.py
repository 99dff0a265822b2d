"""Tests for the approval queue"""

import logging
import pytest
from datetime import datetime, timedelta, timezone

from execassist.common.schemas import (
    SourceReference,
    SourceType,
    SuggestionStatus,
    create_decision_suggestion,
    create_task_suggestion,
    modify_decision,
)
from execassist.review.approval_queue import (
    ApprovalQueue,
    DuplicateItemError,
    ItemType,
    QueueFilter,
    QueueItem,
    QueueStatus,
    map_to_suggestion_status,
)

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _decision(suggestion_id=None, text="Adopt Kafka"):
    return create_decision_suggestion(
        text, 85, SourceReference(type=SourceType.MEETING, source_id="m1"),
        suggestion_id=suggestion_id,
    )


def _task(suggestion_id=None, text="Write the runbook"):
    return create_task_suggestion(
        text, 70, SourceReference(type=SourceType.MEETING, source_id="m1"),
        suggestion_id=suggestion_id,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(clock):
    return ApprovalQueue(clock=clock)


class TestAdd:
    def test_add_wraps_in_pending_envelope(self, queue):
        d = _decision()
        item = queue.add(d, ItemType.DECISION, "m1")

        assert item.id == d.id
        assert item.type == ItemType.DECISION
        assert item.status == QueueStatus.PENDING
        assert item.meeting_id == "m1"
        assert item.added_at == item.updated_at == START
        assert item.escalated is False
        assert item.escalated_at is None
        assert queue.get(d.id) is item
        assert len(queue) == 1
        assert d.id in queue

    def test_type_mismatch_rejected(self, queue):
        with pytest.raises(ValueError):
            queue.add(_task(), ItemType.DECISION, "m1")
        assert len(queue) == 0

    def test_duplicate_id_refused(self, queue, caplog):
        queue.add(_decision("dup", "First"), ItemType.DECISION, "m1")
        with caplog.at_level(logging.WARNING, logger="execassist.review.approval_queue"), \
             pytest.raises(DuplicateItemError) as exc_info:
            queue.add(_decision("dup", "Second"), ItemType.DECISION, "m1")

        assert exc_info.value.item_id == "dup"
        assert len(queue) == 1
        assert queue.get("dup").suggestion.decision_text == "First"
        assert "duplicate item id dup" in caplog.text

    def test_duplicate_id_does_not_reopen_processed_item(self, queue):
        queue.add(_decision("dup"), ItemType.DECISION, "m1")
        queue.update_status("dup", QueueStatus.APPROVED)

        with pytest.raises(DuplicateItemError):
            queue.add(_decision("dup", "Other"), ItemType.DECISION, "m1")

        item = queue.get("dup")
        assert item.status == QueueStatus.APPROVED
        assert item.suggestion.decision_text == "Adopt Kafka"

    def test_id_reusable_after_remove(self, queue):
        queue.add(_decision("dup"), ItemType.DECISION, "m1")
        queue.remove("dup")
        assert queue.add(_decision("dup"), ItemType.DECISION, "m1").status == QueueStatus.PENDING

    def test_queue_item_validator(self):
        with pytest.raises(ValueError):
            QueueItem(
                id="x", type=ItemType.TASK, suggestion=_decision("x"), meeting_id="m1",
                added_at=START, updated_at=START,
            )


class TestGetAndList:
    def test_get_missing(self, queue):
        assert queue.get("nope") is None

    def test_list_insertion_order(self, queue):
        ids = []
        for i in range(5):
            ids.append(queue.add(_decision(f"d{i}"), ItemType.DECISION, "m1").id)
        assert [item.id for item in queue.list()] == ids

    def test_filters_combine(self, queue, clock):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.add(_task("t1"), ItemType.TASK, "m1")
        queue.add(_task("t2"), ItemType.TASK, "m2")
        queue.update_status("t1", QueueStatus.APPROVED)

        assert [i.id for i in queue.list(QueueFilter(type=ItemType.TASK))] == ["t1", "t2"]
        assert [i.id for i in queue.list(QueueFilter(meeting_id="m1"))] == ["d1", "t1"]
        assert [i.id for i in queue.list(QueueFilter(
            status=QueueStatus.PENDING, type=ItemType.TASK,
        ))] == ["t2"]
        assert queue.list(QueueFilter(meeting_id="m3")) == []

    def test_date_bounds_are_strict(self, queue, clock):
        queue.add(_decision("early"), ItemType.DECISION, "m1")
        clock.advance(hours=1)
        queue.add(_decision("late"), ItemType.DECISION, "m1")

        assert [i.id for i in queue.list(QueueFilter(added_before=START + timedelta(hours=1)))] == ["early"]
        assert [i.id for i in queue.list(QueueFilter(added_after=START))] == ["late"]
        assert queue.list(QueueFilter(added_before=START)) == []

    def test_escalated_filter(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.add(_decision("d2"), ItemType.DECISION, "m1")
        queue.mark_escalated("d2")
        assert [i.id for i in queue.list(QueueFilter(escalated=True))] == ["d2"]
        assert [i.id for i in queue.list(QueueFilter(escalated=False))] == ["d1"]

    def test_pending_helpers(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.add(_task("t1"), ItemType.TASK, "m2")
        queue.add(_task("t2"), ItemType.TASK, "m2")
        queue.update_status("t2", QueueStatus.REJECTED)

        assert [i.id for i in queue.pending_items()] == ["d1", "t1"]
        assert [i.id for i in queue.pending_decisions()] == ["d1"]
        assert [i.id for i in queue.pending_tasks()] == ["t1"]
        assert [i.id for i in queue.items_for_meeting("m2")] == ["t1", "t2"]


class TestUpdateStatus:
    def test_sets_both_projections(self, queue, clock):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        clock.advance(minutes=5)
        item = queue.update_status("d1", QueueStatus.APPROVED)

        assert item.status == QueueStatus.APPROVED
        assert item.suggestion.status == SuggestionStatus.APPROVED
        assert item.updated_at == START + timedelta(minutes=5)
        assert item.added_at == START

    def test_is_unchecked(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.update_status("d1", QueueStatus.REJECTED)
        item = queue.update_status("d1", QueueStatus.APPROVED)
        assert item.status == QueueStatus.APPROVED

    def test_pending_maps_to_suggested(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.update_status("d1", QueueStatus.APPROVED)
        item = queue.update_status("d1", QueueStatus.PENDING)
        assert item.suggestion.status == SuggestionStatus.SUGGESTED

    def test_missing_item(self, queue):
        assert queue.update_status("nope", QueueStatus.APPROVED) is None

    def test_status_mapping(self):
        assert map_to_suggestion_status(QueueStatus.PENDING) == SuggestionStatus.SUGGESTED
        assert map_to_suggestion_status(QueueStatus.APPROVED) == SuggestionStatus.APPROVED
        assert map_to_suggestion_status(QueueStatus.REJECTED) == SuggestionStatus.REJECTED


class TestReplaceSuggestion:
    def test_replace(self, queue, clock):
        d = _decision("d1")
        queue.add(d, ItemType.DECISION, "m1")
        clock.advance(minutes=1)
        item = queue.replace_suggestion("d1", modify_decision(d, "Edited"))

        assert item.suggestion.modified_text == "Edited"
        assert item.status == QueueStatus.PENDING
        assert item.updated_at == START + timedelta(minutes=1)

    def test_replace_with_other_id_rejected(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        with pytest.raises(ValueError):
            queue.replace_suggestion("d1", _decision("d2"))

    def test_replace_with_other_variant_rejected(self, queue):
        queue.add(_decision("x"), ItemType.DECISION, "m1")
        with pytest.raises(ValueError):
            queue.replace_suggestion("x", _task("x"))

    def test_replace_missing(self, queue):
        assert queue.replace_suggestion("nope", _decision("nope")) is None


class TestEscalationAndRemoval:
    def test_mark_escalated(self, queue, clock):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        clock.advance(hours=1)
        item = queue.mark_escalated("d1")

        assert item.escalated is True
        assert item.escalated_at == START + timedelta(hours=1)
        assert item.updated_at == item.escalated_at
        assert item.status == QueueStatus.PENDING

    def test_mark_escalated_missing(self, queue):
        assert queue.mark_escalated("nope") is None

    def test_items_needing_escalation_default_threshold(self, queue, clock):
        queue.add(_decision("old"), ItemType.DECISION, "m1")
        clock.advance(hours=10)
        queue.add(_decision("new"), ItemType.DECISION, "m1")

        clock.advance(hours=62)
        # "old" is exactly 72h old: strictly-before cutoff excludes it
        assert queue.items_needing_escalation() == []

        clock.advance(seconds=1)
        assert [i.id for i in queue.items_needing_escalation()] == ["old"]

    def test_items_needing_escalation_skips_processed_and_escalated(self, queue, clock):
        for i in range(3):
            queue.add(_decision(f"d{i}"), ItemType.DECISION, "m1")
        queue.update_status("d0", QueueStatus.APPROVED)
        queue.mark_escalated("d1")

        later = START + timedelta(hours=100)
        assert [i.id for i in queue.items_needing_escalation(now=later)] == ["d2"]

    def test_items_needing_escalation_is_read_only(self, queue, clock):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        later = START + timedelta(hours=5)
        queue.items_needing_escalation(threshold_hours=1, now=later)
        assert queue.get("d1").escalated is False

    def test_remove(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        assert queue.remove("d1") is True
        assert queue.remove("d1") is False
        assert queue.get("d1") is None

    def test_count_by_status_includes_zeros(self, queue):
        assert queue.count_by_status() == {
            QueueStatus.PENDING: 0,
            QueueStatus.APPROVED: 0,
            QueueStatus.REJECTED: 0,
        }
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.add(_task("t1"), ItemType.TASK, "m1")
        queue.update_status("t1", QueueStatus.REJECTED)
        counts = queue.count_by_status()
        assert counts[QueueStatus.PENDING] == 1
        assert counts[QueueStatus.REJECTED] == 1
        assert sum(counts.values()) == len(queue)

    def test_clear(self, queue):
        queue.add(_decision("d1"), ItemType.DECISION, "m1")
        queue.clear()
        assert len(queue) == 0
