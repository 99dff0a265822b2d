"""Tests for escalation notifications"""

import json
import logging
import httpx
import pytest
from datetime import datetime, timezone

from execassist.common.schemas import SourceReference, SourceType, create_task_suggestion
from execassist.review.approval_queue import ApprovalQueue, ItemType
from execassist.review.notifier import EscalationNotifier, build_escalation_message

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def items():
    queue = ApprovalQueue(clock=lambda: T0)
    result = []
    for i in range(2):
        t = create_task_suggestion(
            f"Task {i}", 65, SourceReference(type=SourceType.MEETING, source_id="M1"),
            suggestion_id=f"t{i}",
        )
        queue.add(t, ItemType.TASK, "M1")
        result.append(queue.mark_escalated(t.id))
    return result


class TestBuildMessage:
    def test_fields(self, items):
        msg = build_escalation_message(items[0])
        assert msg["event"] == "suggestion.escalated"
        assert msg["item_id"] == "t0"
        assert msg["type"] == "task"
        assert msg["summary"] == "Task 0"
        assert msg["confidence_level"] == "medium"
        assert msg["escalated_at"] == T0.isoformat()


class TestEscalationNotifier:
    @pytest.mark.asyncio
    async def test_without_webhook_logs_only(self, items, caplog):
        notifier = EscalationNotifier()
        assert not notifier.is_enabled

        with caplog.at_level(logging.INFO, logger="execassist.review.notifier"):
            report = await notifier.notify(items)

        assert report.sent == 2
        assert report.failed == 0
        assert "Escalated task t0" in caplog.text

    @pytest.mark.asyncio
    async def test_posts_one_message_per_item(self, items):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(200)

        notifier = EscalationNotifier(
            webhook_url="https://hooks.example.com/review",
            transport=httpx.MockTransport(handler),
        )
        report = await notifier.notify(items)

        assert report.sent == 2
        assert [m["item_id"] for m in received] == ["t0", "t1"]

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, items, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(500 if body["item_id"] == "t1" else 204)

        notifier = EscalationNotifier(
            webhook_url="https://hooks.example.com/review",
            transport=httpx.MockTransport(handler),
        )
        with caplog.at_level(logging.WARNING, logger="execassist.review.notifier"):
            report = await notifier.notify(items)

        assert report.sent == 1
        assert report.failed == 1
        assert report.failed_ids == ["t1"]
        assert "t1 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_nothing_to_send(self):
        report = await EscalationNotifier(webhook_url="https://hooks.example.com").notify([])
        assert report.sent == 0
