"""
Escalation Notifier

Tells someone when suggestions have waited too long for review.

Posts one JSON message per escalated item to a webhook. Without a webhook
the escalation is only logged. Delivery problems are logged and counted;
they never undo or block the escalation itself.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..common.schemas import get_confidence_level
from .approval_queue import QueueItem

logger = logging.getLogger("execassist.review.notifier")


@dataclass
class NotificationReport:
    """Outcome of one notification round"""
    sent: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)


def build_escalation_message(item: QueueItem) -> dict:
    """JSON body sent for one escalated item"""
    suggestion = item.suggestion
    summary = suggestion.decision_text if item.type.value == "decision" else suggestion.description
    return {
        "event": "suggestion.escalated",
        "item_id": item.id,
        "type": item.type.value,
        "meeting_id": item.meeting_id,
        "summary": summary[:200],
        "confidence": suggestion.confidence_score,
        "confidence_level": get_confidence_level(suggestion.confidence_score),
        "added_at": item.added_at.isoformat(),
        "escalated_at": item.escalated_at.isoformat() if item.escalated_at else None,
    }


class EscalationNotifier:
    """Delivers escalation messages to a webhook"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize notifier.

        Args:
            webhook_url: Where to POST messages (None: log only)
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.webhook_url = webhook_url or None
        self._timeout = timeout
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        return self.webhook_url is not None

    async def notify(self, items: List[QueueItem]) -> NotificationReport:
        report = NotificationReport()
        if not items:
            return report

        if not self.is_enabled:
            for item in items:
                logger.info("Escalated %s %s (meeting %s)", item.type.value, item.id, item.meeting_id)
            report.sent = len(items)
            return report

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        ) as client:
            for item in items:
                try:
                    response = await client.post(self.webhook_url, json=build_escalation_message(item))
                    response.raise_for_status()
                    report.sent += 1
                except httpx.HTTPError as e:
                    logger.warning("Escalation notice for %s failed: %s", item.id, e)
                    report.failed += 1
                    report.failed_ids.append(item.id)

        return report
