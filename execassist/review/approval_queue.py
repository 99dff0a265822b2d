"""
Approval Queue

Authoritative in-memory store of suggestions awaiting human review.

Each suggestion is wrapped in a QueueItem envelope that tracks the
queue-level status (Pending/Approved/Rejected), escalation and timestamps.
The queue does keyed storage and filtered retrieval only: it performs no
business-rule validation. Precondition checks ("must still be Pending",
"assignee required", ...) belong to ApprovalWorkflowService.

Suggestion IDs are generated by the producer and must be unique. An ID that
is already queued is refused: an envelope is created once and only leaves
the queue through remove().
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, model_validator

from ..common.schemas import Suggestion, SuggestionStatus

logger = logging.getLogger("execassist.review.approval_queue")


class DuplicateItemError(ValueError):
    """Raised when a suggestion ID is already in the queue"""

    def __init__(self, item_id: str):
        super().__init__(f"Item {item_id} already queued")
        self.item_id = item_id


class QueueStatus(str, Enum):
    """Queue-level projection of the suggestion status"""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ItemType(str, Enum):
    """Variant of the wrapped suggestion"""
    DECISION = "decision"
    TASK = "task"


class QueueItem(BaseModel):
    """Envelope around a suggestion in the approval queue"""
    id: str
    type: ItemType
    suggestion: Suggestion
    meeting_id: str
    status: QueueStatus = QueueStatus.PENDING
    added_at: datetime
    updated_at: datetime
    escalated: bool = False
    escalated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_variant(self) -> "QueueItem":
        if self.suggestion.kind != self.type.value:
            raise ValueError(
                f"item type {self.type.value!r} does not match {self.suggestion.kind} suggestion"
            )
        return self


class QueueFilter(BaseModel):
    """AND-combined filter for ApprovalQueue.list(). Unset fields match anything."""
    status: Optional[QueueStatus] = None
    type: Optional[ItemType] = None
    meeting_id: Optional[str] = None
    escalated: Optional[bool] = None
    added_before: Optional[datetime] = None
    added_after: Optional[datetime] = None

    def matches(self, item: QueueItem) -> bool:
        if self.status is not None and item.status != self.status:
            return False
        if self.type is not None and item.type != self.type:
            return False
        if self.meeting_id is not None and item.meeting_id != self.meeting_id:
            return False
        if self.escalated is not None and item.escalated != self.escalated:
            return False
        if self.added_before is not None and not item.added_at < self.added_before:
            return False
        if self.added_after is not None and not item.added_at > self.added_after:
            return False
        return True


# Queue status -> suggestion status. Pending maps back to Suggested.
_STATUS_MAP: Dict[QueueStatus, SuggestionStatus] = {
    QueueStatus.APPROVED: SuggestionStatus.APPROVED,
    QueueStatus.REJECTED: SuggestionStatus.REJECTED,
}


def map_to_suggestion_status(status: QueueStatus) -> SuggestionStatus:
    return _STATUS_MAP.get(status, SuggestionStatus.SUGGESTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalQueue:
    """
    Keyed store of QueueItems.

    All access goes through a single re-entrant lock. Callers that need a
    read-validate-write sequence to be atomic (the workflow service) hold
    ``queue.lock`` around the whole sequence; the queue's own methods
    re-acquire it safely.

    Items are returned by reference: the queue is their only owner.
    """

    DEFAULT_ESCALATION_HOURS = 72

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize approval queue.

        Args:
            clock: Returns the current time (default: UTC now)
        """
        self._items: Dict[str, QueueItem] = {}
        self._clock = clock or _utcnow
        self.lock = threading.RLock()

    def now(self) -> datetime:
        return self._clock()

    def add(self, suggestion: Suggestion, item_type: ItemType, meeting_id: str) -> QueueItem:
        """
        Wrap a suggestion in a Pending envelope.

        Raises:
            ValueError: If item_type does not match the suggestion variant
            DuplicateItemError: If the suggestion ID is already queued
        """
        now = self._clock()
        item = QueueItem(
            id=suggestion.id,
            type=item_type,
            suggestion=suggestion,
            meeting_id=meeting_id,
            status=QueueStatus.PENDING,
            added_at=now,
            updated_at=now,
            escalated=False,
            escalated_at=None,
        )

        with self.lock:
            if item.id in self._items:
                logger.warning("Refusing duplicate item id %s", item.id)
                raise DuplicateItemError(item.id)
            self._items[item.id] = item

        logger.info("Queued %s %s for meeting %s", item.type.value, item.id, meeting_id)
        return item

    def get(self, item_id: str) -> Optional[QueueItem]:
        with self.lock:
            return self._items.get(item_id)

    def list(self, filter: Optional[QueueFilter] = None) -> List[QueueItem]:
        """Items matching the filter, in insertion order"""
        with self.lock:
            items = list(self._items.values())
        if filter is None:
            return items
        return [item for item in items if filter.matches(item)]

    def items_for_meeting(self, meeting_id: str) -> List[QueueItem]:
        return self.list(QueueFilter(meeting_id=meeting_id))

    def pending_items(self) -> List[QueueItem]:
        return self.list(QueueFilter(status=QueueStatus.PENDING))

    def pending_decisions(self) -> List[QueueItem]:
        return self.list(QueueFilter(status=QueueStatus.PENDING, type=ItemType.DECISION))

    def pending_tasks(self) -> List[QueueItem]:
        return self.list(QueueFilter(status=QueueStatus.PENDING, type=ItemType.TASK))

    def update_status(self, item_id: str, status: QueueStatus) -> Optional[QueueItem]:
        """
        Set the envelope status and the mapped suggestion status.

        Low-level primitive: the current status is NOT checked. Only
        ApprovalWorkflowService enforces "must be Pending".
        """
        with self.lock:
            item = self._items.get(item_id)
            if item is None:
                return None

            item.status = status
            item.updated_at = self._clock()
            item.suggestion.status = map_to_suggestion_status(status)
            return item

    def replace_suggestion(self, item_id: str, suggestion: Suggestion) -> Optional[QueueItem]:
        """
        Store a transitioned copy of the wrapped suggestion.

        Raises:
            ValueError: If the suggestion is not the same item or variant
        """
        with self.lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            if suggestion.id != item.id or suggestion.kind != item.type.value:
                raise ValueError(f"Suggestion {suggestion.id} cannot replace item {item_id}")

            item.suggestion = suggestion
            item.updated_at = self._clock()
            return item

    def mark_escalated(self, item_id: str) -> Optional[QueueItem]:
        """
        Flag an item as overdue for review.

        Idempotent in effect, but the timestamp moves on every call:
        check ``item.escalated`` first to decide whether to notify.
        """
        with self.lock:
            item = self._items.get(item_id)
            if item is None:
                return None

            now = self._clock()
            item.escalated = True
            item.escalated_at = now
            item.updated_at = now
            return item

    def remove(self, item_id: str) -> bool:
        with self.lock:
            return self._items.pop(item_id, None) is not None

    def count_by_status(self) -> Dict[QueueStatus, int]:
        counts = {status: 0 for status in QueueStatus}
        with self.lock:
            for item in self._items.values():
                counts[item.status] += 1
        return counts

    def items_needing_escalation(
        self,
        threshold_hours: float = DEFAULT_ESCALATION_HOURS,
        now: Optional[datetime] = None,
    ) -> List[QueueItem]:
        """
        Pending, not yet escalated items added more than threshold_hours ago.

        Pure query. Marking is a separate call to mark_escalated().
        """
        cutoff = (now or self._clock()) - timedelta(hours=threshold_hours)
        return self.list(QueueFilter(
            status=QueueStatus.PENDING,
            escalated=False,
            added_before=cutoff,
        ))

    def clear(self) -> None:
        with self.lock:
            self._items.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        with self.lock:
            return item_id in self._items
