"""
Approval Workflow Service

Human-in-the-loop control over AI suggestions.

This is the only component allowed to transition suggestions. It:
- checks preconditions (item exists, item is still Pending, right variant)
- applies the pure transition functions from the suggestion schemas
- stores the transitioned suggestion and the queue status together
- returns an ApprovalResult instead of raising for expected failures

Every read-validate-write runs under the queue lock, so two reviewers
approving the same item at once get exactly one success and one
"already processed".
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence

from ..common.schemas import (
    DecisionSuggestion,
    TaskSuggestion,
    Suggestion,
    SuggestionAction,
    can_transition,
    approve_decision,
    approve_modified_decision,
    modify_decision,
    approve_task,
    modify_task,
    reject_suggestion,
)
from .approval_queue import ApprovalQueue, ItemType, QueueFilter, QueueItem, QueueStatus

logger = logging.getLogger("execassist.review.approval_workflow")


class ApprovalErrorKind(str, Enum):
    """Expected failure categories"""
    NOT_FOUND = "not_found"
    WRONG_TYPE = "wrong_type"
    ALREADY_PROCESSED = "already_processed"
    VALIDATION_FAILED = "validation_failed"


class TransitionError(Exception):
    """Raised when a Pending item wraps a suggestion that cannot transition.

    This means the queue and suggestion projections diverged; it is a
    fault, not a business outcome.
    """

    def __init__(self, message: str, item_id: str, action: SuggestionAction):
        super().__init__(message)
        self.item_id = item_id
        self.action = action


@dataclass
class ApprovalResult:
    """Outcome of a workflow operation"""
    success: bool
    item: Optional[QueueItem] = None
    error: Optional[str] = None
    error_kind: Optional[ApprovalErrorKind] = None
    item_id: Optional[str] = None

    @classmethod
    def ok(cls, item: QueueItem) -> "ApprovalResult":
        return cls(success=True, item=item, item_id=item.id)

    @classmethod
    def fail(cls, kind: ApprovalErrorKind, error: str, item_id: Optional[str] = None) -> "ApprovalResult":
        return cls(success=False, item=None, error=error, error_kind=kind, item_id=item_id)


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _fail(kind: ApprovalErrorKind, error: str, item_id: Optional[str] = None) -> ApprovalResult:
    logger.warning("Refused (%s): %s", kind.value, error)
    return ApprovalResult.fail(kind, error, item_id)


class ApprovalWorkflowService:
    """
    Manages approvals, rejections and edits of queued suggestions.

    The service stores nothing of its own: it reads and mutates items
    through the queue.
    """

    def __init__(self, queue: ApprovalQueue):
        self._queue = queue

    @property
    def queue(self) -> ApprovalQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, suggestion: Suggestion, item_type: ItemType, meeting_id: str) -> QueueItem:
        """
        Put a suggestion up for review.

        Raises:
            DuplicateItemError: If the suggestion ID is already queued
        """
        return self._queue.add(suggestion, item_type, meeting_id)

    def submit_batch(
        self,
        decisions: Iterable[DecisionSuggestion],
        tasks: Iterable[TaskSuggestion],
        meeting_id: str,
    ) -> List[QueueItem]:
        """Submit all suggestions from one meeting: decisions first, then tasks"""
        items = [self.submit(d, ItemType.DECISION, meeting_id) for d in decisions]
        items.extend(self.submit(t, ItemType.TASK, meeting_id) for t in tasks)
        return items

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _check_pending(
        self,
        item_id: str,
        expected_type: Optional[ItemType] = None,
    ):
        """Return (item, None) if the item can be acted on, else (None, failure)."""
        item = self._queue.get(item_id)
        if item is None:
            return None, _fail(
                ApprovalErrorKind.NOT_FOUND, f"Item {item_id} not found", item_id
            )

        if expected_type is not None and item.type != expected_type:
            return None, _fail(
                ApprovalErrorKind.WRONG_TYPE,
                f"Item {item_id} is not a {expected_type.value}",
                item_id,
            )

        if item.status != QueueStatus.PENDING:
            return None, _fail(
                ApprovalErrorKind.ALREADY_PROCESSED,
                f"Item {item_id} already processed ({item.status.value})",
                item_id,
            )

        return item, None

    @staticmethod
    def _ensure_transition(item: QueueItem, action: SuggestionAction) -> None:
        if not can_transition(item.suggestion.status, action):
            raise TransitionError(
                f"Pending item {item.id} wraps a {item.suggestion.status.value} suggestion",
                item.id,
                action,
            )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve_decision(
        self,
        item_id: str,
        approved_by: str,
        modified_text: Optional[str] = None,
    ) -> ApprovalResult:
        """
        Approve a decision, optionally with edited text.

        If modified_text differs from the original, the edit is recorded
        first (Modified) and then approved, so decision_text keeps the AI
        original and final_text returns the edit.
        """
        with self._queue.lock:
            item, failure = self._check_pending(item_id, ItemType.DECISION)
            if failure:
                return failure

            if modified_text is not None and _is_blank(modified_text):
                return _fail(
                    ApprovalErrorKind.VALIDATION_FAILED,
                    "Modified text required",
                    item_id,
                )

            self._ensure_transition(item, SuggestionAction.APPROVE)
            now = self._queue.now()
            decision = item.suggestion

            if modified_text and modified_text != decision.decision_text:
                decision = modify_decision(decision, modified_text)
                decision = approve_modified_decision(decision, approved_by, now=now)
            else:
                decision = approve_decision(decision, approved_by, now=now)

            self._queue.replace_suggestion(item_id, decision)
            self._queue.update_status(item_id, QueueStatus.APPROVED)

        logger.info("Decision %s approved by %s", item_id, approved_by)
        return ApprovalResult.ok(item)

    def approve_task(
        self,
        item_id: str,
        approved_by: str,
        final_assignee: str,
        final_due_date: Optional[date] = None,
        modified_description: Optional[str] = None,
    ) -> ApprovalResult:
        """
        Approve a task. A final assignee is required.

        final_due_date falls back to the suggested due date.
        """
        with self._queue.lock:
            item, failure = self._check_pending(item_id, ItemType.TASK)
            if failure:
                return failure

            if _is_blank(final_assignee):
                return _fail(
                    ApprovalErrorKind.VALIDATION_FAILED,
                    f"Task assignee required for {item_id}",
                    item_id,
                )

            if modified_description is not None and _is_blank(modified_description):
                return _fail(
                    ApprovalErrorKind.VALIDATION_FAILED,
                    "Modified description required",
                    item_id,
                )

            self._ensure_transition(item, SuggestionAction.APPROVE)
            task = item.suggestion

            if modified_description and modified_description != task.description:
                task = modify_task(task, modified_description, final_assignee, final_due_date)

            task = approve_task(
                task,
                approved_by,
                final_assignee,
                final_due_date,
                now=self._queue.now(),
            )

            self._queue.replace_suggestion(item_id, task)
            self._queue.update_status(item_id, QueueStatus.APPROVED)

        logger.info("Task %s approved by %s (assignee: %s)", item_id, approved_by, final_assignee)
        return ApprovalResult.ok(item)

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(self, item_id: str, rejected_by: str, rejection_reason: str) -> ApprovalResult:
        """Reject a decision or task. A non-blank reason is always required."""
        if _is_blank(rejection_reason):
            return _fail(
                ApprovalErrorKind.VALIDATION_FAILED,
                "Rejection reason required",
                item_id,
            )

        with self._queue.lock:
            item, failure = self._check_pending(item_id)
            if failure:
                return failure

            self._ensure_transition(item, SuggestionAction.REJECT)
            rejected = reject_suggestion(
                item.suggestion,
                rejected_by,
                rejection_reason,
                now=self._queue.now(),
            )

            self._queue.replace_suggestion(item_id, rejected)
            self._queue.update_status(item_id, QueueStatus.REJECTED)

        logger.info("%s %s rejected by %s", item.type.value.capitalize(), item_id, rejected_by)
        return ApprovalResult.ok(item)

    # ------------------------------------------------------------------
    # Modification (edit before deciding)
    # ------------------------------------------------------------------

    def modify_decision(self, item_id: str, modified_text: str) -> ApprovalResult:
        """Record an edit without approving; the item stays Pending."""
        if _is_blank(modified_text):
            return _fail(
                ApprovalErrorKind.VALIDATION_FAILED,
                "Modified text required",
                item_id,
            )

        with self._queue.lock:
            item, failure = self._check_pending(item_id, ItemType.DECISION)
            if failure:
                return failure

            self._ensure_transition(item, SuggestionAction.MODIFY)
            self._queue.replace_suggestion(item_id, modify_decision(item.suggestion, modified_text))

        logger.info("Decision %s modified", item_id)
        return ApprovalResult.ok(item)

    def modify_task(
        self,
        item_id: str,
        modified_description: str,
        modified_assignee: Optional[str] = None,
        modified_due_date: Optional[date] = None,
    ) -> ApprovalResult:
        """Record an edit without approving; the item stays Pending."""
        if _is_blank(modified_description):
            return _fail(
                ApprovalErrorKind.VALIDATION_FAILED,
                "Modified description required",
                item_id,
            )

        with self._queue.lock:
            item, failure = self._check_pending(item_id, ItemType.TASK)
            if failure:
                return failure

            self._ensure_transition(item, SuggestionAction.MODIFY)
            task = modify_task(item.suggestion, modified_description, modified_assignee, modified_due_date)
            self._queue.replace_suggestion(item_id, task)

        logger.info("Task %s modified", item_id)
        return ApprovalResult.ok(item)

    # ------------------------------------------------------------------
    # Batch operations (not atomic: each id succeeds or fails on its own)
    # ------------------------------------------------------------------

    def batch_approve(
        self,
        item_ids: Sequence[str],
        approved_by: str,
        task_assignee_map: Mapping[str, str],
    ) -> List[ApprovalResult]:
        """
        Approve several items with their original content.

        Tasks take their assignee from task_assignee_map; a task without an
        entry fails on its own without affecting the rest of the batch.
        """
        results = []

        for item_id in item_ids:
            item = self._queue.get(item_id)
            if item is None:
                results.append(_fail(
                    ApprovalErrorKind.NOT_FOUND, f"Item {item_id} not found", item_id
                ))
                continue

            if item.type == ItemType.DECISION:
                results.append(self.approve_decision(item_id, approved_by))
                continue

            assignee = task_assignee_map.get(item_id)
            if _is_blank(assignee):
                results.append(_fail(
                    ApprovalErrorKind.VALIDATION_FAILED,
                    f"Task assignee required for {item_id}",
                    item_id,
                ))
                continue

            results.append(self.approve_task(item_id, approved_by, assignee))

        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch approve by %s: %d/%d succeeded", approved_by, succeeded, len(results))
        return results

    def batch_reject(
        self,
        item_ids: Sequence[str],
        rejected_by: str,
        rejection_reason: str,
    ) -> List[ApprovalResult]:
        """Reject several items with one reason, independently."""
        return [self.reject(item_id, rejected_by, rejection_reason) for item_id in item_ids]

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def items_needing_escalation(
        self,
        threshold_hours: float = ApprovalQueue.DEFAULT_ESCALATION_HOURS,
        now: Optional[datetime] = None,
    ) -> List[QueueItem]:
        return self._queue.items_needing_escalation(threshold_hours, now)

    def escalate(self, item_id: str) -> ApprovalResult:
        """Flag one Pending item as overdue."""
        with self._queue.lock:
            item, failure = self._check_pending(item_id)
            if failure:
                return failure
            self._queue.mark_escalated(item_id)

        logger.info("Item %s escalated", item_id)
        return ApprovalResult.ok(item)

    def escalate_overdue(
        self,
        threshold_hours: float = ApprovalQueue.DEFAULT_ESCALATION_HOURS,
        now: Optional[datetime] = None,
    ) -> List[QueueItem]:
        """
        Mark every overdue item as escalated.

        Returns only the items escalated by this call, so the caller
        notifies each one exactly once.
        """
        with self._queue.lock:
            overdue = self._queue.items_needing_escalation(threshold_hours, now)
            for item in overdue:
                self._queue.mark_escalated(item.id)

        if overdue:
            logger.info("Escalated %d item(s) pending more than %sh", len(overdue), threshold_hours)
        return overdue

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending_for_meeting(self, meeting_id: str) -> List[QueueItem]:
        return self._queue.list(QueueFilter(meeting_id=meeting_id, status=QueueStatus.PENDING))

    def all_pending(self) -> List[QueueItem]:
        return self._queue.pending_items()

    def approved_items(self, item_type: Optional[ItemType] = None) -> List[QueueItem]:
        """Approved items for downstream sinks to consume"""
        return self._queue.list(QueueFilter(status=QueueStatus.APPROVED, type=item_type))

    def stats(self) -> dict:
        counts = self._queue.count_by_status()
        stats = {status.value.lower(): count for status, count in counts.items()}
        stats["total"] = len(self._queue)
        stats["escalated"] = len(self._queue.list(QueueFilter(escalated=True)))
        return stats
