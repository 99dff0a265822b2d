"""
Review - Human Approval of AI Suggestions

Queues AI-suggested decisions and tasks and lets a reviewer approve,
modify or reject them before anything reaches the decision archive or the
task tracker.

Key Components:
- ApprovalQueue: Keyed in-memory store of suggestions under review
- ApprovalWorkflowService: The only place where suggestions change state
- PatternSuggestionExtractor: Transcript -> suggestions
- EscalationNotifier: Webhook notices for items waiting too long
- Sinks: Decision archive and task tracker for approved items

Rules:
1. Only Pending items can be acted on
2. Approved and Rejected are terminal
3. Tasks need an assignee to be approved
4. Rejections need a reason
5. Edits never overwrite the AI original
6. Batch operations are not atomic: each item stands alone
"""

from .approval_queue import (
    ApprovalQueue,
    DuplicateItemError,
    QueueItem,
    QueueFilter,
    QueueStatus,
    ItemType,
    map_to_suggestion_status,
)
from .approval_workflow import (
    ApprovalWorkflowService,
    ApprovalResult,
    ApprovalErrorKind,
    TransitionError,
)
from .extractor import (
    PatternSuggestionExtractor,
    SuggestionProducer,
    MeetingAttendee,
    ExtractionResult,
)
from .notifier import EscalationNotifier, NotificationReport

__all__ = [
    "ApprovalQueue",
    "DuplicateItemError",
    "QueueItem",
    "QueueFilter",
    "QueueStatus",
    "ItemType",
    "map_to_suggestion_status",
    "ApprovalWorkflowService",
    "ApprovalResult",
    "ApprovalErrorKind",
    "TransitionError",
    "PatternSuggestionExtractor",
    "SuggestionProducer",
    "MeetingAttendee",
    "ExtractionResult",
    "EscalationNotifier",
    "NotificationReport",
]
