"""
Suggestion Schemas

AI-proposed decisions and tasks awaiting human review.

Core principle: the original AI output is never overwritten.
Edits land in the modified_* / final_* fields so that the audit trail
always holds both what the AI suggested and what a human accepted.

Lifecycle (shared by both variants):

    Suggested --modify--> Modified --approve--> Approved (terminal)
    Suggested --approve--> Approved (terminal)
    Suggested --reject--> Rejected (terminal)
    Modified  --reject--> Rejected (terminal)
    Modified  --modify--> Modified (re-edit)

The transition functions below are pure: they return an updated copy and
never check the current state. Precondition enforcement lives in
ApprovalWorkflowService.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class SuggestionStatus(str, Enum):
    """Review status of a suggestion"""
    SUGGESTED = "Suggested"
    MODIFIED = "Modified"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class SuggestionAction(str, Enum):
    """Actions a reviewer can take on a suggestion"""
    MODIFY = "modify"
    APPROVE = "approve"
    REJECT = "reject"


class SourceType(str, Enum):
    """Where a suggestion was extracted from"""
    MEETING = "meeting"
    EMAIL = "email"
    CHAT = "chat"


# ============================================================================
# Transition table
# ============================================================================

VALID_TRANSITIONS: Dict[SuggestionStatus, Dict[SuggestionAction, SuggestionStatus]] = {
    SuggestionStatus.SUGGESTED: {
        SuggestionAction.MODIFY: SuggestionStatus.MODIFIED,
        SuggestionAction.APPROVE: SuggestionStatus.APPROVED,
        SuggestionAction.REJECT: SuggestionStatus.REJECTED,
    },
    SuggestionStatus.MODIFIED: {
        SuggestionAction.MODIFY: SuggestionStatus.MODIFIED,
        SuggestionAction.APPROVE: SuggestionStatus.APPROVED,
        SuggestionAction.REJECT: SuggestionStatus.REJECTED,
    },
}

TERMINAL_STATUSES: Set[SuggestionStatus] = {
    SuggestionStatus.APPROVED,
    SuggestionStatus.REJECTED,
}

PENDING_STATUSES: Set[SuggestionStatus] = {
    SuggestionStatus.SUGGESTED,
    SuggestionStatus.MODIFIED,
}


def can_transition(status: SuggestionStatus, action: SuggestionAction) -> bool:
    """Check if an action is allowed from the given status."""
    return action in VALID_TRANSITIONS.get(status, {})


def get_target_status(status: SuggestionStatus, action: SuggestionAction) -> Optional[SuggestionStatus]:
    """Get the status an action leads to, or None if the action is not allowed."""
    return VALID_TRANSITIONS.get(status, {}).get(action)


# ============================================================================
# Models
# ============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceReference(BaseModel):
    """Provenance of a suggestion. Immutable once attached."""
    model_config = ConfigDict(frozen=True)

    type: SourceType
    source_id: str
    source_url: Optional[str] = None
    timestamp_ref: Optional[str] = None  # e.g. "00:32:14" within a recording


class DecisionSuggestion(BaseModel):
    """An AI-suggested decision awaiting review"""
    kind: Literal["decision"] = "decision"

    id: str
    decision_text: str
    context: str = ""
    transcript_excerpt: str = ""
    confidence_score: int = Field(..., ge=0, le=100)
    status: SuggestionStatus = SuggestionStatus.SUGGESTED
    source_reference: SourceReference
    created_at: datetime = Field(default_factory=_utcnow)

    # Audit fields
    modified_text: Optional[str] = None
    approved_by: Optional[str] = None  # also records who rejected
    approval_timestamp: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def final_text(self) -> str:
        """The text handed to the archive: modified if edited, else original."""
        return self.modified_text if self.modified_text is not None else self.decision_text

    @property
    def is_processed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES


class TaskSuggestion(BaseModel):
    """An AI-suggested task awaiting review"""
    kind: Literal["task"] = "task"

    id: str
    description: str
    suggested_assignee: Optional[str] = None
    suggested_due_date: Optional[date] = None
    confidence_score: int = Field(..., ge=0, le=100)
    status: SuggestionStatus = SuggestionStatus.SUGGESTED
    source_reference: SourceReference
    created_at: datetime = Field(default_factory=_utcnow)

    # Audit fields
    approved_by: Optional[str] = None  # also records who rejected
    approval_timestamp: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    modified_description: Optional[str] = None
    final_assignee: Optional[str] = None
    final_due_date: Optional[date] = None

    @property
    def final_description(self) -> str:
        """The description handed to the task sink."""
        if self.modified_description is not None:
            return self.modified_description
        return self.description

    @property
    def is_processed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES


Suggestion = Annotated[
    Union[DecisionSuggestion, TaskSuggestion],
    Field(discriminator="kind"),
]


# ============================================================================
# Factories
# ============================================================================

def generate_suggestion_id(prefix: str) -> str:
    """Generate a unique suggestion ID, e.g. dec_3f2a..."""
    return f"{prefix}_{uuid.uuid4().hex}"


def create_decision_suggestion(
    decision_text: str,
    confidence_score: int,
    source_reference: SourceReference,
    context: str = "",
    transcript_excerpt: str = "",
    suggestion_id: Optional[str] = None,
) -> DecisionSuggestion:
    """Create a new decision suggestion in the Suggested state"""
    return DecisionSuggestion(
        id=suggestion_id or generate_suggestion_id("dec"),
        decision_text=decision_text,
        context=context,
        transcript_excerpt=transcript_excerpt,
        confidence_score=confidence_score,
        source_reference=source_reference,
    )


def create_task_suggestion(
    description: str,
    confidence_score: int,
    source_reference: SourceReference,
    suggested_assignee: Optional[str] = None,
    suggested_due_date: Optional[date] = None,
    suggestion_id: Optional[str] = None,
) -> TaskSuggestion:
    """Create a new task suggestion in the Suggested state"""
    return TaskSuggestion(
        id=suggestion_id or generate_suggestion_id("task"),
        description=description,
        suggested_assignee=suggested_assignee,
        suggested_due_date=suggested_due_date,
        confidence_score=confidence_score,
        source_reference=source_reference,
    )


# ============================================================================
# Transition functions
# ============================================================================

def approve_decision(
    decision: DecisionSuggestion,
    approved_by: str,
    now: Optional[datetime] = None,
) -> DecisionSuggestion:
    """Approve a decision as-is (keeps any earlier modification)."""
    return decision.model_copy(update={
        "status": SuggestionStatus.APPROVED,
        "approved_by": approved_by,
        "approval_timestamp": now or _utcnow(),
    })


def modify_decision(decision: DecisionSuggestion, modified_text: str) -> DecisionSuggestion:
    """Record an edit; decision_text keeps the AI original."""
    return decision.model_copy(update={
        "status": SuggestionStatus.MODIFIED,
        "modified_text": modified_text,
    })


def approve_modified_decision(
    decision: DecisionSuggestion,
    approved_by: str,
    final_text: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DecisionSuggestion:
    """Approve a modified decision, optionally replacing the modified text."""
    return decision.model_copy(update={
        "status": SuggestionStatus.APPROVED,
        "modified_text": final_text if final_text is not None else decision.modified_text,
        "approved_by": approved_by,
        "approval_timestamp": now or _utcnow(),
    })


def approve_task(
    task: TaskSuggestion,
    approved_by: str,
    final_assignee: str,
    final_due_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> TaskSuggestion:
    """Approve a task. The due date falls back to the suggested one."""
    return task.model_copy(update={
        "status": SuggestionStatus.APPROVED,
        "approved_by": approved_by,
        "approval_timestamp": now or _utcnow(),
        "final_assignee": final_assignee,
        "final_due_date": final_due_date if final_due_date is not None else task.suggested_due_date,
    })


def modify_task(
    task: TaskSuggestion,
    modified_description: str,
    modified_assignee: Optional[str] = None,
    modified_due_date: Optional[date] = None,
) -> TaskSuggestion:
    """Record an edit. Assignee and due date default to the suggested values."""
    return task.model_copy(update={
        "status": SuggestionStatus.MODIFIED,
        "modified_description": modified_description,
        "final_assignee": modified_assignee if modified_assignee is not None else task.suggested_assignee,
        "final_due_date": modified_due_date if modified_due_date is not None else task.suggested_due_date,
    })


def reject_suggestion(
    suggestion: Union[DecisionSuggestion, TaskSuggestion],
    rejected_by: str,
    rejection_reason: str,
    now: Optional[datetime] = None,
) -> Union[DecisionSuggestion, TaskSuggestion]:
    """
    Reject either variant.

    approved_by stores the rejecting actor: the field name is kept
    because downstream audit consumers read it.
    """
    return suggestion.model_copy(update={
        "status": SuggestionStatus.REJECTED,
        "approved_by": rejected_by,
        "approval_timestamp": now or _utcnow(),
        "rejection_reason": rejection_reason,
    })


# ============================================================================
# Helpers
# ============================================================================

ConfidenceLevel = Literal["high", "medium", "low"]


def get_confidence_level(score: int) -> ConfidenceLevel:
    """Classify a 0-100 confidence score"""
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium"
    return "low"
