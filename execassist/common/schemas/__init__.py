"""
Suggestion Schemas

Decision and task suggestions with their review lifecycle.
"""

from .suggestion import (
    DecisionSuggestion,
    TaskSuggestion,
    Suggestion,
    SourceReference,
    SourceType,
    SuggestionStatus,
    SuggestionAction,
    VALID_TRANSITIONS,
    TERMINAL_STATUSES,
    PENDING_STATUSES,
    can_transition,
    get_target_status,
    generate_suggestion_id,
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
from .templates import render_review_text, render_task_notes

__all__ = [
    "DecisionSuggestion",
    "TaskSuggestion",
    "Suggestion",
    "SourceReference",
    "SourceType",
    "SuggestionStatus",
    "SuggestionAction",
    "VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "PENDING_STATUSES",
    "can_transition",
    "get_target_status",
    "generate_suggestion_id",
    "create_decision_suggestion",
    "create_task_suggestion",
    "approve_decision",
    "modify_decision",
    "approve_modified_decision",
    "approve_task",
    "modify_task",
    "reject_suggestion",
    "get_confidence_level",
    "render_review_text",
    "render_task_notes",
]
