"""
Review Text Templates

Renders suggestions to plain text for reviewers and to Markdown notes
for tasks handed to the task tracker.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional, Union

if TYPE_CHECKING:
    from .suggestion import DecisionSuggestion, TaskSuggestion


def _value(field) -> str:
    return field.value if hasattr(field, "value") else str(field)


def _format_date(value) -> str:
    if value is None:
        return "(none)"
    return value.isoformat()


def _format_source(suggestion) -> List[str]:
    ref = suggestion.source_reference
    lines = [f"Source: {_value(ref.type)} {ref.source_id}"]
    if ref.source_url:
        lines.append(f"Source URL: {ref.source_url}")
    if ref.timestamp_ref:
        lines.append(f"At: {ref.timestamp_ref}")
    return lines


def _format_decision_body(decision: "DecisionSuggestion") -> List[str]:
    lines = [
        "Decision:",
        f"  {decision.decision_text[:500]}",
    ]
    if decision.modified_text is not None:
        lines.extend(["", "Modified to:", f"  {decision.modified_text[:500]}"])
    if decision.context:
        lines.extend(["", "Context:", f"  {decision.context[:300]}"])
    if decision.transcript_excerpt:
        lines.extend(["", "Transcript excerpt:"])
        lines.extend(f"  > {line}" for line in decision.transcript_excerpt.splitlines()[:5])
    return lines


def _format_task_body(task: "TaskSuggestion") -> List[str]:
    lines = [
        "Task:",
        f"  {task.description[:500]}",
    ]
    if task.modified_description is not None:
        lines.extend(["", "Modified to:", f"  {task.modified_description[:500]}"])
    lines.extend([
        "",
        f"Suggested assignee: {task.suggested_assignee or '(none)'}",
        f"Suggested due date: {_format_date(task.suggested_due_date)}",
    ])
    if task.final_assignee or task.final_due_date:
        lines.append(f"Final assignee: {task.final_assignee or '(none)'}")
        lines.append(f"Final due date: {_format_date(task.final_due_date)}")
    return lines


def render_review_text(
    suggestion: Union["DecisionSuggestion", "TaskSuggestion"],
    meeting_id: Optional[str] = None,
) -> str:
    """Format a suggestion as a review card"""
    from .suggestion import get_confidence_level

    label = "DECISION" if suggestion.kind == "decision" else "TASK"
    level = get_confidence_level(suggestion.confidence_score)

    lines = [
        "=" * 60,
        f"{label} SUGGESTION: {suggestion.id}",
        f"Confidence: {suggestion.confidence_score} ({level})",
        f"Status: {_value(suggestion.status)}",
    ]
    if meeting_id:
        lines.append(f"Meeting: {meeting_id}")
    lines.extend(_format_source(suggestion))
    lines.extend(["=" * 60, ""])

    if suggestion.kind == "decision":
        lines.extend(_format_decision_body(suggestion))
    else:
        lines.extend(_format_task_body(suggestion))

    if suggestion.approved_by:
        lines.extend(["", "-" * 60])
        lines.append(f"Acted on by: {suggestion.approved_by}")
        lines.append(f"At: {_format_date(suggestion.approval_timestamp)}")
        if suggestion.rejection_reason:
            lines.append(f"Rejection reason: {suggestion.rejection_reason}")

    lines.append("=" * 60)
    return "\n".join(lines)


def render_task_notes(
    task: "TaskSuggestion",
    meeting_id: str,
    created_at: Optional[datetime] = None,
) -> str:
    """
    Render the Markdown notes attached to a tracked task.

    Shows the original suggestion next to the edit when the reviewer
    changed the description.
    """
    created_at = created_at or datetime.now(timezone.utc)

    lines = [
        "## Task from meeting review",
        "",
        f"**Source:** {_value(task.source_reference.type)}",
        f"**Meeting ID:** {meeting_id}",
        f"**AI Confidence:** {task.confidence_score}%",
        "",
    ]

    if task.modified_description and task.modified_description != task.description:
        lines.extend([
            "**Original suggestion:**",
            task.description,
            "",
            "**Modified to:**",
            task.modified_description,
        ])
    else:
        lines.extend([
            "**Description:**",
            task.description,
        ])

    lines.extend(["", f"_Created: {created_at.isoformat()}_"])
    return "\n".join(lines)
