"""
Task Tracker Sink

Turns approved task suggestions into tracked tasks.

Builds the tracker payload (plan, assignment, bucket, due date, priority)
and keeps created tasks in memory, keyed by suggestion ID so that a
retried hand-off does not create a duplicate.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ...common.schemas import TaskSuggestion, SuggestionStatus, render_task_notes
from .base import TaskSink, TaskSinkError

logger = logging.getLogger("execassist.review.sinks.tasks")

# Tracker priority values
PRIORITY_URGENT = 1
PRIORITY_IMPORTANT = 3
PRIORITY_MEDIUM = 5
PRIORITY_LOW = 9

VALID_PRIORITIES = (PRIORITY_URGENT, PRIORITY_IMPORTANT, PRIORITY_MEDIUM, PRIORITY_LOW)


@dataclass
class TaskData:
    """Fields needed to create a tracked task"""
    title: str
    assignee_id: str
    due_date: Optional[date] = None
    notes: Optional[str] = None
    meeting_reference_url: Optional[str] = None
    priority: int = PRIORITY_MEDIUM


@dataclass
class TrackedTask:
    """A task created in the tracker"""
    id: str
    suggestion_id: str
    title: str
    assignees: List[str]
    plan_id: str
    created_at: datetime
    web_url: str
    due_date: Optional[date] = None
    bucket_id: Optional[str] = None
    notes: Optional[str] = None
    meeting_reference_url: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class InMemoryTaskSink(TaskSink):
    """Plan-scoped task tracker kept in memory"""

    def __init__(
        self,
        plan_id: str = "default",
        default_bucket_id: Optional[str] = None,
        meeting_base_url: Optional[str] = None,
    ):
        """
        Initialize task sink.

        Args:
            plan_id: Plan that new tasks belong to
            default_bucket_id: Bucket for new tasks (optional)
            meeting_base_url: Base URL for meeting links (optional)
        """
        self.plan_id = plan_id
        self.default_bucket_id = default_bucket_id or None
        self.meeting_base_url = (meeting_base_url or "").rstrip("/") or None
        self._tasks: Dict[str, TrackedTask] = {}
        self._lock = threading.Lock()

    def build_task_payload(self, task_data: TaskData) -> Dict[str, Any]:
        """Build the tracker request body for a new task"""
        payload: Dict[str, Any] = {
            "planId": self.plan_id,
            "title": task_data.title,
            "assignments": {
                task_data.assignee_id: {
                    "@odata.type": "#microsoft.graph.plannerAssignment",
                    "orderHint": " !",
                },
            },
        }

        if self.default_bucket_id:
            payload["bucketId"] = self.default_bucket_id
        if task_data.due_date:
            payload["dueDateTime"] = task_data.due_date.isoformat()
        if task_data.priority:
            payload["priority"] = task_data.priority

        return payload

    def meeting_url(self, meeting_id: str) -> str:
        if self.meeting_base_url:
            return f"{self.meeting_base_url}/meeting/{meeting_id}"
        return f"Meeting reference: {meeting_id}"

    def create_task(self, task_data: TaskData, suggestion_id: str) -> TrackedTask:
        """
        Create a tracked task.

        Raises:
            TaskSinkError: If title or assignee is missing, or priority invalid
        """
        if not task_data.title or not task_data.title.strip():
            raise TaskSinkError("Task title is required", suggestion_id)
        if not task_data.assignee_id or not task_data.assignee_id.strip():
            raise TaskSinkError("Task assignee is required", suggestion_id)
        if task_data.priority not in VALID_PRIORITIES:
            raise TaskSinkError(f"Invalid priority {task_data.priority}", suggestion_id)

        with self._lock:
            existing = self._tasks.get(suggestion_id)
            if existing:
                return existing

            task_id = f"task_{uuid.uuid4().hex[:12]}"
            tracked = TrackedTask(
                id=task_id,
                suggestion_id=suggestion_id,
                title=task_data.title,
                assignees=[task_data.assignee_id],
                plan_id=self.plan_id,
                created_at=datetime.now(timezone.utc),
                web_url=f"https://tasks.office.com/plan/{self.plan_id}/task/{task_id}",
                due_date=task_data.due_date,
                bucket_id=self.default_bucket_id,
                notes=task_data.notes,
                meeting_reference_url=task_data.meeting_reference_url,
                payload=self.build_task_payload(task_data),
            )
            self._tasks[suggestion_id] = tracked

        logger.info("Created task %s for suggestion %s", tracked.id, suggestion_id)
        return tracked

    def create_task_from_suggestion(self, task: TaskSuggestion, meeting_id: str) -> TrackedTask:
        if task.status != SuggestionStatus.APPROVED:
            raise TaskSinkError("Cannot create task from unapproved suggestion", task.id)

        assignee = task.final_assignee or task.suggested_assignee
        if not assignee:
            raise TaskSinkError("Task must have an assignee before it is created", task.id)

        task_data = TaskData(
            title=task.final_description,
            assignee_id=assignee,
            due_date=task.final_due_date or task.suggested_due_date,
            notes=render_task_notes(task, meeting_id),
            meeting_reference_url=self.meeting_url(meeting_id),
            priority=PRIORITY_MEDIUM,
        )
        return self.create_task(task_data, task.id)

    def get_by_suggestion(self, suggestion_id: str) -> Optional[TrackedTask]:
        return self._tasks.get(suggestion_id)

    def list_tasks(self) -> List[TrackedTask]:
        with self._lock:
            return list(self._tasks.values())
