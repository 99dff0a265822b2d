"""
Base Sinks

Abstract interfaces for consumers of approved suggestions.

Sinks run after the queue transition has committed: the Approved queue
item is the retry key, so each sink must tolerate being handed the same
suggestion more than once.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ...common.schemas import DecisionSuggestion, TaskSuggestion

if TYPE_CHECKING:
    from .archive import ArchiveResult
    from .tasks import TrackedTask


class TaskSinkError(Exception):
    """Raised when an approved task cannot be handed to the tracker."""

    def __init__(self, message: str, suggestion_id: str):
        super().__init__(message)
        self.suggestion_id = suggestion_id


class DecisionArchiveSink(ABC):
    """
    Permanent home for approved decisions.

    Each sink must implement:
    - archive: store an approved decision with its audit trail
    """

    @abstractmethod
    def archive(self, decision: DecisionSuggestion, meeting_reference: str) -> "ArchiveResult":
        """
        Archive an approved decision.

        Args:
            decision: Approved decision (approved_by must be set)
            meeting_reference: Meeting ID or URL

        Returns:
            ArchiveResult; failures are reported, not raised
        """
        pass


class TaskSink(ABC):
    """
    Task tracker that turns approved task suggestions into real work items.

    Each sink must implement:
    - create_task_from_suggestion: create (or return) the tracked task
    """

    @abstractmethod
    def create_task_from_suggestion(self, task: TaskSuggestion, meeting_id: str) -> "TrackedTask":
        """
        Create a tracked task from an approved suggestion.

        Raises:
            TaskSinkError: If the suggestion is not approved or has no assignee
        """
        pass
