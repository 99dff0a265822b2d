"""
Downstream Sinks

Consumers of approved suggestions.

Available Sinks:
- InMemoryDecisionArchive: approved decisions with search and audit export
- InMemoryTaskSink: approved tasks turned into tracked tasks
"""

from .base import DecisionArchiveSink, TaskSink, TaskSinkError
from .archive import (
    InMemoryDecisionArchive,
    ArchivedDecision,
    ArchiveResult,
    ArchiveStatus,
    DecisionSearchParams,
)
from .tasks import InMemoryTaskSink, TaskData, TrackedTask

__all__ = [
    "DecisionArchiveSink",
    "TaskSink",
    "TaskSinkError",
    "InMemoryDecisionArchive",
    "ArchivedDecision",
    "ArchiveResult",
    "ArchiveStatus",
    "DecisionSearchParams",
    "InMemoryTaskSink",
    "TaskData",
    "TrackedTask",
]
