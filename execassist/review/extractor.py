"""
Suggestion Extractor

Pattern-based extraction of decision and task suggestions from meeting
transcripts. Feeds ApprovalWorkflowService.submit_batch().

Rules:
- One suggestion per transcript line (first matching pattern wins)
- Context excerpt = 2 lines before through 2 lines after the hit
- Confidence is fixed per pattern (explicit phrasing scores higher)
- Assignee = first attendee whose display name appears in the line
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Pattern, Tuple

from ..common.schemas import (
    DecisionSuggestion,
    TaskSuggestion,
    SourceReference,
    SourceType,
    create_decision_suggestion,
    create_task_suggestion,
)

# (pattern, confidence) - order matters, first match wins
DECISION_PATTERNS: List[Tuple[Pattern, int]] = [
    (re.compile(r"final decision[:\s]", re.IGNORECASE), 92),
    (re.compile(r"we(?:'ve| have)? decided to", re.IGNORECASE), 90),
    (re.compile(r"the decision is", re.IGNORECASE), 88),
    (re.compile(r"it(?:'s| is) agreed that", re.IGNORECASE), 85),
    (re.compile(r"\bapproved[:\s]", re.IGNORECASE), 80),
    (re.compile(r"we(?:'ll| will) (?:go with|proceed with)", re.IGNORECASE), 75),
    (re.compile(r"let's go with", re.IGNORECASE), 65),
]

TASK_PATTERNS: List[Tuple[Pattern, int]] = [
    (re.compile(r"action item[:\s]", re.IGNORECASE), 85),
    (re.compile(r"\bTODO[:\s]", re.IGNORECASE), 80),
    (re.compile(r"(\w+) will (?:handle|take care of|complete|do|prepare|send|review)", re.IGNORECASE), 75),
    (re.compile(r"please (?:send|prepare|review|complete)", re.IGNORECASE), 70),
    (re.compile(r"by (?:monday|tuesday|wednesday|thursday|friday|next week|end of week)", re.IGNORECASE), 60),
    (re.compile(r"we need to", re.IGNORECASE), 55),
]

DUE_DATE_PATTERN = re.compile(
    r"by (monday|tuesday|wednesday|thursday|friday|next week|end of week)",
    re.IGNORECASE,
)

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
}

CONTEXT_WINDOW = 2


@dataclass
class MeetingAttendee:
    """Attendee used for assignee matching"""
    user_id: str
    display_name: str
    role: str = "attendee"  # organizer, presenter, attendee
    attended: bool = True


@dataclass
class ExtractionResult:
    """Suggestions extracted from one transcript"""
    decisions: List[DecisionSuggestion] = field(default_factory=list)
    tasks: List[TaskSuggestion] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.decisions) + len(self.tasks)


class SuggestionProducer(ABC):
    """
    Source of suggestions for the approval workflow.

    The workflow does not care how suggestions are produced: pattern
    matching, an AI model, or a human typing them in.
    """

    @abstractmethod
    def extract(
        self,
        transcript: str,
        meeting_id: str,
        attendees: Optional[List[MeetingAttendee]] = None,
    ) -> ExtractionResult:
        pass


def resolve_due_date(phrase: str, today: date) -> date:
    """
    Resolve a relative due date phrase.

    Weekdays resolve to the next occurrence (never today),
    "next week" to +7 days, "end of week" to the coming Friday (today on a Saturday).
    """
    phrase = phrase.lower()

    if phrase in _WEEKDAYS:
        days_until = _WEEKDAYS[phrase] - today.weekday()
        if days_until <= 0:
            days_until += 7
        return today + timedelta(days=days_until)

    if phrase == "end of week":
        # weeks start on Sunday
        if today.weekday() == 6:
            return today + timedelta(days=5)
        return today + timedelta(days=max(0, 4 - today.weekday()))

    return today + timedelta(days=7)


class PatternSuggestionExtractor(SuggestionProducer):
    """
    Extracts suggestions with regular expressions.

    Cheap and deterministic; the reviewer is the quality gate.
    """

    def __init__(
        self,
        min_confidence_threshold: int = 40,
        include_low_confidence: bool = True,
        today: Optional[date] = None,
    ):
        """
        Initialize extractor.

        Args:
            min_confidence_threshold: Drop suggestions scoring below this
            include_low_confidence: Keep them anyway (reviewer decides)
            today: Reference date for due dates (default: date.today())
        """
        self._min_confidence = min_confidence_threshold
        self._include_low_confidence = include_low_confidence
        self._today = today

    def _keep(self, confidence: int) -> bool:
        return confidence >= self._min_confidence or self._include_low_confidence

    @staticmethod
    def _match(line: str, patterns: List[Tuple[Pattern, int]]) -> Optional[int]:
        for pattern, confidence in patterns:
            if pattern.search(line):
                return confidence
        return None

    @staticmethod
    def _excerpt(lines: List[str], index: int) -> str:
        start = max(0, index - CONTEXT_WINDOW)
        end = min(len(lines), index + CONTEXT_WINDOW + 1)
        return "\n".join(lines[start:end])

    @staticmethod
    def _find_assignee(line: str, attendees: List[MeetingAttendee]) -> Optional[str]:
        line_lower = line.lower()
        for attendee in attendees:
            if attendee.display_name and attendee.display_name.lower() in line_lower:
                return attendee.user_id
        return None

    def extract_decisions(self, transcript: str, meeting_id: str) -> List[DecisionSuggestion]:
        source = SourceReference(type=SourceType.MEETING, source_id=meeting_id)
        lines = transcript.split("\n")
        suggestions = []

        for i, line in enumerate(lines):
            if not line.strip():
                continue
            confidence = self._match(line, DECISION_PATTERNS)
            if confidence is None or not self._keep(confidence):
                continue

            suggestions.append(create_decision_suggestion(
                decision_text=line.strip(),
                confidence_score=confidence,
                source_reference=source,
                context="Discussion leading to this decision",
                transcript_excerpt=self._excerpt(lines, i),
            ))

        return suggestions

    def extract_tasks(
        self,
        transcript: str,
        meeting_id: str,
        attendees: Optional[List[MeetingAttendee]] = None,
    ) -> List[TaskSuggestion]:
        source = SourceReference(type=SourceType.MEETING, source_id=meeting_id)
        attendees = attendees or []
        today = self._today or date.today()
        lines = transcript.split("\n")
        suggestions = []

        for line in lines:
            if not line.strip():
                continue
            confidence = self._match(line, TASK_PATTERNS)
            if confidence is None or not self._keep(confidence):
                continue

            due_match = DUE_DATE_PATTERN.search(line)
            suggestions.append(create_task_suggestion(
                description=line.strip(),
                confidence_score=confidence,
                source_reference=source,
                suggested_assignee=self._find_assignee(line, attendees),
                suggested_due_date=resolve_due_date(due_match.group(1), today) if due_match else None,
            ))

        return suggestions

    def extract(
        self,
        transcript: str,
        meeting_id: str,
        attendees: Optional[List[MeetingAttendee]] = None,
    ) -> ExtractionResult:
        """Extract decisions and tasks from a full transcript"""
        return ExtractionResult(
            decisions=self.extract_decisions(transcript, meeting_id),
            tasks=self.extract_tasks(transcript, meeting_id, attendees),
        )
