"""
Decision Archive

In-memory archive of approved decisions with search.

Each archived record keeps the full audit trail: the final decision text,
the original AI suggestion, who approved it and when.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ...common.schemas import DecisionSuggestion, SourceType, SuggestionStatus
from .base import DecisionArchiveSink

logger = logging.getLogger("execassist.review.sinks.archive")


class ArchiveStatus(str, Enum):
    """Status of an archived decision"""
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    ARCHIVED = "archived"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArchivedDecision(BaseModel):
    """A decision as stored in the archive"""
    decision_id: str
    suggestion_id: str
    decision_text: str
    meeting_reference: str
    approver: str
    approval_date: datetime
    original_ai_suggestion: str
    confidence_score: int = Field(ge=0, le=100)
    status: ArchiveStatus = ArchiveStatus.ACTIVE
    source_type: SourceType = SourceType.MEETING
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)


class ArchiveResult(BaseModel):
    """Outcome of an archive operation"""
    success: bool
    archived_decision_id: Optional[str] = None
    error: Optional[str] = None
    record: Optional[ArchivedDecision] = None


class DecisionSearchParams(BaseModel):
    """Search filters. All set fields must match."""
    keyword: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    meeting_id: Optional[str] = None
    approver: Optional[str] = None
    source_type: Optional[SourceType] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)


def generate_decision_id() -> str:
    return f"DEC-{uuid.uuid4().hex[:12].upper()}"


class InMemoryDecisionArchive(DecisionArchiveSink):
    """
    Decision archive kept in memory.

    Archiving is idempotent per suggestion: handing over the same approved
    decision twice returns the record created the first time.
    """

    def __init__(self, default_page_size: int = 50, list_name: str = "DecisionArchive"):
        self.list_name = list_name
        self._records: Dict[str, ArchivedDecision] = {}
        self._by_suggestion: Dict[str, str] = {}
        self._default_page_size = default_page_size
        self._lock = threading.Lock()

    def archive(self, decision: DecisionSuggestion, meeting_reference: str) -> ArchiveResult:
        if decision.status != SuggestionStatus.APPROVED:
            return ArchiveResult(success=False, error="Cannot archive unapproved decision")

        if not decision.approved_by:
            return ArchiveResult(success=False, error="Decision must have an approver before archiving")

        with self._lock:
            existing_id = self._by_suggestion.get(decision.id)
            if existing_id:
                return ArchiveResult(
                    success=True,
                    archived_decision_id=existing_id,
                    record=self._records[existing_id],
                )

            record = ArchivedDecision(
                decision_id=generate_decision_id(),
                suggestion_id=decision.id,
                decision_text=decision.final_text,
                meeting_reference=meeting_reference,
                approver=decision.approved_by,
                approval_date=decision.approval_timestamp or _utcnow(),
                original_ai_suggestion=decision.decision_text,
                confidence_score=decision.confidence_score,
                source_type=decision.source_reference.type,
            )
            self._records[record.decision_id] = record
            self._by_suggestion[decision.id] = record.decision_id

        logger.info("Archived decision %s in %s (suggestion %s)", record.decision_id, self.list_name, decision.id)
        return ArchiveResult(success=True, archived_decision_id=record.decision_id, record=record)

    def get(self, decision_id: str) -> Optional[ArchivedDecision]:
        return self._records.get(decision_id)

    def get_by_suggestion(self, suggestion_id: str) -> Optional[ArchivedDecision]:
        decision_id = self._by_suggestion.get(suggestion_id)
        return self._records.get(decision_id) if decision_id else None

    def _filter(self, params: DecisionSearchParams) -> List[ArchivedDecision]:
        with self._lock:
            results = list(self._records.values())

        if params.keyword:
            keyword = params.keyword.lower()
            results = [
                d for d in results
                if keyword in d.decision_text.lower() or keyword in d.original_ai_suggestion.lower()
            ]
        if params.date_from:
            results = [d for d in results if d.approval_date >= params.date_from]
        if params.date_to:
            results = [d for d in results if d.approval_date <= params.date_to]
        if params.meeting_id:
            results = [d for d in results if params.meeting_id in d.meeting_reference]
        if params.approver:
            results = [d for d in results if d.approver == params.approver]
        if params.source_type:
            results = [d for d in results if d.source_type == params.source_type]

        # Most recent approval first
        results.sort(key=lambda d: d.approval_date, reverse=True)
        return results

    def search(self, params: DecisionSearchParams) -> Tuple[List[ArchivedDecision], int]:
        """
        Search archived decisions.

        Returns:
            (page of results, total count before pagination)
        """
        results = self._filter(params)
        total_count = len(results)
        limit = params.limit or self._default_page_size
        return results[params.offset:params.offset + limit], total_count

    def update_status(self, decision_id: str, status: ArchiveStatus) -> ArchiveResult:
        """Mark a decision as superseded or archived"""
        with self._lock:
            record = self._records.get(decision_id)
            if record is None:
                return ArchiveResult(success=False, error=f"Decision {decision_id} not found")
            record.status = status
            record.modified_at = _utcnow()

        return ArchiveResult(success=True, archived_decision_id=decision_id, record=record)

    def decisions_for_meeting(self, meeting_reference: str) -> List[ArchivedDecision]:
        with self._lock:
            return [d for d in self._records.values() if d.meeting_reference == meeting_reference]

    def recent(self, limit: int = 10) -> List[ArchivedDecision]:
        results, _ = self.search(DecisionSearchParams(limit=limit))
        return results

    def count(self) -> int:
        return len(self._records)

    def export_for_audit(self, params: DecisionSearchParams) -> dict:
        """All matching decisions, unpaginated, with export metadata"""
        results = self._filter(params)
        return {
            "list_name": self.list_name,
            "decisions": results,
            "exported_at": _utcnow(),
            "filters": params.model_dump(exclude_none=True),
            "total_count": len(results),
        }
