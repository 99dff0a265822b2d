"""
Review Server

FastAPI server exposing the approval workflow to reviewers.

Endpoints:
- GET /health, GET /stats
- POST /suggestions/decisions, POST /suggestions/tasks: submit one suggestion
- POST /meetings/{meeting_id}/transcript: extract and submit suggestions
- GET /queue, GET /queue/{item_id}, DELETE /queue/{item_id}
- POST /decisions/{item_id}/approve | /modify
- POST /tasks/{item_id}/approve | /modify
- POST /queue/{item_id}/reject
- POST /queue/batch-approve, POST /queue/batch-reject
- POST /queue/{item_id}/handoff: retry the sink hand-off of an approved item
- GET /escalations, POST /escalations/run
- GET /archive/decisions: search archived decisions

Pipeline:
1. Producer submits suggestions (status Pending)
2. Reviewer approves, rejects or modifies
3. The queue transition commits
4. Approved items are handed to the archive / task sink in the background
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, BackgroundTasks, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..common.config import load_config, ExecAssistConfig, ensure_directories
from ..common.schemas import (
    SourceReference,
    SourceType,
    create_decision_suggestion,
    create_task_suggestion,
    render_review_text,
)
from .approval_queue import ApprovalQueue, DuplicateItemError, ItemType, QueueFilter, QueueItem, QueueStatus
from .approval_workflow import ApprovalErrorKind, ApprovalResult, ApprovalWorkflowService
from .extractor import MeetingAttendee, PatternSuggestionExtractor
from .notifier import EscalationNotifier
from .sinks import (
    DecisionSearchParams,
    InMemoryDecisionArchive,
    InMemoryTaskSink,
    TaskSinkError,
)

logger = logging.getLogger("execassist.review.server")


# Global state
config: Optional[ExecAssistConfig] = None
queue: Optional[ApprovalQueue] = None
workflow: Optional[ApprovalWorkflowService] = None
extractor: Optional[PatternSuggestionExtractor] = None
archive: Optional[InMemoryDecisionArchive] = None
task_sink: Optional[InMemoryTaskSink] = None
notifier: Optional[EscalationNotifier] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, queue, workflow, extractor, archive, task_sink, notifier

    logger.info("Starting up...")

    config = load_config()

    queue = ApprovalQueue()
    workflow = ApprovalWorkflowService(queue)

    extractor = PatternSuggestionExtractor(
        min_confidence_threshold=config.extraction.min_confidence_threshold,
        include_low_confidence=config.extraction.include_low_confidence,
    )

    archive = InMemoryDecisionArchive(
        default_page_size=config.archive.default_page_size,
        list_name=config.archive.list_name,
    )
    task_sink = InMemoryTaskSink(
        plan_id=config.tasks.plan_id,
        default_bucket_id=config.tasks.default_bucket_id,
        meeting_base_url=config.tasks.meeting_base_url,
    )

    notifier = EscalationNotifier(webhook_url=config.review.escalation_webhook_url)
    if notifier.is_enabled:
        logger.info("Escalation webhook configured")
    else:
        logger.info("No escalation webhook (escalations are logged only)")

    logger.info("Ready (escalation threshold: %sh)", config.review.escalation_threshold_hours)

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="execassist Review Service",
    description="Human-in-the-loop approval of AI-suggested decisions and tasks",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class SubmitDecisionRequest(BaseModel):
    meeting_id: str
    decision_text: str
    confidence_score: int = Field(ge=0, le=100)
    context: str = ""
    transcript_excerpt: str = ""
    source_reference: Optional[SourceReference] = None  # default: the meeting
    id: Optional[str] = None


class SubmitTaskRequest(BaseModel):
    meeting_id: str
    description: str
    confidence_score: int = Field(ge=0, le=100)
    suggested_assignee: Optional[str] = None
    suggested_due_date: Optional[date] = None
    source_reference: Optional[SourceReference] = None
    id: Optional[str] = None


class AttendeeModel(BaseModel):
    user_id: str
    display_name: str
    role: str = "attendee"
    attended: bool = True


class TranscriptRequest(BaseModel):
    transcript: str
    attendees: List[AttendeeModel] = Field(default_factory=list)


class ApproveDecisionRequest(BaseModel):
    approved_by: str
    modified_text: Optional[str] = None


class ApproveTaskRequest(BaseModel):
    approved_by: str
    final_assignee: str = ""
    final_due_date: Optional[date] = None
    modified_description: Optional[str] = None


class RejectRequest(BaseModel):
    rejected_by: str
    rejection_reason: str = ""


class ModifyDecisionRequest(BaseModel):
    modified_text: str


class ModifyTaskRequest(BaseModel):
    modified_description: str
    modified_assignee: Optional[str] = None
    modified_due_date: Optional[date] = None


class BatchApproveRequest(BaseModel):
    item_ids: List[str]
    approved_by: str
    task_assignees: Dict[str, str] = Field(default_factory=dict)


class BatchRejectRequest(BaseModel):
    item_ids: List[str]
    rejected_by: str
    rejection_reason: str = ""


class EscalationRunRequest(BaseModel):
    threshold_hours: Optional[float] = Field(default=None, gt=0)


# =============================================================================
# Helpers
# =============================================================================

_ERROR_STATUS = {
    ApprovalErrorKind.NOT_FOUND: 404,
    ApprovalErrorKind.WRONG_TYPE: 400,
    ApprovalErrorKind.ALREADY_PROCESSED: 409,
    ApprovalErrorKind.VALIDATION_FAILED: 422,
}


def _require_workflow() -> ApprovalWorkflowService:
    if not workflow:
        raise HTTPException(status_code=503, detail="Workflow not initialized")
    return workflow


def item_to_dict(item: QueueItem) -> dict:
    """Serialize a queue item, including the final (modified-or-original) content"""
    data = item.model_dump(mode="json")
    if item.type == ItemType.DECISION:
        data["suggestion"]["final_text"] = item.suggestion.final_text
    else:
        data["suggestion"]["final_description"] = item.suggestion.final_description
    return data


def result_to_dict(result: ApprovalResult) -> dict:
    return {
        "success": result.success,
        "item_id": result.item_id,
        "item": item_to_dict(result.item) if result.item else None,
        "error": result.error,
        "error_kind": result.error_kind.value if result.error_kind else None,
    }


def result_response(result: ApprovalResult):
    """Map a workflow result to a response; failures never become 500s"""
    if result.success:
        return result_to_dict(result)
    return JSONResponse(status_code=_ERROR_STATUS[result.error_kind], content=result_to_dict(result))


def handoff(item_id: str) -> None:
    """
    Hand an approved item to its sink.

    Runs after the queue transition has committed. Failures are logged and
    can be retried through POST /queue/{item_id}/handoff.
    """
    item = queue.get(item_id) if queue else None
    if item is None or item.status != QueueStatus.APPROVED:
        return

    if item.type == ItemType.DECISION:
        result = archive.archive(item.suggestion, item.meeting_id)
        if not result.success:
            logger.warning("Archive hand-off failed for %s: %s", item_id, result.error)
        return

    try:
        task_sink.create_task_from_suggestion(item.suggestion, item.meeting_id)
    except TaskSinkError as e:
        logger.warning("Task hand-off failed for %s: %s", item_id, e)


def _default_source(meeting_id: str, source: Optional[SourceReference]) -> SourceReference:
    return source or SourceReference(type=SourceType.MEETING, source_id=meeting_id)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "review",
        "initialized": workflow is not None,
        "pending_reviews": len(queue.pending_items()) if queue else 0,
        "escalation_webhook": notifier.is_enabled if notifier else False,
    }


@app.get("/stats")
async def get_stats():
    """Queue and sink statistics"""
    wf = _require_workflow()
    return {
        "service": "review",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "queue": wf.stats(),
        "archived_decisions": archive.count() if archive else 0,
        "tracked_tasks": len(task_sink.list_tasks()) if task_sink else 0,
    }


@app.post("/suggestions/decisions", status_code=201)
async def submit_decision(request: SubmitDecisionRequest):
    """Submit one decision suggestion for review"""
    wf = _require_workflow()
    suggestion = create_decision_suggestion(
        decision_text=request.decision_text,
        confidence_score=request.confidence_score,
        source_reference=_default_source(request.meeting_id, request.source_reference),
        context=request.context,
        transcript_excerpt=request.transcript_excerpt,
        suggestion_id=request.id,
    )
    try:
        item = wf.submit(suggestion, ItemType.DECISION, request.meeting_id)
    except DuplicateItemError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return item_to_dict(item)


@app.post("/suggestions/tasks", status_code=201)
async def submit_task(request: SubmitTaskRequest):
    """Submit one task suggestion for review"""
    wf = _require_workflow()
    suggestion = create_task_suggestion(
        description=request.description,
        confidence_score=request.confidence_score,
        source_reference=_default_source(request.meeting_id, request.source_reference),
        suggested_assignee=request.suggested_assignee,
        suggested_due_date=request.suggested_due_date,
        suggestion_id=request.id,
    )
    try:
        item = wf.submit(suggestion, ItemType.TASK, request.meeting_id)
    except DuplicateItemError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return item_to_dict(item)


@app.post("/meetings/{meeting_id}/transcript", status_code=201)
async def submit_transcript(meeting_id: str, request: TranscriptRequest):
    """Extract suggestions from a transcript and queue them all"""
    wf = _require_workflow()
    attendees = [MeetingAttendee(**a.model_dump()) for a in request.attendees]
    extracted = extractor.extract(request.transcript, meeting_id, attendees)
    items = wf.submit_batch(extracted.decisions, extracted.tasks, meeting_id)

    logger.info(
        "Meeting %s: queued %d decision(s) and %d task(s)",
        meeting_id, len(extracted.decisions), len(extracted.tasks),
    )
    return {
        "meeting_id": meeting_id,
        "decisions": len(extracted.decisions),
        "tasks": len(extracted.tasks),
        "items": [item_to_dict(item) for item in items],
    }


@app.get("/queue")
async def list_queue(
    status: Optional[QueueStatus] = None,
    item_type: Optional[ItemType] = Query(None, alias="type"),
    meeting_id: Optional[str] = None,
    escalated: Optional[bool] = None,
):
    """List queue items, filtered"""
    wf = _require_workflow()
    items = wf.queue.list(QueueFilter(
        status=status,
        type=item_type,
        meeting_id=meeting_id,
        escalated=escalated,
    ))
    return {
        "count": len(items),
        "items": [item_to_dict(item) for item in items],
    }


@app.get("/queue/{item_id}")
async def get_queue_item(item_id: str):
    """Get a specific queue item with a formatted review card"""
    wf = _require_workflow()
    item = wf.queue.get(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    data = item_to_dict(item)
    data["formatted"] = render_review_text(item.suggestion, item.meeting_id)
    return data


@app.delete("/queue/{item_id}")
async def delete_queue_item(item_id: str):
    """Delete a queue item"""
    wf = _require_workflow()
    if not wf.queue.remove(item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    return {"status": "deleted", "item_id": item_id}


@app.post("/decisions/{item_id}/approve")
async def approve_decision(item_id: str, request: ApproveDecisionRequest, background_tasks: BackgroundTasks):
    wf = _require_workflow()
    result = wf.approve_decision(item_id, request.approved_by, request.modified_text)
    if result.success:
        background_tasks.add_task(handoff, item_id)
    return result_response(result)


@app.post("/tasks/{item_id}/approve")
async def approve_task(item_id: str, request: ApproveTaskRequest, background_tasks: BackgroundTasks):
    wf = _require_workflow()
    result = wf.approve_task(
        item_id,
        request.approved_by,
        request.final_assignee,
        request.final_due_date,
        request.modified_description,
    )
    if result.success:
        background_tasks.add_task(handoff, item_id)
    return result_response(result)


@app.post("/queue/{item_id}/reject")
async def reject_item(item_id: str, request: RejectRequest):
    wf = _require_workflow()
    return result_response(wf.reject(item_id, request.rejected_by, request.rejection_reason))


@app.post("/decisions/{item_id}/modify")
async def modify_decision(item_id: str, request: ModifyDecisionRequest):
    wf = _require_workflow()
    return result_response(wf.modify_decision(item_id, request.modified_text))


@app.post("/tasks/{item_id}/modify")
async def modify_task(item_id: str, request: ModifyTaskRequest):
    wf = _require_workflow()
    return result_response(wf.modify_task(
        item_id,
        request.modified_description,
        request.modified_assignee,
        request.modified_due_date,
    ))


@app.post("/queue/batch-approve")
async def batch_approve(request: BatchApproveRequest, background_tasks: BackgroundTasks):
    """Approve several items; each succeeds or fails on its own"""
    wf = _require_workflow()
    results = wf.batch_approve(request.item_ids, request.approved_by, request.task_assignees)
    for result in results:
        if result.success:
            background_tasks.add_task(handoff, result.item_id)
    return {
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "results": [result_to_dict(r) for r in results],
    }


@app.post("/queue/batch-reject")
async def batch_reject(request: BatchRejectRequest):
    wf = _require_workflow()
    results = wf.batch_reject(request.item_ids, request.rejected_by, request.rejection_reason)
    return {
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "results": [result_to_dict(r) for r in results],
    }


@app.post("/queue/{item_id}/handoff")
async def retry_handoff(item_id: str):
    """Re-run the sink hand-off for an approved item (sinks are idempotent)"""
    wf = _require_workflow()
    item = wf.queue.get(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    if item.status != QueueStatus.APPROVED:
        raise HTTPException(status_code=409, detail="Item is not approved")

    if item.type == ItemType.DECISION:
        result = archive.archive(item.suggestion, item.meeting_id)
        if not result.success:
            raise HTTPException(status_code=422, detail=result.error)
        return {"item_id": item_id, "archived_decision_id": result.archived_decision_id}

    try:
        tracked = task_sink.create_task_from_suggestion(item.suggestion, item.meeting_id)
    except TaskSinkError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"item_id": item_id, "task_id": tracked.id, "web_url": tracked.web_url}


@app.get("/escalations")
async def list_escalations(threshold_hours: Optional[float] = Query(None, gt=0)):
    """Items overdue for review (read-only)"""
    wf = _require_workflow()
    hours = threshold_hours or config.review.escalation_threshold_hours
    items = wf.items_needing_escalation(hours)
    return {
        "threshold_hours": hours,
        "count": len(items),
        "items": [item_to_dict(item) for item in items],
    }


@app.post("/escalations/run")
async def run_escalations(request: Optional[EscalationRunRequest] = None):
    """Escalate overdue items and notify once per newly escalated item"""
    wf = _require_workflow()
    hours = (request.threshold_hours if request else None) or config.review.escalation_threshold_hours
    escalated = wf.escalate_overdue(hours)
    report = await notifier.notify(escalated)
    return {
        "threshold_hours": hours,
        "escalated": [item.id for item in escalated],
        "notified": report.sent,
        "notification_failures": report.failed_ids,
    }


@app.get("/archive/decisions")
async def search_archive(
    keyword: Optional[str] = None,
    meeting_id: Optional[str] = None,
    approver: Optional[str] = None,
    source_type: Optional[SourceType] = None,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    """Search archived decisions, newest approval first"""
    if not archive:
        raise HTTPException(status_code=503, detail="Archive not initialized")

    results, total = archive.search(DecisionSearchParams(
        keyword=keyword,
        meeting_id=meeting_id,
        approver=approver,
        source_type=source_type,
        limit=limit,
        offset=offset,
    ))
    return {
        "total_count": total,
        "results": [r.model_dump(mode="json") for r in results],
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the review server"""
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    ensure_directories()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info("Starting server on port %d", config.server.port)
    uvicorn.run(
        "execassist.review.server:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
