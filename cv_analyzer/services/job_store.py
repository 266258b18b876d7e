# cv_analyzer/services/job_store.py
"""
Job and Response persistence, plus the job state machine.

    queued --claim--> processing --> completed
       |                  |
       +------------------+--------> failed

Every transition is a single conditional UPDATE on `status`, never a
read-then-write pair, so duplicate worker deliveries cannot both win.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update

from cv_analyzer.models import db
from cv_analyzer.models.job import AnalysisJob, JobStatus
from cv_analyzer.models.response import AnalysisResponse

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 2000


def _transition(job_id: str, from_states, to_state: str, **values) -> bool:
    stmt = (
        update(AnalysisJob)
        .where(AnalysisJob.id == job_id, AnalysisJob.status.in_(tuple(from_states)))
        .values(status=to_state, updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    res = db.session.execute(stmt)
    return res.rowcount == 1


# ---------------------------
# Jobs
# ---------------------------

def create_job(
    owner_id: str,
    kind: str,
    input_text: str,
    reference_text: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
) -> AnalysisJob:
    """
    Insert a job in `queued` and commit. On a store failure the session is
    rolled back and the exception propagates: no job exists afterwards.
    """
    job = AnalysisJob(
        owner_id=owner_id,
        kind=kind,
        input_text=input_text,
        reference_text=reference_text,
        params=params or {},
        status=JobStatus.QUEUED,
    )
    try:
        db.session.add(job)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return job


def get_job(job_id: str) -> Optional[AnalysisJob]:
    return db.session.get(AnalysisJob, job_id)


def get_owned_job(job_id: str, owner_id: str) -> Optional[AnalysisJob]:
    """Job lookup scoped to its owner; someone else's job reads as missing."""
    if not job_id or not owner_id:
        return None
    return AnalysisJob.query.filter_by(id=job_id, owner_id=owner_id).first()


def list_jobs(owner_id: str, kind: Optional[str] = None, limit: int = 50) -> List[AnalysisJob]:
    q = AnalysisJob.query.filter(AnalysisJob.owner_id == owner_id)
    if kind:
        q = q.filter(AnalysisJob.kind == kind)
    return q.order_by(AnalysisJob.created_at.desc()).limit(limit).all()


def record_task_id(job_id: str, task_id: str) -> None:
    try:
        db.session.execute(
            update(AnalysisJob)
            .where(AnalysisJob.id == job_id)
            .values(task_id=task_id)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ---------------------------
# State machine
# ---------------------------

def claim_job(job_id: str) -> bool:
    """queued -> processing. False if the job was not queued anymore."""
    try:
        claimed = _transition(job_id, [JobStatus.QUEUED], JobStatus.PROCESSING)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return claimed


def fail_job(job_id: str, message: str) -> bool:
    """
    Move a non-terminal job to `failed` with an error message. Terminal jobs
    are left untouched and False is returned.
    """
    message = (message or "Analysis failed").strip()[:MAX_ERROR_CHARS]
    try:
        failed = _transition(job_id, JobStatus.ACTIVE, JobStatus.FAILED, error=message)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return failed


def complete_job(
    job_id: str,
    *,
    overall_score: int,
    scores: Dict[str, int],
    findings: Dict[str, Any],
    processing_ms: Optional[int] = None,
    token_usage: Optional[Dict[str, int]] = None,
    model: Optional[str] = None,
    finish_reason: Optional[str] = None,
) -> AnalysisResponse:
    """
    Insert the Response and move processing -> completed in one transaction,
    so a response never exists without a completed job (and vice versa).
    """
    resp = AnalysisResponse(
        job_id=job_id,
        overall_score=overall_score,
        scores=scores,
        findings=findings,
        processing_ms=processing_ms,
        token_usage=token_usage,
        model=model,
        finish_reason=finish_reason,
    )
    try:
        if not _transition(job_id, [JobStatus.PROCESSING], JobStatus.COMPLETED, error=None):
            raise RuntimeError(f"AnalysisJob {job_id} is not processing; refusing to complete")
        db.session.add(resp)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return resp


# ---------------------------
# Responses
# ---------------------------

def get_response(job_id: str) -> Optional[AnalysisResponse]:
    return AnalysisResponse.query.filter_by(job_id=job_id).first()
