# cv_analyzer/models/job.py
import uuid
from datetime import datetime

from cv_analyzer.models import db
from cv_analyzer.models.types import JSONBCompat


class JobStatus:
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    ALL = (QUEUED, PROCESSING, COMPLETED, FAILED)
    TERMINAL = (COMPLETED, FAILED)
    ACTIVE = (QUEUED, PROCESSING)


def _new_id() -> str:
    return str(uuid.uuid4())


class AnalysisJob(db.Model):
    __tablename__ = "analysis_jobs"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    owner_id = db.Column(db.String(128), index=True, nullable=False)
    kind = db.Column(db.String(20), nullable=False)                 # ats|roast
    input_text = db.Column(db.Text, nullable=False)
    reference_text = db.Column(db.Text, nullable=True)              # job description (ats)
    params = db.Column(JSONBCompat(), nullable=False, default=dict)
    status = db.Column(db.String(20), nullable=False, default=JobStatus.QUEUED, index=True)
    error = db.Column(db.Text, nullable=True)
    task_id = db.Column(db.String(50), index=True, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    response = db.relationship(
        "AnalysisResponse",
        back_populates="job",
        uselist=False,
        lazy="select",
    )

    __table_args__ = (
        db.Index("ix_analysis_jobs_owner_created", "owner_id", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL

    def __repr__(self):
        return f"<AnalysisJob {self.id} {self.kind} {self.status}>"
