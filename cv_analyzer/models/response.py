# cv_analyzer/models/response.py
from datetime import datetime

from cv_analyzer.models import db
from cv_analyzer.models.types import JSONBCompat


class AnalysisResponse(db.Model):
    __tablename__ = "analysis_responses"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(
        db.String(36),
        db.ForeignKey("analysis_jobs.id"),
        nullable=False,
        unique=True,        # at most one response per job
        index=True,
    )

    overall_score = db.Column(db.Integer, nullable=False)           # 0..100, derived
    scores = db.Column(JSONBCompat(), nullable=False)               # {dimension: 0..100}
    findings = db.Column(JSONBCompat(), nullable=False)             # {dimension: structured output}

    # Telemetry (advisory)
    processing_ms = db.Column(db.Integer, nullable=True)
    token_usage = db.Column(JSONBCompat(), nullable=True)           # {input, output, total}
    model = db.Column(db.String(64), nullable=True)
    finish_reason = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    job = db.relationship("AnalysisJob", back_populates="response")
