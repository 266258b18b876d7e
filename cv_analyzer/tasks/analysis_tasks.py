# cv_analyzer/tasks/analysis_tasks.py
import logging

from celery import shared_task

from cv_analyzer.errors import JobNotFound
from cv_analyzer.services.worker import process_job

logger = logging.getLogger(__name__)


@shared_task(name="analysis.run", ignore_result=False)
def run_analysis(job_id: str):
    """
    Worker entry point. Triggered once per inserted job with {jobId}; delivery
    may be duplicated, process_job's claim makes repeats no-ops.
    """
    try:
        return process_job(job_id)
    except JobNotFound as e:
        # consistency error, retrying will not make the row appear
        logger.error(str(e), extra={"job_id": job_id})
        return {"error": str(e), "job_id": job_id}
