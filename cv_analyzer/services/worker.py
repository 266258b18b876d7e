# cv_analyzer/services/worker.py
"""
Turns one queued job into one response.

load -> claim (queued -> processing) -> fan out the pipeline's calls ->
aggregate -> response insert + completed, or failed on any error.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

from cv_analyzer.errors import JobNotFound
from cv_analyzer.services import job_store
from cv_analyzer.services.llm_client import TokenUsage, get_llm_client
from cv_analyzer.services.pipelines import JobInput, Pipeline, get_pipeline

logger = logging.getLogger(__name__)


async def run_calls(pipeline: Pipeline, job_input: JobInput, client) -> Dict[str, Any]:
    """
    Run every call of the pipeline concurrently and wait for all of them.

    As soon as one call fails the others are cancelled and the first failure
    (in pipeline order) is raised.
    """
    tasks = {
        asyncio.ensure_future(call.run(client, job_input)): call.name
        for call in pipeline.calls
    }
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    failures = {tasks[t]: t.exception() for t in done if t.exception() is not None}
    for call in pipeline.calls:
        if call.name in failures:
            raise failures[call.name]

    return {tasks[t]: t.result() for t in done}


async def _run_and_close(pipeline: Pipeline, job_input: JobInput, client) -> Dict[str, Any]:
    try:
        return await run_calls(pipeline, job_input, client)
    finally:
        await client.aclose()


def process_job(job_id: str, client=None) -> Dict[str, Any]:
    """
    Process one job id. Safe to call more than once for the same id: only the
    invocation that wins the claim does any work.

    Raises JobNotFound when the id does not exist; every other error ends with
    the job in `failed`.
    """
    job = job_store.get_job(job_id)
    if job is None:
        raise JobNotFound(job_id)

    log_extra = {"job_id": job_id, "kind": job.kind}
    job_input = JobInput(
        input_text=job.input_text,
        reference_text=job.reference_text,
        params=dict(job.params or {}),
    )
    kind = job.kind

    try:
        if not job_store.claim_job(job_id):
            current = job_store.get_job(job_id)
            logger.info("Job already claimed, skipping duplicate delivery", extra=log_extra)
            return {"job_id": job_id, "status": current.status if current else None, "skipped": True}

        logger.info("Job claimed", extra=log_extra)
        pipeline = get_pipeline(kind)
        if client is None:
            # built for this job only, closed before asyncio.run drops the loop
            llm = get_llm_client()
            calls = _run_and_close(pipeline, job_input, llm)
        else:
            llm = client
            calls = run_calls(pipeline, job_input, llm)

        started = time.monotonic()
        results = asyncio.run(calls)
        overall, scores, findings = pipeline.aggregate(results)
        processing_ms = int((time.monotonic() - started) * 1000)

        usage = TokenUsage()
        finish_reason: Optional[str] = None
        for call in pipeline.calls:
            res = results[call.name]
            usage = usage + res.usage
            finish_reason = finish_reason or res.finish_reason

        job_store.complete_job(
            job_id,
            overall_score=overall,
            scores=scores,
            findings=findings,
            processing_ms=processing_ms,
            token_usage=usage.to_payload(),
            model=getattr(llm, "model", None),
            finish_reason=finish_reason or "stop",
        )
    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.warning("Job failed: %s", message, extra=log_extra, exc_info=True)
        try:
            job_store.fail_job(job_id, message)
        except Exception:
            # TODO: sweep jobs stuck in `processing` once a reclaim policy is agreed
            logger.exception("Could not mark job as failed; it stays in processing", extra=log_extra)
        return {"job_id": job_id, "status": "failed", "error": message}

    logger.info(
        "Job completed",
        extra={**log_extra, "duration_ms": processing_ms, "status": "completed"},
    )
    return {"job_id": job_id, "status": "completed", "overall_score": overall}
