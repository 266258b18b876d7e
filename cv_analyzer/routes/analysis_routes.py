# cv_analyzer/routes/analysis_routes.py
import logging

from flask import Blueprint, current_app, jsonify, request

from cv_analyzer.errors import InputValidationError
from cv_analyzer.models.job import JobStatus
from cv_analyzer.services import job_store
from cv_analyzer.services.identity import current_owner_id

logger = logging.getLogger(__name__)

bp = Blueprint("analysis", __name__)  # prefix applied in create_app

ROAST_TONES = ("light", "heavy")
EXPERIENCE_LEVELS = ("entry", "mid", "senior")


# --- Local helpers ---

def _as_bool(v) -> bool:
    return str(v).lower() in ("1", "true", "yes", "on")


def _iso(dt):
    return dt.replace(microsecond=0).isoformat() + "Z" if dt else None


def _unauthorized():
    return jsonify({"ok": False, "error": "Unauthorized"}), 401


def _required_text(data: dict, *keys: str, label: str) -> str:
    value = next((data.get(k) for k in keys if data.get(k) is not None), None)
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(f"'{label}' is required")
    limit = current_app.config["MAX_INPUT_CHARS"]
    if len(value) > limit:
        raise InputValidationError(f"'{label}' is too long (max {limit} characters)")
    return value.strip()


def _roast_params(data: dict) -> dict:
    tone = str(data.get("roastTone") or data.get("roast_tone") or "light").strip().lower()
    if tone not in ROAST_TONES:
        raise InputValidationError("'roastTone' must be 'light' or 'heavy'")

    focus = data.get("focusAreas", data.get("focus_areas")) or []
    if not isinstance(focus, list) or not all(isinstance(f, str) for f in focus):
        raise InputValidationError("'focusAreas' must be a list of strings")

    ctx = data.get("userContext") or data.get("user_context") or {}
    if not isinstance(ctx, dict):
        raise InputValidationError("'userContext' must be an object")
    experience = ctx.get("experience")
    if experience and experience not in EXPERIENCE_LEVELS:
        raise InputValidationError("'userContext.experience' must be entry, mid or senior")

    return {
        "roastTone": tone,
        "focusAreas": [f.strip() for f in focus if f.strip()],
        "showEmojis": _as_bool(data.get("showEmojis", data.get("show_emojis", False))),
        "userContext": {
            "targetRole": ctx.get("targetRole") or None,
            "experience": experience or None,
            "industry": ctx.get("industry") or None,
        },
    }


def _enqueue(owner_id: str, kind: str, input_text: str, reference_text=None, params=None):
    """Create the job, then trigger the worker. Returns a Flask response tuple."""
    try:
        job = job_store.create_job(owner_id, kind, input_text, reference_text, params)
    except Exception:
        logger.exception("Could not persist analysis job", extra={"kind": kind})
        return jsonify({"ok": False, "error": "Failed to enqueue job"}), 500

    job_id = job.id
    try:
        from cv_analyzer.tasks.analysis_tasks import run_analysis
        async_res = run_analysis.delay(job_id)
    except Exception as e:
        logger.exception("Could not dispatch analysis job", extra={"job_id": job_id})
        try:
            job_store.fail_job(job_id, f"Could not start analysis: {e}")
        except Exception:
            logger.exception("Could not mark undispatched job as failed", extra={"job_id": job_id})
        return jsonify({"ok": False, "error": "Analysis service unavailable", "jobId": job_id}), 503

    task_id = getattr(async_res, "id", None)
    if task_id:
        try:
            job_store.record_task_id(job_id, task_id)
        except Exception:
            # the worker is already triggered, the job stands without its task id
            logger.exception("Could not record task id", extra={"job_id": job_id})

    logger.info("Job enqueued", extra={"job_id": job_id, "kind": kind})
    return jsonify({"ok": True, "jobId": job_id, "status": JobStatus.QUEUED}), 202


def _response_payload(resp) -> dict:
    return {
        "job_id": resp.job_id,
        "overall_score": resp.overall_score,
        "scores": resp.scores,
        "findings": resp.findings,
        "processing_ms": resp.processing_ms,
        "token_usage": resp.token_usage,
        "model": resp.model,
        "finish_reason": resp.finish_reason,
        "created_at": _iso(resp.created_at),
    }


# --- Routes ---

@bp.post("/ats")
def enqueue_ats():
    """
    ATS analysis: enqueue (resume vs job description)
    ---
    tags:
      - Analysis
    consumes:
      - application/json
    parameters:
      - in: header
        name: X-Owner-Id
        required: true
        type: string
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - inputText
            - jobDescription
          properties:
            inputText:
              type: string
              description: Resume text (already extracted).
            jobDescription:
              type: string
              description: Job description to match against.
          example:
            inputText: "Jane Doe. Backend engineer, 5 years of Python, Flask, PostgreSQL..."
            jobDescription: "We are hiring a Python developer with Flask and SQL experience..."
    responses:
      202:
        description: Accepted (job queued)
      400:
        description: Missing or invalid fields
      401:
        description: Unauthorized
      503:
        description: Worker could not be triggered
    """
    owner_id = current_owner_id()
    if not owner_id:
        return _unauthorized()

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "JSON object body required"}), 400
    try:
        resume_text = _required_text(data, "inputText", "input_text", "resumeText", label="inputText")
        job_description = _required_text(data, "jobDescription", "job_description", label="jobDescription")
    except InputValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    return _enqueue(owner_id, "ats", resume_text, reference_text=job_description, params={})


@bp.post("/roast")
def enqueue_roast():
    """
    CV roast: enqueue (single document)
    ---
    tags:
      - Analysis
    consumes:
      - application/json
    parameters:
      - in: header
        name: X-Owner-Id
        required: true
        type: string
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - inputText
          properties:
            inputText:
              type: string
            roastTone:
              type: string
              enum: [light, heavy]
              default: light
            focusAreas:
              type: array
              items: {type: string}
            showEmojis:
              type: boolean
              default: false
            userContext:
              type: object
              properties:
                targetRole: {type: string}
                experience: {type: string, enum: [entry, mid, senior]}
                industry: {type: string}
          example:
            inputText: "John Doe. Sales associate. Hard worker, team player..."
            roastTone: "light"
            focusAreas: ["formatting", "impact"]
            showEmojis: true
    responses:
      202:
        description: Accepted (job queued)
      400:
        description: Missing or invalid fields
      401:
        description: Unauthorized
      503:
        description: Worker could not be triggered
    """
    owner_id = current_owner_id()
    if not owner_id:
        return _unauthorized()

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "JSON object body required"}), 400
    try:
        cv_text = _required_text(data, "inputText", "input_text", "cvText", label="inputText")
        params = _roast_params(data)
    except InputValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    return _enqueue(owner_id, "roast", cv_text, params=params)


@bp.get("/status")
def status():
    """
    Analysis: job status
    ---
    tags:
      - Analysis
    parameters:
      - in: header
        name: X-Owner-Id
        required: true
        type: string
      - in: query
        name: jobId
        required: true
        type: string
    responses:
      200:
        description: "{status: queued|processing}, {status: completed, result} or {status: failed, error}"
      400:
        description: Missing jobId
      401:
        description: Unauthorized
      404:
        description: Not found (or owned by another caller)
    """
    owner_id = current_owner_id()
    if not owner_id:
        return _unauthorized()

    job_id = (request.args.get("jobId") or request.args.get("job_id") or "").strip()
    if not job_id:
        return jsonify({"ok": False, "error": "Missing 'jobId'"}), 400

    job = job_store.get_owned_job(job_id, owner_id)
    if not job:
        return jsonify({"ok": False, "error": "job not found"}), 404

    if job.status == JobStatus.COMPLETED:
        resp = job_store.get_response(job.id)
        if not resp:
            logger.error("Completed job has no response", extra={"job_id": job.id})
            return jsonify({
                "ok": True,
                "status": JobStatus.FAILED,
                "error": "Analysis result is missing for a completed job",
            }), 200
        return jsonify({"ok": True, "status": JobStatus.COMPLETED, "result": _response_payload(resp)}), 200

    return jsonify({"ok": True, "status": job.status, "error": job.error}), 200


@bp.get("/")
def list_jobs():
    """
    Analysis: list the caller's latest 50 jobs (filterable by ?kind=ats|roast)
    ---
    tags:
      - Analysis
    parameters:
      - in: header
        name: X-Owner-Id
        required: true
        type: string
      - in: query
        name: kind
        required: false
        type: string
        enum: [ats, roast]
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    owner_id = current_owner_id()
    if not owner_id:
        return _unauthorized()

    kind = (request.args.get("kind") or "").strip().lower() or None
    jobs = job_store.list_jobs(owner_id, kind=kind)

    return jsonify({
        "ok": True,
        "items": [
            {
                "job_id": j.id,
                "kind": j.kind,
                "status": j.status,
                "error": j.error,
                "overall_score": j.response.overall_score if j.response else None,
                "created_at": _iso(j.created_at),
                "updated_at": _iso(j.updated_at),
            } for j in jobs
        ],
    }), 200
