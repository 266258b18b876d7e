from cv_analyzer.models import AnalysisJob, JobStatus, db
from cv_analyzer.services import job_store
from cv_analyzer.services.worker import process_job

from fakes import FakeLLM, OWNER

ATS_BODY = {"inputText": "Backend engineer, Python, Flask", "jobDescription": "Python developer wanted"}
ROAST_BODY = {"inputText": "Sales associate, team player", "roastTone": "light"}


def test_enqueue_requires_owner(client, dispatched):
    rv = client.post("/api/analysis/roast", json=ROAST_BODY)
    assert rv.status_code == 401
    assert dispatched == []


def test_enqueue_roast_ok(client, headers, dispatched):
    rv = client.post("/api/analysis/roast", json={
        **ROAST_BODY,
        "focusAreas": ["formatting"],
        "showEmojis": "true",
        "userContext": {"targetRole": "Account manager", "experience": "mid"},
    }, headers=headers)

    assert rv.status_code == 202
    js = rv.get_json()
    assert js["ok"] is True
    assert js["status"] == "queued"
    assert dispatched == [js["jobId"]]

    job = job_store.get_job(js["jobId"])
    assert job.owner_id == OWNER
    assert job.kind == "roast"
    assert job.status == JobStatus.QUEUED
    assert job.task_id == f"task-{job.id[:8]}"
    assert job.params == {
        "roastTone": "light",
        "focusAreas": ["formatting"],
        "showEmojis": True,
        "userContext": {"targetRole": "Account manager", "experience": "mid", "industry": None},
    }


def test_enqueue_ats_ok(client, headers, dispatched):
    rv = client.post("/api/analysis/ats", json=ATS_BODY, headers=headers)
    assert rv.status_code == 202
    job = job_store.get_job(rv.get_json()["jobId"])
    assert job.kind == "ats"
    assert job.reference_text == "Python developer wanted"


def test_enqueue_empty_text_creates_nothing(client, headers, dispatched):
    rv = client.post("/api/analysis/roast", json={"inputText": "   "}, headers=headers)
    assert rv.status_code == 400
    assert "jobId" not in rv.get_json()
    assert AnalysisJob.query.count() == 0
    assert dispatched == []


def test_enqueue_ats_requires_job_description(client, headers, dispatched):
    rv = client.post("/api/analysis/ats", json={"inputText": "cv"}, headers=headers)
    assert rv.status_code == 400
    assert "jobDescription" in rv.get_json()["error"]
    assert AnalysisJob.query.count() == 0


def test_enqueue_rejects_bad_parameters(client, headers, dispatched):
    bad_bodies = [
        {**ROAST_BODY, "roastTone": "nuclear"},
        {**ROAST_BODY, "focusAreas": "formatting"},
        {**ROAST_BODY, "userContext": {"experience": "wizard"}},
    ]
    for body in bad_bodies:
        rv = client.post("/api/analysis/roast", json=body, headers=headers)
        assert rv.status_code == 400
    assert AnalysisJob.query.count() == 0


def test_enqueue_rejects_oversized_input(app, client, headers, dispatched):
    limit = app.config["MAX_INPUT_CHARS"]
    rv = client.post("/api/analysis/roast", json={"inputText": "x" * (limit + 1)}, headers=headers)
    assert rv.status_code == 400


def test_enqueue_store_failure_does_not_dispatch(client, headers, dispatched, monkeypatch):
    def broken_create(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr("cv_analyzer.services.job_store.create_job", broken_create)
    rv = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers)

    assert rv.status_code == 500
    assert dispatched == []


def test_enqueue_dispatch_failure_fails_job(client, headers, monkeypatch):
    def broken_delay(job_id):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr("cv_analyzer.tasks.analysis_tasks.run_analysis.delay", broken_delay)
    rv = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers)

    assert rv.status_code == 503
    job = job_store.get_job(rv.get_json()["jobId"])
    assert job.status == JobStatus.FAILED
    assert "broker unreachable" in job.error


def test_enqueue_rejects_non_object_body(client, headers, dispatched):
    for body in (["not", "an", "object"], "cv text", 42):
        for path in ("/api/analysis/roast", "/api/analysis/ats"):
            rv = client.post(path, json=body, headers=headers)
            assert rv.status_code == 400
            assert rv.get_json()["ok"] is False
    assert AnalysisJob.query.count() == 0
    assert dispatched == []


def test_enqueue_task_id_write_failure_still_accepts(client, headers, dispatched, monkeypatch):
    def broken_record(job_id, task_id):
        raise RuntimeError("db gone")

    monkeypatch.setattr("cv_analyzer.services.job_store.record_task_id", broken_record)
    rv = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers)

    assert rv.status_code == 202
    job_id = rv.get_json()["jobId"]
    assert dispatched == [job_id]
    job = job_store.get_job(job_id)
    assert job.status == JobStatus.QUEUED
    assert job.task_id is None


def test_enqueue_dispatch_failure_answers_503_when_fail_write_breaks(client, headers, monkeypatch):
    def broken_delay(job_id):
        raise ConnectionError("broker unreachable")

    def broken_fail(job_id, message):
        raise RuntimeError("db gone")

    monkeypatch.setattr("cv_analyzer.tasks.analysis_tasks.run_analysis.delay", broken_delay)
    monkeypatch.setattr("cv_analyzer.services.job_store.fail_job", broken_fail)
    rv = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers)

    assert rv.status_code == 503
    assert rv.get_json()["jobId"]


def test_status_queued(client, headers, dispatched):
    job_id = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers).get_json()["jobId"]

    rv = client.get(f"/api/analysis/status?jobId={job_id}", headers=headers)
    assert rv.status_code == 200
    js = rv.get_json()
    assert js["status"] == "queued"
    assert js["error"] is None
    assert "result" not in js


def test_status_completed_returns_result(client, headers, dispatched):
    job_id = client.post("/api/analysis/ats", json=ATS_BODY, headers=headers).get_json()["jobId"]
    process_job(job_id, client=FakeLLM())

    js = client.get(f"/api/analysis/status?jobId={job_id}", headers=headers).get_json()
    assert js["status"] == "completed"
    assert js["result"]["job_id"] == job_id
    assert js["result"]["overall_score"] == 70
    assert js["result"]["scores"]["skills_match"] == 60


def test_status_failed_returns_error(client, headers, dispatched):
    job_id = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers).get_json()["jobId"]
    process_job(job_id, client=FakeLLM(fail={"roast": RuntimeError("model overloaded")}))

    js = client.get(f"/api/analysis/status?jobId={job_id}", headers=headers).get_json()
    assert js == {"ok": True, "status": "failed", "error": "roast: model overloaded"}


def test_status_completed_without_response_reports_failure(client, headers):
    job = job_store.create_job(OWNER, "roast", "cv")
    job.status = JobStatus.COMPLETED
    db.session.commit()

    js = client.get(f"/api/analysis/status?jobId={job.id}", headers=headers).get_json()
    assert js["status"] == "failed"
    assert js["error"]


def test_status_hides_other_owners_jobs(client, headers, other_headers, dispatched):
    job_id = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers).get_json()["jobId"]

    foreign = client.get(f"/api/analysis/status?jobId={job_id}", headers=other_headers)
    missing = client.get("/api/analysis/status?jobId=nope", headers=other_headers)

    assert foreign.status_code == missing.status_code == 404
    assert foreign.get_json() == missing.get_json()


def test_status_requires_job_id(client, headers):
    assert client.get("/api/analysis/status", headers=headers).status_code == 400


def test_status_does_not_mutate(client, headers, dispatched):
    job_id = client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers).get_json()["jobId"]
    before = job_store.get_job(job_id).updated_at

    for _ in range(3):
        client.get(f"/api/analysis/status?jobId={job_id}", headers=headers)

    db.session.expire_all()
    job = job_store.get_job(job_id)
    assert job.status == JobStatus.QUEUED
    assert job.updated_at == before


def test_list_jobs_only_returns_own(client, headers, other_headers, dispatched):
    client.post("/api/analysis/roast", json=ROAST_BODY, headers=headers)
    client.post("/api/analysis/ats", json=ATS_BODY, headers=headers)
    client.post("/api/analysis/roast", json=ROAST_BODY, headers=other_headers)

    items = client.get("/api/analysis/", headers=headers).get_json()["items"]
    assert len(items) == 2

    roast_only = client.get("/api/analysis/?kind=roast", headers=headers).get_json()["items"]
    assert [i["kind"] for i in roast_only] == ["roast"]
