import os
import pytest

from cv_analyzer import create_app
from cv_analyzer.models import db as _db
from cv_analyzer.models import AnalysisJob, AnalysisResponse

from fakes import OTHER_OWNER, OWNER


@pytest.fixture(scope="session")
def app():
    os.environ["FLASK_ENV"] = "testing"
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _clean_tables(app):
    yield
    _db.session.rollback()
    AnalysisResponse.query.delete()
    AnalysisJob.query.delete()
    _db.session.commit()


@pytest.fixture()
def headers():
    return {"X-Owner-Id": OWNER}


@pytest.fixture()
def other_headers():
    return {"X-Owner-Id": OTHER_OWNER}


@pytest.fixture()
def dispatched(monkeypatch):
    """Replace run_analysis.delay; job ids are collected instead of sent to a broker."""
    queue = []

    class DummyAsync:
        def __init__(self, job_id):
            self.id = f"task-{job_id[:8]}"

    def fake_delay(job_id):
        queue.append(job_id)
        return DummyAsync(job_id)

    monkeypatch.setattr("cv_analyzer.tasks.analysis_tasks.run_analysis.delay", fake_delay)
    return queue
