import threading

import pytest

from cv_analyzer.services.status_poller import HttpStatusFetcher, StatusPoller


def scripted(*answers):
    """fetch() returning the given answers in order (exceptions are raised)."""
    calls = []

    def fetch(job_id):
        calls.append(job_id)
        answer = answers[min(len(calls), len(answers)) - 1]
        if isinstance(answer, Exception):
            raise answer
        return answer

    fetch.calls = calls
    return fetch


def test_polls_until_completed():
    fetch = scripted({"status": "queued"}, {"status": "processing"}, {"status": "completed", "result": {"overall_score": 70}})
    updates, completed = [], []

    outcome = StatusPoller(fetch, interval_s=0, on_update=updates.append, on_complete=completed.append).run("job-1")

    assert outcome.succeeded
    assert outcome.result == {"overall_score": 70}
    assert outcome.polls == 3
    assert updates == ["queued", "processing"]
    assert completed == [{"overall_score": 70}]


def test_failed_surfaces_error_verbatim():
    fetch = scripted({"status": "processing"}, {"status": "failed", "error": "skills: quota exceeded"})
    errors = []

    outcome = StatusPoller(fetch, interval_s=0, on_error=errors.append).run("job-1")

    assert outcome.status == "failed"
    assert outcome.error == "skills: quota exceeded"
    assert errors == ["skills: quota exceeded"]


def test_gives_up_after_max_polls():
    fetch = scripted({"status": "processing"})
    outcome = StatusPoller(fetch, interval_s=0, max_polls=4).run("job-1")

    assert outcome.status == "timeout"
    assert len(fetch.calls) == 4


def test_transport_error_stops_polling():
    fetch = scripted({"status": "queued"}, ConnectionError("connection reset"), {"status": "completed"})
    outcome = StatusPoller(fetch, interval_s=0).run("job-1")

    assert outcome.status == "error"
    assert outcome.error == "connection reset"
    assert len(fetch.calls) == 2


def test_cancel_stops_further_requests():
    first_poll = threading.Event()
    calls = []

    def fetch(job_id):
        calls.append(job_id)
        first_poll.set()
        return {"status": "processing"}

    poller = StatusPoller(fetch, interval_s=0.05).start("job-1")
    assert first_poll.wait(2)
    poller.cancel()
    outcome = poller.wait(2)

    assert outcome is not None
    assert outcome.status == "cancelled"
    seen = len(calls)
    assert poller.wait(0.2).status == "cancelled"
    assert len(calls) == seen


def test_cancel_before_first_poll():
    fetch = scripted({"status": "queued"})
    poller = StatusPoller(fetch, interval_s=0)
    poller.cancel()

    assert poller.run("job-1").status == "cancelled"
    assert fetch.calls == []


def test_handle_runs_one_job():
    poller = StatusPoller(scripted({"status": "completed", "result": {}}), interval_s=0).start("job-1")
    poller.wait(2)
    with pytest.raises(RuntimeError):
        poller.start("job-2")


def test_answer_arriving_after_cancel_is_dropped():
    in_flight, release = threading.Event(), threading.Event()
    completed, errors, updates = [], [], []

    def fetch(job_id):
        in_flight.set()
        release.wait(2)
        return {"status": "completed", "result": {"overall_score": 1}}

    poller = StatusPoller(
        fetch, interval_s=0,
        on_update=updates.append, on_complete=completed.append, on_error=errors.append,
    ).start("job-1")
    assert in_flight.wait(2)
    poller.cancel()
    release.set()
    outcome = poller.wait(2)

    assert outcome.status == "cancelled"
    assert outcome.result is None
    assert completed == [] and errors == [] and updates == []


def test_interval_from_config():
    fetch = scripted({"status": "queued"})

    assert StatusPoller.from_config(fetch, {"POLL_INTERVAL_S": 0.25})._interval_s == 0.25
    assert StatusPoller.from_config(fetch, {})._interval_s == 1.5
    assert StatusPoller.from_config(fetch, {"POLL_INTERVAL_S": 0.25}, interval_s=0)._interval_s == 0


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.content = b"{}"

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        return self.response


def test_http_fetcher_sends_owner_and_job_id():
    session = FakeSession(FakeResponse(200, {"status": "queued"}))
    fetch = HttpStatusFetcher("http://api.local/", owner_id="owner-1", session=session)

    assert fetch("job-1") == {"status": "queued"}
    req = session.requests[0]
    assert req["url"] == "http://api.local/api/analysis/status"
    assert req["params"] == {"jobId": "job-1"}
    assert req["headers"]["X-Owner-Id"] == "owner-1"


def test_http_fetcher_raises_on_not_found():
    session = FakeSession(FakeResponse(404, {"ok": False, "error": "job not found"}))
    fetch = HttpStatusFetcher("http://api.local", owner_id="owner-1", session=session)

    with pytest.raises(RuntimeError, match="job not found"):
        fetch("job-1")
