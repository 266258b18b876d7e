# cv_analyzer/services/status_poller.py
"""
Client side of the status protocol.

    poller = StatusPoller(HttpStatusFetcher("https://api.example.com", owner_id="u-1"))
    poller.start(job_id)          # background thread, returns immediately
    outcome = poller.wait(120)    # or poller.cancel()

One request in flight at a time; the next one is scheduled only after the
previous answer arrived. cancel() stops any further network call.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

TERMINAL = ("completed", "failed")
DEFAULT_INTERVAL_S = 1.5

StatusFetch = Callable[[str], Dict[str, Any]]


@dataclass
class PollOutcome:
    job_id: str
    status: str                     # completed | failed | cancelled | timeout | error
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    polls: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class HttpStatusFetcher:
    """GET {base_url}/api/analysis/status?jobId=... with the owner header."""

    def __init__(
        self,
        base_url: str,
        owner_id: str,
        owner_header: str = "X-Owner-Id",
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self._url = base_url.rstrip("/") + "/api/analysis/status"
        self._headers = {owner_header: owner_id, "Accept": "application/json"}
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def __call__(self, job_id: str) -> Dict[str, Any]:
        r = self._session.get(
            self._url,
            params={"jobId": job_id},
            headers=self._headers,
            timeout=self._timeout_s,
        )
        payload = r.json() if r.content else {}
        if r.status_code != 200:
            raise RuntimeError(payload.get("error") or f"Status request failed ({r.status_code})")
        return payload


class StatusPoller:
    """Cancellable polling loop over a status fetcher."""

    def __init__(
        self,
        fetch: StatusFetch,
        interval_s: float = DEFAULT_INTERVAL_S,
        max_polls: Optional[int] = None,
        on_update: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self._fetch = fetch
        self._interval_s = interval_s
        self._max_polls = max_polls
        self._on_update = on_update
        self._on_complete = on_complete
        self._on_error = on_error

        self._cancelled = threading.Event()
        self._finished = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._outcome: Optional[PollOutcome] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, fetch: StatusFetch, config: Mapping[str, Any], **kwargs) -> "StatusPoller":
        """Build a poller whose interval comes from `POLL_INTERVAL_S` (e.g. `app.config`)."""
        kwargs.setdefault("interval_s", float(config.get("POLL_INTERVAL_S", DEFAULT_INTERVAL_S)))
        return cls(fetch, **kwargs)

    # -- public handle -------------------------------------------------------

    def start(self, job_id: str) -> "StatusPoller":
        """Poll on a background thread. A poller handle runs one job at most."""
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("poller already started")
            self._thread = threading.Thread(
                target=self.run,
                args=(job_id,),
                name=f"status-poller-{job_id}",
                daemon=True,
            )
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def outcome(self) -> Optional[PollOutcome]:
        return self._outcome

    def wait(self, timeout: Optional[float] = None) -> Optional[PollOutcome]:
        """Block until the loop ends; None if it is still running after `timeout`."""
        self._finished.wait(timeout)
        return self._outcome

    # -- loop ----------------------------------------------------------------

    def run(self, job_id: str) -> PollOutcome:
        """Poll in the calling thread until a terminal status, cancel or give-up."""
        polls = 0
        try:
            while True:
                if self._cancelled.is_set():
                    return self._finish(PollOutcome(job_id, "cancelled", polls=polls))
                if self._max_polls is not None and polls >= self._max_polls:
                    return self._finish(PollOutcome(
                        job_id, "timeout", error="Gave up waiting for the analysis", polls=polls,
                    ))

                try:
                    data = self._fetch(job_id)
                except Exception as e:
                    if self._cancelled.is_set():
                        return self._finish(PollOutcome(job_id, "cancelled", polls=polls + 1))
                    logger.warning("Status poll failed for %s: %s", job_id, e)
                    return self._finish(PollOutcome(
                        job_id, "error", error=str(e) or "Polling failed", polls=polls + 1,
                    ))
                polls += 1

                # an answer that lands after cancel() is dropped
                if self._cancelled.is_set():
                    return self._finish(PollOutcome(job_id, "cancelled", polls=polls))

                status = (data or {}).get("status")
                if status == "completed":
                    return self._finish(PollOutcome(
                        job_id, "completed", result=data.get("result"), polls=polls,
                    ))
                if status == "failed":
                    return self._finish(PollOutcome(
                        job_id, "failed", error=data.get("error") or "Job failed", polls=polls,
                    ))

                if self._on_update and status:
                    self._on_update(status)

                # Event.wait doubles as an interruptible sleep
                if self._cancelled.wait(self._interval_s):
                    return self._finish(PollOutcome(job_id, "cancelled", polls=polls))
        finally:
            self._finished.set()

    def _finish(self, outcome: PollOutcome) -> PollOutcome:
        self._outcome = outcome
        if outcome.status == "completed" and self._on_complete:
            self._on_complete(outcome.result or {})
        elif outcome.status in ("failed", "error", "timeout") and self._on_error:
            self._on_error(outcome.error or "Job failed")
        return outcome
