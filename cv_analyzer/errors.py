# cv_analyzer/errors.py
from typing import Optional


class AnalysisError(RuntimeError):
    """Base class for pipeline errors."""


class InputValidationError(ValueError):
    """Rejected request input; nothing was persisted."""


class JobNotFound(LookupError):
    def __init__(self, job_id: str):
        super().__init__(f"AnalysisJob {job_id} not found")
        self.job_id = job_id


class AnalysisCallError(AnalysisError):
    """
    One of the fanned-out model calls failed: API error, timeout or output
    that does not match the expected schema.
    """

    def __init__(self, call: str, message: str, *, code: Optional[str] = None):
        super().__init__(f"{call}: {message}")
        self.call = call
        self.code = code or "call_failed"