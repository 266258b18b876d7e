# cv_analyzer/services/identity.py
from typing import Optional

from flask import current_app, request


def current_owner_id() -> Optional[str]:
    """
    Opaque id of the authenticated caller.

    Authentication happens upstream (gateway / auth proxy); it forwards the
    principal in the header named by OWNER_HEADER. Missing or blank -> None.
    """
    header = current_app.config.get("OWNER_HEADER", "X-Owner-Id")
    owner = (request.headers.get(header) or "").strip()
    return owner or None
