"""Domain error taxonomy.

Services raise these; ``groupdesk.middleware.error_handler`` maps them onto
HTTP responses. ``context`` is merged into the JSON body so callers can see
who currently holds a slot, the capacity that was hit, and so on.
"""

from __future__ import annotations

from typing import Any


class GroupdeskError(Exception):
    """Base class for errors that are reported to the caller."""

    status_code = 500

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context


class AuthenticationFailure(GroupdeskError):
    """Bad or expired state token, bad OAuth code, missing credentials."""

    status_code = 401


class UpstreamFailure(GroupdeskError):
    """A required call to an external identity API did not return 200."""

    status_code = 502


class ConflictFailure(GroupdeskError):
    """Role already claimed by someone else, or trainer capacity reached."""

    status_code = 409


class NotFoundFailure(GroupdeskError):
    """Unknown calendar session id or similar."""

    status_code = 404


class ValidationFailure(GroupdeskError):
    """Request is well-formed but not acceptable (past session, bad role)."""

    status_code = 400
