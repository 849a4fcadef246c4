"""User identification for the placement history.

Authentication is handled elsewhere; this only attaches a best-effort
identifier to each recorded placement action.
"""

from typing import Optional

from fastapi import Header, Request

# Matches the width of the audit_logs.user column
MAX_USER_LENGTH = 100


def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> str:
    """Get current user identifier from request.

    Args:
        request: FastAPI request object.
        x_user_id: User ID from X-User-ID header.

    Returns:
        User identifier string. Falls back to the client host, then
        'anonymous'.
    """
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()[:MAX_USER_LENGTH]

    if request.client:
        return f"user-{request.client.host}"

    return "anonymous"
