from uuid import UUID

from fastapi import Header

from core.errors import invalid_format, raise_error

# Default learner for local single-user mode
SINGLE_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> UUID:
    """Resolve the acting learner.

    Sign-in lives outside this service; an upstream gateway forwards the
    learner as ``X-User-ID``. Without the header the single local user is used.
    """
    if not x_user_id:
        return SINGLE_USER_ID
    try:
        return UUID(x_user_id)
    except ValueError:
        raise_error(invalid_format("X-User-ID", "UUID", x_user_id, origin="security").error)
