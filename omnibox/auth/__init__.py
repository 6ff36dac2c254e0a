from .auth import (
    Session,
    get_session
)

__all__ = [
    "Session",
    "get_session"
]
