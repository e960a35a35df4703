# wholesale_pos/modules/login/model.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ...errors import AuthenticationError


@dataclass(frozen=True)
class UserSession:
    """
    App-facing user object (no secrets).

    Every mutating service call takes one of these; see session.require_session().
    """
    user_id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_mapping(cls, m: Mapping[str, Any]) -> "UserSession":
        """
        Build from any dict/mapping with the expected keys.
        Safe to use with sqlite3.Row or a plain dict.
        """
        m = dict(m)
        return cls(
            user_id=int(m["user_id"]),
            username=str(m["username"]),
            full_name=m.get("full_name"),
            email=m.get("email"),
            role=m.get("role"),
            last_login=m.get("last_login"),
        )


def require_session(session: Optional[UserSession]) -> UserSession:
    """Reject a mutation that arrives without an authenticated session."""
    if not isinstance(session, UserSession):
        raise AuthenticationError("You must be logged in to make changes.")
    return session
