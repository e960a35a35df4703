"""
Login module package exports.

- authenticate(): verifies a username/password against users and opens a session.
- require_session(): guard called by every mutating service operation.
"""

from .model import UserSession
from .session import authenticate, require_session

__all__ = [
    "UserSession",
    "authenticate",
    "require_session",
]
