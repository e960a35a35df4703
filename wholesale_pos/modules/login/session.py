# wholesale_pos/modules/login/session.py
from __future__ import annotations

import logging
import sqlite3

from ...constants import LOCKOUT_MINUTES, MAX_FAILED_ATTEMPTS
from ...database.repositories.login_repo import LoginRepo
from ...errors import AuthenticationError
from ...utils.auth import verify_and_maybe_upgrade
from .model import UserSession, require_session  # noqa: F401  (re-export)

_log = logging.getLogger(__name__)


def authenticate(conn: sqlite3.Connection, username: str, password: str) -> UserSession:
    """
    Log a user in and return their session.

    Raises AuthenticationError for empty fields, unknown/inactive users, locked
    accounts and wrong passwords. Wrong passwords count towards a lockout of
    LOCKOUT_MINUTES after MAX_FAILED_ATTEMPTS consecutive failures.
    """
    repo = LoginRepo(conn)
    uname = (username or "").strip()

    if not uname or not password:
        raise AuthenticationError("Please enter both username and password.")

    u = repo.get_user_by_username(uname)
    if not u:
        repo.insert_auth_log(uname, False, "user_not_found")
        raise AuthenticationError(f"No account exists for username “{uname}”.")

    if not u["is_active"]:
        repo.insert_auth_log(uname, False, "user_inactive")
        raise AuthenticationError(f"Account “{uname}” is inactive. Contact an administrator.")

    if repo.is_locked(int(u["user_id"])):
        repo.insert_auth_log(uname, False, "locked_out")
        raise AuthenticationError(
            f"Account is locked due to repeated failures. Try again after {u['locked_until']}."
        )

    user_id = int(u["user_id"])
    ok, _ = verify_and_maybe_upgrade(
        password,
        u["password_hash"],
        on_rehash=lambda new_hash: repo.update_password_hash(user_id, new_hash),
    )
    if not ok:
        repo.increment_failed_attempts(user_id, MAX_FAILED_ATTEMPTS, LOCKOUT_MINUTES)
        repo.insert_auth_log(uname, False, "wrong_password")
        _log.info("login failed for %s", uname)
        raise AuthenticationError(f"Incorrect password for “{uname}”.")

    repo.reset_failed_attempts_and_touch_login(user_id)
    repo.insert_auth_log(uname, True, "ok")
    _log.info("user %s logged in", uname)
    return UserSession.from_mapping(repo.get_user_by_username(uname) or u)

