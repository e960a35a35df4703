# wholesale_pos/database/repositories/login_repo.py
from __future__ import annotations

import sqlite3
from typing import Optional


class LoginRepo:
    """
    Thin data-access layer for login/auth.

      users(user_id, username, password_hash, full_name, email, role,
            is_active, created_date, last_login, failed_attempts, locked_until)

    Also writes to audit_logs for attempt logging.

    This repo does NOT verify passwords; callers verify with utils.auth before
    treating a login as successful.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ------------------------------ helpers ------------------------------

    @staticmethod
    def _norm_username(username: str) -> str:
        return (username or "").strip()

    # ------------------------------- reads -------------------------------

    def get_user_by_username(self, username: str) -> Optional[dict]:
        row = self.conn.execute(
            """
            SELECT user_id, username, password_hash, full_name, email, role,
                   is_active, last_login, failed_attempts, locked_until
            FROM users
            WHERE username = ?
            """,
            (self._norm_username(username),),
        ).fetchone()
        return dict(row) if row else None

    def is_locked(self, user_id: int) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM users WHERE user_id=? AND locked_until IS NOT NULL "
            "AND locked_until > CURRENT_TIMESTAMP",
            (user_id,),
        ).fetchone()
        return row is not None

    # ------------------------------ writes -------------------------------

    def create_user(
        self,
        username: str,
        password_hash: str,
        full_name: str,
        *,
        email: str | None = None,
        role: str = "user",
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO users(username, password_hash, full_name, email, role, is_active)
            VALUES (?, ?, ?, ?, ?, 1)
            """,
            (self._norm_username(username), password_hash, full_name, email, role),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def update_password_hash(self, user_id: int, new_hash: str) -> None:
        self.conn.execute("UPDATE users SET password_hash=? WHERE user_id=?", (new_hash, user_id))
        self.conn.commit()

    def increment_failed_attempts(self, user_id: int, max_attempts: int, lock_minutes: int) -> None:
        """
        Atomically bump failed_attempts; once the threshold is reached, lock the
        account until DB-clock now + lock_minutes.
        """
        if max_attempts < 1:
            max_attempts = 3
        if lock_minutes < 1:
            lock_minutes = 15
        self.conn.execute(
            """
            UPDATE users
               SET failed_attempts = failed_attempts + 1,
                   locked_until = CASE
                       WHEN (failed_attempts + 1) >= ?
                       THEN datetime('now', ?)
                       ELSE locked_until
                   END
             WHERE user_id = ?
            """,
            (max_attempts, f"+{int(lock_minutes)} minutes", user_id),
        )
        self.conn.commit()

    def reset_failed_attempts_and_touch_login(self, user_id: int) -> None:
        """On successful login: zero failed_attempts, set last_login=now, clear locked_until."""
        self.conn.execute(
            """
            UPDATE users
               SET failed_attempts = 0,
                   last_login = CURRENT_TIMESTAMP,
                   locked_until = NULL
             WHERE user_id = ?
            """,
            (user_id,),
        )
        self.conn.commit()

    def insert_auth_log(self, username: str, success: bool, reason: str) -> None:
        """
        Record the attempt in audit_logs; user_id is NULL for unknown usernames.
        """
        uname = self._norm_username(username)
        row = self.conn.execute(
            "SELECT user_id FROM users WHERE username = ?",
            (uname,),
        ).fetchone()
        user_id = int(row["user_id"]) if row else None
        details = f"success={1 if success else 0}; reason={reason or ''}; username={uname}"
        self.conn.execute(
            """
            INSERT INTO audit_logs (user_id, action_type, table_name, record_id, details)
            VALUES (?, 'auth', 'users', NULL, ?)
            """,
            (user_id, details),
        )
        self.conn.commit()
