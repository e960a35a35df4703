# wholesale_pos/database/seeders/default_data.py
import logging

from ...utils.auth import hash_password

_log = logging.getLogger(__name__)

DEFAULT_ADMIN = ("admin", "admin", "Administrator", "admin@example.com")


def seed(conn) -> bool:
    """Create the first admin account on an empty users table. Returns True if it did."""
    (count,) = conn.execute("SELECT COUNT(*) FROM users").fetchone()
    if count:
        return False
    username, password, full_name, email = DEFAULT_ADMIN
    conn.execute(
        "INSERT INTO users(username, password_hash, full_name, email, role, is_active) "
        "VALUES (?, ?, ?, ?, 'admin', 1)",
        (username, hash_password(password), full_name, email),
    )
    conn.commit()
    _log.info("seeded default '%s' account", username)
    return True
