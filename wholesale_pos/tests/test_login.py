import pytest

from wholesale_pos.constants import MAX_FAILED_ATTEMPTS
from wholesale_pos.database.repositories.login_repo import LoginRepo
from wholesale_pos.errors import AuthenticationError
from wholesale_pos.modules.login import UserSession, authenticate, require_session
from wholesale_pos.utils.auth import hash_password, needs_rehash, verify_password


@pytest.fixture
def cashier(conn):
    repo = LoginRepo(conn)
    repo.create_user("cashier", hash_password("s3cret"), "Front Till")
    return repo


def test_login_returns_session(conn, cashier):
    s = authenticate(conn, " cashier ", "s3cret")
    assert isinstance(s, UserSession)
    assert s.username == "cashier"
    assert s.full_name == "Front Till"
    assert s.last_login is not None
    assert require_session(s) is s


@pytest.mark.parametrize("username, password", [("", "x"), ("cashier", ""), ("nobody", "x")])
def test_rejected_logins(conn, cashier, username, password):
    with pytest.raises(AuthenticationError):
        authenticate(conn, username, password)


def test_repeated_failures_lock_the_account(conn, cashier):
    for _ in range(MAX_FAILED_ATTEMPTS):
        with pytest.raises(AuthenticationError, match="Incorrect password"):
            authenticate(conn, "cashier", "wrong")
    with pytest.raises(AuthenticationError, match="locked"):
        authenticate(conn, "cashier", "s3cret")


def test_every_attempt_is_audited(conn, cashier):
    with pytest.raises(AuthenticationError):
        authenticate(conn, "cashier", "wrong")
    authenticate(conn, "cashier", "s3cret")
    details = [r["details"] for r in conn.execute("SELECT details FROM audit_logs ORDER BY log_id")]
    assert details[0].startswith("success=0; reason=wrong_password")
    assert details[1].startswith("success=1; reason=ok")


def test_legacy_pbkdf2_hash_is_upgraded(conn):
    repo = LoginRepo(conn)
    legacy = hash_password("old-pass", scheme="pbkdf2")
    repo.create_user("veteran", legacy, "Old Timer")
    authenticate(conn, "veteran", "old-pass")
    stored = repo.get_user_by_username("veteran")["password_hash"]
    assert stored != legacy
    assert not needs_rehash(stored)
    assert verify_password("old-pass", stored)


def test_require_session_rejects_anything_else():
    for bad in (None, {"user_id": 1}, "admin"):
        with pytest.raises(AuthenticationError):
            require_session(bad)
