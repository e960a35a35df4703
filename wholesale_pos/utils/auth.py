# wholesale_pos/utils/auth.py
from __future__ import annotations

import hashlib
import hmac
import os
from typing import Callable, Optional, Tuple, Union

import bcrypt

# ---- PBKDF2 settings (legacy hashes still verify) ----
_PBKDF2_PREFIX = "pbkdf2_sha256$"
_PBKDF2_DEFAULT_ITERS = 200_000
_PBKDF2_SALT_BYTES = 16

# ---- bcrypt defaults / policy ----
_BCRYPT_DEFAULT_ROUNDS = 12          # used when hashing
_BCRYPT_MIN_ACCEPTABLE_ROUNDS = 12   # rehash if lower than this
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


# --------------------------- PBKDF2 helpers ---------------------------

def _hash_pbkdf2(password: str, iterations: int = _PBKDF2_DEFAULT_ITERS) -> str:
    iterations = max(int(iterations), _PBKDF2_DEFAULT_ITERS)
    salt = os.urandom(_PBKDF2_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{_PBKDF2_PREFIX}{iterations}${salt.hex()}${dk.hex()}"


def _verify_pbkdf2(password: str, encoded: str) -> bool:
    # expected format: pbkdf2_sha256$<iters>$<salt_hex>$<digest_hex>
    if not encoded.startswith(_PBKDF2_PREFIX):
        return False
    try:
        _, rest = encoded.split(_PBKDF2_PREFIX, 1)
        iters_str, salt_hex, dk_hex = rest.split("$", 2)
        iters = int(iters_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(dk_hex)
    except ValueError:
        return False
    got = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return hmac.compare_digest(got, expected)


# ---------------------------- bcrypt helpers ----------------------------

def _hash_bcrypt(password: str, rounds: int = _BCRYPT_DEFAULT_ROUNDS) -> str:
    rounds = max(int(rounds), _BCRYPT_MIN_ACCEPTABLE_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def _verify_bcrypt(password: str, encoded: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), encoded.encode("utf-8"))
    except ValueError:
        # malformed salt/hash
        return False


def _parse_bcrypt_cost(hash_str: str) -> int | None:
    """Extract the cost from a bcrypt hash: $2b$12$..."""
    parts = hash_str.split("$")
    if len(parts) < 4:
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


# ------------------------------- Public API -------------------------------

def hash_password(
    password: str,
    scheme: str = "bcrypt",
    *,
    bcrypt_rounds: int = _BCRYPT_DEFAULT_ROUNDS,
    pbkdf2_iterations: int = _PBKDF2_DEFAULT_ITERS,
) -> str:
    """
    Hash `password` using bcrypt (default) or the legacy PBKDF2 format.
    Costs below the policy minimum are clamped up.
    """
    if not isinstance(password, str) or password == "":
        raise ValueError("Password must be a non-empty string")

    scheme = (scheme or "bcrypt").lower().strip()
    if scheme == "pbkdf2":
        return _hash_pbkdf2(password, iterations=pbkdf2_iterations)
    return _hash_bcrypt(password, rounds=bcrypt_rounds)


def verify_password(password: str, stored_hash: Union[str, bytes, None]) -> bool:
    """
    Verify `password` against `stored_hash`.
    Supports:
      - PBKDF2: 'pbkdf2_sha256$...'
      - bcrypt: $2a$ / $2b$ / $2y$...
    """
    if stored_hash is None or password is None:
        return False
    if isinstance(stored_hash, bytes):
        stored_hash = stored_hash.decode("utf-8", errors="replace")
    h = stored_hash.strip()
    if h.startswith(_PBKDF2_PREFIX):
        return _verify_pbkdf2(password, h)
    if h.startswith(_BCRYPT_PREFIXES):
        return _verify_bcrypt(password, h)
    return False


def needs_rehash(stored_hash: Union[str, bytes, None]) -> bool:
    """
    Policy hook: True if the stored hash should be upgraded
    (PBKDF2 -> bcrypt, weak bcrypt cost, unknown scheme).
    """
    if not stored_hash:
        return True
    if isinstance(stored_hash, bytes):
        stored_hash = stored_hash.decode("utf-8", errors="replace")
    h = stored_hash.strip()
    if h.startswith(_BCRYPT_PREFIXES):
        cost = _parse_bcrypt_cost(h)
        return cost is None or cost < _BCRYPT_MIN_ACCEPTABLE_ROUNDS
    return True


def verify_and_maybe_upgrade(
    password: str,
    stored_hash: Union[str, bytes, None],
    *,
    on_rehash: Optional[Callable[[str], None]] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Verify the password and, if policy recommends, produce an upgraded hash.

    Returns (ok, new_hash_or_None). `on_rehash(new_hash)` is called when a new
    hash was produced so the caller can persist it.
    """
    if not verify_password(password, stored_hash):
        return False, None
    if not needs_rehash(stored_hash):
        return True, None
    new_hash = hash_password(password)
    if on_rehash is not None:
        on_rehash(new_hash)
    return True, new_hash
