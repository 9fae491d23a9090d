"""
auth/passwords.py -- Secret hasher (bcrypt, direct usage, no passlib wrapper).

Bcrypt is the right choice for low-entropy secrets because its cost factor
makes brute force expensive. Every hash_password() call draws a fresh salt,
so two hashes of the same password never compare equal as strings.

verify_password() separates "wrong password" (False) from "the stored digest
is not a bcrypt hash" (CorruptCredential). The second is a data problem, not
a login failure, and must not be reported to the caller as bad credentials.

Bcrypt only looks at the first 72 bytes of its input. Newer bcrypt releases
raise instead of truncating, so inputs are truncated here, identically on
hash and verify.
"""

from __future__ import annotations

import bcrypt

from auth.errors import CorruptCredential

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Raises CorruptCredential when hashed is not a well-formed bcrypt digest.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise CorruptCredential() from exc


# Timing equalization dummy hash.
# Computed once at module load. Login always runs a bcrypt verify, against
# this hash when the email is unknown, so response time does not reveal
# whether an account exists.
DUMMY_HASH: str = hash_password("storefront_timing_dummy")
