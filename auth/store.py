"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_record
is the mapper. Route, flow and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Column lists in list_users() sorting come from a fixed whitelist.

Uniqueness:
  email carries a UNIQUE constraint. Both create_user() and save() translate
  the driver's IntegrityError into DuplicateKey so callers can tell a taken
  email apart from any other write failure.

Timestamps are stored as ISO 8601 strings (UTC). password_reset_expires is
mapped back to an aware datetime so callers can compare it with Clock.now().

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateKey
from auth.models import CredentialRecord, Role, normalize_email

_DEFAULT_DB_URL = "sqlite:///storefront_auth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("first_name", String(50), nullable=False, server_default=""),
    Column("last_name", String(50), nullable=False, server_default=""),
    Column("phone", String(20)),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_email_verified", Integer, nullable=False, server_default="0"),
    Column("email_verification_token", String(64), index=True),  # HMAC digest
    Column("password_reset_token", String(64), index=True),  # HMAC digest
    Column("password_reset_expires", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

# Sort keys accepted by list_users(); values are trusted Column objects.
_SORT_COLUMNS = {
    "created_at": _users.c.created_at,
    "email": _users.c.email,
    "first_name": _users.c.first_name,
    "last_name": _users.c.last_name,
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _mutable_columns(record: CredentialRecord) -> dict:
    return {
        "email": normalize_email(record.email),
        "password_hash": record.password_hash,
        "first_name": record.first_name,
        "last_name": record.last_name,
        "phone": record.phone,
        "role": Role(record.role).value,
        "is_active": 1 if record.is_active else 0,
        "is_email_verified": 1 if record.is_email_verified else 0,
        "email_verification_token": record.email_verification_token,
        "password_reset_token": record.password_reset_token,
        "password_reset_expires": _to_iso(record.password_reset_expires),
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for CredentialRecord entities.

    Usage:
        store = UserStore()
        user_id = store.create_user(CredentialRecord(email="a@x.com", password_hash=hash_password("Secret1")))
        record = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, record: CredentialRecord) -> str:
        """Insert a new record and return its id.

        Assigns a uuid4 hex id when the record has none and fills in
        created_at / updated_at on the passed record.

        Raises DuplicateKey if the email is already registered. Two concurrent
        registrations for the same email both pass any pre-check; the UNIQUE
        constraint decides, and the loser gets DuplicateKey.
        """
        record.id = record.id or uuid.uuid4().hex
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(id=record.id, created_at=now, updated_at=now, **_mutable_columns(record))
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKey() from exc
        record.created_at = now
        record.updated_at = now
        return record.id

    def save(self, record: CredentialRecord) -> bool:
        """Write every mutable field of record back to its row.

        Returns True if a row was updated, False if record.id was not found.
        Raises DuplicateKey if the email was changed to one already taken.
        """
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == record.id).values(updated_at=now, **_mutable_columns(record))
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKey() from exc
        record.updated_at = now
        return result.rowcount > 0

    def update_last_login(self, user_id: str) -> str:
        """Stamp the current UTC timestamp as last_login and return the stamp."""
        stamp = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=stamp))
            conn.commit()
        return stamp

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a record. Returns True if deleted, False if not found.

        Callers must check the admin-protection invariant before calling this.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> CredentialRecord | None:
        return self._fetch_one(_users.c.id == user_id)

    def get_by_email(self, email: str) -> CredentialRecord | None:
        """Look up a record by email. The argument is normalized first."""
        return self._fetch_one(_users.c.email == normalize_email(email))

    def get_by_verification_digest(self, digest: str) -> CredentialRecord | None:
        return self._fetch_one(_users.c.email_verification_token == digest)

    def get_by_reset_digest(self, digest: str) -> CredentialRecord | None:
        """Return the record with a pending reset matching digest.

        Expiry is NOT checked here -- the caller compares
        password_reset_expires against its injected clock.
        """
        return self._fetch_one(_users.c.password_reset_token == digest)

    def _fetch_one(self, clause) -> CredentialRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(clause)).fetchone()
        return _row_to_record(row) if row is not None else None

    # ------------------------------------------------------------------
    # Admin queries
    # ------------------------------------------------------------------

    def list_users(
        self,
        *,
        search: str | None = None,
        role: Role | None = None,
        is_email_verified: bool | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[CredentialRecord], int]:
        """Return one page of records plus the total count for the filters.

        search matches email, first_name or last_name case-insensitively.
        Raises ValueError for an unknown sort_by.
        """
        if sort_by not in _SORT_COLUMNS:
            raise ValueError(f"Unknown sort key: {sort_by!r}")
        clauses = []
        if search:
            pattern = f"%{search.strip()}%"
            clauses.append(
                or_(
                    _users.c.email.ilike(pattern),
                    _users.c.first_name.ilike(pattern),
                    _users.c.last_name.ilike(pattern),
                )
            )
        if role is not None:
            clauses.append(_users.c.role == Role(role).value)
        if is_email_verified is not None:
            clauses.append(_users.c.is_email_verified == (1 if is_email_verified else 0))

        order_col = _SORT_COLUMNS[sort_by]
        query = _users.select().where(*clauses).order_by(order_col.desc() if descending else order_col.asc())
        count_query = select(func.count()).select_from(_users).where(*clauses)
        with self.engine.connect() as conn:
            rows = conn.execute(query.offset(offset).limit(limit)).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_record(r) for r in rows], total

    def stats(self, recent_since: datetime) -> dict:
        """Return account counts for the admin overview."""
        count = func.count()
        with self.engine.connect() as conn:
            total = conn.execute(select(count).select_from(_users)).scalar() or 0
            verified = (
                conn.execute(select(count).select_from(_users).where(_users.c.is_email_verified == 1)).scalar()
                or 0
            )
            active = conn.execute(select(count).select_from(_users).where(_users.c.is_active == 1)).scalar() or 0
            admins = (
                conn.execute(select(count).select_from(_users).where(_users.c.role == Role.admin.value)).scalar()
                or 0
            )
            recent = (
                conn.execute(
                    select(count).select_from(_users).where(_users.c.created_at >= recent_since.isoformat())
                ).scalar()
                or 0
            )
        return {
            "total_users": total,
            "verified_users": verified,
            "active_users": active,
            "admin_users": admins,
            "recent_users": recent,
            "verification_rate": round(verified / total * 100) if total else 0,
        }

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(func.count()).select_from(_users))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> CredentialRecord:
    return CredentialRecord(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        role=Role(row.role),
        is_active=bool(row.is_active),
        is_email_verified=bool(row.is_email_verified),
        email_verification_token=row.email_verification_token,
        password_reset_token=row.password_reset_token,
        password_reset_expires=_from_iso(row.password_reset_expires),
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )
