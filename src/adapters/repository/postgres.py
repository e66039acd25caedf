"""
PostgreSQL repository adapters - Implement the domain's store protocols.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Consistency Design:
------------------
1. **Partial unique index**: registrations_active_member_club_season makes
   (member_key, club_id, season) unique among non-rejected rows. Inserts use
   ON CONFLICT ... DO NOTHING, so of two concurrent commits for the same
   person exactly one row is written and the other caller gets None.

2. **Row locks for read-modify-write**: approve/reject and membership
   renewals read the row with SELECT ... FOR UPDATE and write it in the same
   transaction, so terminal states cannot be left, concurrent decisions
   resolve to a single winner and concurrent renewals never drop each other.

3. **Frozen breakdowns**: fee line items are copied into a JSONB column of
   the registration row and never joined against the live fee schedule.

Connection failures and pool timeouts (psycopg_pool.PoolTimeout is a
psycopg.OperationalError) are surfaced as UpstreamUnavailable.
"""

import logging
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.exceptions import NotFound, UpstreamUnavailable
from src.domain.models import (
    WILDCARD_CATEGORY,
    Association,
    AssociationRegistration,
    AssociationSettings,
    Club,
    Fee,
    FeeLineItem,
    FeeScope,
    Member,
    MemberQuery,
    MembershipRecord,
    MembershipRenewal,
    MembershipStatus,
    OrganizationStatus,
    OwnerType,
    Payment,
    Registration,
    RegistrationStatus,
    decide_levels,
    normalize_email,
    normalize_name,
)

logger = logging.getLogger(__name__)


class _PostgresAdapter:
    """Shared connection handling for the PostgreSQL store adapters."""

    def __init__(self, pool: ConnectionPool, timeout: float | None = None) -> None:
        """
        Initialize adapter with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            timeout: Seconds to wait for a pooled connection (pool default if None)
        """
        self._pool = pool
        self._timeout = timeout

    @contextmanager
    def _transaction(self) -> Iterator[psycopg.Cursor]:
        """Yield a dict-row cursor; commit on success, roll back on error."""
        try:
            with self._pool.connection(timeout=self._timeout) as conn:
                with conn.cursor(row_factory=dict_row) as cursor:
                    yield cursor
                conn.commit()
        except psycopg.OperationalError as e:
            logger.warning("Database unavailable: %s", e)
            raise UpstreamUnavailable(str(e)) from e


# ---------------------------------------------------------------------------
# Organization store
# ---------------------------------------------------------------------------


class PostgresOrganizationStore(_PostgresAdapter):
    """
    Implements OrganizationStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Fee schedules are stored as ordered JSONB arrays on the owner row.
    """

    def get_association(self, association_id: str) -> Association | None:
        with self._transaction() as cursor:
            cursor.execute("SELECT * FROM associations WHERE id = %s", (association_id,))
            row = cursor.fetchone()
        return _association_from_row(row) if row is not None else None

    def get_club(self, club_id: str) -> Club | None:
        with self._transaction() as cursor:
            cursor.execute(
                "SELECT * FROM clubs WHERE id = %s OR slug = %s ORDER BY id = %s DESC LIMIT 1",
                (club_id, club_id, club_id),
            )
            row = cursor.fetchone()
        return _club_from_row(row) if row is not None else None

    def list_fees(self, owner_type: OwnerType, owner_id: str) -> list[Fee]:
        with self._transaction() as cursor:
            cursor.execute(
                sql.SQL("SELECT fees FROM {} WHERE id = %s").format(_owner_table(owner_type)),
                (owner_id,),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFound(f"{owner_type.value} not found: {owner_id}")
        return [_fee_from_json(item) for item in row["fees"]]

    def set_fees(self, owner_type: OwnerType, owner_id: str, fees: Sequence[Fee]) -> None:
        with self._transaction() as cursor:
            cursor.execute(
                sql.SQL("UPDATE {} SET fees = %s WHERE id = %s").format(_owner_table(owner_type)),
                (Jsonb([_fee_to_json(fee) for fee in fees]), owner_id),
            )
            if cursor.rowcount != 1:
                raise NotFound(f"{owner_type.value} not found: {owner_id}")

    def save_association(self, association: Association) -> None:
        """Insert or replace an association row (seeding and admin tooling)."""
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO associations (id, code, name, level, parent_id, status,
                                          requires_approval, auto_approve_returning_players, fees)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET code = EXCLUDED.code,
                    name = EXCLUDED.name,
                    level = EXCLUDED.level,
                    parent_id = EXCLUDED.parent_id,
                    status = EXCLUDED.status,
                    requires_approval = EXCLUDED.requires_approval,
                    auto_approve_returning_players = EXCLUDED.auto_approve_returning_players,
                    fees = EXCLUDED.fees
                """,
                (
                    association.id,
                    association.code,
                    association.name,
                    association.level,
                    association.parent_id,
                    association.status.value,
                    association.settings.requires_approval,
                    association.settings.auto_approve_returning_players,
                    Jsonb([_fee_to_json(fee) for fee in association.fees]),
                ),
            )

    def save_club(self, club: Club) -> None:
        """Insert or replace a club row (seeding and admin tooling)."""
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO clubs (id, slug, name, association_id, status, fees)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET slug = EXCLUDED.slug,
                    name = EXCLUDED.name,
                    association_id = EXCLUDED.association_id,
                    status = EXCLUDED.status,
                    fees = EXCLUDED.fees
                """,
                (
                    club.id,
                    club.slug,
                    club.name,
                    club.association_id,
                    club.status.value,
                    Jsonb([_fee_to_json(fee) for fee in club.fees]),
                ),
            )


# ---------------------------------------------------------------------------
# Member store
# ---------------------------------------------------------------------------

# Member attribute -> column for partial updates
_MEMBER_COLUMNS = {
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "email",
    "phone",
    "club_id",
    "association_id",
    "membership",
    "banned_until",
    "ban_reason",
}


def _member_update(member_id: str, patch: Mapping[str, Any]) -> tuple[sql.Composed, list[Any]]:
    """Build the UPDATE for a partial member patch, keeping normalized columns in step."""
    unknown = set(patch) - _MEMBER_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update member fields: {sorted(unknown)}")

    values: dict[str, Any] = {}
    for name, value in patch.items():
        values[name] = Jsonb(_membership_to_json(value)) if name == "membership" else value
        if name in ("first_name", "last_name"):
            values[f"{name}_normalized"] = normalize_name(value)
        if name == "email":
            values["email_normalized"] = normalize_email(value) if value else None

    assignments = [sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values]
    assignments.append(sql.SQL("updated_at = NOW()"))
    statement = sql.SQL("UPDATE members SET {} WHERE id = %s RETURNING *").format(
        sql.SQL(", ").join(assignments)
    )
    return statement, [*values.values(), member_id]


class PostgresMemberStore(_PostgresAdapter):
    """
    Implements MemberStore protocol via psycopg3.

    Normalized name and email columns back the returning-player lookups.
    """

    def get_member(self, member_id: str) -> Member | None:
        with self._transaction() as cursor:
            cursor.execute("SELECT * FROM members WHERE id = %s", (member_id,))
            row = cursor.fetchone()
        return _member_from_row(row) if row is not None else None

    def find_members(self, query: MemberQuery) -> list[Member]:
        clauses: list[sql.Composable] = []
        params: list[Any] = []
        if query.first_name is not None:
            clauses.append(sql.SQL("first_name_normalized = %s"))
            params.append(normalize_name(query.first_name))
        if query.last_name is not None:
            clauses.append(sql.SQL("last_name_normalized = %s"))
            params.append(normalize_name(query.last_name))
        if query.date_of_birth is not None:
            clauses.append(sql.SQL("date_of_birth = %s"))
            params.append(query.date_of_birth)
        if query.email is not None:
            clauses.append(sql.SQL("email_normalized = %s"))
            params.append(normalize_email(query.email))

        where = sql.SQL(" AND ").join(clauses) if clauses else sql.SQL("TRUE")
        statement = sql.SQL("SELECT * FROM members WHERE {} ORDER BY created_at, id").format(where)

        with self._transaction() as cursor:
            cursor.execute(statement, params)
            rows = cursor.fetchall()
        return [_member_from_row(row) for row in rows]

    def create_member(self, member: Member) -> Member:
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO members (id, first_name, last_name, first_name_normalized,
                                     last_name_normalized, date_of_birth, gender, email,
                                     email_normalized, phone, club_id, association_id,
                                     membership, banned_until, ban_reason)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    member.id,
                    member.first_name,
                    member.last_name,
                    normalize_name(member.first_name),
                    normalize_name(member.last_name),
                    member.date_of_birth,
                    member.gender,
                    member.email,
                    normalize_email(member.email) if member.email else None,
                    member.phone,
                    member.club_id,
                    member.association_id,
                    Jsonb(_membership_to_json(member.membership)),
                    member.banned_until,
                    member.ban_reason,
                ),
            )
            row = cursor.fetchone()
        return _member_from_row(row)

    def update_member(self, member_id: str, patch: Mapping[str, Any]) -> Member:
        statement, params = _member_update(member_id, patch)
        with self._transaction() as cursor:
            cursor.execute(statement, params)
            row = cursor.fetchone()
        if row is None:
            raise NotFound(f"Member not found: {member_id}")
        return _member_from_row(row)

    def renew_membership(
        self, member_id: str, membership: MembershipRecord, patch: Mapping[str, Any]
    ) -> Member:
        """
        Append a renewal to the stored history and apply the patch.

        The membership column is read with SELECT ... FOR UPDATE in the same
        transaction as the write, so a concurrent renewal of the same member
        waits for this one and then appends to the merged history.
        """
        with self._transaction() as cursor:
            stored = self._lock_membership(cursor, member_id)
            if stored is None:
                raise NotFound(f"Member not found: {member_id}")
            statement, params = _member_update(
                member_id, {**patch, "membership": stored.renewed(membership)}
            )
            cursor.execute(statement, params)
            row = cursor.fetchone()
        return _member_from_row(row)

    def revoke_renewal(
        self, member_id: str, renewal: MembershipRenewal, restore: Mapping[str, Any]
    ) -> None:
        with self._transaction() as cursor:
            stored = self._lock_membership(cursor, member_id)
            if stored is None or renewal not in stored.renewals:
                logger.warning("Renewal to revoke not found on member %s", member_id)
                return
            if stored.is_latest(renewal):
                fields = dict(restore)
                fields["membership"] = stored.revoked(renewal, fields.get("membership"))
            else:
                fields = {"membership": stored.revoked(renewal)}
            statement, params = _member_update(member_id, fields)
            cursor.execute(statement, params)

    def _lock_membership(self, cursor: psycopg.Cursor, member_id: str) -> MembershipRecord | None:
        cursor.execute("SELECT membership FROM members WHERE id = %s FOR UPDATE", (member_id,))
        row = cursor.fetchone()
        return _membership_from_json(row["membership"]) if row is not None else None

    def delete_member(self, member_id: str) -> None:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM members WHERE id = %s", (member_id,))


# ---------------------------------------------------------------------------
# Registration store
# ---------------------------------------------------------------------------


class PostgresRegistrationStore(_PostgresAdapter):
    """
    Implements RegistrationStore protocol via psycopg3.

    The partial unique index is the single arbiter of duplicate commits.
    """

    def create_registration(self, registration: Registration) -> Registration | None:
        """
        Atomically insert a registration.

        Uses INSERT ... ON CONFLICT DO NOTHING against the partial unique
        index on (member_key, club_id, season) WHERE status <> 'REJECTED'.

        Returns:
            Stored registration, or None if an active one already exists
        """
        statement = """
            INSERT INTO registrations (id, member_id, member_key, club_id, association_id,
                                       season, category, team_id, roles, status, fee_items,
                                       association_registrations, total, gst, currency,
                                       created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (member_key, club_id, season) WHERE status <> 'REJECTED'
            DO NOTHING
            RETURNING *
        """
        with self._transaction() as cursor:
            cursor.execute(
                statement,
                (
                    registration.id,
                    registration.member_id,
                    registration.member_key,
                    registration.club_id,
                    registration.association_id,
                    registration.season,
                    registration.category,
                    registration.team_id,
                    list(registration.roles),
                    registration.status.value,
                    Jsonb([_item_to_json(item) for item in registration.fee_items]),
                    Jsonb(
                        [
                            _level_to_json(level)
                            for level in registration.association_registrations
                        ]
                    ),
                    registration.total,
                    registration.gst,
                    registration.currency,
                ),
            )
            row = cursor.fetchone()
        return _registration_from_row(row) if row is not None else None

    def get_registration(self, registration_id: str) -> Registration | None:
        with self._transaction() as cursor:
            cursor.execute("SELECT * FROM registrations WHERE id = %s", (registration_id,))
            row = cursor.fetchone()
        return _registration_from_row(row) if row is not None else None

    def update_registration_status(
        self,
        registration_id: str,
        status: RegistrationStatus,
        reason: str | None = None,
    ) -> bool:
        """
        Decide a PENDING registration and its still-pending association levels.

        The row is locked with SELECT ... FOR UPDATE, so of two concurrent
        decisions the second one sees the terminal status and loses.
        """
        with self._transaction() as cursor:
            cursor.execute(
                "SELECT status, association_registrations FROM registrations "
                "WHERE id = %s FOR UPDATE",
                (registration_id,),
            )
            row = cursor.fetchone()
            if row is None or row["status"] != RegistrationStatus.PENDING.value:
                return False
            levels = decide_levels(
                (_level_from_json(item) for item in row["association_registrations"]), status
            )
            cursor.execute(
                """
                UPDATE registrations
                SET status = %s, association_registrations = %s,
                    rejection_reason = %s, decided_at = NOW()
                WHERE id = %s AND status = %s
                """,
                (
                    status.value,
                    Jsonb([_level_to_json(level) for level in levels]),
                    reason,
                    registration_id,
                    RegistrationStatus.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    def find_registration(
        self, member_key: str, club_id: str, season: int
    ) -> Registration | None:
        statement = """
            SELECT * FROM registrations
            WHERE member_key = %s AND club_id = %s AND season = %s AND status <> 'REJECTED'
        """
        with self._transaction() as cursor:
            cursor.execute(statement, (member_key, club_id, season))
            row = cursor.fetchone()
        return _registration_from_row(row) if row is not None else None

    def delete_registration(self, registration_id: str) -> None:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM registrations WHERE id = %s", (registration_id,))


# ---------------------------------------------------------------------------
# Payment store
# ---------------------------------------------------------------------------


class PostgresPaymentStore(_PostgresAdapter):
    """Implements PaymentStore protocol via psycopg3."""

    def create_payment_placeholder(
        self, registration_id: str, amount: int, currency: str
    ) -> Payment:
        payment_id = f"PAY-{uuid.uuid4().hex.upper()}"
        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO payments (id, registration_id, amount, currency, status)
                VALUES (%s, %s, %s, %s, 'pending')
                RETURNING *
                """,
                (payment_id, registration_id, amount, currency),
            )
            row = cursor.fetchone()
        return Payment(
            id=row["id"],
            registration_id=row["registration_id"],
            amount=row["amount"],
            currency=row["currency"],
            status=row["status"],
            created_at=row["created_at"],
        )


# ---------------------------------------------------------------------------
# Row and JSON mapping
# ---------------------------------------------------------------------------


def _owner_table(owner_type: OwnerType) -> sql.Identifier:
    return sql.Identifier("associations" if owner_type is OwnerType.ASSOCIATION else "clubs")


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _fee_to_json(fee: Fee) -> dict[str, Any]:
    return {
        "id": fee.id,
        "name": fee.name,
        "amount": fee.amount,
        "categories": list(fee.categories),
        "role_categories": list(fee.role_categories),
        "applies_to": fee.applies_to.value,
        "valid_from": _iso(fee.valid_from),
        "valid_to": _iso(fee.valid_to),
        "is_active": fee.is_active,
        "supersedes_key": fee.supersedes_key,
        "min_age": fee.min_age,
        "max_age": fee.max_age,
        "gst_included": fee.gst_included,
        "description": fee.description,
    }


def _fee_from_json(data: Mapping[str, Any]) -> Fee:
    return Fee(
        id=data["id"],
        name=data["name"],
        amount=data["amount"],
        categories=tuple(data.get("categories") or (WILDCARD_CATEGORY,)),
        applies_to=FeeScope(data.get("applies_to", FeeScope.PLAYER.value)),
        valid_from=_date(data.get("valid_from")),
        valid_to=_date(data.get("valid_to")),
        is_active=data.get("is_active", True),
        supersedes_key=data.get("supersedes_key"),
        min_age=data.get("min_age"),
        max_age=data.get("max_age"),
        gst_included=data.get("gst_included", True),
        description=data.get("description"),
        role_categories=tuple(data.get("role_categories", ())),
    )


def _item_to_json(item: FeeLineItem) -> dict[str, Any]:
    return {
        "fee_id": item.fee_id,
        "name": item.name,
        "categories": list(item.categories),
        "amount": item.amount,
        "gst_included": item.gst_included,
        "gst": item.gst,
        "source_type": item.source_type.value,
        "source_id": item.source_id,
        "source_name": item.source_name,
        "level": item.level,
        "description": item.description,
        "override_key": item.override_key,
        "superseded": item.superseded,
        "superseded_by": item.superseded_by,
    }


def _item_from_json(data: Mapping[str, Any]) -> FeeLineItem:
    return FeeLineItem(
        fee_id=data["fee_id"],
        name=data["name"],
        categories=tuple(data["categories"]),
        amount=data["amount"],
        gst_included=data["gst_included"],
        gst=data["gst"],
        source_type=OwnerType(data["source_type"]),
        source_id=data["source_id"],
        source_name=data["source_name"],
        level=data["level"],
        description=data.get("description"),
        override_key=data.get("override_key", ""),
        superseded=data.get("superseded", False),
        superseded_by=data.get("superseded_by"),
    )


def _level_to_json(level: AssociationRegistration) -> dict[str, Any]:
    return {
        "association_id": level.association_id,
        "association_name": level.association_name,
        "level": level.level,
        "status": level.status.value,
        "fee_items": [_item_to_json(item) for item in level.fee_items],
    }


def _level_from_json(data: Mapping[str, Any]) -> AssociationRegistration:
    return AssociationRegistration(
        association_id=data["association_id"],
        association_name=data["association_name"],
        level=data["level"],
        status=RegistrationStatus(data["status"]),
        fee_items=tuple(_item_from_json(item) for item in data.get("fee_items", [])),
    )


def _membership_to_json(
membership: MembershipRecord) -> dict[str, Any]:
    return {
        "type": membership.type,
        "status": membership.status.value,
        "period_start": _iso(membership.period_start),
        "period_end": _iso(membership.period_end),
        "renewals": [
            {
                "season": renewal.season,
                "club_id": renewal.club_id,
                "renewed_on": renewal.renewed_on.isoformat(),
            }
            for renewal in membership.renewals
        ],
    }


def _membership_from_json(data: Mapping[str, Any]) -> MembershipRecord:
    return MembershipRecord(
        type=data.get("type", "player"),
        status=MembershipStatus(data.get("status", MembershipStatus.ACTIVE.value)),
        period_start=_date(data.get("period_start")),
        period_end=_date(data.get("period_end")),
        renewals=[
            MembershipRenewal(
                season=renewal["season"],
                club_id=renewal["club_id"],
                renewed_on=date.fromisoformat(renewal["renewed_on"]),
            )
            for renewal in data.get("renewals", [])
        ],
    )


def _association_from_row(row: Mapping[str, Any]) -> Association:
    return Association(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        level=row["level"],
        parent_id=row["parent_id"],
        fees=tuple(_fee_from_json(item) for item in row["fees"]),
        status=OrganizationStatus(row["status"]),
        settings=AssociationSettings(
            requires_approval=row["requires_approval"],
            auto_approve_returning_players=row["auto_approve_returning_players"],
        ),
    )


def _club_from_row(row: Mapping[str, Any]) -> Club:
    return Club(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        association_id=row["association_id"],
        fees=tuple(_fee_from_json(item) for item in row["fees"]),
        status=OrganizationStatus(row["status"]),
    )


def _member_from_row(row: Mapping[str, Any]) -> Member:
    return Member(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        date_of_birth=row["date_of_birth"],
        gender=row["gender"],
        email=row["email"],
        phone=row["phone"],
        club_id=row["club_id"],
        association_id=row["association_id"],
        membership=_membership_from_json(row["membership"]),
        banned_until=row["banned_until"],
        ban_reason=row["ban_reason"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _registration_from_row(row: Mapping[str, Any]) -> Registration:
    return Registration(
        id=row["id"],
        member_id=row["member_id"],
        member_key=row["member_key"],
        club_id=row["club_id"],
        association_id=row["association_id"],
        season=row["season"],
        category=row["category"],
        status=RegistrationStatus(row["status"]),
        fee_items=tuple(_item_from_json(item) for item in row["fee_items"]),
        total=row["total"],
        gst=row["gst"],
        currency=row["currency"].strip(),
        team_id=row["team_id"],
        roles=tuple(row["roles"]),
        association_registrations=tuple(
            _level_from_json(item) for item in row["association_registrations"]
        ),
        created_at=row["created_at"],
        decided_at=row["decided_at"],
        rejection_reason=row["rejection_reason"],
    )


# src/adapters/repository/postgres.py -> <project root>/migrations
MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def run_migrations(pool: ConnectionPool, directory: Path = MIGRATIONS_DIR) -> list[str]:
    """
    Apply the schema scripts in filename order over one connection.

    Scripts must be idempotent; they are re-run on every startup.

    Returns:
        Names of the scripts applied

    Raises:
        RuntimeError: A script failed; later scripts are not run
    """
    if not directory.is_dir():
        logger.warning("Migrations directory not found: %s", directory)
        return []

    scripts = sorted(directory.glob("*.sql"))
    applied: list[str] = []
    with pool.connection() as conn:
        for script in scripts:
            try:
                conn.execute(script.read_text())
                conn.commit()
            except psycopg.Error as e:
                logger.error("Migration %s failed: %s", script.name, e)
                raise RuntimeError(f"Database migration failed: {script.name}") from e
            applied.append(script.name)
            logger.info("Applied migration %s", script.name)

    logger.info("%d migration(s) applied from %s", len(applied), directory)
    return applied
