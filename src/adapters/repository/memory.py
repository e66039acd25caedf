"""
In-memory repository adapter - Implements every store port in process.

Used as the development backend (storage_backend=memory) and by unit
tests. A single lock serializes writes, which gives registrations the same
one-active-row-per-(member_key, club, season) guarantee as the PostgreSQL
partial unique index. Records are deep-copied in and out so callers can
never mutate stored state by accident.
"""

import copy
import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from src.domain.exceptions import NotFound
from src.domain.models import (
    Association,
    Club,
    Fee,
    Member,
    MemberQuery,
    MembershipRecord,
    MembershipRenewal,
    OwnerType,
    Payment,
    Registration,
    RegistrationStatus,
    decide_levels,
    normalize_email,
    normalize_name,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository:
    """
    Implements OrganizationStore, MemberStore, RegistrationStore and
    PaymentStore protocols via dictionaries.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._associations: dict[str, Association] = {}
        self._clubs: dict[str, Club] = {}
        self._members: dict[str, Member] = {}
        self._registrations: dict[str, Registration] = {}
        self._payments: dict[str, Payment] = {}

    # Seeding -----------------------------------------------------------

    def add_association(self, association: Association) -> None:
        with self._lock:
            self._associations[association.id] = association

    def add_club(self, club: Club) -> None:
        with self._lock:
            self._clubs[club.id] = club

    # OrganizationStore -------------------------------------------------

    def get_association(self, association_id: str) -> Association | None:
        return self._associations.get(association_id)

    def get_club(self, club_id: str) -> Club | None:
        club = self._clubs.get(club_id)
        if club is not None:
            return club
        return next((c for c in self._clubs.values() if c.slug == club_id), None)

    def list_fees(self, owner_type: OwnerType, owner_id: str) -> list[Fee]:
        owner = self._owner(owner_type, owner_id)
        return list(owner.fees)

    def set_fees(self, owner_type: OwnerType, owner_id: str, fees: Sequence[Fee]) -> None:
        with self._lock:
            owner = self._owner(owner_type, owner_id)
            updated = replace(owner, fees=tuple(fees))
            if owner_type is OwnerType.ASSOCIATION:
                self._associations[owner.id] = updated
            else:
                self._clubs[owner.id] = updated

    def _owner(self, owner_type: OwnerType, owner_id: str) -> Association | Club:
        owner = (
            self._associations.get(owner_id)
            if owner_type is OwnerType.ASSOCIATION
            else self.get_club(owner_id)
        )
        if owner is None:
            raise NotFound(f"{owner_type.value} not found: {owner_id}")
        return owner

    # MemberStore -------------------------------------------------------

    def get_member(self, member_id: str) -> Member | None:
        member = self._members.get(member_id)
        return copy.deepcopy(member)

    def find_members(self, query: MemberQuery) -> list[Member]:
        with self._lock:
            members = list(self._members.values())
        found = [m for m in members if _matches(m, query)]
        found.sort(key=lambda m: m.created_at or datetime.min.replace(tzinfo=timezone.utc))
        return copy.deepcopy(found)

    def create_member(self, member: Member) -> Member:
        stored = replace(copy.deepcopy(member), created_at=_now(), updated_at=_now())
        with self._lock:
            self._members[stored.id] = stored
        return copy.deepcopy(stored)

    def update_member(self, member_id: str, patch: Mapping[str, Any]) -> Member:
        with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise NotFound(f"Member not found: {member_id}")
            updated = replace(member, **copy.deepcopy(dict(patch)), updated_at=_now())
            self._members[member_id] = updated
        return copy.deepcopy(updated)

    def renew_membership(
        self, member_id: str, membership: MembershipRecord, patch: Mapping[str, Any]
    ) -> Member:
        with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise NotFound(f"Member not found: {member_id}")
            updated = replace(
                member,
                **copy.deepcopy(dict(patch)),
                membership=member.membership.renewed(copy.deepcopy(membership)),
                updated_at=_now(),
            )
            self._members[member_id] = updated
        return copy.deepcopy(updated)

    def revoke_renewal(
        self, member_id: str, renewal: MembershipRenewal, restore: Mapping[str, Any]
    ) -> None:
        with self._lock:
            member = self._members.get(member_id)
            if member is None or renewal not in member.membership.renewals:
                logger.warning("Renewal to revoke not found on member %s", member_id)
                return
            if member.membership.is_latest(renewal):
                fields = copy.deepcopy(dict(restore))
                previous = fields.pop("membership", None)
                updated = replace(
                    member,
                    **fields,
                    membership=member.membership.revoked(renewal, previous),
                    updated_at=_now(),
                )
            else:
                updated = replace(
                    member, membership=member.membership.revoked(renewal), updated_at=_now()
                )
            self._members[member_id] = updated

    def delete_member(self, member_id: str) -> None:
        with self._lock:
            self._members.pop(member_id, None)

    def member_count(self) -> int:
        return len(self._members)

    # RegistrationStore -------------------------------------------------

    def create_registration(self, registration: Registration) -> Registration | None:
        with self._lock:
            if self._active(registration.member_key, registration.club_id, registration.season):
                return None
            stored = replace(copy.deepcopy(registration), created_at=_now())
            self._registrations[stored.id] = stored
        return copy.deepcopy(stored)

    def get_registration(self, registration_id: str) -> Registration | None:
        return copy.deepcopy(self._registrations.get(registration_id))

    def update_registration_status(
        self,
        registration_id: str,
        status: RegistrationStatus,
        reason: str | None = None,
    ) -> bool:
        with self._lock:
            current = self._registrations.get(registration_id)
            if current is None or current.status != RegistrationStatus.PENDING:
                return False
            self._registrations[registration_id] = replace(
                current,
                status=status,
                association_registrations=decide_levels(current.association_registrations, status),
                rejection_reason=reason,
                decided_at=_now(),
            )
            return True

    def find_registration(
        self, member_key: str, club_id: str, season: int
    ) -> Registration | None:
        with self._lock:
            return copy.deepcopy(self._active(member_key, club_id, season))

    def delete_registration(self, registration_id: str) -> None:
        with self._lock:
            self._registrations.pop(registration_id, None)

    def registration_count(self) -> int:
        return len(self._registrations)

    def _active(self, member_key: str, club_id: str, season: int) -> Registration | None:
        return next(
            (
                r
                for r in self._registrations.values()
                if r.member_key == member_key
                and r.club_id == club_id
                and r.season == season
                and r.status != RegistrationStatus.REJECTED
            ),
            None,
        )

    # PaymentStore ------------------------------------------------------

    def create_payment_placeholder(
        self, registration_id: str, amount: int, currency: str
    ) -> Payment:
        payment = Payment(
            id=f"PAY-{uuid.uuid4().hex.upper()}",
            registration_id=registration_id,
            amount=amount,
            currency=currency,
            created_at=_now(),
        )
        with self._lock:
            self._payments[payment.id] = payment
        logger.debug("Payment placeholder %s for %s", payment.id, registration_id)
        return payment

    def payments_for(self, registration_id: str) -> list[Payment]:
        return [p for p in self._payments.values() if p.registration_id == registration_id]


def _matches(member: Member, query: MemberQuery) -> bool:
    if query.first_name is not None and normalize_name(member.first_name) != normalize_name(
        query.first_name
    ):
        return False
    if query.last_name is not None and normalize_name(member.last_name) != normalize_name(
        query.last_name
    ):
        return False
    if query.date_of_birth is not None and member.date_of_birth != query.date_of_birth:
        return False
    if query.email is not None:
        if member.email is None or normalize_email(member.email) != normalize_email(query.email):
            return False
    return True
