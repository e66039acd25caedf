"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.

Every method may raise UpstreamUnavailable when the backing storage
times out or cannot be reached; the domain never retries.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from .models import (
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
)


class OrganizationStore(Protocol):
    """Port interface for the association/club collaborator (read-mostly)."""

    def get_association(self, association_id: str) -> Association | None:
        """Return the association with its fee schedule, or None if missing."""
        ...

    def get_club(self, club_id: str) -> Club | None:
        """Return the club by id or slug with its fee schedule, or None."""
        ...

    def list_fees(self, owner_type: OwnerType, owner_id: str) -> list[Fee]:
        """Return the ordered fee schedule of an association or club."""
        ...

    def set_fees(self, owner_type: OwnerType, owner_id: str, fees: Sequence[Fee]) -> None:
        """
        Replace the fee schedule of an association or club.

        Raises:
            NotFound: If the owner does not exist
        """
        ...


class MemberStore(Protocol):
    """Port interface for member persistence."""

    def get_member(self, member_id: str) -> Member | None: ...

    def find_members(self, query: MemberQuery) -> list[Member]:
        """
        Return members matching every non-None field of the query.

        Names and email are compared after normalization (trimmed,
        lowercase). Results are ordered by creation time.
        """
        ...

    def create_member(self, member: Member) -> Member: ...

    def update_member(self, member_id: str, patch: Mapping[str, Any]) -> Member:
        """
        Apply a partial update. Keys are Member attribute names.

        Raises:
            NotFound: If the member does not exist
        """
        ...

    def renew_membership(
        self, member_id: str, membership: MembershipRecord, patch: Mapping[str, Any]
    ) -> Member:
        """
        Atomically record a renewal and apply a partial update.

        The membership's type, status and period replace the stored ones
        and its renewals are appended to the stored history as read inside
        the same write, so concurrent renewals never drop each other.

        Raises:
            NotFound: If the member does not exist
        """
        ...

    def revoke_renewal(
        self, member_id: str, renewal: MembershipRenewal, restore: Mapping[str, Any]
    ) -> None:
        """
        Atomically remove one renewal entry. Only used to compensate a failed commit.

        restore holds the member attributes as they were before the renewal
        (its "membership" supplies type, status and period). They are
        applied only when the revoked entry was the latest renewal, so a
        renewal committed since then keeps its changes.
        """
        ...

    def delete_member(self, member_id: str) -> None:
        """Remove a member. Only used to compensate a failed commit."""
        ...


class RegistrationStore(Protocol):
    """Port interface for registration persistence."""

    def create_registration(self, registration: Registration) -> Registration | None:
        """
        Atomically insert a registration.

        The store enforces uniqueness of (member_key, club_id, season)
        among non-rejected registrations. Two concurrent inserts for the
        same key resolve to exactly one success.

        Returns:
            The stored registration, or None if an active registration
            already exists for the same member key, club and season
        """
        ...

    def get_registration(self, registration_id: str) -> Registration | None: ...

    def update_registration_status(
        self,
        registration_id: str,
        status: RegistrationStatus,
        reason: str | None = None,
    ) -> bool:
        """
        Move a PENDING registration to a terminal status.

        Association levels still PENDING move to the same status; levels
        approved at commit time keep their status.

        Returns:
            True if the row was PENDING and has been updated, False if the
            registration is missing or already terminal
        """
        ...

    def find_registration(
        self, member_key: str, club_id: str, season: int
    ) -> Registration | None:
        """Return the active (non-rejected) registration for the key, if any."""
        ...

    def delete_registration(self, registration_id: str) -> None:
        """Remove a registration. Only used to compensate a failed commit."""
        ...


class PaymentStore(Protocol):
    """Port interface for the payment collaborator."""

    def create_payment_placeholder(
        self, registration_id: str, amount: int, currency: str
    ) -> Payment:
        """Record a pending payment for a registration's frozen total."""
        ...
