"""
Unit tests for InMemoryRepository.

Tests verify:
- Club lookup by id and slug
- Fee schedule replacement
- Member queries, partial updates and copy isolation
- Renewals append to the stored history; revoking keeps later renewals
- Registration uniqueness among non-rejected rows
- Conditional status updates, including pending association levels
"""

import copy
from dataclasses import replace
from datetime import date

import pytest

from src.adapters.repository.memory import InMemoryRepository
from src.domain.exceptions import NotFound
from src.domain.models import (
    AssociationRegistration,
    Club,
    Fee,
    Member,
    MemberQuery,
    MembershipRecord,
    MembershipRenewal,
    OwnerType,
    Registration,
    RegistrationStatus,
)


def _member(member_id: str = "M-1", **overrides: object) -> Member:
    values: dict[str, object] = {
        "id": member_id,
        "first_name": "Sam",
        "last_name": "Taylor",
        "date_of_birth": date(2012, 6, 1),
        "email": "Sam.Taylor@example.com",
    }
    values.update(overrides)
    return Member(**values)  # type: ignore[arg-type]


def _registration(reg_id: str = "REG-1", key: str = "sam|taylor|2012-06-01") -> Registration:
    return Registration(
        id=reg_id,
        member_id="M-1",
        member_key=key,
        club_id="C1",
        association_id="BHA",
        season=2026,
        category="junior",
        status=RegistrationStatus.PENDING,
        fee_items=(),
        total=26800,
        gst=2437,
        currency="AUD",
    )


class TestOrganizations:
    """Tests for the OrganizationStore side."""

    def test_get_club_by_id_and_slug(self, repository: InMemoryRepository, club: Club) -> None:
        assert repository.get_club("C1") == club
        assert repository.get_club("northside") == club
        assert repository.get_club("southside") is None

    def test_list_fees(self, repository: InMemoryRepository, club: Club) -> None:
        assert [f.id for f in repository.list_fees(OwnerType.ASSOCIATION, "HA")] == [
            "HA-LEVY",
            "HA-INS-S",
            "HA-INS-J",
        ]

    def test_set_fees_replaces_schedule(self, repository: InMemoryRepository, club: Club) -> None:
        repository.set_fees(OwnerType.CLUB, "northside", [Fee(id="X", name="X", amount=1)])

        assert [f.id for f in repository.list_fees(OwnerType.CLUB, "C1")] == ["X"]

    def test_set_fees_unknown_owner(self, repository: InMemoryRepository) -> None:
        with pytest.raises(NotFound):
            repository.set_fees(OwnerType.CLUB, "nope", [])


class TestMembers:
    """Tests for the MemberStore side."""

    def test_create_sets_timestamps(self, repository: InMemoryRepository) -> None:
        created = repository.create_member(_member())

        assert created.created_at is not None
        assert created.updated_at is not None

    def test_find_by_normalized_email(self, repository: InMemoryRepository) -> None:
        repository.create_member(_member())

        found = repository.find_members(MemberQuery(email="sam.taylor@EXAMPLE.com"))

        assert [m.id for m in found] == ["M-1"]

    def test_find_requires_every_field(self, repository: InMemoryRepository) -> None:
        repository.create_member(_member())

        query = MemberQuery(first_name="sam", last_name="taylor", date_of_birth=date(2012, 6, 2))

        assert repository.find_members(query) == []

    def test_update_member_patch(self, repository: InMemoryRepository) -> None:
        repository.create_member(_member())

        updated = repository.update_member("M-1", {"phone": "0400 000 000"})

        assert updated.phone == "0400 000 000"
        assert updated.first_name == "Sam"

    def test_update_missing_member(self, repository: InMemoryRepository) -> None:
        with pytest.raises(NotFound):
            repository.update_member("M-404", {"phone": "1"})

    def test_returned_members_are_copies(self, repository: InMemoryRepository) -> None:
        repository.create_member(_member())
        member = repository.get_member("M-1")
        assert member is not None

        member.membership.renewals.append(None)  # type: ignore[arg-type]

        stored = repository.get_member("M-1")
        assert stored is not None
        assert stored.membership.renewals == []


class TestRenewals:
    """Tests for atomic renewal and its compensation."""

    PREVIOUS = MembershipRecord(
        type="player",
        period_start=date(2025, 1, 1),
        period_end=date(2025, 12, 31),
        renewals=[MembershipRenewal(season=2025, club_id="C-OLD", renewed_on=date(2025, 2, 1))],
    )

    def _season(self, club_id: str, membership_type: str = "player") -> MembershipRecord:
        return MembershipRecord(
            type=membership_type,
            period_start=date(2026, 1, 1),
            period_end=date(2026, 12, 31),
            renewals=[MembershipRenewal(season=2026, club_id=club_id, renewed_on=date(2026, 3, 1))],
        )

    def _seed(self, repository: InMemoryRepository) -> Member:
        return repository.create_member(
            _member(club_id="C-OLD", membership=copy.deepcopy(self.PREVIOUS))
        )

    def test_renewal_appends_to_stored_history(self, repository: InMemoryRepository) -> None:
        self._seed(repository)

        renewed = repository.renew_membership(
            "M-1", self._season("C1", "coach"), {"club_id": "C1", "phone": "0400 000 000"}
        )

        assert renewed.club_id == "C1"
        assert renewed.phone == "0400 000 000"
        assert renewed.membership.type == "coach"
        assert renewed.membership.period_end == date(2026, 12, 31)
        assert [(r.season, r.club_id) for r in renewed.membership.renewals] == [
            (2025, "C-OLD"),
            (2026, "C1"),
        ]

    def test_successive_renewals_keep_each_other(self, repository: InMemoryRepository) -> None:
        """Each renewal carries only its own entry; the store holds the history."""
        self._seed(repository)

        repository.renew_membership("M-1", self._season("C1"), {"club_id": "C1"})
        repository.renew_membership("M-1", self._season("C2"), {"club_id": "C2"})

        stored = repository.get_member("M-1")
        assert stored is not None
        assert [r.club_id for r in stored.membership.renewals] == ["C-OLD", "C1", "C2"]

    def test_renew_missing_member(self, repository: InMemoryRepository) -> None:
        with pytest.raises(NotFound):
            repository.renew_membership("M-404", self._season("C1"), {})

    def test_revoke_latest_restores_previous_state(self, repository: InMemoryRepository) -> None:
        before = self._seed(repository)
        season = self._season("C1", "coach")
        repository.renew_membership("M-1", season, {"club_id": "C1"})

        repository.revoke_renewal(
            "M-1", season.renewals[0], {"club_id": before.club_id, "membership": before.membership}
        )

        stored = repository.get_member("M-1")
        assert stored is not None
        assert stored.club_id == "C-OLD"
        assert stored.membership == before.membership

    def test_revoke_keeps_a_later_renewal(self, repository: InMemoryRepository) -> None:
        before = self._seed(repository)
        first = self._season("C1")
        repository.renew_membership("M-1", first, {"club_id": "C1"})
        repository.renew_membership("M-1", self._season("C2"), {"club_id": "C2"})

        repository.revoke_renewal(
            "M-1", first.renewals[0], {"club_id": before.club_id, "membership": before.membership}
        )

        stored = repository.get_member("M-1")
        assert stored is not None
        assert stored.club_id == "C2"
        assert stored.membership.period_end == date(2026, 12, 31)
        assert [r.club_id for r in stored.membership.renewals] == ["C-OLD", "C2"]

    def test_revoke_unknown_entry_is_a_no_op(self, repository: InMemoryRepository) -> None:
        before = self._seed(repository)

        repository.revoke_renewal("M-1", self._season("C9").renewals[0], {"club_id": "C9"})

        stored = repository.get_member("M-1")
        assert stored is not None
        assert stored.club_id == before.club_id
        assert stored.membership == before.membership


class TestRegistrations:
    """Tests for the RegistrationStore side."""

    def test_create_and_get(self, repository: InMemoryRepository) -> None:
        created = repository.create_registration(_registration())

        assert created is not None
        assert created.created_at is not None
        assert repository.get_registration("REG-1") == created

    def test_second_active_registration_refused(self, repository: InMemoryRepository) -> None:
        repository.create_registration(_registration("REG-1"))

        assert repository.create_registration(_registration("REG-2")) is None
        assert repository.registration_count() == 1

    def test_rejected_row_frees_the_key(self, repository: InMemoryRepository) -> None:
        repository.create_registration(_registration("REG-1"))
        repository.update_registration_status("REG-1", RegistrationStatus.REJECTED, "No")

        assert repository.create_registration(_registration("REG-2")) is not None
        found = repository.find_registration("sam|taylor|2012-06-01", "C1", 2026)
        assert found is not None
        assert found.id == "REG-2"

    def test_status_update_only_from_pending(self, repository: InMemoryRepository) -> None:
        repository.create_registration(_registration())

        assert repository.update_registration_status("REG-1", RegistrationStatus.APPROVED)
        assert not repository.update_registration_status("REG-1", RegistrationStatus.REJECTED, "x")
        stored = repository.get_registration("REG-1")
        assert stored is not None
        assert stored.status == RegistrationStatus.APPROVED

    def test_status_update_missing(self, repository: InMemoryRepository) -> None:
        assert not repository.update_registration_status("REG-404", RegistrationStatus.APPROVED)

    def test_status_update_moves_pending_levels(self, repository: InMemoryRepository) -> None:
        levels = (
            AssociationRegistration("HQ", "Hockey Queensland", 1, RegistrationStatus.APPROVED),
            AssociationRegistration("BHA", "Brisbane Hockey", 2, RegistrationStatus.PENDING),
        )
        repository.create_registration(replace(_registration(), association_registrations=levels))

        repository.update_registration_status("REG-1", RegistrationStatus.REJECTED, "No clearance")

        stored = repository.get_registration("REG-1")
        assert stored is not None
        assert [level.status for level in stored.association_registrations] == [
            RegistrationStatus.APPROVED,
            RegistrationStatus.REJECTED,
        ]

    def test_delete_registration(self, repository: InMemoryRepository) -> None:
        repository.create_registration(_registration())

        repository.delete_registration("REG-1")

        assert repository.get_registration("REG-1") is None
        assert repository.find_registration("sam|taylor|2012-06-01", "C1", 2026) is None


class TestPayments:
    """Tests for the PaymentStore side."""

    def test_placeholder(self, repository: InMemoryRepository) -> None:
        payment = repository.create_payment_placeholder("REG-1", 26800, "AUD")

        assert payment.id.startswith("PAY-")
        assert payment.status == "pending"
        assert repository.payments_for("REG-1") == [payment]
