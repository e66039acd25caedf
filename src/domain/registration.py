"""
Registration domain service - Commit and decision workflow.

Registration State Machine (Forward-Only Transitions)
=====================================================

States:
- Draft: Only exists as a RegistrationSummary, never stored
- PENDING: Committed, awaiting an administrator decision
- APPROVED: Terminal
- REJECTED: Terminal

Valid Transitions:
    Draft   -> PENDING   (commit)
    PENDING -> APPROVED  (approve)
    PENDING -> REJECTED  (reject, with reason)

Any other transition raises InvalidStateTransition. The PENDING check is a
conditional update in the store, so two concurrent decisions on the same
registration resolve to exactly one winner. A registration also carries
one entry per association of the club's chain; levels needing manual
approval stay PENDING until the registration is decided and then follow it.

Commit writes three records (member, registration, payment placeholder)
without a shared transaction. If a later write fails, earlier writes are
compensated: a newly created member is deleted, a returning member's
renewal entry is revoked and a created registration is removed.
The one-active-registration-per-season rule is enforced by the
registration store's uniqueness constraint, so the preview-time duplicate
check is repeated here and the store arbitrates concurrent commits.
"""

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .eligibility import EligibilityChecker
from .exceptions import DuplicateRegistration, InvalidStateTransition, NotFound
from .fees import FeeResolver
from .hierarchy import OrganizationTree
from .matching import ReturningPlayerMatcher
from .models import (
    DEFAULT_ROLE,
    AgeCategory,
    AssociationRegistration,
    CandidateProfile,
    Fee,
    FeeBreakdown,
    Member,
    MemberMatch,
    MembershipRecord,
    MembershipRenewal,
    MembershipStatus,
    OwnerType,
    Registration,
    RegistrationConfirmation,
    RegistrationDraft,
    RegistrationStatus,
    RegistrationSummary,
)
from .ports import MemberStore, OrganizationStore, PaymentStore, RegistrationStore
from .summary import RegistrationSummaryBuilder

logger = logging.getLogger(__name__)

# Member attributes touched when renewing a returning member
_RENEWAL_FIELDS = ("membership", "club_id", "association_id", "gender", "email", "phone")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex.upper()}"


@dataclass
class RegistrationCommitter:
    """Executes the Draft -> PENDING -> APPROVED/REJECTED transitions."""

    members: MemberStore
    registrations: RegistrationStore
    payments: PaymentStore
    eligibility: EligibilityChecker
    today: Callable[[], date] = field(default=date.today)

    def commit(
        self, summary: RegistrationSummary, confirmation: RegistrationConfirmation
    ) -> Registration:
        """
        Persist a confirmed summary as a PENDING registration.

        The registration stores the summary's fee breakdown as-is; fees
        are never recomputed at commit time.

        Args:
            summary: Eligible summary the user reviewed
            confirmation: Which existing member (if any) is being renewed,
                plus optional profile corrections

        Returns:
            The stored PENDING registration

        Raises:
            InvalidStateTransition: Ineligible summary, unoffered member,
                changed name or date of birth, or banned member
            DuplicateRegistration: Active registration already exists
            NotFound: Confirmed member no longer exists
        """
        if not summary.eligible:
            raise InvalidStateTransition("Cannot commit an ineligible registration")

        profile = confirmation.profile or summary.candidate
        if profile.date_of_birth != summary.candidate.date_of_birth:
            raise InvalidStateTransition("Date of birth changed after eligibility check")
        if profile.identity_key != summary.candidate.identity_key:
            raise InvalidStateTransition("Name changed after review")

        existing = self._confirmed_member(summary, confirmation)
        key = existing.identity_key if existing is not None else profile.identity_key

        if self.eligibility.duplicate_check(key, summary.club_id, summary.season):
            logger.warning("Duplicate registration refused before write: %s", key)
            raise DuplicateRegistration(key)

        if existing is None:
            member = self._create_member(summary, profile, confirmation.membership_type)
            try:
                registration = self._insert_registration(summary, member.id, key, returning=False)
                self._create_payment(registration)
            except Exception:
                self._compensate_member(member, None)
                raise
        else:
            # The registration row is the uniqueness arbiter, so a losing
            # concurrent commit fails before it touches the shared member.
            registration = self._insert_registration(summary, existing.id, key, returning=True)
            try:
                member = self._renew_member(existing, summary, profile, confirmation.membership_type)
            except Exception:
                self._compensate_registration(registration.id)
                raise
            try:
                self._create_payment(registration)
            except Exception:
                self._compensate_member(member, existing)
                raise

        logger.info(
            "Registration %s committed: member=%s club=%s season=%s total=%s %s",
            registration.id,
            member.id,
            registration.club_id,
            registration.season,
            registration.total,
            registration.currency,
        )
        return registration

    def approve(self, registration_id: str) -> Registration:
        """PENDING -> APPROVED."""
        return self._decide(registration_id, RegistrationStatus.APPROVED, None)

    def reject(self, registration_id: str, reason: str) -> Registration:
        """PENDING -> REJECTED with a mandatory reason."""
        if not reason or not reason.strip():
            raise ValueError("A rejection reason is required")
        return self._decide(registration_id, RegistrationStatus.REJECTED, reason.strip())

    def _decide(
        self, registration_id: str, status: RegistrationStatus, reason: str | None
    ) -> Registration:
        if not self.registrations.update_registration_status(registration_id, status, reason):
            current = self.registrations.get_registration(registration_id)
            if current is None:
                raise NotFound(f"Registration not found: {registration_id}")
            raise InvalidStateTransition(
                f"Registration {registration_id} is {current.status.value}, "
                f"cannot move to {status.value}"
            )

        registration = self.registrations.get_registration(registration_id)
        if registration is None:
            raise NotFound(f"Registration not found: {registration_id}")
        logger.info("Registration %s -> %s", registration_id, status.value)
        return registration

    def _confirmed_member(
        self, summary: RegistrationSummary, confirmation: RegistrationConfirmation
    ) -> Member | None:
        if confirmation.member_id is None:
            return None
        if summary.match is None or summary.match.member.id != confirmation.member_id:
            raise InvalidStateTransition(
                f"Member {confirmation.member_id} was not offered by the summary"
            )

        member = self.members.get_member(confirmation.member_id)
        if member is None:
            raise NotFound(f"Member not found: {confirmation.member_id}")
        # Eligibility was computed from the candidate's date of birth.
        if member.date_of_birth != summary.candidate.date_of_birth:
            raise InvalidStateTransition(
                f"Member {member.id} has a different date of birth than the reviewed candidate"
            )
        if self.eligibility.ban_check(member, summary.effective_date):
            raise InvalidStateTransition(f"Member {member.id} is banned")
        return member

    def _membership(self, summary: RegistrationSummary, membership_type: str) -> MembershipRecord:
        """Season membership holding only this commit's renewal entry."""
        return MembershipRecord(
            type=membership_type,
            status=MembershipStatus.ACTIVE,
            period_start=date(summary.season, 1, 1),
            period_end=date(summary.season, 12, 31),
            renewals=[
                MembershipRenewal(
                    season=summary.season, club_id=summary.club_id, renewed_on=self.today()
                )
            ],
        )

    def _create_member(
        self, summary: RegistrationSummary, profile: CandidateProfile, membership_type: str
    ) -> Member:
        member = Member(
            id=_new_id("M"),
            first_name=profile.first_name.strip(),
            last_name=profile.last_name.strip(),
            date_of_birth=profile.date_of_birth,
            gender=profile.gender,
            email=profile.email,
            phone=profile.phone,
            club_id=summary.club_id,
            association_id=summary.association_id,
            membership=self._membership(summary, membership_type),
        )
        return self.members.create_member(member)

    def _renew_member(
        self,
        member: Member,
        summary: RegistrationSummary,
        profile: CandidateProfile,
        membership_type: str,
    ) -> Member:
        # The store appends the renewal to whatever history it holds at
        # write time, so concurrent renewals of one member both survive.
        patch: dict[str, Any] = {
            "club_id": summary.club_id,
            "association_id": summary.association_id,
            "gender": profile.gender or member.gender,
            "email": profile.email or member.email,
            "phone": profile.phone or member.phone,
        }
        return self.members.renew_membership(
            member.id, self._membership(summary, membership_type), patch
        )

    def _association_registrations(
        self, summary: RegistrationSummary, returning: bool
    ) -> tuple[AssociationRegistration, ...]:
        charged = summary.fees.charged_items
        return tuple(
            AssociationRegistration(
                association_id=entry.id,
                association_name=entry.name,
                level=entry.level,
                status=(
                    RegistrationStatus.APPROVED
                    if entry.approves_automatically(returning)
                    else RegistrationStatus.PENDING
                ),
                fee_items=tuple(
                    item
                    for item in charged
                    if item.source_type is OwnerType.ASSOCIATION and item.source_id == entry.id
                ),
            )
            for entry in summary.hierarchy
        )

    def _insert_registration(
        self, summary: RegistrationSummary, member_id: str, key: str, returning: bool
    ) -> Registration:
        registration = Registration(
            id=_new_id("REG"),
            member_id=member_id,
            member_key=key,
            club_id=summary.club_id,
            association_id=summary.association_id,
            season=summary.season,
            category=summary.category,
            status=RegistrationStatus.PENDING,
            fee_items=tuple(summary.fees.items),
            total=summary.fees.total,
            gst=summary.fees.gst,
            currency=summary.fees.currency,
            team_id=summary.team_id,
            roles=tuple(summary.roles),
            association_registrations=self._association_registrations(summary, returning),
        )
        stored = self.registrations.create_registration(registration)
        if stored is None:
            logger.warning("Duplicate registration refused by store: %s", key)
            raise DuplicateRegistration(key)
        return stored

    def _create_payment(self, registration: Registration) -> None:
        try:
            payment = self.payments.create_payment_placeholder(
                registration.id, registration.total, registration.currency
            )
        except Exception:
            self._compensate_registration(registration.id)
            raise
        logger.info("Payment placeholder %s created for %s", payment.id, registration.id)

    def _compensate_registration(self, registration_id: str) -> None:
        logger.warning("Compensating: deleting registration %s", registration_id)
        try:
            self.registrations.delete_registration(registration_id)
        except Exception:
            logger.exception("Compensation failed for registration %s", registration_id)

    def _compensate_member(self, member: Member, previous: Member | None) -> None:
        try:
            if previous is None:
                logger.warning("Compensating: deleting new member %s", member.id)
                self.members.delete_member(member.id)
            else:
                logger.warning("Compensating: revoking renewal of member %s", member.id)
                self.members.revoke_renewal(
                    previous.id,
                    member.membership.renewals[-1],
                    {name: getattr(previous, name) for name in _RENEWAL_FIELDS},
                )
        except Exception:
            logger.exception("Compensation failed for member %s", member.id)


@dataclass
class RegistrationService:
    """
    Domain service for club registration.

    Wires the engine components over the store ports and exposes the
    operations the application layer calls.
    """

    organizations: OrganizationStore
    members: MemberStore
    registrations: RegistrationStore
    payments: PaymentStore
    age_categories: Mapping[str, AgeCategory]
    currency: str = "AUD"
    today: Callable[[], date] = field(default=date.today)

    def __post_init__(self) -> None:
        self.tree = OrganizationTree(self.organizations)
        self.fee_resolver = FeeResolver(self.tree, currency=self.currency)
        self.eligibility = EligibilityChecker(self.registrations)
        self.matcher = ReturningPlayerMatcher(self.members)
        self.summary_builder = RegistrationSummaryBuilder(
            tree=self.tree,
            fees=self.fee_resolver,
            eligibility=self.eligibility,
            matcher=self.matcher,
            age_categories=self.age_categories,
            today=self.today,
        )
        self.committer = RegistrationCommitter(
            members=self.members,
            registrations=self.registrations,
            payments=self.payments,
            eligibility=self.eligibility,
            today=self.today,
        )

    def build_summary(self, draft: RegistrationDraft) -> RegistrationSummary:
        return self.summary_builder.build(draft)

    def commit_registration(
        self,
        summary: RegistrationSummary,
        confirmation: RegistrationConfirmation | None = None,
    ) -> Registration:
        """
        Commit a reviewed summary.

        Without an explicit confirmation the auto-selected high-confidence
        match (if any) is renewed; medium-confidence suggestions are only
        used when the confirmation names them.
        """
        if confirmation is None:
            selected = summary.selected_member
            confirmation = RegistrationConfirmation(
                member_id=selected.id if selected is not None else None
            )
        return self.committer.commit(summary, confirmation)

    def approve_registration(self, registration_id: str) -> Registration:
        return self.committer.approve(registration_id)

    def reject_registration(self, registration_id: str, reason: str) -> Registration:
        return self.committer.reject(registration_id, reason)

    def calculate_fees(
        self,
        club_id: str,
        category: str,
        effective_date: date | None = None,
        age: int | None = None,
        roles: Sequence[str] = (DEFAULT_ROLE,),
    ) -> FeeBreakdown:
        """Fee breakdown for a club and category without a full draft."""
        code = self.summary_builder.category(category).code
        return self.fee_resolver.resolve(
            club_id, code, effective_date or self.today(), age=age, roles=roles
        )

    def check_returning_player(self, candidate: CandidateProfile) -> MemberMatch | None:
        return self.matcher.find(candidate)

    def update_fee_schedule(self, owner_type: OwnerType, owner_id: str, fees: Sequence[Fee]) -> None:
        """
        Replace a node's fee schedule.

        Committed registrations keep their frozen breakdown; only later
        summaries see the new fees.
        """
        self.organizations.set_fees(owner_type, owner_id, list(fees))
        logger.info("Fee schedule updated for %s %s (%d fees)", owner_type.value, owner_id, len(fees))
