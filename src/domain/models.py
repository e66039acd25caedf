"""
Domain models - Records and value objects of the registration engine.

Organization data (associations, clubs, fees) is read-only to the engine.
Member, Registration and Payment records are written only by the
RegistrationCommitter. Monetary amounts are integers in minor units.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum

# Fee category marker meaning "applies to every member category"
WILDCARD_CATEGORY = "*"

# Role category assumed when a draft names none
DEFAULT_ROLE = "player"


class RegistrationStatus(str, Enum):
    """
    Registration workflow states.

    Transitions (forward-only):
    - PENDING -> APPROVED
    - PENDING -> REJECTED

    Draft is not a stored state: it only exists as a RegistrationSummary
    before commit. APPROVED and REJECTED are terminal.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class FeeScope(str, Enum):
    """What a fee is charged against."""

    PLAYER = "player"
    TEAM = "team"
    CLUB = "club"


class OwnerType(str, Enum):
    """Kind of hierarchy node that owns a fee schedule."""

    ASSOCIATION = "association"
    CLUB = "club"


class MatchConfidence(str, Enum):
    """
    Confidence of a returning-player match.

    HIGH matches are auto-selected; MEDIUM matches are only suggestions
    and require explicit confirmation.
    """

    HIGH = "high"
    MEDIUM = "medium"


def normalize_name(value: str) -> str:
    """Collapse inner whitespace, strip and lowercase a personal name."""
    return " ".join(value.split()).lower()


def normalize_email(value: str) -> str:
    return value.strip().lower()


def member_key(first_name: str, last_name: str, date_of_birth: date) -> str:
    """
    Identity key of a person, used for the one-registration-per-season rule.

    Two drafts for the same normalized name and date of birth produce the
    same key whether or not the person already has a Member record.
    """
    return "|".join(
        (normalize_name(first_name), normalize_name(last_name), date_of_birth.isoformat())
    )


def _folded(values: Iterable[str]) -> set[str]:
    return {value.strip().casefold() for value in values}


@dataclass(frozen=True)
class Fee:
    """
    A priced item in an association or club fee schedule.

    categories lists the member categories the fee is charged for; the
    wildcard category matches all of them. role_categories restricts the
    fee to registrants holding at least one of those roles; empty means
    every role.
    """

    id: str
    name: str
    amount: int
    categories: tuple[str, ...] = (WILDCARD_CATEGORY,)
    applies_to: FeeScope = FeeScope.PLAYER
    valid_from: date | None = None
    valid_to: date | None = None
    is_active: bool = True
    supersedes_key: str | None = None
    min_age: int | None = None
    max_age: int | None = None
    gst_included: bool = True
    description: str | None = None
    role_categories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Fee {self.id} amount must be >= 0, got {self.amount}")
        if self.valid_from and self.valid_to and self.valid_from > self.valid_to:
            raise ValueError(f"Fee {self.id} validity window is inverted")
        if not self.categories:
            raise ValueError(f"Fee {self.id} must name at least one category")

    @property
    def override_key(self) -> str:
        """Key under which a more specific fee replaces an ancestor's fee."""
        key = self.supersedes_key if self.supersedes_key else self.name
        return " ".join(key.split()).casefold()

    def is_valid_on(self, effective_date: date) -> bool:
        if self.valid_from is not None and effective_date < self.valid_from:
            return False
        if self.valid_to is not None and effective_date > self.valid_to:
            return False
        return True

    def matches_category(self, category: str) -> bool:
        wanted = _folded(self.categories)
        return WILDCARD_CATEGORY in wanted or category.strip().casefold() in wanted

    def matches_roles(self, roles: Iterable[str]) -> bool:
        if not self.role_categories:
            return True
        return not _folded(self.role_categories).isdisjoint(_folded(roles))

    def covers_age(self, age: int) -> bool:
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        return True


@dataclass(frozen=True)
class AssociationSettings:
    requires_approval: bool = False
    auto_approve_returning_players: bool = True


@dataclass(frozen=True)
class Association:
    """Organizational node. Level 0 is the national body."""

    id: str
    code: str
    name: str
    level: int
    parent_id: str | None = None
    fees: tuple[Fee, ...] = ()
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    settings: AssociationSettings = AssociationSettings()


@dataclass(frozen=True)
class Club:
    """Leaf organization attached to exactly one association."""

    id: str
    slug: str
    name: str
    association_id: str
    fees: tuple[Fee, ...] = ()
    status: OrganizationStatus = OrganizationStatus.ACTIVE


@dataclass(frozen=True)
class AgeCategory:
    """Eligibility band: computed season age must lie in [min_age, max_age]."""

    code: str
    min_age: int
    max_age: int

    def __post_init__(self) -> None:
        if self.min_age > self.max_age:
            raise ValueError(f"Age category {self.code} has min_age > max_age")


@dataclass(frozen=True)
class MembershipRenewal:
    season: int
    club_id: str
    renewed_on: date


@dataclass
class MembershipRecord:
    type: str = "player"
    status: MembershipStatus = MembershipStatus.ACTIVE
    period_start: date | None = None
    period_end: date | None = None
    renewals: list[MembershipRenewal] = field(default_factory=list)

    def renewed(self, update: "MembershipRecord") -> "MembershipRecord":
        """Take the update's type, status and period and append its renewals."""
        return MembershipRecord(
            type=update.type,
            status=update.status,
            period_start=update.period_start,
            period_end=update.period_end,
            renewals=[*self.renewals, *update.renewals],
        )

    def is_latest(self, renewal: MembershipRenewal) -> bool:
        return bool(self.renewals) and self.renewals[-1] == renewal

    def revoked(
        self, renewal: MembershipRenewal, previous: "MembershipRecord | None" = None
    ) -> "MembershipRecord":
        """
        Drop the last entry equal to renewal.

        previous supplies type, status and period when given; otherwise
        the current ones are kept.
        """
        renewals = list(self.renewals)
        for index in range(len(renewals) - 1, -1, -1):
            if renewals[index] == renewal:
                del renewals[index]
                break
        base = previous if previous is not None else self
        return MembershipRecord(
            type=base.type,
            status=base.status,
            period_start=base.period_start,
            period_end=base.period_end,
            renewals=renewals,
        )


@dataclass
class Member:
    """A person known to the system. Deactivated, never deleted."""

    id: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str | None = None
    email: str | None = None
    phone: str | None = None
    club_id: str | None = None
    association_id: str | None = None
    membership: MembershipRecord = field(default_factory=MembershipRecord)
    banned_until: date | None = None
    ban_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def identity_key(self) -> str:
        return member_key(self.first_name, self.last_name, self.date_of_birth)

    def is_banned_on(self, effective_date: date) -> bool:
        return self.banned_until is not None and self.banned_until > effective_date


@dataclass(frozen=True)
class MemberQuery:
    """Exact-match lookup; names and email are compared normalized."""

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    email: str | None = None


@dataclass(frozen=True)
class CandidateProfile:
    """Personal details submitted with a draft registration."""

    first_name: str
    last_name: str
    date_of_birth: date
    gender: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def identity_key(self) -> str:
        return member_key(self.first_name, self.last_name, self.date_of_birth)


@dataclass(frozen=True)
class MemberMatch:
    member: Member
    confidence: MatchConfidence

    @property
    def auto_selected(self) -> bool:
        return self.confidence is MatchConfidence.HIGH


@dataclass(frozen=True)
class FeeLineItem:
    """One priced entry of a breakdown, with the node that contributed it."""

    fee_id: str
    name: str
    categories: tuple[str, ...]
    amount: int
    gst_included: bool
    gst: int
    source_type: OwnerType
    source_id: str
    source_name: str
    level: int | None
    description: str | None = None
    override_key: str = ""
    superseded: bool = False
    superseded_by: str | None = None


@dataclass(frozen=True)
class FeeBreakdown:
    items: tuple[FeeLineItem, ...]
    total: int
    gst: int
    currency: str

    @property
    def charged_items(self) -> tuple[FeeLineItem, ...]:
        return tuple(item for item in self.items if not item.superseded)


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    computed_age: int
    allowed_range: tuple[int, int]
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class HierarchyEntry:
    """Association of the club's chain as captured by a summary."""

    id: str
    code: str
    name: str
    level: int
    requires_approval: bool = False
    auto_approve_returning_players: bool = True

    def approves_automatically(self, returning: bool) -> bool:
        """Whether a registration at this level skips manual approval."""
        return not self.requires_approval or (returning and self.auto_approve_returning_players)


@dataclass(frozen=True)
class RegistrationDraft:
    """What a client submits to preview a registration."""

    club_id: str
    season: int
    category: str
    candidate: CandidateProfile
    team_id: str | None = None
    effective_date: date | None = None
    roles: tuple[str, ...] = (DEFAULT_ROLE,)


@dataclass(frozen=True)
class RegistrationSummary:
    """Reviewable, not yet persisted projection of a draft registration."""

    club_id: str
    association_id: str
    season: int
    category: str
    effective_date: date
    candidate: CandidateProfile
    eligibility: EligibilityResult
    fees: FeeBreakdown
    hierarchy: tuple[HierarchyEntry, ...]
    match: MemberMatch | None = None
    team_id: str | None = None
    roles: tuple[str, ...] = (DEFAULT_ROLE,)
    requires_approval: bool = False
    auto_approvable: bool = True

    @property
    def eligible(self) -> bool:
        return self.eligibility.eligible

    @property
    def total(self) -> int:
        return self.fees.total

    @property
    def currency(self) -> str:
        return self.fees.currency

    @property
    def selected_member(self) -> Member | None:
        """Member auto-selected by a high-confidence match, if any."""
        if self.match is not None and self.match.auto_selected:
            return self.match.member
        return None


@dataclass(frozen=True)
class RegistrationConfirmation:
    """
    User's confirmation of a summary.

    member_id names the existing Member being renewed: either the
    auto-selected high-confidence match or an explicitly accepted
    medium-confidence suggestion. None registers a new member.
    """

    member_id: str | None = None
    profile: CandidateProfile | None = None
    membership_type: str = "player"


@dataclass(frozen=True)
class AssociationRegistration:
    """
    Standing of a registration with one association of the club's chain.

    Levels that do not require approval (or auto-approve returning
    players) start APPROVED; the others stay PENDING until the
    registration itself is decided.
    """

    association_id: str
    association_name: str
    level: int
    status: RegistrationStatus
    fee_items: tuple[FeeLineItem, ...] = ()

    @property
    def total(self) -> int:
        return sum(item.amount for item in self.fee_items if not item.superseded)


@dataclass
class Registration:
    id: str
    member_id: str
    member_key: str
    club_id: str
    association_id: str
    season: int
    category: str
    status: RegistrationStatus
    fee_items: tuple[FeeLineItem, ...]
    total: int
    gst: int
    currency: str
    team_id: str | None = None
    roles: tuple[str, ...] = ()
    association_registrations: tuple[AssociationRegistration, ...] = ()
    created_at: datetime | None = None
    decided_at: datetime | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class Payment:
    id: str
    registration_id: str
    amount: int
    currency: str
    status: str = "pending"
    created_at: datetime | None = None


def decide_levels(
    levels: Iterable[AssociationRegistration], status: RegistrationStatus
) -> tuple[AssociationRegistration, ...]:
    """Move the association levels still PENDING to a decided status."""
    return tuple(
        replace(level, status=status) if level.status is RegistrationStatus.PENDING else level
        for level in levels
    )
