"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Monetary values are integers in minor currency units; dates are ISO-8601
calendar dates.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import (
    DEFAULT_ROLE,
    WILDCARD_CATEGORY,
    AssociationRegistration,
    CandidateProfile,
    EligibilityResult,
    Fee,
    FeeBreakdown,
    FeeLineItem,
    FeeScope,
    MemberMatch,
    OwnerType,
    Registration,
    RegistrationDraft,
    RegistrationStatus,
    RegistrationSummary,
)


class CandidateModel(BaseModel):
    """Personal details of the person being registered."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: str | None = None
    email: EmailStr | None = None
    phone: str | None = None

    def to_domain(self) -> CandidateProfile:
        return CandidateProfile(
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            gender=self.gender,
            email=str(self.email) if self.email else None,
            phone=self.phone,
        )

    @classmethod
    def from_domain(cls, candidate: CandidateProfile) -> "CandidateModel":
        return cls(
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            date_of_birth=candidate.date_of_birth,
            gender=candidate.gender,
            email=candidate.email,
            phone=candidate.phone,
        )


class SummaryRequest(BaseModel):
    """Request model for a registration preview."""

    club_id: str = Field(..., min_length=1, description="Club id or slug")
    season: int = Field(..., ge=1900, le=2200, description="Season year")
    category: str = Field(..., min_length=1, description="Age category code")
    candidate: CandidateModel
    team_id: str | None = None
    effective_date: date | None = Field(
        None, description="Date fee validity is checked against (defaults to today)"
    )
    roles: list[str] = Field(
        default_factory=lambda: [DEFAULT_ROLE],
        min_length=1,
        description="Role categories of the registrant",
    )

    def to_domain(self) -> RegistrationDraft:
        return RegistrationDraft(
            club_id=self.club_id,
            season=self.season,
            category=self.category,
            candidate=self.candidate.to_domain(),
            team_id=self.team_id,
            effective_date=self.effective_date,
            roles=tuple(self.roles),
        )


class CommitRequest(BaseModel):
    """
    Request model for committing a reviewed registration.

    The server rebuilds the summary from the draft; expected_total is the
    total the user reviewed and must still match.
    """

    draft: SummaryRequest
    expected_total: int = Field(..., ge=0, description="Reviewed total in minor units")
    member_id: str | None = Field(
        None, description="Existing member being renewed (match or accepted suggestion)"
    )
    membership_type: str = "player"
    agreed_to_terms: Literal[True]
    agreed_to_code_of_conduct: Literal[True]


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class ReturningPlayerRequest(BaseModel):
    candidate: CandidateModel


class FeeModel(BaseModel):
    """A fee schedule entry."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0, description="Minor units")
    categories: list[str] = Field(default_factory=lambda: [WILDCARD_CATEGORY], min_length=1)
    role_categories: list[str] = Field(
        default_factory=list, description="Roles the fee is limited to; empty means every role"
    )
    applies_to: FeeScope = FeeScope.PLAYER
    valid_from: date | None = None
    valid_to: date | None = None
    is_active: bool = True
    supersedes_key: str | None = None
    min_age: int | None = Field(None, ge=0)
    max_age: int | None = Field(None, ge=0)
    gst_included: bool = True
    description: str | None = None

    def to_domain(self) -> Fee:
        data = self.model_dump()
        data["categories"] = tuple(self.categories)
        data["role_categories"] = tuple(self.role_categories)
        return Fee(**data)


class FeeScheduleRequest(BaseModel):
    fees: list[FeeModel]


class FeeLineItemModel(BaseModel):
    fee_id: str
    name: str
    categories: list[str]
    amount: int
    gst_included: bool
    gst: int
    source_type: OwnerType
    source_id: str
    source_name: str
    level: int | None
    description: str | None = None
    superseded: bool = False
    superseded_by: str | None = None

    @classmethod
    def from_domain(cls, item: FeeLineItem) -> "FeeLineItemModel":
        return cls(
            fee_id=item.fee_id,
            name=item.name,
            categories=list(item.categories),
            amount=item.amount,
            gst_included=item.gst_included,
            gst=item.gst,
            source_type=item.source_type,
            source_id=item.source_id,
            source_name=item.source_name,
            level=item.level,
            description=item.description,
            superseded=item.superseded,
            superseded_by=item.superseded_by,
        )


class FeeBreakdownResponse(BaseModel):
    line_items: list[FeeLineItemModel]
    total: int
    gst: int
    currency: str

    @classmethod
    def from_domain(cls, breakdown: FeeBreakdown) -> "FeeBreakdownResponse":
        return cls(
            line_items=[FeeLineItemModel.from_domain(item) for item in breakdown.items],
            total=breakdown.total,
            gst=breakdown.gst,
            currency=breakdown.currency,
        )


class EligibilityModel(BaseModel):
    eligible: bool
    computed_age: int
    allowed_range: tuple[int, int]
    reasons: list[str]

    @classmethod
    def from_domain(cls, result: EligibilityResult) -> "EligibilityModel":
        return cls(
            eligible=result.eligible,
            computed_age=result.computed_age,
            allowed_range=result.allowed_range,
            reasons=list(result.reasons),
        )


class MatchModel(BaseModel):
    member_id: str
    first_name: str
    last_name: str
    confidence: Literal["high", "medium"]
    auto_selected: bool

    @classmethod
    def from_domain(cls, match: MemberMatch) -> "MatchModel":
        return cls(
            member_id=match.member.id,
            first_name=match.member.first_name,
            last_name=match.member.last_name,
            confidence=match.confidence.value,
            auto_selected=match.auto_selected,
        )


class HierarchyEntryModel(BaseModel):
    id: str
    code: str
    name: str
    level: int
    requires_approval: bool


class SummaryResponse(BaseModel):
    """Response model for a registration preview."""

    club_id: str
    association_id: str
    season: int
    category: str
    effective_date: date
    team_id: str | None
    candidate: CandidateModel
    eligibility: EligibilityModel
    match: MatchModel | None
    fees: FeeBreakdownResponse
    hierarchy: list[HierarchyEntryModel]
    roles: list[str]
    requires_approval: bool
    auto_approvable: bool

    @classmethod
    def from_domain(cls, summary: RegistrationSummary) -> "SummaryResponse":
        return cls(
            club_id=summary.club_id,
            association_id=summary.association_id,
            season=summary.season,
            category=summary.category,
            effective_date=summary.effective_date,
            team_id=summary.team_id,
            candidate=CandidateModel.from_domain(summary.candidate),
            eligibility=EligibilityModel.from_domain(summary.eligibility),
            match=MatchModel.from_domain(summary.match) if summary.match else None,
            fees=FeeBreakdownResponse.from_domain(summary.fees),
            hierarchy=[
                HierarchyEntryModel(
                    id=e.id,
                    code=e.code,
                    name=e.name,
                    level=e.level,
                    requires_approval=e.requires_approval,
                )
                for e in summary.hierarchy
            ],
            roles=list(summary.roles),
            requires_approval=summary.requires_approval,
            auto_approvable=summary.auto_approvable,
        )


class ReturningPlayerResponse(BaseModel):
    is_returning_player: bool
    match: MatchModel | None


class AssociationRegistrationModel(BaseModel):
    """Standing of a registration with one association level."""

    association_id: str
    association_name: str
    level: int
    status: RegistrationStatus
    total: int

    @classmethod
    def from_domain(cls, level: AssociationRegistration) -> "AssociationRegistrationModel":
        return cls(
            association_id=level.association_id,
            association_name=level.association_name,
            level=level.level,
            status=level.status,
            total=level.total,
        )


class RegistrationResponse(BaseModel):
    """Response model for a stored registration."""

    registration_id: str
    member_id: str
    club_id: str
    association_id: str
    season: int
    category: str
    team_id: str | None
    roles: list[str]
    status: RegistrationStatus
    association_registrations: list[AssociationRegistrationModel]
    line_items: list[FeeLineItemModel]
    total: int
    gst: int
    currency: str
    rejection_reason: str | None

    @classmethod
    def from_domain(cls, registration: Registration) -> "RegistrationResponse":
        return cls(
            registration_id=registration.id,
            member_id=registration.member_id,
            club_id=registration.club_id,
            association_id=registration.association_id,
            season=registration.season,
            category=registration.category,
            team_id=registration.team_id,
            roles=list(registration.roles),
            status=registration.status,
            association_registrations=[
                AssociationRegistrationModel.from_domain(level)
                for level in registration.association_registrations
            ],
            line_items=[FeeLineItemModel.from_domain(item) for item in registration.fee_items],
            total=registration.total,
            gst=registration.gst,
            currency=registration.currency,
            rejection_reason=registration.rejection_reason,
        )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
