"""
API v1 routes.

Defines REST endpoints for the club registration API:
- POST /v1/registrations/summary - Preview fees and eligibility
- POST /v1/registrations - Commit a reviewed registration
- POST /v1/registrations/{id}/approve - Administrator approval
- POST /v1/registrations/{id}/reject - Administrator rejection
- GET  /v1/clubs/{club_id}/fees - Fee breakdown for a category
- POST /v1/returning-player - Returning player lookup
- PUT  /v1/associations/{id}/fees, /v1/clubs/{id}/fees - Fee schedule edits

Access control for the administrator endpoints is applied by the calling
layer, not here.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_registration_service
from src.api.models import (
    CommitRequest,
    ErrorResponse,
    FeeBreakdownResponse,
    FeeScheduleRequest,
    MatchModel,
    RegistrationResponse,
    RejectRequest,
    ReturningPlayerRequest,
    ReturningPlayerResponse,
    SummaryRequest,
    SummaryResponse,
)
from src.domain.eligibility import REASON_DUPLICATE
from src.domain.exceptions import (
    DuplicateRegistration,
    HierarchyCorrupted,
    InvalidStateTransition,
    NotFound,
    RegistrationError,
    UpstreamUnavailable,
)
from src.domain.models import DEFAULT_ROLE, OwnerType, RegistrationConfirmation
from src.domain.registration import RegistrationService

router = APIRouter(tags=["v1"])

_ERRORS = {
    404: {"model": ErrorResponse, "description": "Club, association or registration not found"},
    503: {"model": ErrorResponse, "description": "Storage unavailable, retry later"},
}


def _http_error(error: RegistrationError) -> HTTPException:
    """Translate a domain error into the HTTP error the client sees."""
    if isinstance(error, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, DuplicateRegistration):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already registered with this club for the season",
        )
    if isinstance(error, InvalidStateTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, UpstreamUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage unavailable",
            headers={"Retry-After": "1"},
        )
    if isinstance(error, HierarchyCorrupted):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Organization hierarchy is corrupt",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@router.post(
    "/registrations/summary",
    response_model=SummaryResponse,
    responses=_ERRORS,
    summary="Preview a registration",
    description="Check eligibility, detect a returning player and compute the fee "
    "breakdown along the club's association hierarchy. Nothing is stored.",
)
async def build_summary(
    request_data: SummaryRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> SummaryResponse:
    try:
        summary = service.build_summary(request_data.to_domain())
    except RegistrationError as e:
        raise _http_error(e) from None
    return SummaryResponse.from_domain(summary)


@router.post(
    "/registrations",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_ERRORS,
        409: {"model": ErrorResponse, "description": "Duplicate or fees changed since review"},
        422: {"description": "Validation error or ineligible candidate"},
    },
    summary="Commit a registration",
    description="Rebuild the summary for the draft and, if the reviewed total still "
    "matches, store the member, a PENDING registration with a frozen fee "
    "breakdown and a pending payment.",
)
async def commit_registration(
    request_data: CommitRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    try:
        summary = service.build_summary(request_data.draft.to_domain())

        if not summary.eligible:
            if REASON_DUPLICATE in summary.eligibility.reasons:
                raise DuplicateRegistration(summary.candidate.identity_key)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Not eligible: " + ", ".join(summary.eligibility.reasons),
            )

        if summary.total != request_data.expected_total:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Fees changed since review",
            )

        # Without an explicit choice the auto-selected match is renewed.
        member_id = request_data.member_id
        if member_id is None and summary.selected_member is not None:
            member_id = summary.selected_member.id
        confirmation = RegistrationConfirmation(
            member_id=member_id,
            membership_type=request_data.membership_type,
        )
        registration = service.commit_registration(summary, confirmation)
    except RegistrationError as e:
        raise _http_error(e) from None
    return RegistrationResponse.from_domain(registration)


@router.post(
    "/registrations/{registration_id}/approve",
    response_model=RegistrationResponse,
    responses={**_ERRORS, 409: {"model": ErrorResponse, "description": "Not pending"}},
    summary="Approve a pending registration",
)
async def approve_registration(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    try:
        registration = service.approve_registration(registration_id)
    except RegistrationError as e:
        raise _http_error(e) from None
    return RegistrationResponse.from_domain(registration)


@router.post(
    "/registrations/{registration_id}/reject",
    response_model=RegistrationResponse,
    responses={**_ERRORS, 409: {"model": ErrorResponse, "description": "Not pending"}},
    summary="Reject a pending registration",
)
async def reject_registration(
    registration_id: str,
    request_data: RejectRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    try:
        registration = service.reject_registration(registration_id, request_data.reason)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from None
    except RegistrationError as e:
        raise _http_error(e) from None
    return RegistrationResponse.from_domain(registration)


@router.get(
    "/clubs/{club_id}/fees",
    response_model=FeeBreakdownResponse,
    responses=_ERRORS,
    summary="Calculate fees for a club and category",
)
async def calculate_fees(
    club_id: str,
    category: str = Query(..., min_length=1),
    effective_date: date | None = None,
    age: int | None = Query(None, ge=0),
    roles: list[str] = Query([DEFAULT_ROLE], description="Role categories of the registrant"),
    service: RegistrationService = Depends(get_registration_service),
) -> FeeBreakdownResponse:
    try:
        breakdown = service.calculate_fees(club_id, category, effective_date, age, roles=roles)
    except RegistrationError as e:
        raise _http_error(e) from None
    return FeeBreakdownResponse.from_domain(breakdown)


@router.post(
    "/returning-player",
    response_model=ReturningPlayerResponse,
    responses={503: _ERRORS[503]},
    summary="Look up a returning player",
)
async def check_returning_player(
    request_data: ReturningPlayerRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> ReturningPlayerResponse:
    try:
        match = service.check_returning_player(request_data.candidate.to_domain())
    except RegistrationError as e:
        raise _http_error(e) from None
    return ReturningPlayerResponse(
        is_returning_player=match is not None,
        match=MatchModel.from_domain(match) if match else None,
    )


def _update_fees(
    service: RegistrationService,
    owner_type: OwnerType,
    owner_id: str,
    request_data: FeeScheduleRequest,
) -> None:
    try:
        fees = [fee.to_domain() for fee in request_data.fees]
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from None
    try:
        service.update_fee_schedule(owner_type, owner_id, fees)
    except RegistrationError as e:
        raise _http_error(e) from None


@router.put(
    "/associations/{association_id}/fees",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Replace an association's fee schedule",
)
async def set_association_fees(
    association_id: str,
    request_data: FeeScheduleRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> None:
    _update_fees(service, OwnerType.ASSOCIATION, association_id, request_data)


@router.put(
    "/clubs/{club_id}/fees",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
    summary="Replace a club's fee schedule",
)
async def set_club_fees(
    club_id: str,
    request_data: FeeScheduleRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> None:
    _update_fees(service, OwnerType.CLUB, club_id, request_data)
