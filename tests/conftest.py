"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory repository seeded with a three-level association hierarchy
- Age categories and a RegistrationService with a fixed clock
- Draft factories

Seeded hierarchy (amounts in cents):

    Hockey Australia (level 0)      National Levy 4500, Insurance junior 2000,
                                    Insurance senior 2500
    Hockey Queensland (level 1)     State Capitation 3000
    Brisbane Hockey (level 2)       Regional Registration 5500
    Northside Hockey Club           Club Membership junior 12000 / senior 18000,
                                    insurance junior 1800 (supersedes national)
"""

from collections.abc import Callable
from datetime import date

import pytest

from src.adapters.repository.memory import InMemoryRepository
from src.domain.models import (
    AgeCategory,
    Association,
    CandidateProfile,
    Club,
    Fee,
    RegistrationDraft,
)
from src.domain.registration import RegistrationService

TODAY = date(2026, 3, 1)
SEASON = 2026


@pytest.fixture
def repository() -> InMemoryRepository:
    """Empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def club(repository: InMemoryRepository) -> Club:
    """Seed the standard hierarchy and return the club."""
    repository.add_association(
        Association(
            id="HA",
            code="HA",
            name="Hockey Australia",
            level=0,
            fees=(
                Fee(id="HA-LEVY", name="National Levy", amount=4500),
                Fee(id="HA-INS-S", name="Insurance", amount=2500, categories=("senior",)),
                Fee(id="HA-INS-J", name="Insurance", amount=2000, categories=("junior",)),
            ),
        )
    )
    repository.add_association(
        Association(
            id="HQ",
            code="HQ",
            name="Hockey Queensland",
            level=1,
            parent_id="HA",
            fees=(Fee(id="HQ-CAP", name="State Capitation", amount=3000),),
        )
    )
    repository.add_association(
        Association(
            id="BHA",
            code="BHA",
            name="Brisbane Hockey",
            level=2,
            parent_id="HQ",
            fees=(Fee(id="BHA-REG", name="Regional Registration", amount=5500),),
        )
    )
    northside = Club(
        id="C1",
        slug="northside",
        name="Northside Hockey Club",
        association_id="BHA",
        fees=(
            Fee(id="NS-JUN", name="Club Membership", amount=12000, categories=("junior",)),
            Fee(id="NS-SEN", name="Club Membership", amount=18000, categories=("senior",)),
            Fee(id="NS-INS", name="insurance", amount=1800, categories=("Junior",)),
        ),
    )
    repository.add_club(northside)
    return northside


@pytest.fixture
def age_categories() -> dict[str, AgeCategory]:
    return {
        "junior": AgeCategory(code="junior", min_age=4, max_age=17),
        "senior": AgeCategory(code="senior", min_age=18, max_age=34),
        "masters": AgeCategory(code="masters", min_age=35, max_age=99),
    }


@pytest.fixture
def service(
    repository: InMemoryRepository, club: Club, age_categories: dict[str, AgeCategory]
) -> RegistrationService:
    """RegistrationService over the seeded repository with a fixed clock."""
    return RegistrationService(
        organizations=repository,
        members=repository,
        registrations=repository,
        payments=repository,
        age_categories=age_categories,
        currency="AUD",
        today=lambda: TODAY,
    )


@pytest.fixture
def make_draft() -> Callable[..., RegistrationDraft]:
    """Factory for a junior draft at the seeded club; keyword overrides apply."""

    def factory(**overrides: object) -> RegistrationDraft:
        values: dict[str, object] = {
            "club_id": "C1",
            "season": SEASON,
            "category": "junior",
            "candidate": CandidateProfile(
                first_name="Sam",
                last_name="Taylor",
                date_of_birth=date(2012, 6, 1),
                email="sam.taylor@example.com",
            ),
            "effective_date": TODAY,
        }
        values.update(overrides)
        return RegistrationDraft(**values)  # type: ignore[arg-type]

    return factory
