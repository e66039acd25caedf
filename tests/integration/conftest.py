"""
Shared fixtures for PostgreSQL integration tests.

Requires PostgreSQL to be running at settings.database_url (via
docker-compose or DATABASE_URL). Tests are skipped when it is not.
"""

from collections.abc import Callable, Generator, Mapping
from datetime import date

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryRepository
from src.adapters.repository.postgres import (
    PostgresMemberStore,
    PostgresOrganizationStore,
    PostgresPaymentStore,
    PostgresRegistrationStore,
    run_migrations,
)
from src.config.settings import get_settings
from src.domain.models import AgeCategory, Club
from src.domain.registration import RegistrationService

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests and apply migrations."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=2)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not available at {settings.database_url}")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every table before each test."""
    with pool.connection() as conn:
        conn.execute("TRUNCATE payments, registrations, members, clubs, associations")
        conn.commit()
    yield


@pytest.fixture
def organizations(pool: ConnectionPool) -> PostgresOrganizationStore:
    return PostgresOrganizationStore(pool, timeout=5.0)


@pytest.fixture
def seeded(
    organizations: PostgresOrganizationStore, repository: InMemoryRepository, club: Club
) -> Club:
    """Copy the standard in-memory hierarchy into PostgreSQL."""
    for association_id in ("HA", "HQ", "BHA"):
        association = repository.get_association(association_id)
        assert association is not None
        organizations.save_association(association)
    organizations.save_club(club)
    return club


@pytest.fixture
def pg_service(
    pool: ConnectionPool,
    organizations: PostgresOrganizationStore,
    seeded: Club,
    age_categories: Mapping[str, AgeCategory],
) -> RegistrationService:
    """RegistrationService over the PostgreSQL stores with a fixed clock."""
    return RegistrationService(
        organizations=organizations,
        members=PostgresMemberStore(pool, timeout=5.0),
        registrations=PostgresRegistrationStore(pool, timeout=5.0),
        payments=PostgresPaymentStore(pool, timeout=5.0),
        age_categories=age_categories,
        today=lambda: date(2026, 3, 1),
    )


def count_rows(pool: ConnectionPool, table: str) -> int:
    with pool.connection() as conn, conn.cursor() as cursor:
        cursor.execute(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
        return cursor.fetchone()[0]


@pytest.fixture
def row_count(pool: ConnectionPool) -> Callable[[str], int]:
    return lambda table: count_rows(pool, table)
