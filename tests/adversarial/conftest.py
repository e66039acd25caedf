"""
Shared fixtures for adversarial tests.

Provides concurrent-commit infrastructure over both backends. The
PostgreSQL fixtures skip when the database is not reachable; the
in-memory ones always run.
"""

from collections.abc import Generator, Mapping
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

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=20,
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


@pytest.fixture
def pg_service(
    pool: ConnectionPool,
    repository: InMemoryRepository,
    club: Club,
    age_categories: Mapping[str, AgeCategory],
) -> RegistrationService:
    """Clean, seed and wire a PostgreSQL-backed RegistrationService."""
    with pool.connection() as conn:
        conn.execute("TRUNCATE payments, registrations, members, clubs, associations")
        conn.commit()

    organizations = PostgresOrganizationStore(pool, timeout=10.0)
    for association_id in ("HA", "HQ", "BHA"):
        association = repository.get_association(association_id)
        assert association is not None
        organizations.save_association(association)
    organizations.save_club(club)

    return RegistrationService(
        organizations=organizations,
        members=PostgresMemberStore(pool, timeout=10.0),
        registrations=PostgresRegistrationStore(pool, timeout=10.0),
        payments=PostgresPaymentStore(pool, timeout=10.0),
        age_categories=age_categories,
        today=lambda: date(2026, 3, 1),
    )
