"""Repository adapters - Database and in-process implementations."""

from .memory import InMemoryRepository
from .postgres import (
    PostgresMemberStore,
    PostgresOrganizationStore,
    PostgresPaymentStore,
    PostgresRegistrationStore,
    run_migrations,
)

__all__ = [
    "InMemoryRepository",
    "PostgresMemberStore",
    "PostgresOrganizationStore",
    "PostgresPaymentStore",
    "PostgresRegistrationStore",
    "run_migrations",
]
