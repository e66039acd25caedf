"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import (
    PostgresMemberStore,
    PostgresOrganizationStore,
    PostgresPaymentStore,
    PostgresRegistrationStore,
)
from src.config.settings import get_settings
from src.domain.registration import RegistrationService


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_registration_service(request: Request) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires the store adapters for the configured backend into the domain
    service: the shared in-memory repository, or PostgreSQL stores over
    the app's connection pool.
    """
    settings = get_settings()

    repository = getattr(request.app.state, "repository", None)
    if repository is not None:
        return RegistrationService(
            organizations=repository,
            members=repository,
            registrations=repository,
            payments=repository,
            age_categories=settings.age_category_map(),
            currency=settings.currency,
        )

    pool = get_pool(request)
    timeout = settings.pool_timeout_seconds
    return RegistrationService(
        organizations=PostgresOrganizationStore(pool, timeout),
        members=PostgresMemberStore(pool, timeout),
        registrations=PostgresRegistrationStore(pool, timeout),
        payments=PostgresPaymentStore(pool, timeout),
        age_categories=settings.age_category_map(),
        currency=settings.currency,
    )
