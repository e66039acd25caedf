"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Ineligibility is deliberately absent: an ineligible candidate is a normal
result (EligibilityResult.eligible is False), never an exception.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class NotFound(RegistrationError):
    """Referenced association, club, member or registration does not exist."""

    pass


class HierarchyCorrupted(RegistrationError):
    """Association parent chain violates the hierarchy invariants."""

    pass


class CycleDetected(HierarchyCorrupted):
    """Parent traversal did not move strictly towards the level-0 root."""

    pass


class DuplicateRegistration(RegistrationError):
    """An active registration already exists for this person, club and season."""

    pass


class InvalidStateTransition(RegistrationError):
    """Workflow misuse, e.g. approving a registration that is not pending."""

    pass


class UpstreamUnavailable(RegistrationError):
    """Storage collaborator timed out or is unreachable. Safe to retry."""

    pass
