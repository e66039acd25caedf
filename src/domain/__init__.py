"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration and fee computation engine for
club and association membership. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .exceptions import (
    CycleDetected,
    DuplicateRegistration,
    HierarchyCorrupted,
    InvalidStateTransition,
    NotFound,
    RegistrationError,
    UpstreamUnavailable,
)
from .models import (
    AgeCategory,
    Association,
    CandidateProfile,
    Club,
    Fee,
    FeeBreakdown,
    FeeLineItem,
    Member,
    Registration,
    RegistrationConfirmation,
    RegistrationDraft,
    RegistrationStatus,
    RegistrationSummary,
)
from .ports import MemberStore, OrganizationStore, PaymentStore, RegistrationStore
from .registration import RegistrationCommitter, RegistrationService

__all__ = [
    "AgeCategory",
    "Association",
    "CandidateProfile",
    "Club",
    "CycleDetected",
    "DuplicateRegistration",
    "Fee",
    "FeeBreakdown",
    "FeeLineItem",
    "HierarchyCorrupted",
    "InvalidStateTransition",
    "Member",
    "MemberStore",
    "NotFound",
    "OrganizationStore",
    "PaymentStore",
    "Registration",
    "RegistrationCommitter",
    "RegistrationConfirmation",
    "RegistrationDraft",
    "RegistrationError",
    "RegistrationService",
    "RegistrationStatus",
    "RegistrationStore",
    "RegistrationSummary",
    "UpstreamUnavailable",
]
