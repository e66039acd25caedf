"""
Registration summary - Reviewable preview of a draft registration.

The summary is a pure function of the draft and the current organization,
member and registration state: it never writes, and building it twice
without an intervening change yields equal results. Fees are only priced
for eligible candidates so an ineligible preview never shows a price.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date

from .eligibility import REASON_BANNED, REASON_DUPLICATE, EligibilityChecker
from .exceptions import NotFound
from .fees import FeeResolver
from .hierarchy import OrganizationTree
from .matching import ReturningPlayerMatcher
from .models import (
    AgeCategory,
    Association,
    CandidateProfile,
    FeeBreakdown,
    HierarchyEntry,
    Member,
    RegistrationDraft,
    RegistrationSummary,
)


@dataclass
class RegistrationSummaryBuilder:
    tree: OrganizationTree
    fees: FeeResolver
    eligibility: EligibilityChecker
    matcher: ReturningPlayerMatcher
    age_categories: Mapping[str, AgeCategory]
    today: Callable[[], date] = field(default=date.today)

    def build(self, draft: RegistrationDraft) -> RegistrationSummary:
        """
        Build the preview for a draft registration.

        Order: eligibility, then (only if eligible) returning-player match,
        ban and duplicate checks, then fee resolution.

        Raises:
            NotFound: Unknown club, association or age category
            CycleDetected, HierarchyCorrupted: Corrupt hierarchy
        """
        club = self.tree.club(draft.club_id)
        chain = self.tree.association_chain(club.association_id)
        category = self.category(draft.category)
        effective_date = draft.effective_date or self.today()
        candidate = draft.candidate

        summary = RegistrationSummary(
            club_id=club.id,
            association_id=club.association_id,
            season=draft.season,
            category=category.code,
            effective_date=effective_date,
            candidate=candidate,
            eligibility=self.eligibility.check(candidate.date_of_birth, draft.season, category),
            fees=FeeBreakdown(items=(), total=0, gst=0, currency=self.fees.currency),
            hierarchy=tuple(_entry(association) for association in chain),
            team_id=draft.team_id,
            roles=draft.roles,
        )
        if not summary.eligible:
            return summary

        match = self.matcher.find(candidate)
        summary = replace(summary, match=match)
        selected = summary.selected_member
        if selected is not None:
            summary = replace(summary, candidate=_prefill(candidate, selected))

        reasons = []
        if selected is not None and self.eligibility.ban_check(selected, effective_date):
            reasons.append(REASON_BANNED)
        key = selected.identity_key if selected is not None else candidate.identity_key
        if self.eligibility.duplicate_check(key, club.id, draft.season):
            reasons.append(REASON_DUPLICATE)
        if reasons:
            verdict = replace(summary.eligibility, eligible=False, reasons=tuple(reasons))
            return replace(summary, eligibility=verdict)

        breakdown = self.fees.resolve(
            club.id,
            category.code,
            effective_date,
            age=summary.eligibility.computed_age,
            roles=draft.roles,
        )
        # Every level of the chain must let the registration through.
        returning = selected is not None
        return replace(
            summary,
            fees=breakdown,
            requires_approval=any(entry.requires_approval for entry in summary.hierarchy),
            auto_approvable=all(
                entry.approves_automatically(returning) for entry in summary.hierarchy
            ),
        )

    def category(self, code: str) -> AgeCategory:
        """Look up an age category by code, case-insensitively."""
        wanted = code.strip().casefold()
        for key, category in self.age_categories.items():
            if key.casefold() == wanted:
                return category
        raise NotFound(f"Age category not found: {code}")


def _entry(association: Association) -> HierarchyEntry:
    return HierarchyEntry(
        id=association.id,
        code=association.code,
        name=association.name,
        level=association.level,
        requires_approval=association.settings.requires_approval,
        auto_approve_returning_players=association.settings.auto_approve_returning_players,
    )


def _prefill(candidate: CandidateProfile, member: Member) -> CandidateProfile:
    """Fill contact details the candidate left blank from the matched member."""
    return replace(
        candidate,
        gender=candidate.gender or member.gender,
        email=candidate.email or member.email,
        phone=candidate.phone or member.phone,
    )
