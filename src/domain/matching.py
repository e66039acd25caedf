"""Returning-player detection. Read only: never mutates member state."""

import logging
from dataclasses import dataclass

from .models import (
    CandidateProfile,
    MatchConfidence,
    MemberMatch,
    MemberQuery,
    normalize_email,
    normalize_name,
)
from .ports import MemberStore

logger = logging.getLogger(__name__)


@dataclass
class ReturningPlayerMatcher:
    members: MemberStore

    def find(self, candidate: CandidateProfile) -> MemberMatch | None:
        """
        Look for an existing member the candidate plausibly is.

        - name + date of birth match (normalized): HIGH, auto-selected
        - email match only: MEDIUM, suggestion requiring confirmation
        - nothing: None, the normal case for a new registrant

        When several members share the same identity the oldest record wins.
        """
        by_identity = self.members.find_members(
            MemberQuery(
                first_name=normalize_name(candidate.first_name),
                last_name=normalize_name(candidate.last_name),
                date_of_birth=candidate.date_of_birth,
            )
        )
        if by_identity:
            if len(by_identity) > 1:
                logger.warning(
                    "%d members share identity %s, selecting %s",
                    len(by_identity),
                    candidate.identity_key,
                    by_identity[0].id,
                )
            return MemberMatch(member=by_identity[0], confidence=MatchConfidence.HIGH)

        if candidate.email:
            by_email = self.members.find_members(MemberQuery(email=normalize_email(candidate.email)))
            if by_email:
                return MemberMatch(member=by_email[0], confidence=MatchConfidence.MEDIUM)

        return None
