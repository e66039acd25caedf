"""
Eligibility checks for a prospective registrant.

Age is the season age: season year minus birth year, i.e. the age the
player turns during the season regardless of birthday. Ineligibility is a
result, not an error.
"""

from dataclasses import dataclass
from datetime import date

from .models import AgeCategory, EligibilityResult, Member, RegistrationStatus
from .ports import RegistrationStore

# Reason codes reported in EligibilityResult.reasons
REASON_AGE = "age_out_of_range"
REASON_DUPLICATE = "already_registered"
REASON_BANNED = "member_banned"


def season_age(date_of_birth: date, season: int) -> int:
    return season - date_of_birth.year


@dataclass
class EligibilityChecker:
    registrations: RegistrationStore

    def check(self, dob: date, season: int, category: AgeCategory) -> EligibilityResult:
        """Age check against the category's inclusive [min_age, max_age] band."""
        age = season_age(dob, season)
        eligible = category.min_age <= age <= category.max_age
        return EligibilityResult(
            eligible=eligible,
            computed_age=age,
            allowed_range=(category.min_age, category.max_age),
            reasons=() if eligible else (REASON_AGE,),
        )

    def duplicate_check(self, member_key: str, club_id: str, season: int) -> bool:
        """
        Return True if the person may NOT register (an active one exists).

        Pending and approved registrations block; rejected ones do not.
        """
        existing = self.registrations.find_registration(member_key, club_id, season)
        return existing is not None and existing.status != RegistrationStatus.REJECTED

    def ban_check(self, member: Member, effective_date: date) -> bool:
        """Return True if the member is banned on the effective date."""
        return member.is_banned_on(effective_date)
