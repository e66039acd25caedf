"""
Fee resolution - Aggregate applicable fees along the club's hierarchy.

Fees are collected root first (national body) and club last. All matching
fees are additive, except that a fee from a more specific node replaces
any ancestor fee with the same override key (see Fee.override_key). A
replaced fee stays in the breakdown flagged as superseded so the member
can see what the club's fee stands in for, but it is excluded from the
total.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date

from .hierarchy import OrganizationTree
from .models import Fee, FeeBreakdown, FeeLineItem, FeeScope, OwnerType
from .money import gst_component


@dataclass
class FeeResolver:
    tree: OrganizationTree
    currency: str = "AUD"

    def resolve(
        self,
        club_id: str,
        member_category: str,
        effective_date: date,
        age: int | None = None,
        scope: FeeScope = FeeScope.PLAYER,
        roles: Iterable[str] = (),
    ) -> FeeBreakdown:
        """
        Compute the fee breakdown for a registration at a club.

        Args:
            club_id: Club id or slug
            member_category: Age/member category; fees tagged with it or
                with the wildcard category apply
            effective_date: Date the fee validity windows are checked against
            age: Computed season age, used for fee age bands when known
            scope: Only fees charged against this scope are included
            roles: Role categories of the registrant; fees restricted to
                other roles are skipped

        Raises:
            NotFound, CycleDetected, HierarchyCorrupted: From the tree walk
        """
        club = self.tree.club(club_id)
        chain = self.tree.association_chain(club.association_id)

        items: list[FeeLineItem] = []
        for association in chain:
            selected = self._select(
                association.fees, member_category, effective_date, age, scope, roles
            )
            self._append(
                items,
                selected,
                OwnerType.ASSOCIATION,
                association.id,
                association.name,
                association.level,
            )

        selected = self._select(club.fees, member_category, effective_date, age, scope, roles)
        self._append(items, selected, OwnerType.CLUB, club.id, club.name, None)

        charged = [item for item in items if not item.superseded]
        return FeeBreakdown(
            items=tuple(items),
            total=sum(item.amount for item in charged),
            gst=sum(item.gst for item in charged),
            currency=self.currency,
        )

    def _select(
        self,
        fees: Iterable[Fee],
        member_category: str,
        effective_date: date,
        age: int | None,
        scope: FeeScope,
        roles: Iterable[str],
    ) -> list[Fee]:
        return [
            fee
            for fee in fees
            if fee.is_active
            and fee.applies_to == scope
            and fee.matches_category(member_category)
            and fee.is_valid_on(effective_date)
            and (age is None or fee.covers_age(age))
            and fee.matches_roles(roles)
        ]

    def _append(
        self,
        items: list[FeeLineItem],
        fees: list[Fee],
        source_type: OwnerType,
        source_id: str,
        source_name: str,
        level: int | None,
    ) -> None:
        # Only items already in the list come from ancestors; fees of the
        # node being added never supersede each other.
        ancestor_count = len(items)
        for fee in fees:
            key = fee.override_key
            for index in range(ancestor_count):
                existing = items[index]
                if not existing.superseded and existing.override_key == key:
                    items[index] = replace(existing, superseded=True, superseded_by=fee.id)

            items.append(
                FeeLineItem(
                    fee_id=fee.id,
                    name=fee.name,
                    categories=fee.categories,
                    amount=fee.amount,
                    gst_included=fee.gst_included,
                    gst=gst_component(fee.amount) if fee.gst_included else 0,
                    source_type=source_type,
                    source_id=source_id,
                    source_name=source_name,
                    level=level,
                    description=fee.description,
                    override_key=key,
                )
            )
