"""
Organization tree - Ancestor chain lookup for clubs.

The hierarchy is national (level 0) -> state -> regional -> club. Each
association points to its parent and levels strictly decrease towards the
root, so an upward walk from a level-N association takes at most N + 1
steps. Exceeding that bound, or a parent whose level is not lower than its
child's, means the stored parent pointers are corrupt.
"""

import logging
from dataclasses import dataclass

from .exceptions import CycleDetected, HierarchyCorrupted, NotFound
from .models import Association, Club
from .ports import OrganizationStore

logger = logging.getLogger(__name__)


@dataclass
class OrganizationTree:
    """Read-only query view over the association/club store."""

    store: OrganizationStore

    def club(self, club_id: str) -> Club:
        """
        Look up a club by id or slug.

        Raises:
            NotFound: If no such club exists
        """
        club = self.store.get_club(club_id)
        if club is None:
            raise NotFound(f"Club not found: {club_id}")
        return club

    def ancestor_chain(self, club_id: str) -> list[Association]:
        """
        Return the club's associations ordered root (level 0) first.

        The last element is the club's immediate association.

        Raises:
            NotFound: If the club or any referenced association is missing
            CycleDetected: If parent levels do not strictly decrease
            HierarchyCorrupted: If the chain stops above level 0
        """
        club = self.club(club_id)
        return self.association_chain(club.association_id)

    def association_chain(self, association_id: str) -> list[Association]:
        """Ancestor chain of an association, root first, ending with itself."""
        current = self._get(association_id)
        chain = [current]
        bound = current.level + 1

        while current.parent_id is not None:
            if len(chain) >= bound:
                self._alarm(f"Parent chain from {association_id} exceeds {bound} levels")
                raise CycleDetected(association_id)

            parent = self._get(current.parent_id)
            if parent.level >= current.level:
                self._alarm(
                    f"Association {current.id} (level {current.level}) has parent "
                    f"{parent.id} at level {parent.level}"
                )
                raise CycleDetected(association_id)

            chain.append(parent)
            current = parent

        if current.level != 0:
            self._alarm(f"Association {current.id} has no parent but level {current.level}")
            raise HierarchyCorrupted(association_id)

        chain.reverse()
        return chain

    def _get(self, association_id: str) -> Association:
        association = self.store.get_association(association_id)
        if association is None:
            raise NotFound(f"Association not found: {association_id}")
        return association

    def _alarm(self, message: str) -> None:
        logger.error("[INTEGRITY] %s", message)
