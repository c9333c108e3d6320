"""
Network Index

Arena of members keyed by id with precomputed direct-recruit id lists.
Rebuilt wholesale from the flat member list; never patched in place.
"""

import logging
from collections import deque
from dataclasses import replace

from ..errors import DataIntegrityWarning
from ..models import Member, UplineLink

logger = logging.getLogger(__name__)

DEFAULT_MAX_LEVELS = 9


class NetworkIndex:
    """In-memory lookup of members and their direct recruits."""

    def __init__(self, members: list[Member]):
        self.members: dict[str, Member] = {}
        self.warnings: list[DataIntegrityWarning] = []
        self._build(members)

    def _build(self, members: list[Member]) -> None:
        for member in members:
            if member.id in self.members:
                self._warn(member.id, "duplicate member id, later record wins")
            self.members[member.id] = replace(member, direct_recruits=[])

        for member in self.members.values():
            if not member.sponsor_id:
                continue
            if member.sponsor_id == member.id:
                self._warn(member.id, "member sponsors itself, treated as root")
                continue
            sponsor = self.members.get(member.sponsor_id)
            if sponsor is None:
                self._warn(member.id, f"sponsor {member.sponsor_id} not found, treated as root")
                continue
            sponsor.direct_recruits.append(member.id)

    def _warn(self, record_id: str, message: str) -> None:
        warning = DataIntegrityWarning(record_id, message)
        self.warnings.append(warning)
        logger.warning(f"Data integrity: {warning}")

    def __contains__(self, person_id) -> bool:
        return person_id in self.members

    def __len__(self) -> int:
        return len(self.members)

    def get(self, person_id: str) -> Member | None:
        return self.members.get(person_id)

    def direct_recruit_count(self, person_id: str) -> int:
        member = self.members.get(person_id)
        return len(member.direct_recruits) if member else 0

    def downline_ids(self, person_id: str, max_levels: int = DEFAULT_MAX_LEVELS) -> list[str]:
        """Breadth-first downline ids within `max_levels` hops, excluding `person_id`."""
        ids = []
        for child_id, _level in self._walk_downline(person_id, max_levels):
            ids.append(child_id)
        return ids

    def downline_depth(self, person_id: str, max_levels: int = DEFAULT_MAX_LEVELS) -> int:
        """Deepest BFS level reached below `person_id` (0 without recruits)."""
        depth = 0
        for _child_id, level in self._walk_downline(person_id, max_levels):
            depth = max(depth, level)
        return depth

    def upline_chain(self, person_id: str, max_levels: int = DEFAULT_MAX_LEVELS) -> list[UplineLink]:
        """
        Walk sponsor pointers upward from `person_id`.

        Returns UplineLink(level, sponsor) pairs from level 1, stopping at a
        missing sponsor, at `max_levels`, or on a cycle.
        """
        chain = []
        current = self.members.get(person_id)
        visited = {person_id}
        level = 1

        while current is not None and current.sponsor_id and level <= max_levels:
            sponsor = self.members.get(current.sponsor_id)
            if sponsor is None:
                break
            if sponsor.id in visited:
                logger.error(f"Cycle detected in upline of {person_id} at {sponsor.id}")
                break
            visited.add(sponsor.id)
            chain.append(UplineLink(level=level, sponsor=sponsor))
            current = sponsor
            level += 1

        return chain

    def _walk_downline(self, person_id: str, max_levels: int):
        """Yield (member_id, level) pairs in BFS order, level starting at 1."""
        if person_id not in self.members:
            return
        queue = deque([(person_id, 0)])
        visited = {person_id}

        while queue:
            current_id, level = queue.popleft()
            if level >= max_levels:
                continue
            node = self.members.get(current_id)
            if node is None:
                continue
            for child_id in node.direct_recruits:
                if child_id in visited:
                    logger.error(f"Cycle detected in downline of {person_id} at {child_id}")
                    continue
                visited.add(child_id)
                yield child_id, level + 1
                queue.append((child_id, level + 1))
