"""
Stage Calculator

Stage 1 until six direct recruits, stage 2 from the sixth recruit's join
date, then stages 3..9 by cumulative counts of network events (downline
joins and own completed sales) that happen after stage 2 was reached.
"""

from datetime import datetime

from ..config import EngineConfig
from ..ledger import is_completed_sale
from ..models import Member, Sale, StageSummary
from .network import NetworkIndex


class StageCalculator:
    """Computes and memoises each member's stage for one snapshot."""

    def __init__(self, index: NetworkIndex, sales: list[Sale], config: EngineConfig | None = None):
        self.index = index
        self.config = config or EngineConfig()
        self._cache: dict[str, StageSummary] = {}
        self._sale_dates: dict[str, list[datetime]] = {}
        for sale in sales:
            if sale.sale_date is not None and is_completed_sale(sale):
                self._sale_dates.setdefault(sale.seller_id, []).append(sale.sale_date)

    def calculate(self, member: Member | str) -> StageSummary:
        person_id = member if isinstance(member, str) else member.id
        if person_id not in self._cache:
            self._cache[person_id] = self._calculate(person_id)
        return self._cache[person_id]

    def _calculate(self, person_id: str) -> StageSummary:
        config = self.config
        direct = self.index.direct_recruit_count(person_id)

        if direct < config.stage_two_recruits:
            return StageSummary(
                stage=1,
                direct_recruits=direct,
                progress=direct,
                next_target=config.stage_two_recruits,
            )

        thresholds = config.stage_thresholds
        stage = 2
        progress = 0
        next_target = thresholds[0]

        entry_date = self.stage_two_entry_date(person_id)
        if entry_date is not None:
            events = self.events_after(person_id, entry_date)
            cursor = 0
            for i, threshold in enumerate(thresholds):
                remaining = len(events) - cursor
                if remaining >= threshold:
                    stage = 3 + i
                    cursor += threshold
                    next_target = thresholds[i + 1] if i + 1 < len(thresholds) else None
                    progress = 0 if next_target else remaining - threshold
                else:
                    progress = remaining
                    next_target = threshold
                    break

        if stage >= config.max_stage:
            stage = config.max_stage
            next_target = None

        return StageSummary(
            stage=stage,
            direct_recruits=direct,
            progress=progress,
            next_target=next_target,
            entry_date=entry_date,
        )

    def stage_two_entry_date(self, person_id: str) -> datetime | None:
        """
        Join date of the sixth direct recruit, ordered by join date.

        Recruits without a usable join date are ignored; None when fewer
        than six remain.
        """
        member = self.index.get(person_id)
        if member is None:
            return None
        dates = []
        for recruit_id in member.direct_recruits:
            recruit = self.index.get(recruit_id)
            if recruit is not None and recruit.join_date is not None:
                dates.append(recruit.join_date)
        required = self.config.stage_two_recruits
        if len(dates) < required:
            return None
        return sorted(dates)[required - 1]

    def events_after(self, person_id: str, after: datetime) -> list[datetime]:
        """Sorted event timestamps strictly later than `after`."""
        events = []
        for recruit_id in self.index.downline_ids(person_id, self.config.max_levels):
            recruit = self.index.get(recruit_id)
            if recruit is not None and recruit.join_date is not None:
                events.append(recruit.join_date)
        events.extend(self._sale_dates.get(person_id, []))
        return sorted(date for date in events if date > after)
