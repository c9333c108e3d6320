"""
Rate History

Ordered, append-only list of commission rate sets. Commissions on a
transaction use the rate set that was in force on the transaction's date.
"""

import logging
from datetime import datetime

from ..dates import EPOCH, parse_timestamp, utcnow
from ..errors import ValidationError
from ..models import RateHistoryEntry, coerce_rates

logger = logging.getLogger(__name__)


class RateHistory:
    """Time-versioned rate sets sorted ascending by created_at."""

    def __init__(self, entries: list[RateHistoryEntry]):
        if not entries:
            raise ValueError("RateHistory requires at least one entry")
        # sorted() is stable, so entries created at the same instant keep input order
        self.entries: tuple[RateHistoryEntry, ...] = tuple(sorted(entries, key=lambda e: e.created_at))

    @classmethod
    def from_records(cls, records, fallback: dict | None = None) -> "RateHistory":
        """
        Normalize raw history rows.

        Rows without a parseable creation timestamp are dropped. If nothing
        survives, a single entry dated at the epoch is built from `fallback`
        so that lookups never fail.
        """
        entries = []
        for record in records or []:
            if isinstance(record, RateHistoryEntry):
                entries.append(record)
                continue
            entry = RateHistoryEntry.from_dict(record)
            if entry is None:
                logger.debug(f"Skipping rate history row without createdAt: {record!r}")
                continue
            entries.append(entry)

        if not entries:
            fallback = fallback or {}
            entries.append(
                RateHistoryEntry(
                    created_at=EPOCH,
                    level_rates=coerce_rates(fallback.get("levelRates", fallback.get("level_rates", []))),
                    personal_rates=coerce_rates(fallback.get("personalRates", fallback.get("personal_rates", []))),
                )
            )

        return cls(entries)

    @property
    def latest(self) -> RateHistoryEntry:
        return self.entries[-1]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def resolve(self, date=None) -> RateHistoryEntry:
        """
        Return the rate set in effect on `date`.

        A missing or unparseable date resolves to the latest entry. A date
        earlier than every entry resolves to the first one.
        """
        if date is None or date == "":
            return self.latest
        try:
            target = parse_timestamp(date, strict=True)
        except ValidationError as e:
            logger.debug(f"Falling back to latest rates: {e}")
            return self.latest

        selected = self.entries[0]
        for entry in self.entries:
            if entry.created_at > target:
                break
            selected = entry
        return selected

    def append(self, level_rates, personal_rates, created_at: datetime | None = None) -> "RateHistory":
        """
        Record a settings change as a new versioned entry.

        Returns a new RateHistory; existing entries are never modified so past
        commission calculations stay reproducible.
        """
        created = parse_timestamp(created_at, strict=True) if created_at is not None else utcnow()
        entry = RateHistoryEntry(
            created_at=created,
            level_rates=coerce_rates(level_rates),
            personal_rates=coerce_rates(personal_rates),
        )
        return RateHistory([*self.entries, entry])

    def to_records(self) -> list[dict]:
        return [
            {
                "createdAt": entry.created_at.isoformat(),
                "levelRates": [float(r) for r in entry.level_rates],
                "personalRates": [float(r) for r in entry.personal_rates],
            }
            for entry in self.entries
        ]
