"""Tests for RateHistory resolution and append-only versioning."""

import pytest
from datetime import datetime
from decimal import Decimal

from network_engine.calculators import RateHistory
from network_engine.dates import EPOCH
from network_engine.models import RateHistoryEntry

NINE = 9


def record(created_at, personal, levels=0):
    return {
        "createdAt": created_at,
        "levelRates": [levels] * NINE,
        "personalRates": [personal] * NINE,
    }


class TestRateHistory:

    @pytest.fixture
    def history(self):
        return RateHistory.from_records([
            record("2024-01-01", 20),
            record("2023-01-01", 10),
        ])

    def test_entries_sorted_ascending(self, history):
        assert [e.created_at for e in history] == [datetime(2023, 1, 1), datetime(2024, 1, 1)]

    def test_resolve_uses_rates_in_force_on_date(self, history):
        assert history.resolve("2023-06-01").personal_rate(1) == Decimal("10")
        assert history.resolve("2024-06-01").personal_rate(1) == Decimal("20")

    def test_resolve_on_exact_creation_instant(self, history):
        assert history.resolve(datetime(2024, 1, 1)).personal_rate(1) == Decimal("20")

    def test_date_before_all_entries_uses_first(self, history):
        assert history.resolve("2020-01-01").personal_rate(1) == Decimal("10")

    def test_missing_or_bad_date_uses_latest(self, history):
        assert history.resolve(None).personal_rate(1) == Decimal("20")
        assert history.resolve("").personal_rate(1) == Decimal("20")
        assert history.resolve("garbage").personal_rate(1) == Decimal("20")

    def test_same_instant_keeps_input_order(self):
        history = RateHistory.from_records([
            record("2024-01-01", 1),
            record("2024-01-01", 2),
        ])
        assert history.resolve("2024-02-01").personal_rate(1) == Decimal("2")

    def test_rows_without_created_at_dropped(self):
        history = RateHistory.from_records([
            {"levelRates": [1] * NINE, "personalRates": [1] * NINE},
            record("2024-01-01", 5),
        ])
        assert len(history) == 1

    def test_empty_history_uses_fallback(self):
        history = RateHistory.from_records([], {"levelRates": [7] * NINE, "personalRates": [8] * NINE})
        assert len(history) == 1
        assert history.latest.created_at == EPOCH
        assert history.resolve("2024-01-01").level_rate(1) == Decimal("7")
        assert history.resolve("2024-01-01").personal_rate(9) == Decimal("8")

    def test_json_encoded_rate_columns(self):
        history = RateHistory.from_records([
            {"created_at": "2024-01-01", "level_rates_json": "[5, 3]", "personal_rates_json": "[10]"}
        ])
        entry = history.latest
        assert entry.level_rate(2) == Decimal("3")
        assert entry.personal_rate(1) == Decimal("10")

    def test_out_of_range_rates_are_zero(self):
        entry = RateHistoryEntry(created_at=EPOCH, level_rates=(Decimal("5"),), personal_rates=())
        assert entry.level_rate(2) == Decimal("0")
        assert entry.level_rate(0) == Decimal("0")
        assert entry.personal_rate(1) == Decimal("0")

    def test_requires_an_entry(self):
        with pytest.raises(ValueError):
            RateHistory([])


class TestAppend:

    def test_append_returns_new_history(self):
        history = RateHistory.from_records([record("2023-01-01", 10)])
        updated = history.append([1] * NINE, [30] * NINE, datetime(2024, 1, 1))

        assert len(history) == 1
        assert len(updated) == 2
        assert updated.latest.personal_rate(1) == Decimal("30")

    def test_append_does_not_change_past_resolution(self):
        history = RateHistory.from_records([record("2023-01-01", 10)])
        updated = history.append([1] * NINE, [30] * NINE, datetime(2024, 1, 1))

        assert updated.resolve("2023-06-01").personal_rate(1) == Decimal("10")

    def test_to_records(self):
        history = RateHistory.from_records([record("2023-01-01", 10, levels=5)])
        records = history.to_records()
        assert records == [{
            "createdAt": "2023-01-01T00:00:00",
            "levelRates": [5.0] * NINE,
            "personalRates": [10.0] * NINE,
        }]

    def test_resolve_never_goes_back_in_time(self):
        history = RateHistory.from_records([
            record("2023-01-01", 10),
            record("2023-06-01", 20),
            record("2024-01-01", 30),
        ])
        previous = None
        for when in [datetime(year, month, 1) for year in (2022, 2023, 2024) for month in range(1, 13)]:
            entry = history.resolve(when)
            if previous is not None:
                assert entry.created_at >= previous
            previous = entry.created_at
        assert previous == datetime(2024, 1, 1)

    def test_incomplete_date_text_uses_latest(self):
        history = RateHistory.from_records([record("2023-01-01", 10), record("2024-01-01", 20)])
        assert history.resolve("June").personal_rate(1) == Decimal("20")
        assert history.resolve("5").personal_rate(1) == Decimal("20")
