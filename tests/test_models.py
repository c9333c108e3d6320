"""Tests for snapshot loading and field coercion."""

import pytest
from decimal import Decimal

from network_engine.errors import DataIntegrityWarning
from network_engine.models import Investment, NetworkSnapshot, Sale


class TestAmountCoercion:

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "sNaN", "abc", True])
    def test_unusable_totals_become_zero(self, value):
        sale = Sale.from_dict({"id": "s", "totalAmount": value})
        assert sale.total_amount == Decimal("0")

    def test_numeric_strings_kept(self):
        sale = Sale.from_dict({"id": "s", "totalAmount": "1500.50", "areaSqYd": 12})
        assert sale.total_amount == Decimal("1500.50")
        assert sale.area_sq_yd == Decimal("12")

    def test_non_finite_return_percent_uses_default(self):
        investment = Investment.from_dict({"id": "i", "amount": 100, "returnPercent": "Infinity"})
        assert investment.return_percent == Decimal("100")
        assert investment.buyback_amount == Decimal("100")

    def test_non_mapping_payments_dropped(self):
        sale = Sale.from_dict({"id": "s", "totalAmount": 100, "payments": [10, {"amount": 5}]})
        assert [p.amount for p in sale.payments] == [Decimal("5")]


class TestBuybackMonths:

    @pytest.mark.parametrize("value,expected", [
        (36, 36),
        ("36", 36),
        ("36.0", 36),
        (" 12 ", 12),
        (24.0, 24),
    ])
    def test_whole_numbers_accepted(self, value, expected):
        assert Investment.from_dict({"id": "i", "buybackMonths": value}).buyback_months == expected

    @pytest.mark.parametrize("value", ["abc", "36.5", "NaN", "", None, False])
    def test_anything_else_falls_back_to_default(self, value):
        assert Investment.from_dict({"id": "i", "buybackMonths": value}).buyback_months is None
        assert Sale.from_dict({"id": "s", "buybackMonths": value}).buyback_months is None


class TestSnapshotLoading:

    def test_rows_without_id_skipped_with_warning(self):
        snapshot = NetworkSnapshot.from_dict({
            "members": [
                {"id": "owner"},
                {"sponsorId": "owner"},
                {"id": "", "sponsorId": "owner"},
                {"id": "m", "sponsorId": "owner", "investments": [{"amount": 5}, {"id": "i", "amount": 5}]},
            ],
            "sales": [{"sellerId": "m"}, {"id": "s", "sellerId": "m"}],
        })

        assert [m.id for m in snapshot.members] == ["owner", "m"]
        assert [i.id for i in snapshot.investments] == ["i"]
        assert [s.id for s in snapshot.sales] == ["s"]
        assert len(snapshot.warnings) == 4
        assert all(isinstance(w, DataIntegrityWarning) for w in snapshot.warnings)
        assert [w.record_id for w in snapshot.warnings] == [
            "members[1]", "members[2]", "members.m.investments[0]", "sales[0]",
        ]

    def test_non_mapping_rows_skipped(self):
        snapshot = NetworkSnapshot.from_dict({
            "members": ["owner", {"id": "owner"}],
            "sales": "not-a-list",
            "payments": [None, 3],
            "commissionPayments": [7, {"personId": "owner", "amount": 1}],
        })
        assert [m.id for m in snapshot.members] == ["owner"]
        assert snapshot.sales == []
        assert len(snapshot.commission_payments) == 1
        assert len(snapshot.warnings) == 1

    def test_id_zero_is_kept(self):
        snapshot = NetworkSnapshot.from_dict({"members": [{"id": 0}]})
        assert [m.id for m in snapshot.members] == ["0"]
        assert snapshot.warnings == []
