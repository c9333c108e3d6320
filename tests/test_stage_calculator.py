"""Tests for stage calculation."""

from datetime import datetime, timedelta
from decimal import Decimal

from network_engine.calculators import NetworkIndex, StageCalculator
from network_engine.config import EngineConfig
from network_engine.models import Member, Payment, Sale

DAY0 = datetime(2024, 1, 1)


def network_with_recruits(count, grandchildren_per_recruit=0):
    """Owner <- M, M recruits `count` people on days 1..count."""
    members = [
        Member(id="owner", join_date=DAY0 - timedelta(days=30)),
        Member(id="M", sponsor_id="owner", join_date=DAY0),
    ]
    for i in range(1, count + 1):
        members.append(Member(id=f"r{i}", sponsor_id="M", join_date=DAY0 + timedelta(days=i)))
        for j in range(grandchildren_per_recruit):
            members.append(
                Member(id=f"r{i}-{j}", sponsor_id=f"r{i}", join_date=datetime(2024, 2, 1) + timedelta(days=j))
            )
    return members


def completed_sale(sale_id, seller, when):
    return Sale(
        id=sale_id,
        seller_id=seller,
        area_sq_yd=Decimal("10"),
        total_amount=Decimal("1000"),
        sale_date=when,
        payments=[Payment(amount=Decimal("1000"), date=when)],
    )


class TestStageCalculator:

    def test_stage_one_below_six_recruits(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(5)), [])
        summary = stages.calculate("M")
        assert summary.stage == 1
        assert summary.direct_recruits == 5
        assert summary.progress == 5
        assert summary.next_target == 6

    def test_sixth_recruit_reaches_stage_two(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(6)), [])
        summary = stages.calculate("M")
        assert summary.stage == 2
        assert summary.entry_date == DAY0 + timedelta(days=6)
        assert summary.progress == 0
        assert summary.next_target == 18

    def test_entry_date_ordered_by_join_date_not_input_order(self):
        members = network_with_recruits(6)
        members.reverse()
        stages = StageCalculator(NetworkIndex(members), [])
        assert stages.stage_two_entry_date("M") == DAY0 + timedelta(days=6)

    def test_eighteen_downline_joins_reach_stage_three(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(6, grandchildren_per_recruit=3)), [])
        summary = stages.calculate("M")
        assert summary.stage == 3
        assert summary.progress == 0
        assert summary.next_target == 72

    def test_progress_counts_towards_next_stage(self):
        members = network_with_recruits(6, grandchildren_per_recruit=3)
        members = [m for m in members if m.id != "r6-2"]
        stages = StageCalculator(NetworkIndex(members), [])
        summary = stages.calculate("M")
        assert summary.stage == 2
        assert summary.progress == 17
        assert summary.next_target == 18

    def test_completed_sales_count_as_events(self):
        members = network_with_recruits(6, grandchildren_per_recruit=3)
        members = [m for m in members if m.id != "r6-2"]
        sales = [completed_sale("s1", "M", datetime(2024, 3, 1))]
        summary = StageCalculator(NetworkIndex(members), sales).calculate("M")
        assert summary.stage == 3

    def test_unpaid_and_cancelled_sales_do_not_count(self):
        members = network_with_recruits(6, grandchildren_per_recruit=3)
        members = [m for m in members if m.id != "r6-2"]
        unpaid = completed_sale("s1", "M", datetime(2024, 3, 1))
        unpaid.payments = [Payment(amount=Decimal("100"), date=datetime(2024, 3, 1))]
        cancelled = completed_sale("s2", "M", datetime(2024, 3, 2))
        cancelled.status = "cancelled"

        summary = StageCalculator(NetworkIndex(members), [unpaid, cancelled]).calculate("M")
        assert summary.stage == 2
        assert summary.progress == 17

    def test_events_on_entry_date_excluded(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(7)), [])
        entry = stages.stage_two_entry_date("M")
        # r7 joined the day after r6; r6 itself is the entry event
        assert stages.events_after("M", entry) == [DAY0 + timedelta(days=7)]

    def test_recruit_without_join_date_gives_stage_two_without_entry(self):
        members = network_with_recruits(6)
        members[-1].join_date = None
        summary = StageCalculator(NetworkIndex(members), []).calculate("M")
        assert summary.stage == 2
        assert summary.entry_date is None
        assert summary.progress == 0
        assert summary.next_target == 18

    def test_stage_capped_at_nine(self):
        config = EngineConfig(stage_two_recruits=1, stage_thresholds=(1, 1, 1, 1, 1, 1, 1, 1))
        members = [
            Member(id="M", join_date=DAY0),
            Member(id="r", sponsor_id="M", join_date=DAY0 + timedelta(days=1)),
        ]
        for i in range(10):
            members.append(Member(id=f"g{i}", sponsor_id="r", join_date=DAY0 + timedelta(days=10 + i)))

        summary = StageCalculator(NetworkIndex(members), [], config).calculate("M")
        assert summary.stage == 9
        assert summary.next_target is None

    def test_results_memoised(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(6)), [])
        assert stages.calculate("M") is stages.calculate("M")

    def test_unknown_member_is_stage_one(self):
        stages = StageCalculator(NetworkIndex(network_with_recruits(2)), [])
        assert stages.calculate("nobody").stage == 1

    def test_stage_never_decreases_as_events_accumulate(self):
        members = network_with_recruits(6)
        previous = 0
        for i in range(100):
            members.append(
                Member(id=f"g{i}", sponsor_id=f"r{i % 6 + 1}", join_date=datetime(2024, 3, 1) + timedelta(days=i))
            )
            stage = StageCalculator(NetworkIndex(members), []).calculate("M").stage
            assert stage >= previous
            previous = stage
        assert previous == 4
