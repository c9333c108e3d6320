"""
Commission Calculator

Personal commission on a member's own completed sales, plus override
commission paid up to nine sponsor levels on each member's first paid
investment. Rates are resolved as of the transaction date.
"""

import logging
from decimal import Decimal

from ..config import EngineConfig
from ..ledger import is_completed_sale
from ..models import (
    CommissionPayment, CommissionSummary, Investment, MemberCommission, Sale
)
from .network import NetworkIndex
from .rates import RateHistory
from .stage import StageCalculator

logger = logging.getLogger(__name__)


class CommissionCalculator:
    """Computes earned and paid commission for every member of a network."""

    def __init__(
        self,
        index: NetworkIndex,
        rates: RateHistory,
        stages: StageCalculator,
        config: EngineConfig | None = None,
    ):
        self.index = index
        self.rates = rates
        self.stages = stages
        self.config = config or EngineConfig()

    def calculate(
        self,
        sales: list[Sale],
        investments: list[Investment],
        commission_payments: list[CommissionPayment] = (),
    ) -> CommissionSummary:
        """
        Build per-member commission rows.

        Steps:
        1. Seed a row per member (stage, latest personal rate, paid so far, depth)
        2. Add personal commission for every completed sale
        3. Add override commission up the sponsor chain
        4. Rank top earners and total
        """
        by_person = self._seed_rows(commission_payments)

        for sale in sales:
            self._apply_personal(sale, by_person)

        investments_by_person: dict[str, list[Investment]] = {}
        for investment in investments:
            investments_by_person.setdefault(investment.person_id, []).append(investment)

        for member in self.index.members.values():
            self._apply_override(member, investments_by_person.get(member.id, []), by_person)

        rows = list(by_person.values())
        # sorted() is stable, so equal totals keep member input order
        top_earners = sorted(rows, key=lambda row: row.total_commission, reverse=True)
        total = sum((row.total_commission for row in rows), Decimal("0"))

        return CommissionSummary(
            by_person=by_person,
            rows=rows,
            top_earners=top_earners[: self.config.top_earners_count],
            total_commission=total,
        )

    def _seed_rows(self, commission_payments) -> dict[str, MemberCommission]:
        paid_totals: dict[str, Decimal] = {}
        for payment in commission_payments:
            paid_totals[payment.person_id] = paid_totals.get(payment.person_id, Decimal("0")) + payment.amount

        latest = self.rates.latest
        rows = {}
        for member in self.index.members.values():
            summary = self.stages.calculate(member)
            rows[member.id] = MemberCommission(
                person=member,
                stage=summary.stage,
                personal_rate=latest.personal_rate(summary.stage),
                total_paid=paid_totals.get(member.id, Decimal("0")),
                max_level=self.index.downline_depth(member.id, self.config.max_levels),
                stage_summary=summary,
            )
        return rows

    def _apply_personal(self, sale: Sale, by_person: dict[str, MemberCommission]) -> None:
        """Seller earns area x personal rate for their current stage, as of the sale date."""
        if sale.is_cancelled or not is_completed_sale(sale):
            return
        row = by_person.get(sale.seller_id)
        if row is None:
            logger.warning(f"Sale {sale.id} seller {sale.seller_id} not in network, skipped")
            return
        rate_set = self.rates.resolve(sale.sale_date)
        row.total_commission += sale.area_sq_yd * rate_set.personal_rate(row.stage)

    def _apply_override(self, member, investments: list[Investment], by_person) -> None:
        """Each upline sponsor earns area x level rate on the member's first paid investment."""
        if not member.sponsor_id or member.is_special:
            return
        investment = self.qualifying_investment(investments)
        if investment is None or not investment.area_sq_yd:
            return

        rate_set = self.rates.resolve(investment.date)
        for link in self.index.upline_chain(member.id, self.config.max_levels):
            row = by_person.get(link.sponsor.id)
            if row is not None:
                row.total_commission += investment.area_sq_yd * rate_set.level_rate(link.level)

    @staticmethod
    def qualifying_investment(investments: list[Investment]) -> Investment | None:
        """Earliest paid investment by date; undated investments sort last."""
        paid = [inv for inv in investments if inv.payment_status == "paid"]
        if not paid:
            return None
        dated = [inv for inv in paid if inv.date is not None]
        if dated:
            return sorted(dated, key=lambda inv: inv.date)[0]
        return paid[0]
