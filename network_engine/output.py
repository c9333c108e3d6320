"""
Output Builder

Renders engine results as plain JSON-ready dictionaries using the
record field names callers depend on.
"""

from decimal import ROUND_HALF_UP, Decimal

from .dates import to_iso, to_iso_date
from .models import (
    CommissionSummary, Investment, Member, MemberCommission, NetworkResult,
    ReconciliationReport, Sale, Transition
)


def to_money(value: Decimal | None) -> float | None:
    """Convert Decimal to float with 2 decimal places."""
    if value is None:
        return None
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class OutputBuilder:
    """Builds the response dictionaries."""

    def build(self, result: NetworkResult) -> dict:
        """Construct the complete network summary."""
        output = self.build_summary(result.summary)
        output["reconciliation"] = self.build_reconciliation(result.reconciliation)
        output["warnings"] = [str(w) for w in result.integrity_warnings]
        return output

    def build_summary(self, summary: CommissionSummary) -> dict:
        return {
            "people": [self.build_member_row(row) for row in summary.rows],
            "topEarners": [self.build_member_row(row) for row in summary.top_earners],
            "totalCommission": to_money(summary.total_commission),
        }

    def build_member_row(self, row: MemberCommission) -> dict:
        stage = row.stage_summary
        return {
            "person": self.build_member(row.person),
            "stage": row.stage,
            "personalRate": to_money(row.personal_rate),
            "totalCommission": to_money(row.total_commission),
            "totalPaid": to_money(row.total_paid),
            "balance": to_money(row.balance),
            "maxLevel": row.max_level,
            "directRecruits": stage.direct_recruits if stage else len(row.person.direct_recruits),
            "progress": stage.progress if stage else 0,
            "nextTarget": stage.next_target if stage else None,
        }

    def build_member(self, member: Member) -> dict:
        return {
            "id": member.id,
            "name": member.name,
            "sponsorId": member.sponsor_id,
            "joinDate": to_iso(member.join_date),
            "status": member.status,
            "isSpecial": member.is_special,
        }

    def build_reconciliation(self, report: ReconciliationReport) -> dict:
        return {
            "now": to_iso(report.now),
            "paidCount": report.paid_count,
            "cancelledCount": report.cancelled_count,
            "transitions": [self.build_transition(t) for t in report.transitions],
        }

    def build_transition(self, transition: Transition) -> dict:
        output = {
            "kind": transition.kind,
            "itemId": transition.item_id,
            "fromState": transition.from_state,
            "toState": transition.to_state,
            "reason": transition.reason,
            "at": to_iso(transition.at),
        }
        if transition.released_property_id is not None:
            output["releasedPropertyId"] = transition.released_property_id
        if transition.member_id is not None:
            output["memberId"] = transition.member_id
            output["memberStatus"] = transition.member_status
        if transition.buyback_cancelled:
            output["buybackCancelled"] = True
        if transition.buyback_date is not None:
            output["buybackDate"] = to_iso_date(transition.buyback_date)
        if transition.paid_amount is not None:
            output["paidAmount"] = to_money(transition.paid_amount)
            output["paidDate"] = to_iso(transition.paid_date)
        return output

    def build_item(
        self,
        item: Sale | Investment,
        remaining: Decimal | None = None,
        days_left: int | None = None,
    ) -> dict:
        """
        Current persisted state of a sale or investment.

        `remaining` and `daysLeft` are what the buyer still owes and the
        calendar days until the due date; daysLeft is None once settled.
        """
        paid = sum((p.amount for p in item.payments), Decimal("0"))
        output = {
            "id": item.id,
            "kind": item.kind,
            "paidToDate": to_money(paid),
            "remaining": to_money(remaining),
            "daysLeft": days_left,
            "paidAmount": to_money(item.paid_amount),
            "paidDate": to_iso(item.paid_date),
            "cancelledAt": to_iso(item.cancelled_at),
            "payments": [
                {"id": p.id, "amount": to_money(p.amount), "date": to_iso(p.date)} for p in item.payments
            ],
        }
        if item.kind == "investment":
            output["paymentStatus"] = item.payment_status
            output["buybackDate"] = to_iso_date(item.buyback_date)
            output["buybackAmount"] = to_money(item.buyback_amount)
        else:
            output["status"] = item.status
            if item.buyback_enabled:
                output["buybackDate"] = to_iso_date(item.buyback_date)
                output["buybackStatus"] = item.buyback_status
                output["buybackPaidAmount"] = to_money(item.buyback_paid_amount)
                output["buybackPaidDate"] = to_iso(item.buyback_paid_date)
        return output
