"""
Payment Ledger

Append-only list of installments against a single sale or investment.
The caller (LifecycleStateMachine) enforces first-payment and overpayment
rules; the ledger only records and sums.
"""

from datetime import datetime
from decimal import Decimal

from .models import Payment


class PaymentLedger:
    """Installments recorded against one parent item."""

    def __init__(self, payments: list[Payment] | None = None):
        # Shares the parent's list so appends are visible on the parent record
        self.payments = payments if payments is not None else []

    def __len__(self) -> int:
        return len(self.payments)

    def __iter__(self):
        return iter(self.payments)

    def paid_to_date(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    def is_fully_paid(self, target_amount: Decimal) -> bool:
        return self.paid_to_date() >= target_amount

    def remaining(self, target_amount: Decimal) -> Decimal:
        return max(Decimal("0"), target_amount - self.paid_to_date())

    def paid_by_date(self, cutoff: datetime) -> Decimal:
        """Sum of payments dated on or before `cutoff` (calendar day)."""
        cutoff_day = cutoff.date()
        return sum(
            (p.amount for p in self.payments if p.date is not None and p.date.date() <= cutoff_day),
            Decimal("0"),
        )

    def latest_date(self) -> datetime | None:
        dates = [p.date for p in self.payments if p.date is not None]
        return max(dates) if dates else None

    def append(self, payment: Payment) -> None:
        self.payments.append(payment)


def is_completed_sale(sale) -> bool:
    """A sale counts towards stage and commission once it is active and fully paid."""
    if sale is None or sale.is_cancelled:
        return False
    if not sale.total_amount:
        return False
    if sale.payments:
        return PaymentLedger(sale.payments).is_fully_paid(sale.total_amount)
    return sale.paid_amount is not None and sale.paid_amount >= sale.total_amount
