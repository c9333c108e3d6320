"""
Lifecycle State Machine

Moves sales and investments through pending -> paid | cancelled.

Due date = transaction date + N working days (weekends skipped). Deadlines
are compared by calendar day: a payment dated on the due date is on time,
one dated the next day is late.

Every state change is returned as a Transition so the caller can persist
the item, the released property and the member status together.
"""

import logging
from datetime import datetime
from decimal import ROUND_CEILING, Decimal

from .config import EngineConfig
from .dates import add_months, add_working_days, parse_timestamp, utcnow
from .errors import PolicyViolation, ValidationError
from .ledger import PaymentLedger
from .models import Investment, Member, Payment, ReconciliationReport, Sale, Transition

logger = logging.getLogger(__name__)

PENDING = "pending"
PAID = "paid"
CANCELLED = "cancelled"


def _members_by_id(members) -> dict[str, Member]:
    if members is None:
        return {}
    if isinstance(members, dict):
        return members
    return {member.id: member for member in members}


class LifecycleStateMachine:
    """Payment acceptance and deadline settlement for sales and investments."""

    def __init__(self, config: EngineConfig | None = None, clock=None):
        self.config = config or EngineConfig()
        self.clock = clock or utcnow

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def state_of(self, item: Sale | Investment) -> str:
        if item.is_cancelled:
            return CANCELLED
        if item.kind == "investment":
            return PAID if item.payment_status == PAID else PENDING
        if item.paid_date is not None or PaymentLedger(item.payments).is_fully_paid(item.total_amount):
            return PAID
        return PENDING

    def due_date(self, item: Sale | Investment) -> datetime | None:
        if item.transaction_date is None:
            return None
        return add_working_days(item.transaction_date, self.config.payment_due_working_days)

    def days_left(self, item: Sale | Investment, now: datetime | None = None) -> int | None:
        """Calendar days until the due date, never negative; None without a due date."""
        due = self.due_date(item)
        if due is None:
            return None
        now = now or self.clock()
        return max(0, (due.date() - now.date()).days)

    def first_payment_minimum(self, target_amount: Decimal) -> Decimal:
        return (target_amount * self.config.first_payment_fraction).to_integral_value(rounding=ROUND_CEILING)

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def apply_payment(
        self,
        item: Sale | Investment,
        payment: Payment,
        investments: list[Investment] = (),
        members=None,
        now: datetime | None = None,
    ) -> Transition | None:
        """
        Record an installment against `item`.

        Returns the `paid` Transition when the installment completes the
        item, otherwise None. Every rejection raises before anything is
        written, except a late payment: the item is force-cancelled and the
        cancellation Transition travels on the PolicyViolation.
        """
        label = item.kind.capitalize()
        state = self.state_of(item)
        if state == CANCELLED:
            raise PolicyViolation("parent_cancelled", f"Cannot add payment to cancelled {item.kind}.")
        if state == PAID:
            raise PolicyViolation("parent_paid", f"{label} is already fully paid.")

        if payment.date is None:
            raise ValidationError("Invalid payment date.")
        if payment.amount <= 0:
            raise ValidationError(f"Payment amount must be positive, got: {payment.amount}")

        due = self.due_date(item)
        if due is not None and payment.date.date() > due.date():
            days = self.config.payment_due_working_days
            transition = self._cancel(
                item, f"Payment received after {days} working days", now or self.clock(), investments, members
            )
            raise PolicyViolation(
                "late_payment",
                f"Payment is beyond {days} working days. {label} cancelled.",
                transition=transition,
            )

        ledger = PaymentLedger(item.payments)
        target = item.target_amount
        paid_so_far = ledger.paid_to_date()

        if paid_so_far == 0:
            minimum = self.first_payment_minimum(target)
            if payment.amount < minimum:
                raise PolicyViolation("first_payment_too_small", f"First payment must be at least {minimum}.")

        if paid_so_far + payment.amount > target:
            raise PolicyViolation("overpayment", "Payment exceeds remaining amount.")

        ledger.append(payment)
        logger.info(f"Payment of {payment.amount} recorded on {item.kind} {item.id}")

        if ledger.is_fully_paid(target):
            return self._mark_paid(item, ledger.paid_to_date(), payment.date, "Paid in full", members)
        return None

    # -------------------------------------------------------------------------
    # Passive sweep
    # -------------------------------------------------------------------------

    def reconcile(
        self,
        sales: list[Sale] = (),
        investments: list[Investment] = (),
        members=None,
        now: datetime | None = None,
    ) -> ReconciliationReport:
        """
        Settle every pending item whose due date has passed.

        Paid in full by the due date -> paid, otherwise -> cancelled.
        Terminal items are skipped, so running the sweep again (or twice
        concurrently over the same data) yields the same final state and
        no further transitions.
        """
        now = now or self.clock()
        report = ReconciliationReport(now=now)

        for item in [*sales, *investments]:
            if self.state_of(item) != PENDING:
                continue
            due = self.due_date(item)
            if due is None or now.date() <= due.date():
                continue

            on_time = [p for p in item.payments if p.date is not None and p.date.date() <= due.date()]
            paid_by_due = PaymentLedger(item.payments).paid_by_date(due)

            if paid_by_due >= item.target_amount:
                paid_date = PaymentLedger(on_time).latest_date()
                transition = self._mark_paid(item, paid_by_due, paid_date, "Paid in full by due date", members)
            else:
                days = self.config.payment_due_working_days
                transition = self._cancel(item, f"Overdue payment ({days} working days)", now, investments, members)
            report.transitions.append(transition)

        if report.transitions:
            logger.info(
                f"Reconciliation: {report.paid_count} settled as paid, {report.cancelled_count} cancelled"
            )
        return report

    # -------------------------------------------------------------------------
    # Buyback
    # -------------------------------------------------------------------------

    def settle_buyback(self, sale: Sale, paid_date, paid_amount=None) -> Transition:
        """
        Pay out a sale's buyback.

        The sale must have buyback enabled, be active and fully paid, and
        the payout must be on or after the buyback date. The amount defaults
        to total_amount scaled by the return percent.
        """
        if not sale.buyback_enabled:
            raise PolicyViolation("buyback_not_enabled", "Buyback is not enabled for this sale.")
        if sale.is_cancelled:
            raise PolicyViolation("parent_cancelled", "Cancelled sale cannot be paid out.")
        if sale.buyback_status == PAID:
            raise PolicyViolation("buyback_already_paid", "Buyback has already been paid.")
        if not PaymentLedger(sale.payments).is_fully_paid(sale.total_amount):
            raise PolicyViolation("buyback_unpaid_sale", "Sale is not fully paid.")

        payout_date = parse_timestamp(paid_date, strict=True)
        if payout_date is None:
            raise ValidationError("Paid date is required.")
        if sale.buyback_date is not None and payout_date.date() < sale.buyback_date.date():
            raise PolicyViolation("buyback_not_due", "Buyback date is yet to come.")

        if paid_amount is None or paid_amount == "":
            amount = sale.expected_buyback_amount
        else:
            amount = Decimal(str(paid_amount))

        from_state = sale.buyback_status
        sale.buyback_status = PAID
        sale.buyback_paid_amount = amount
        sale.buyback_paid_date = payout_date
        logger.info(f"Buyback of {amount} paid on sale {sale.id}")

        return Transition(
            kind="sale_buyback",
            item_id=sale.id,
            from_state=from_state,
            to_state=PAID,
            reason="Buyback paid",
            at=payout_date,
            paid_amount=amount,
            paid_date=payout_date,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _mark_paid(self, item, paid_amount: Decimal, paid_date: datetime | None, reason: str, members) -> Transition:
        item.paid_amount = paid_amount
        item.paid_date = paid_date

        transition = Transition(
            kind=item.kind,
            item_id=item.id,
            from_state=PENDING,
            to_state=PAID,
            reason=reason,
            at=paid_date or self.clock(),
            paid_amount=paid_amount,
            paid_date=paid_date,
        )

        if item.kind == "investment":
            item.payment_status = PAID
            months = item.buyback_months
            if months is None:
                months = self.config.default_investment_buyback_months
            if paid_date is not None:
                item.buyback_date = add_months(paid_date, months)
            transition.buyback_date = item.buyback_date

            member = _members_by_id(members).get(item.person_id)
            if member is not None and not member.is_special:
                member.status = "active"
            if member is None or not member.is_special:
                transition.member_id = item.person_id
                transition.member_status = "active"

        elif item.buyback_enabled and paid_date is not None:
            months = item.buyback_months
            if months is None:
                months = self.config.default_sale_buyback_months
            item.buyback_date = add_months(paid_date, months)
            item.buyback_status = PAID if item.buyback_status == PAID else PENDING
            transition.buyback_date = item.buyback_date

        logger.info(f"{item.kind.capitalize()} {item.id} paid: {reason}")
        return transition

    def _cancel(self, item, reason: str, now: datetime, investments, members) -> Transition:
        from_state = self.state_of(item)
        item.cancelled_at = now

        transition = Transition(
            kind=item.kind,
            item_id=item.id,
            from_state=from_state,
            to_state=CANCELLED,
            reason=reason,
            at=now,
            released_property_id=item.property_id,
        )

        if item.kind == "investment":
            item.payment_status = CANCELLED
            has_other_paid = any(
                other.person_id == item.person_id and other.id != item.id and other.payment_status == PAID
                for other in investments
            )
            if not has_other_paid:
                member = _members_by_id(members).get(item.person_id)
                if member is not None:
                    member.status = "inactive"
                transition.member_id = item.person_id
                transition.member_status = "inactive"
        else:
            item.status = CANCELLED
            if item.buyback_enabled:
                item.buyback_status = CANCELLED
                transition.buyback_cancelled = True

        logger.info(f"{item.kind.capitalize()} {item.id} cancelled: {reason}")
        return transition
