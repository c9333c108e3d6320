"""
Input Validation for the Network Commission Engine

Validates request-level input (payments, rate changes, buyback payouts)
before any state is touched. Raises ValidationError (a ValueError) with a
clear message for each constraint violation.

Snapshot rows are not validated here: a malformed member, sale or
investment is neutralised where it is used so that one bad record cannot
abort the computation for the whole network.
"""

from decimal import Decimal, InvalidOperation

from .config import EngineConfig
from .dates import parse_timestamp
from .errors import ValidationError
from .models import Payment


class InputValidator:
    """Validates request payloads according to business rules."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    def validate_payment(self, data: dict) -> tuple[str, str, Payment]:
        """
        Validate a payment request.

        Returns (kind, item_id, payment) where kind is 'sale' or 'investment'.
        """
        if not data:
            raise ValidationError("payment is required")

        sale_id = data.get("saleId", data.get("sale_id"))
        investment_id = data.get("investmentId", data.get("investment_id"))
        if bool(sale_id) == bool(investment_id):
            raise ValidationError("Exactly one of saleId or investmentId is required")

        amount = self._amount(data.get("amount"), "amount")
        if amount <= 0:
            raise ValidationError(f"amount must be positive, got: {amount}")

        if not data.get("date"):
            raise ValidationError("date is required")
        date = parse_timestamp(data["date"], strict=True)

        payment = Payment(amount=amount, date=date, id=data.get("id"))
        if sale_id:
            return "sale", str(sale_id), payment
        return "investment", str(investment_id), payment

    def validate_rates(self, data: dict) -> tuple[list[Decimal], list[Decimal]]:
        """A rate change needs one non-negative rate per level and per stage."""
        if not data:
            raise ValidationError("rates are required")

        level_rates = data.get("levelRates", data.get("level_rates"))
        personal_rates = data.get("personalRates", data.get("personal_rates"))

        levels = self._rate_list(level_rates, "levelRates", self.config.max_levels)
        personal = self._rate_list(personal_rates, "personalRates", self.config.max_stage)
        return levels, personal

    def validate_buyback(self, data: dict) -> tuple[str, object, Decimal | None]:
        """Returns (sale_id, paid_date, paid_amount or None)."""
        if not data:
            raise ValidationError("buyback is required")
        sale_id = data.get("saleId", data.get("sale_id"))
        if not sale_id:
            raise ValidationError("saleId is required")

        paid_date = data.get("paidDate", data.get("paid_date"))
        if not paid_date:
            raise ValidationError("Paid date is required.")
        parse_timestamp(paid_date, strict=True)

        raw_amount = data.get("paidAmount", data.get("paid_amount"))
        paid_amount = None
        if raw_amount not in (None, ""):
            paid_amount = self._amount(raw_amount, "paidAmount")
            if paid_amount < 0:
                raise ValidationError(f"paidAmount cannot be negative, got: {paid_amount}")
        return str(sale_id), paid_date, paid_amount

    def _rate_list(self, rates, name: str, expected: int) -> list[Decimal]:
        if not isinstance(rates, (list, tuple)):
            raise ValidationError(f"{name} must be a list of {expected} rates")
        if len(rates) != expected:
            raise ValidationError(f"{name} must have {expected} rates, got: {len(rates)}")
        parsed = [self._amount(rate, name) for rate in rates]
        for i, rate in enumerate(parsed):
            if rate < 0:
                raise ValidationError(f"{name}[{i}] cannot be negative, got: {rate}")
        return parsed

    @staticmethod
    def _amount(value, name: str) -> Decimal:
        if value is None or value == "" or isinstance(value, bool):
            raise ValidationError(f"{name} is required")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"{name} must be a number, got: {value!r}") from e
        if not amount.is_finite():
            raise ValidationError(f"{name} must be a number, got: {value!r}")
        return amount
