"""
Domain Models for the Network Commission Engine

These dataclasses provide type-safe representations of all business entities.
Money, areas and rates use Decimal; timestamps are naive UTC datetimes.
Input dictionaries may use camelCase or snake_case field names.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .dates import parse_timestamp
from .errors import DataIntegrityWarning

logger = logging.getLogger(__name__)


def _pick(data: dict, *keys, default=None):
    """Return the first present, non-None value among alternate spellings."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _decimal(value, default: str = "0") -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        return Decimal(default)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)
    if not number.is_finite():
        return Decimal(default)
    return number


def _optional_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    return _decimal(value)


def _optional_int(value) -> int | None:
    """Whole number of months; anything else (text, fractions, NaN) is None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def _dict_rows(value) -> list[dict]:
    """Rows of a list-valued field; non-mapping entries are dropped."""
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict)]


def coerce_rates(value) -> tuple:
    """Coerce a rate list (or its JSON text) into a tuple of Decimals."""
    if isinstance(value, str):
        try:
            value = json.loads(value) if value else []
        except ValueError:
            value = []
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(_decimal(rate) for rate in value)


# =============================================================================
# INPUT MODELS
# =============================================================================


@dataclass
class Member:
    """A person in the referral network."""

    id: str
    sponsor_id: str | None = None
    join_date: datetime | None = None
    status: str = "active"  # pending | active | inactive
    is_special: bool = False
    name: str = ""
    direct_recruits: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        sponsor = _pick(data, "sponsorId", "sponsor_id")
        return cls(
            id=str(data["id"]),
            sponsor_id=str(sponsor) if sponsor not in (None, "") else None,
            join_date=parse_timestamp(_pick(data, "joinDate", "join_date")),
            status=_pick(data, "status", default="active") or "active",
            is_special=bool(_pick(data, "isSpecial", "is_special", default=False)),
            name=_pick(data, "name", default=""),
        )


@dataclass
class Payment:
    """A single installment against a sale or investment."""

    amount: Decimal
    date: datetime | None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        payment_id = data.get("id")
        return cls(
            amount=_decimal(data.get("amount")),
            date=parse_timestamp(data.get("date")),
            id=str(payment_id) if payment_id is not None else None,
        )


@dataclass
class Sale:
    """A property sale made by a network member."""

    id: str
    seller_id: str
    area_sq_yd: Decimal
    total_amount: Decimal
    sale_date: datetime | None
    status: str = "active"  # active | cancelled
    payments: list[Payment] = field(default_factory=list)
    property_id: str | None = None
    buyback_enabled: bool = False
    buyback_months: int | None = None
    buyback_return_percent: Decimal | None = None
    buyback_date: datetime | None = None
    buyback_status: str = "pending"  # pending | paid | cancelled
    buyback_paid_amount: Decimal | None = None
    buyback_paid_date: datetime | None = None
    paid_amount: Decimal | None = None
    paid_date: datetime | None = None
    cancelled_at: datetime | None = None

    kind = "sale"

    @property
    def target_amount(self) -> Decimal:
        return self.total_amount

    @property
    def transaction_date(self) -> datetime | None:
        return self.sale_date

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    @property
    def expected_buyback_amount(self) -> Decimal:
        """Buyback payout: total_amount scaled by the return percent, rounded to a whole unit."""
        if not self.buyback_return_percent:
            return self.total_amount
        return (self.total_amount * self.buyback_return_percent / Decimal("100")).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        property_id = _pick(data, "propertyId", "property_id")
        months = _pick(data, "buybackMonths", "buyback_months")
        return cls(
            id=str(data["id"]),
            seller_id=str(_pick(data, "sellerId", "seller_id", default="")),
            area_sq_yd=_decimal(_pick(data, "areaSqYd", "area_sq_yd")),
            total_amount=_decimal(_pick(data, "totalAmount", "total_amount")),
            sale_date=parse_timestamp(_pick(data, "saleDate", "sale_date")),
            status=_pick(data, "status", default="active") or "active",
            payments=[Payment.from_dict(p) for p in _dict_rows(data.get("payments"))],
            property_id=str(property_id) if property_id is not None else None,
            buyback_enabled=bool(_pick(data, "buybackEnabled", "buyback_enabled", default=False)),
            buyback_months=_optional_int(months),
            buyback_return_percent=_optional_decimal(
                _pick(data, "buybackReturnPercent", "buyback_return_percent")
            ),
            buyback_date=parse_timestamp(_pick(data, "buybackDate", "buyback_date")),
            buyback_status=_pick(data, "buybackStatus", "buyback_status", default="pending"),
            buyback_paid_amount=_optional_decimal(_pick(data, "buybackPaidAmount", "buyback_paid_amount")),
            buyback_paid_date=parse_timestamp(_pick(data, "buybackPaidDate", "buyback_paid_date")),
            paid_amount=_optional_decimal(_pick(data, "paidAmount", "paid_amount")),
            paid_date=parse_timestamp(_pick(data, "paidDate", "paid_date")),
            cancelled_at=parse_timestamp(_pick(data, "cancelledAt", "cancelled_at")),
        )


@dataclass
class Investment:
    """A capital investment by a member, repurchased after buyback_months."""

    id: str
    person_id: str
    amount: Decimal
    area_sq_yd: Decimal
    date: datetime | None
    payment_status: str = "pending"  # pending | paid | cancelled
    buyback_months: int | None = None
    return_percent: Decimal = Decimal("100")
    buyback_date: datetime | None = None
    payments: list[Payment] = field(default_factory=list)
    property_id: str | None = None
    paid_amount: Decimal | None = None
    paid_date: datetime | None = None
    cancelled_at: datetime | None = None

    kind = "investment"

    @property
    def target_amount(self) -> Decimal:
        return self.amount

    @property
    def transaction_date(self) -> datetime | None:
        return self.date

    @property
    def is_cancelled(self) -> bool:
        return self.payment_status == "cancelled"

    @property
    def buyback_amount(self) -> Decimal:
        return (self.amount * self.return_percent / Decimal("100")).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )

    @classmethod
    def from_dict(cls, data: dict, person_id: str | None = None) -> "Investment":
        property_id = _pick(data, "propertyId", "property_id")
        months = _pick(data, "buybackMonths", "buyback_months")
        owner = person_id if person_id is not None else _pick(data, "personId", "person_id", default="")
        return cls(
            id=str(data["id"]),
            person_id=str(owner),
            amount=_decimal(data.get("amount")),
            area_sq_yd=_decimal(_pick(data, "areaSqYd", "area_sq_yd")),
            date=parse_timestamp(data.get("date")),
            payment_status=_pick(data, "paymentStatus", "payment_status", default="pending") or "pending",
            buyback_months=_optional_int(months),
            return_percent=_decimal(_pick(data, "returnPercent", "return_percent"), default="100"),
            buyback_date=parse_timestamp(_pick(data, "buybackDate", "buyback_date")),
            payments=[Payment.from_dict(p) for p in _dict_rows(data.get("payments"))],
            property_id=str(property_id) if property_id is not None else None,
            paid_amount=_optional_decimal(_pick(data, "paidAmount", "paid_amount")),
            paid_date=parse_timestamp(_pick(data, "paidDate", "paid_date")),
            cancelled_at=parse_timestamp(_pick(data, "cancelledAt", "cancelled_at")),
        )


@dataclass(frozen=True)
class RateHistoryEntry:
    """A rate set in force from created_at onwards. Never edited once created."""

    created_at: datetime
    level_rates: tuple = ()
    personal_rates: tuple = ()

    def level_rate(self, level: int) -> Decimal:
        """Override rate per sq-yd for a sponsor `level` hops above the investor."""
        if 1 <= level <= len(self.level_rates):
            return self.level_rates[level - 1]
        return Decimal("0")

    def personal_rate(self, stage: int) -> Decimal:
        """Self-sale rate per sq-yd for a seller at `stage`."""
        if 1 <= stage <= len(self.personal_rates):
            return self.personal_rates[stage - 1]
        return Decimal("0")

    @classmethod
    def from_dict(cls, data: dict) -> "RateHistoryEntry | None":
        """Build an entry, or None if it has no parseable creation timestamp."""
        created_at = parse_timestamp(_pick(data, "createdAt", "created_at", "created"))
        if created_at is None:
            return None
        return cls(
            created_at=created_at,
            level_rates=coerce_rates(_pick(data, "levelRates", "level_rates", "level_rates_json", default=[])),
            personal_rates=coerce_rates(
                _pick(data, "personalRates", "personal_rates", "personal_rates_json", default=[])
            ),
        )


@dataclass
class CommissionPayment:
    """A payout of already-earned commission."""

    person_id: str
    amount: Decimal
    date: datetime | None = None
    note: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionPayment":
        return cls(
            person_id=str(_pick(data, "personId", "person_id", default="")),
            amount=_decimal(data.get("amount")),
            date=parse_timestamp(data.get("date")),
            note=data.get("note"),
        )


@dataclass
class NetworkSnapshot:
    """Everything loaded from storage before a computation run."""

    members: list[Member] = field(default_factory=list)
    sales: list[Sale] = field(default_factory=list)
    investments: list[Investment] = field(default_factory=list)
    rate_history: list[dict] = field(default_factory=list)
    commission_payments: list[CommissionPayment] = field(default_factory=list)
    fallback_rates: dict | None = None
    warnings: list[DataIntegrityWarning] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkSnapshot":
        """
        Build a snapshot from raw rows.

        Investments may be given at top level or nested under each member.
        Sale and investment payments may be given inline or as separate
        `payments` / `investmentPayments` lists keyed by saleId / investmentId.
        Member, sale and investment rows without an id are skipped and
        reported in `warnings`.
        """
        warnings: list[DataIntegrityWarning] = []

        def identified(rows, label: str) -> list[dict]:
            kept = []
            for position, row in enumerate(rows if isinstance(rows, list) else []):
                if isinstance(row, dict) and row.get("id") not in (None, ""):
                    kept.append(row)
                    continue
                warning = DataIntegrityWarning(f"{label}[{position}]", "record has no id, skipped")
                warnings.append(warning)
                logger.warning(f"Data integrity: {warning}")
            return kept

        member_rows = identified(_pick(data, "members", "people", default=[]), "members")
        members = [Member.from_dict(row) for row in member_rows]

        investments = [
            Investment.from_dict(row) for row in identified(data.get("investments"), "investments")
        ]
        for row in member_rows:
            for nested in identified(row.get("investments"), f"members.{row['id']}.investments"):
                investments.append(Investment.from_dict(nested, person_id=str(row["id"])))

        sales = [Sale.from_dict(row) for row in identified(data.get("sales"), "sales")]

        sales_by_id = {sale.id: sale for sale in sales}
        for row in _dict_rows(data.get("payments")):
            sale = sales_by_id.get(str(_pick(row, "saleId", "sale_id", default="")))
            if sale is not None:
                sale.payments.append(Payment.from_dict(row))

        investments_by_id = {inv.id: inv for inv in investments}
        for row in _dict_rows(_pick(data, "investmentPayments", "investment_payments")):
            investment = investments_by_id.get(str(_pick(row, "investmentId", "investment_id", default="")))
            if investment is not None:
                investment.payments.append(Payment.from_dict(row))

        return cls(
            members=members,
            sales=sales,
            investments=investments,
            rate_history=list(_pick(data, "rateHistory", "rate_history", "configHistory", default=[])),
            commission_payments=[
                CommissionPayment.from_dict(row)
                for row in _dict_rows(_pick(data, "commissionPayments", "commission_payments"))
            ],
            fallback_rates=_pick(data, "fallbackRates", "fallback_rates", "config"),
            warnings=warnings,
        )


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass
class UplineLink:
    """One step of an upline walk: the sponsor `level` hops above a member."""

    level: int
    sponsor: Member


@dataclass
class StageSummary:
    """A member's stage and progress towards the next one."""

    stage: int
    direct_recruits: int
    progress: int
    next_target: int | None
    entry_date: datetime | None = None


@dataclass
class MemberCommission:
    """Commission totals for one member."""

    person: Member
    stage: int
    personal_rate: Decimal
    total_commission: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    max_level: int = 0
    stage_summary: StageSummary | None = None

    @property
    def balance(self) -> Decimal:
        return self.total_commission - self.total_paid


@dataclass
class CommissionSummary:
    """Result of a commission run over the whole network."""

    by_person: dict[str, MemberCommission] = field(default_factory=dict)
    rows: list[MemberCommission] = field(default_factory=list)
    top_earners: list[MemberCommission] = field(default_factory=list)
    total_commission: Decimal = Decimal("0")


@dataclass
class Transition:
    """
    A lifecycle state change of a sale or investment.

    Side effects are absolute assignments so applying the same transition
    twice leaves storage unchanged.
    """

    kind: str  # sale | investment
    item_id: str
    from_state: str
    to_state: str
    reason: str
    at: datetime
    released_property_id: str | None = None
    member_id: str | None = None
    member_status: str | None = None
    buyback_cancelled: bool = False
    buyback_date: datetime | None = None
    paid_amount: Decimal | None = None
    paid_date: datetime | None = None


@dataclass
class ReconciliationReport:
    """Transitions produced by one passive sweep."""

    now: datetime
    transitions: list[Transition] = field(default_factory=list)

    @property
    def cancelled_count(self) -> int:
        return sum(1 for t in self.transitions if t.to_state == "cancelled")

    @property
    def paid_count(self) -> int:
        return sum(1 for t in self.transitions if t.to_state == "paid")


@dataclass
class NetworkResult:
    """Final output of a processing run."""

    summary: CommissionSummary
    reconciliation: ReconciliationReport
    integrity_warnings: list = field(default_factory=list)
