"""
Network Processor - Main Orchestrator

Coordinates reconciliation, network indexing, stage and commission
calculation over one loaded snapshot.
"""

from datetime import datetime
from typing import Any, Dict

from .calculators import CommissionCalculator, NetworkIndex, RateHistory, StageCalculator
from .config import EngineConfig
from .dates import parse_timestamp
from .errors import NotFoundError, ValidationError
from .ledger import PaymentLedger
from .lifecycle import PENDING, LifecycleStateMachine
from .models import NetworkResult, NetworkSnapshot
from .output import OutputBuilder
from .validators import InputValidator


class NetworkProcessor:
    """
    Main orchestrator for commission runs and payment operations.

    Pipeline for a commission run:
    1. Reconcile overdue sales and investments
    2. Build the network index
    3. Normalize the rate history
    4. Calculate stages
    5. Calculate commissions
    6. Build output
    """

    def __init__(self, config: EngineConfig | None = None, clock=None):
        self.config = config or EngineConfig()
        self.validator = InputValidator(self.config)
        self.lifecycle = LifecycleStateMachine(self.config, clock)
        self.output_builder = OutputBuilder()

    def process(self, snapshot: NetworkSnapshot, now: datetime | None = None) -> NetworkResult:
        """
        Run the full pipeline over a snapshot.

        Reconciliation mutates the snapshot's sales, investments and member
        statuses in place; the returned report lists what changed.
        """
        # Step 1: Settle overdue items so the rest of the run sees consistent data
        report = self.lifecycle.reconcile(
            snapshot.sales, snapshot.investments, snapshot.members, now
        )

        # Step 2: Index the network (after member statuses are updated)
        index = NetworkIndex(snapshot.members)

        # Step 3: Rate history
        rates = self.rate_history(snapshot)

        # Step 4: Stages
        stages = StageCalculator(index, snapshot.sales, self.config)

        # Step 5: Commissions
        summary = CommissionCalculator(index, rates, stages, self.config).calculate(
            snapshot.sales, snapshot.investments, snapshot.commission_payments
        )

        return NetworkResult(
            summary=summary,
            reconciliation=report,
            integrity_warnings=[*snapshot.warnings, *index.warnings],
        )

    def rate_history(self, snapshot: NetworkSnapshot) -> RateHistory:
        return RateHistory.from_records(
            snapshot.rate_history, snapshot.fallback_rates or self.config.fallback_rates
        )

    # -------------------------------------------------------------------------
    # Dictionary entry points (API usage)
    # -------------------------------------------------------------------------

    def process_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Commission summary for every member."""
        snapshot = NetworkSnapshot.from_dict(data)
        result = self.process(snapshot, self._now(data))
        return self.output_builder.build(result)

    def balance_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Earned, paid and outstanding commission for one member."""
        person_id = str(data.get("personId", data.get("person_id")) or "").strip()
        if not person_id:
            raise ValidationError("personId is required.")

        snapshot = NetworkSnapshot.from_dict(data)
        result = self.process(snapshot, self._now(data))
        row = result.summary.by_person.get(person_id)
        if row is None:
            raise NotFoundError("Person not found.")

        built = self.output_builder.build_member_row(row)
        return {
            "personId": person_id,
            "totalCommission": built["totalCommission"],
            "totalPaid": built["totalPaid"],
            "balance": built["balance"],
        }

    def apply_payment_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record one installment, then sweep overdue items.

        PolicyViolation propagates to the caller; when it carries a
        cancellation transition the caller must persist that transition.
        """
        kind, item_id, payment = self.validator.validate_payment(data.get("payment"))
        snapshot = NetworkSnapshot.from_dict(data)
        now = self._now(data)
        item = self._find_item(snapshot, kind, item_id)

        transition = self.lifecycle.apply_payment(
            item, payment, snapshot.investments, snapshot.members, now
        )
        report = self.lifecycle.reconcile(snapshot.sales, snapshot.investments, snapshot.members, now)

        return {
            "accepted": True,
            "item": self._build_item(item, now),
            "transition": self.output_builder.build_transition(transition) if transition else None,
            "reconciliation": self.output_builder.build_reconciliation(report),
        }

    def reconcile_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Run the passive sweep on its own."""
        snapshot = NetworkSnapshot.from_dict(data)
        report = self.lifecycle.reconcile(
            snapshot.sales, snapshot.investments, snapshot.members, self._now(data)
        )
        return self.output_builder.build_reconciliation(report)

    def append_rates_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Append a new rate set to the history; existing entries are untouched."""
        level_rates, personal_rates = self.validator.validate_rates(data.get("rates"))
        snapshot = NetworkSnapshot.from_dict(data)
        history = self.rate_history(snapshot).append(level_rates, personal_rates, self._now(data))
        records = history.to_records()
        return {"entry": records[-1], "rateHistory": records}

    def settle_buyback_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Pay out a sale's buyback."""
        sale_id, paid_date, paid_amount = self.validator.validate_buyback(data.get("buyback"))
        snapshot = NetworkSnapshot.from_dict(data)
        sale = self._find_item(snapshot, "sale", sale_id)
        transition = self.lifecycle.settle_buyback(sale, paid_date, paid_amount)
        return {
            "item": self._build_item(sale, self._now(data)),
            "transition": self.output_builder.build_transition(transition),
        }

    def _build_item(self, item, now: datetime | None) -> Dict[str, Any]:
        pending = self.lifecycle.state_of(item) == PENDING
        return self.output_builder.build_item(
            item,
            remaining=PaymentLedger(item.payments).remaining(item.target_amount),
            days_left=self.lifecycle.days_left(item, now) if pending else None,
        )

    def _find_item(self, snapshot: NetworkSnapshot, kind: str, item_id: str):
        items = snapshot.sales if kind == "sale" else snapshot.investments
        for item in items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"{kind.capitalize()} not found.")

    @staticmethod
    def _now(data: Dict[str, Any]) -> datetime | None:
        if data.get("now"):
            return parse_timestamp(data["now"], strict=True)
        return None


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def process_network_from_dict(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """Process a network snapshot from a Python dict and return a Python dict."""
    processor = NetworkProcessor()
    return processor.process_from_dict(input_data)


def process_network_from_json(json_input: str) -> str:
    """
    Process a network snapshot from a JSON string and return a JSON string.
    Errors are returned as JSON error objects rather than raised.
    """
    import json

    try:
        input_data = json.loads(json_input)
        processor = NetworkProcessor()
        result = processor.process_from_dict(input_data)
        return json.dumps(result, indent=2)

    except ValueError as e:
        error_response = {"error": str(e), "status": "validation_failed"}
        return json.dumps(error_response, indent=2)

    except Exception as e:
        error_response = {"error": str(e), "status": "failed"}
        return json.dumps(error_response, indent=2)
