"""Payslip item builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal

from nomina.calculators.types import ItemCandidate, ItemType


class LineItemBuilder:
    """Builds payslip items with deterministic hashing.

    Sign conventions (non-negotiable):
    - earning: positive
    - deduction (employee): negative
    - employer_contribution: positive (liability, not part of net)

    Rounding:
    - Every item is rounded to cents (ROUND_HALF_UP) when it is built, so
      totals are sums of already-rounded parts and don't depend on order.
    """

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def percentage_of(base: Decimal, pct: Decimal) -> Decimal:
        """Apply a fractional percentage to a base, rounded to cents."""
        return LineItemBuilder.round_to_cents(base * pct)

    @staticmethod
    def compute_line_hash(item: ItemCandidate) -> str:
        """Compute deterministic hash for an item.

        The hash is based on the canonical representation of defining fields,
        ensuring identical inputs produce identical hashes.
        """
        canonical = item.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def create_earning(code: str, name: str, amount: Decimal) -> ItemCandidate:
        """Create an earning item (positive amount)."""
        return ItemCandidate(
            item_type=ItemType.EARNING,
            code=code,
            name=name,
            amount=LineItemBuilder.round_to_cents(abs(amount)),  # Ensure positive
        )

    @staticmethod
    def create_deduction(
        code: str, name: str, base: Decimal, pct: Decimal
    ) -> ItemCandidate:
        """Create an employee deduction (negative amount) as pct of base."""
        return ItemCandidate(
            item_type=ItemType.DEDUCTION,
            code=code,
            name=name,
            amount=-LineItemBuilder.percentage_of(base, pct),  # Ensure negative
            base_amount=base,
            percentage=pct,
        )

    @staticmethod
    def create_employer_contribution(
        code: str, name: str, base: Decimal, pct: Decimal
    ) -> ItemCandidate:
        """Create an employer contribution (positive amount, liability)."""
        return ItemCandidate(
            item_type=ItemType.EMPLOYER_CONTRIBUTION,
            code=code,
            name=name,
            amount=LineItemBuilder.percentage_of(base, pct),
            base_amount=base,
            percentage=pct,
        )

    @staticmethod
    def calculate_gross(items: list[ItemCandidate]) -> Decimal:
        """GROSS = sum of earnings."""
        gross = Decimal("0")
        for item in items:
            if item.item_type == ItemType.EARNING:
                gross += item.amount
        return LineItemBuilder.round_to_cents(gross)

    @staticmethod
    def calculate_deductions(items: list[ItemCandidate]) -> Decimal:
        """Total employee deductions as a positive amount."""
        total = Decimal("0")
        for item in items:
            if item.item_type == ItemType.DEDUCTION:
                total += -item.amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def calculate_net(items: list[ItemCandidate]) -> Decimal:
        """NET = sum(earnings) + sum(deductions).

        Employer contributions are excluded (they are a liability).
        """
        net = Decimal("0")
        for item in items:
            if item.item_type != ItemType.EMPLOYER_CONTRIBUTION:
                net += item.amount
        return LineItemBuilder.round_to_cents(net)

    @staticmethod
    def calculate_employer_contributions(items: list[ItemCandidate]) -> Decimal:
        total = Decimal("0")
        for item in items:
            if item.item_type == ItemType.EMPLOYER_CONTRIBUTION:
                total += item.amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def amount_for(items: list[ItemCandidate], code: str) -> Decimal:
        """Unsigned amount of the item with a given code (0 if absent)."""
        for item in items:
            if item.code == code:
                return abs(item.amount)
        return Decimal("0.00")

    @staticmethod
    def validate_signs(items: list[ItemCandidate]) -> list[str]:
        """Validate that all items have correct signs.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []

        for i, item in enumerate(items):
            if item.item_type in (ItemType.EARNING, ItemType.EMPLOYER_CONTRIBUTION):
                if item.amount < 0:
                    errors.append(
                        f"Item {i} ({item.code}) has negative amount {item.amount}, expected positive"
                    )
            elif item.item_type == ItemType.DEDUCTION:
                if item.amount > 0:
                    errors.append(
                        f"Item {i} ({item.code}) has positive amount {item.amount}, expected negative"
                    )

        return errors
