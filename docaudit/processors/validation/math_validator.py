"""
Math Validator

Arithmetic consistency checks over extracted amounts. Tolerances are
absolute, in minor units, because rounding differences in VAT math are
cent-level regardless of the invoice size.
"""

import logging
import math
from typing import List, Optional

from docaudit.models.audit import AuditCheck, CheckType
from docaudit.models.money import Money

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_MINOR = 1


class MathValidator:
    """
    Verifies totals, line-item sums and per-line calculations.

    Missing inputs produce INCOMPLETE checks so the retry loop can tell
    "wrong" apart from "unknown".

    Usage:
        validator = MathValidator(tolerance_minor=2)
        check = validator.verify_totals(subtotal, vat, total)
    """

    def __init__(self, tolerance_minor: int = DEFAULT_TOLERANCE_MINOR,
                 line_tolerance_minor: Optional[int] = None):
        if tolerance_minor < 0:
            raise ValueError("tolerance_minor must be >= 0")
        self.tolerance_minor = tolerance_minor
        self.line_tolerance_minor = (
            tolerance_minor if line_tolerance_minor is None else line_tolerance_minor
        )
        if self.line_tolerance_minor < 0:
            raise ValueError("line_tolerance_minor must be >= 0")

    def verify_totals(
        self,
        subtotal: Optional[Money],
        vat: Optional[Money],
        total: Optional[Money],
        field: str = 'total_amount'
    ) -> AuditCheck:
        """Check subtotal + VAT = total"""
        missing = [
            name for name, value in (('subtotal', subtotal), ('VAT amount', vat), ('total', total))
            if value is None
        ]
        if missing:
            return AuditCheck.incomplete(
                CheckType.MATH_TOTALS, field,
                f"Cannot verify totals, missing: {', '.join(missing)}"
            )

        expected = subtotal + vat
        if expected.equals_within_tolerance(total, self.tolerance_minor):
            return AuditCheck.passed(
                CheckType.MATH_TOTALS, field,
                f"Subtotal {subtotal} + VAT {vat} = total {total}"
            )

        difference = total - expected
        logger.debug(f"Totals mismatch: {subtotal} + {vat} != {total} (diff {difference})")
        return AuditCheck.failed(
            CheckType.MATH_TOTALS, field,
            f"Subtotal {subtotal} + VAT {vat} = {expected}, but total is {total} "
            f"(difference {difference})",
            hint="Re-read subtotal, VAT amount and total in the totals section",
            expected=str(expected),
            actual=str(total),
        )

    def verify_line_items(
        self,
        line_item_totals: List[Money],
        subtotal: Optional[Money],
        field: str = 'line_items',
        target_name: str = 'subtotal'
    ) -> AuditCheck:
        """Check that the line totals sum to the subtotal"""
        if not line_item_totals:
            return AuditCheck.incomplete(
                CheckType.MATH_LINE_ITEMS, field, "No line item totals to sum"
            )
        if subtotal is None:
            return AuditCheck.incomplete(
                CheckType.MATH_LINE_ITEMS, field,
                f"Cannot compare line items, missing: {target_name}"
            )

        line_sum = Money.sum(line_item_totals)
        if line_sum.equals_within_tolerance(subtotal, self.tolerance_minor):
            return AuditCheck.passed(
                CheckType.MATH_LINE_ITEMS, field,
                f"{len(line_item_totals)} line item(s) sum to {target_name} {subtotal}"
            )

        difference = line_sum - subtotal
        return AuditCheck.failed(
            CheckType.MATH_LINE_ITEMS, field,
            f"Line items sum to {line_sum} but {target_name} is {subtotal} "
            f"(difference {difference})",
            hint="A line may be missing, duplicated or misread",
            expected=str(subtotal),
            actual=str(line_sum),
        )

    def verify_line_item_calculation(
        self,
        quantity: Optional[float],
        unit_price: Optional[Money],
        line_total: Optional[Money],
        line_index: int
    ) -> AuditCheck:
        """
        Check quantity x unit price = line total for one row.

        Args:
            quantity: Possibly fractional quantity (hours, kg)
            unit_price: Price per unit
            line_total: Stated total of the row
            line_index: 1-based row number, embedded in the check field

        Returns:
            AuditCheck targeting line_items[<line_index>].total
        """
        field = f"line_items[{line_index}].total"

        if quantity is None or unit_price is None or not math.isfinite(quantity):
            return AuditCheck.incomplete(
                CheckType.MATH_LINE_ITEM_CALCULATION, field,
                f"Line {line_index}: quantity or unit price missing"
            )
        if line_total is None:
            return AuditCheck.incomplete(
                CheckType.MATH_LINE_ITEM_CALCULATION, field,
                f"Line {line_index}: line total missing"
            )

        expected = unit_price.times_quantity(quantity)
        if expected.equals_within_tolerance(line_total, self.line_tolerance_minor):
            return AuditCheck.passed(
                CheckType.MATH_LINE_ITEM_CALCULATION, field,
                f"Line {line_index}: {quantity:g} x {unit_price} = {line_total}"
            )

        return AuditCheck.failed(
            CheckType.MATH_LINE_ITEM_CALCULATION, field,
            f"Line {line_index}: {quantity:g} x {unit_price} = {expected}, "
            f"but line total is {line_total}",
            hint=f"Re-read quantity, unit price and total on line {line_index}",
            expected=str(expected),
            actual=str(line_total),
        )
