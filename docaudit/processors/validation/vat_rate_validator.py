"""
VAT Rate Validator

Checks that the VAT rate implied by the extracted amounts is one the
jurisdiction allows. The rate table, per-category overrides and dated
rule changes are an explicit VatJurisdiction value handed to the
validator, so tests can swap in other countries or cutover dates.
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docaudit.models.audit import AuditCheck, CheckType
from docaudit.models.documents import ExpenseCategory
from docaudit.models.money import Money

logger = logging.getLogger(__name__)

BELGIAN_HORECA_CUTOVER = date(2026, 3, 1)


class VatRateRule(BaseModel):
    """An extra rate that becomes valid for a category from a given date"""
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    rate: float = Field(..., ge=0, le=100)
    effective_from: date

    def applies(self, category: Optional[ExpenseCategory], document_date: Optional[date]) -> bool:
        # Unknown dates never activate a dated rule
        if category != self.category or document_date is None:
            return False
        return document_date >= self.effective_from


class VatJurisdiction(BaseModel):
    """Valid VAT rates of one country"""
    model_config = ConfigDict(frozen=True)

    country_code: str = Field(..., min_length=2, max_length=2)
    standard_rates: List[float] = Field(..., min_length=1)
    category_rates: Dict[ExpenseCategory, List[float]] = Field(default_factory=dict)
    rate_rules: List[VatRateRule] = Field(default_factory=list)
    rate_tolerance: float = Field(0.5, ge=0, description="Percentage points")

    @field_validator('country_code')
    @classmethod
    def upper_country_code(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def belgium(cls) -> 'VatJurisdiction':
        """Belgian rates, with 12% Horeca from March 2026"""
        return cls(
            country_code='BE',
            standard_rates=[0, 6, 12, 21],
            category_rates={ExpenseCategory.HORECA: [0, 6, 21]},
            rate_rules=[
                VatRateRule(
                    category=ExpenseCategory.HORECA,
                    rate=12,
                    effective_from=BELGIAN_HORECA_CUTOVER,
                ),
            ],
        )

    def applicable_rates(
        self,
        category: Optional[ExpenseCategory] = None,
        document_date: Optional[date] = None
    ) -> List[float]:
        """Sorted rates valid for a category on a date"""
        rates = set(self.category_rates.get(category, self.standard_rates)
                    if category is not None else self.standard_rates)
        for rule in self.rate_rules:
            if rule.applies(category, document_date):
                rates.add(rule.rate)
        return sorted(rates)

    def pending_rule(
        self,
        rate: float,
        category: Optional[ExpenseCategory],
        document_date: Optional[date]
    ) -> Optional[VatRateRule]:
        """Rule that would allow `rate` for the category but is not active on the date"""
        for rule in self.rate_rules:
            if (rule.category == category
                    and abs(rule.rate - rate) <= self.rate_tolerance
                    and not rule.applies(category, document_date)):
                return rule
        return None


def _format_rate(rate: float) -> str:
    return f"{rate:g}%"


class VatRateValidator:
    """
    Verifies the implied VAT rate against a jurisdiction.

    0% (exempt / reverse charge) is a regular valid rate.

    Usage:
        validator = VatRateValidator(VatJurisdiction.belgium())
        check = validator.verify(subtotal, vat, date(2026, 3, 1), ExpenseCategory.HORECA)
    """

    def __init__(self, jurisdiction: Optional[VatJurisdiction] = None):
        self.jurisdiction = jurisdiction or VatJurisdiction.belgium()

    @staticmethod
    def implied_rate(subtotal: Money, vat_amount: Money) -> Decimal:
        """VAT / subtotal x 100, rounded to 2 decimals"""
        rate = Decimal(vat_amount.minor) * 100 / Decimal(subtotal.minor)
        return rate.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def verify(
        self,
        subtotal: Optional[Money],
        vat_amount: Optional[Money],
        document_date: Optional[date] = None,
        category: Optional[ExpenseCategory] = None,
        field: str = 'vat_amount'
    ) -> AuditCheck:
        """Check the implied rate is in the applicable set"""
        if subtotal is None or vat_amount is None:
            return AuditCheck.incomplete(
                CheckType.VAT_RATE, field,
                "Cannot verify VAT rate without subtotal and VAT amount"
            )
        if subtotal.is_zero:
            return AuditCheck.incomplete(
                CheckType.VAT_RATE, field,
                "Cannot verify VAT rate on a zero subtotal"
            )

        implied = self.implied_rate(subtotal, vat_amount)
        rates = self.jurisdiction.applicable_rates(category, document_date)
        tolerance = Decimal(str(self.jurisdiction.rate_tolerance))

        nearest = min(rates, key=lambda r: abs(Decimal(str(r)) - implied))
        distance = abs(Decimal(str(nearest)) - implied)

        if distance <= tolerance:
            logger.debug(f"VAT rate {implied}% matches {_format_rate(nearest)}")
            return AuditCheck.passed(
                CheckType.VAT_RATE, field,
                f"Implied VAT rate {implied}% matches {_format_rate(nearest)}"
            )

        hint = "Re-check which VAT rate applies and re-read subtotal and VAT amount"
        rule = self.jurisdiction.pending_rule(float(implied), category, document_date)
        if rule is not None:
            when = document_date.isoformat() if document_date else "an unknown date"
            hint = (
                f"{_format_rate(rule.rate)} applies to {rule.category.value} only from "
                f"{rule.effective_from.isoformat()}; the document is dated {when}"
            )

        valid = ', '.join(_format_rate(r) for r in rates)
        return AuditCheck.failed(
            CheckType.VAT_RATE, field,
            f"Implied VAT rate {implied}% is not a valid {self.jurisdiction.country_code} rate "
            f"({valid}); nearest valid rate is {_format_rate(nearest)}",
            hint=hint,
            expected=_format_rate(nearest),
            actual=f"{implied}%",
        )
