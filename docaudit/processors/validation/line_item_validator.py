"""
Line Item Validator

Runs the line-item math for any document type through the LineItemView
protocol: the sum of lines against the document target, then each row's
quantity x unit price. Informational "included fee" lines (recycling
contributions and the like) are already part of other lines, so they are
left out of the sum but still checked individually.
"""

import logging
from typing import List, Optional, Sequence

from docaudit.models.audit import AuditCheck, CheckType
from docaudit.models.documents import LineItemView
from docaudit.models.money import Money
from docaudit.processors.validation.math_validator import MathValidator

logger = logging.getLogger(__name__)

INCLUDED_FEE_PREFIXES = ['incl ', 'incl.', 'included ', 'inclusief ']
INCLUDED_FEE_MARKERS = ['recupel', 'auvibel']


class LineItemValidator:
    """Shared line-item checks across document types"""

    def __init__(
        self,
        math_validator: Optional[MathValidator] = None,
        included_fee_prefixes: Optional[Sequence[str]] = None,
        included_fee_markers: Optional[Sequence[str]] = None
    ):
        self.math_validator = math_validator or MathValidator()
        self.included_fee_prefixes = [
            p.lower() for p in (INCLUDED_FEE_PREFIXES if included_fee_prefixes is None
                                else included_fee_prefixes)
        ]
        self.included_fee_markers = [
            m.lower() for m in (INCLUDED_FEE_MARKERS if included_fee_markers is None
                                else included_fee_markers)
        ]

    def is_included_fee(self, item: LineItemView) -> bool:
        """True for informational lines already counted elsewhere"""
        normalized = (item.get_description() or '').lower()
        normalized = normalized.replace('\n', ' ').replace('\t', ' ').strip()
        if any(normalized.startswith(prefix) for prefix in self.included_fee_prefixes):
            return True
        return any(marker in normalized for marker in self.included_fee_markers)

    def validate(
        self,
        items: Sequence[LineItemView],
        target: Optional[Money],
        expect_items: bool = False,
        exclude_included_fees: bool = True,
        target_name: str = 'subtotal',
        field: str = 'line_items'
    ) -> List[AuditCheck]:
        """
        Audit a document's line items.

        Args:
            items: Line items of any document type
            target: Amount the (non-excluded) line totals must sum to
            expect_items: Warn when the list is empty
            exclude_included_fees: Drop included-fee lines from the sum
            target_name: Name of the target used in messages

        Returns:
            Ordered checks: the sum check first, then one check per row
        """
        if not items:
            if expect_items:
                return [AuditCheck.warning(
                    CheckType.LINE_ITEMS, field,
                    "No line items extracted",
                    hint="Extract every row of the line-item table",
                )]
            return []

        summed = [
            item for item in items
            if not (exclude_included_fees and self.is_included_fee(item))
        ]
        excluded = len(items) - len(summed)
        if excluded:
            logger.debug(f"Excluded {excluded} included-fee line(s) from the {target_name} sum")

        checks: List[AuditCheck] = []
        totals = [t for t in (item.get_net_amount() for item in summed) if t is not None]
        if totals:
            checks.append(self.math_validator.verify_line_items(
                totals, target, field=field, target_name=target_name
            ))

        checks.extend(
            self.math_validator.verify_line_item_calculation(
                item.get_quantity(),
                item.get_unit_price(),
                item.get_net_amount(),
                index,
            )
            for index, item in enumerate(items, start=1)
        )
        return checks
