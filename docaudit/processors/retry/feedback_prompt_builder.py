"""
Feedback Prompt Builder

Turns audit failures into a correction prompt for re-extraction. Each
CheckType maps to a fixed hint (where to look, what to check, which OCR
confusions are common), so the failure-to-hint mapping is deterministic
and testable without a model. The surrounding prompt text lives in
prompts/feedback_correction.yaml: its system prompt opens every
correction prompt, followed by the rendered issue list.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from docaudit.models.audit import AuditCheck, AuditReport, AuditStatus, CheckType
from docaudit.processors.llm.prompt_manager import PromptManager
from docaudit.processors.validation.checksum_validator import IBAN_LENGTHS

logger = logging.getLogger(__name__)

FEEDBACK_PROMPT_NAME = 'feedback_correction'
RULE_WIDTH = 70


@dataclass(frozen=True)
class CorrectionHint:
    """Fixed correction guidance for one kind of check"""
    label: str
    action: str
    causes_title: str
    causes: Tuple[str, ...]
    closing: str
    expected_label: Optional[str] = None
    actual_label: str = "Your extraction"
    extra_lines: Tuple[str, ...] = field(default_factory=tuple)


_MATH_HINT = CorrectionHint(
    label="MATH ERROR",
    action="Re-read the TOTALS section and check the arithmetic between subtotal, VAT and total.",
    causes_title="Common causes of math errors:",
    causes=(
        "Misread digits (1/7, 0/6, 5/S)",
        "Decimal point in wrong position (121.00 vs 1210.0)",
        "Missed a negative sign",
        "Confused net/gross amounts",
    ),
    closing="Please re-extract subtotal, VAT amount, and total, paying close attention to each digit.",
    expected_label="Expected value",
)

CORRECTION_HINTS: Dict[CheckType, CorrectionHint] = {
    CheckType.MATH_TOTALS: _MATH_HINT,
    CheckType.MATH_LINE_ITEMS: CorrectionHint(
        label="LINE ITEM SUM MISMATCH",
        action="Re-read the LINE ITEM table and check that the line totals add up to the subtotal.",
        causes_title="Common causes:",
        causes=(
            "A line was skipped or extracted twice",
            "A discount or fee line was left out",
            "A line total was read as its unit price",
        ),
        closing="Please re-extract every line item and the subtotal.",
        expected_label="Expected sum",
        actual_label="Sum of your line items",
    ),
    CheckType.MATH_LINE_ITEM_CALCULATION: CorrectionHint(
        label="LINE CALCULATION ERROR",
        action="Re-read the referenced row and check quantity x unit price = line total.",
        causes_title="Common causes:",
        causes=(
            "Quantity and unit price swapped",
            "Unit price read including VAT while the total excludes it",
            "Misread digits (1/7, 0/6, 5/S)",
        ),
        closing="Please re-extract quantity, unit price and total for that line.",
        expected_label="Expected line total",
    ),
    CheckType.CHECKSUM_OGM: CorrectionHint(
        label="OGM CHECKSUM FAILED",
        action="Re-read the digits of the payment reference in the PAYMENT SECTION carefully.",
        causes_title="Common OCR mistakes in payment references:",
        causes=(
            "0 / O (zero vs letter O)",
            "1 / I / l (one vs letter I vs lowercase L)",
            "8 / B (eight vs letter B)",
            "5 / S (five vs letter S)",
            "6 / G (six vs letter G)",
        ),
        closing="Please re-extract the payment reference, checking each character against the document.",
        expected_label="Expected check digits",
        actual_label="Found check digits",
        extra_lines=("Look for the structured communication (+++XXX/XXXX/XXXXX+++ format).",),
    ),
    CheckType.CHECKSUM_IBAN: CorrectionHint(
        label="IBAN CHECKSUM FAILED",
        action="Re-read the digits of the IBAN in the BANK DETAILS section carefully.",
        causes_title="Common OCR mistakes in IBANs:",
        causes=(
            "0 / O (zero vs letter O)",
            "1 / I (one vs letter I)",
            "Missing or extra characters",
        ),
        closing="Please re-extract the IBAN, counting all characters.",
        extra_lines=(
            "Belgian IBAN format: BE + 2 check digits + 12 digits = 16 characters",
            "Example: BE68 5390 0754 7034",
        ),
    ),
    CheckType.VAT_RATE: CorrectionHint(
        label="UNUSUAL VAT RATE",
        action="Re-check which VAT rate applies and verify the amounts in the TOTALS section.",
        causes_title="This could indicate:",
        causes=(
            "Misread amounts (subtotal, VAT, or total)",
            "Foreign invoice (non-Belgian VAT)",
            "Multiple VAT rates on one invoice (needs itemized extraction)",
        ),
        closing="Please re-check: 1. Subtotal (excl. VAT)  2. VAT amount  3. Total (incl. VAT)",
        expected_label="Expected rate",
        actual_label="Implied rate from extraction",
    ),
    CheckType.LINE_ITEMS: CorrectionHint(
        label="MISSING INFORMATION",
        action="Re-read the document for the referenced information.",
        causes_title="Common causes:",
        causes=(
            "The line-item table continues on another page",
            "The information is printed in the header or footer",
        ),
        closing="Please extract the missing information if it is present on the document.",
    ),
}


def _rule(char: str) -> str:
    return char * RULE_WIDTH


class FeedbackPromptBuilder:
    """
    Builds specific, actionable correction prompts from audit failures.

    Usage:
        builder = FeedbackPromptBuilder()
        prompt = builder.build_feedback_prompt(report, attempt=1, max_retries=2)
    """

    def __init__(self, prompt_manager: Optional[PromptManager] = None,
                 prompt_name: str = FEEDBACK_PROMPT_NAME):
        self.prompt_manager = prompt_manager or PromptManager()
        self.prompt_name = prompt_name

    def build_feedback_prompt(self, report: AuditReport, attempt: int, max_retries: int) -> str:
        """
        Build the correction prompt for one retry attempt.

        Args:
            report: Audit report of the current extraction
            attempt: Current attempt number (1-based)
            max_retries: Retry budget, used to flag the final attempt

        Returns:
            Instructions followed by every critical failure and warning
        """
        failures = report.retryable_failures
        issues = [
            {
                'title': self._title(check),
                'body': self.build_check_feedback(check),
            }
            for check in failures
        ]

        prompt = self.prompt_manager.get_user_prompt(
            self.prompt_name,
            rule=_rule('='),
            thin_rule=_rule('-'),
            attempt=attempt,
            max_retries=max_retries,
            issues=issues,
            final_attempt=attempt >= max_retries,
        )
        instructions = self.prompt_manager.get_system_prompt(self.prompt_name).strip()
        if instructions:
            prompt = f"{instructions}\n\n{prompt}"
        logger.debug(f"Built feedback prompt for attempt {attempt}/{max_retries} "
                     f"with {len(issues)} issue(s)")
        return prompt

    def build_check_feedback(self, check: AuditCheck) -> str:
        """Correction text for a single failing or warning check"""
        hint = CORRECTION_HINTS[check.type]
        label = hint.label if check.status != AuditStatus.WARNING else f"{hint.label} (warning)"

        lines = [
            f"{label} in '{check.field}'",
            "",
            f"Problem: {check.message}",
            "",
            f"SPECIFIC ACTION: {hint.action}",
        ]
        lines.extend(hint.extra_lines)
        lines.append("")

        if hint.expected_label and check.expected is not None and check.actual is not None:
            lines.append(f"{hint.expected_label}: {check.expected}")
            lines.append(f"{hint.actual_label}: {check.actual}")
            lines.append("")
        elif check.actual is not None:
            lines.append(f"{hint.actual_label}: {check.actual}")
            length_note = self._iban_length_note(check)
            if length_note:
                lines.append(length_note)
            lines.append("")

        lines.append(hint.causes_title)
        lines.extend(f"  - {cause}" for cause in hint.causes)
        lines.append("")
        lines.append(hint.closing)

        if check.hint:
            lines.append("")
            lines.append(f"Hint: {check.hint}")

        return '\n'.join(lines)

    @staticmethod
    def build_correction_summary(failures: List[AuditCheck]) -> str:
        """Fields requiring correction, grouped by check type"""
        fields_by_type: Dict[CheckType, List[str]] = {}
        for check in failures:
            fields = fields_by_type.setdefault(check.type, [])
            if check.field not in fields:
                fields.append(check.field)

        lines = ["Fields requiring correction:"]
        lines.extend(
            f"  - {check_type.display_name}: {', '.join(fields)}"
            for check_type, fields in fields_by_type.items()
        )
        return '\n'.join(lines)

    @staticmethod
    def _title(check: AuditCheck) -> str:
        return check.type.display_name

    @staticmethod
    def _iban_length_note(check: AuditCheck) -> Optional[str]:
        if check.type != CheckType.CHECKSUM_IBAN or not check.actual:
            return None
        compact = check.actual.replace(' ', '').upper()
        expected = IBAN_LENGTHS.get(compact[:2])
        if expected is None or len(compact) == expected:
            return None
        return f"Length: {len(compact)} characters (should be {expected} for {compact[:2]} IBAN)"


_default_builder: Optional[FeedbackPromptBuilder] = None


def build_feedback_prompt(report: AuditReport, attempt: int, max_retries: int) -> str:
    """Build a feedback prompt with the packaged template"""
    global _default_builder

    if _default_builder is None:
        _default_builder = FeedbackPromptBuilder()

    return _default_builder.build_feedback_prompt(report, attempt, max_retries)
