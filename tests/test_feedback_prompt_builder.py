"""
Tests for FeedbackPromptBuilder
"""

import pytest
import yaml

from docaudit.models.audit import AuditCheck, AuditReport, CheckType
from docaudit.processors.llm.prompt_manager import PromptManager
from docaudit.processors.retry.feedback_prompt_builder import (
    CORRECTION_HINTS,
    FeedbackPromptBuilder,
    build_feedback_prompt,
)


@pytest.fixture
def builder():
    return FeedbackPromptBuilder()


@pytest.fixture
def totals_failure():
    return AuditCheck.failed(
        CheckType.MATH_TOTALS, 'total_amount',
        "Subtotal 100.00 + VAT 21.00 = 121.00, but total is 131.00 (difference 10.00)",
        expected="121.00", actual="131.00",
    )


class TestBuildFeedbackPrompt:
    """Tests for the full correction prompt"""

    def test_header_and_issue(self, builder, totals_failure):
        report = AuditReport.from_checks([totals_failure])
        prompt = builder.build_feedback_prompt(report, attempt=1, max_retries=2)

        assert "CORRECTION REQUIRED (Attempt 1 of 2)" in prompt
        assert "Issue 1: Totals Verification" in prompt
        assert "MATH ERROR in 'total_amount'" in prompt
        assert "Expected value: 121.00" in prompt
        assert "Your extraction: 131.00" in prompt
        assert "IMPORTANT: Focus ONLY on the fields mentioned above" in prompt
        assert "FINAL attempt" not in prompt

    def test_final_attempt(self, builder, totals_failure):
        report = AuditReport.from_checks([totals_failure])
        prompt = builder.build_feedback_prompt(report, attempt=2, max_retries=2)
        assert "This is your FINAL attempt" in prompt

    def test_every_failure_listed_in_order(self, builder, totals_failure):
        checks = [
            totals_failure,
            AuditCheck.passed(CheckType.CHECKSUM_IBAN, 'iban', "ok"),
            AuditCheck.failed(CheckType.CHECKSUM_OGM, 'payment_reference', "bad",
                              expected="65", actual="66"),
            AuditCheck.warning(CheckType.LINE_ITEMS, 'line_items', "No line items extracted"),
        ]
        prompt = builder.build_feedback_prompt(AuditReport.from_checks(checks), 1, 2)

        assert "Issue 1: Totals Verification" in prompt
        assert "Issue 2: OGM Payment Reference" in prompt
        assert "Issue 3: Line Items" in prompt
        assert "Issue 4" not in prompt
        assert prompt.index("Issue 1") < prompt.index("Issue 2") < prompt.index("Issue 3")
        assert "3 issue(s)" in prompt

    def test_no_failures(self, builder):
        prompt = builder.build_feedback_prompt(AuditReport.empty(), 1, 2)
        assert "No specific failures to address." in prompt
        assert "Issue 1" not in prompt

    def test_opens_with_instructions(self, builder, totals_failure):
        """The template's system prompt leads, then the issue list"""
        prompt = builder.build_feedback_prompt(AuditReport.from_checks([totals_failure]), 1, 2)

        assert prompt.startswith("You are re-examining a financial document")
        assert "Correct only the fields" in prompt
        assert prompt.index("Correct only the fields") < prompt.index("CORRECTION REQUIRED")

    def test_template_without_instructions(self, tmp_path, totals_failure):
        (tmp_path / "plain.yaml").write_text(yaml.safe_dump({
            'user_prompt_template': 'Fix attempt {{ attempt }}: {{ issues | length }} issue(s)',
        }))
        builder = FeedbackPromptBuilder(PromptManager(tmp_path), prompt_name='plain')

        prompt = builder.build_feedback_prompt(AuditReport.from_checks([totals_failure]), 1, 2)

        assert prompt == "Fix attempt 1: 1 issue(s)"

    def test_module_level_helper(self, totals_failure):
        prompt = build_feedback_prompt(AuditReport.from_checks([totals_failure]), 1, 3)
        assert "CORRECTION REQUIRED (Attempt 1 of 3)" in prompt


class TestBuildCheckFeedback:
    """Tests for per-check correction text"""

    def test_every_check_type_has_a_hint(self):
        assert set(CORRECTION_HINTS) == set(CheckType)

    def test_ogm_hint(self, builder):
        check = AuditCheck.failed(CheckType.CHECKSUM_OGM, 'payment_reference', "bad",
                                  expected="65", actual="66")
        text = builder.build_check_feedback(check)
        assert "SPECIFIC ACTION: Re-read the digits of the payment reference" in text
        assert "0 / O (zero vs letter O)" in text
        assert "Expected check digits: 65" in text
        assert "Found check digits: 66" in text

    def test_iban_length_note(self, builder):
        check = AuditCheck.failed(CheckType.CHECKSUM_IBAN, 'iban',
                                  "BE IBAN must have 16 characters, found 15",
                                  expected="16", actual="BE6853900754703")
        text = builder.build_check_feedback(check)
        assert "Your extraction: BE6853900754703" in text
        assert "Length: 15 characters (should be 16 for BE IBAN)" in text

    def test_vat_hint_carries_check_hint(self, builder):
        check = AuditCheck.failed(
            CheckType.VAT_RATE, 'vat_amount', "bad rate",
            hint="12% applies to HORECA only from 2026-03-01; the document is dated 2026-02-15",
            expected="6%", actual="12.00%",
        )
        text = builder.build_check_feedback(check)
        assert "Expected rate: 6%" in text
        assert "Implied rate from extraction: 12.00%" in text
        assert text.endswith(
            "Hint: 12% applies to HORECA only from 2026-03-01; the document is dated 2026-02-15"
        )

    def test_line_calculation_field(self, builder):
        check = AuditCheck.failed(CheckType.MATH_LINE_ITEM_CALCULATION, 'line_items[3].total',
                                  "bad", expected="30.00", actual="35.00")
        text = builder.build_check_feedback(check)
        assert text.startswith("LINE CALCULATION ERROR in 'line_items[3].total'")

    def test_warning_label(self, builder):
        check = AuditCheck.warning(CheckType.LINE_ITEMS, 'line_items', "No line items extracted")
        assert builder.build_check_feedback(check).startswith("MISSING INFORMATION (warning)")


class TestCorrectionSummary:
    """Tests for the grouped field summary"""

    def test_grouped_by_type(self):
        failures = [
            AuditCheck.failed(CheckType.MATH_LINE_ITEM_CALCULATION, 'line_items[1].total', "bad"),
            AuditCheck.failed(CheckType.CHECKSUM_IBAN, 'iban', "bad"),
            AuditCheck.failed(CheckType.MATH_LINE_ITEM_CALCULATION, 'line_items[3].total', "bad"),
        ]
        summary = FeedbackPromptBuilder.build_correction_summary(failures)
        assert summary.splitlines() == [
            "Fields requiring correction:",
            "  - Line Item Calculation: line_items[1].total, line_items[3].total",
            "  - IBAN Bank Account: iban",
        ]
