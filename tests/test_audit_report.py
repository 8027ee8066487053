"""
Tests for AuditCheck and AuditReport aggregation
"""

import pytest
from pydantic import ValidationError

from docaudit.models.audit import AuditCheck, AuditReport, AuditStatus, CheckType


def make_checks():
    return [
        AuditCheck.passed(CheckType.MATH_TOTALS, 'total_amount', "ok"),
        AuditCheck.failed(CheckType.CHECKSUM_IBAN, 'iban', "IBAN checksum invalid"),
        AuditCheck.warning(CheckType.LINE_ITEMS, 'line_items', "No line items extracted"),
        AuditCheck.incomplete(CheckType.CHECKSUM_OGM, 'payment_reference', "missing"),
        AuditCheck.failed(CheckType.VAT_RATE, 'total_vat_amount', "bad rate"),
    ]


class TestAuditReport:
    """Tests for report partitioning and verdict"""

    def test_partition(self):
        report = AuditReport.from_checks(make_checks())

        assert report.overall_status == AuditStatus.FAILED
        assert not report.is_passed
        assert report.passed_count == 1
        assert report.failed_count == 2
        assert report.warning_count == 1
        assert report.incomplete_count == 1
        assert [c.field for c in report.critical_failures] == ['iban', 'total_vat_amount']
        assert len(report.checks) == 5

    def test_warnings_do_not_fail(self):
        checks = [
            AuditCheck.passed(CheckType.MATH_TOTALS, 'total_amount', "ok"),
            AuditCheck.warning(CheckType.LINE_ITEMS, 'line_items', "none"),
        ]
        report = AuditReport.from_checks(checks)
        assert report.is_passed
        assert report.warning_count == 1

    def test_incomplete_only_passes(self):
        """Nothing verifiable is not the same as wrong"""
        report = AuditReport.from_checks([
            AuditCheck.incomplete(CheckType.CHECKSUM_IBAN, 'iban', "missing"),
        ])
        assert report.is_passed
        assert report.passed_count == 0
        assert report.failed_count == 0

    def test_empty_report(self):
        report = AuditReport.empty()
        assert report.is_passed
        assert report.checks == []

    def test_inconsistent_report_rejected(self):
        failure = AuditCheck.failed(CheckType.MATH_TOTALS, 'total_amount', "bad")
        with pytest.raises(ValidationError):
            AuditReport(overall_status=AuditStatus.PASSED, critical_failures=[failure])
        with pytest.raises(ValidationError):
            AuditReport(overall_status=AuditStatus.FAILED)

    def test_failure_fields(self):
        checks = make_checks() + [
            AuditCheck.failed(CheckType.MATH_LINE_ITEM_CALCULATION, 'iban', "duplicate field"),
        ]
        report = AuditReport.from_checks(checks)
        assert report.failure_fields() == ['iban', 'total_vat_amount', 'line_items']
        assert report.failure_fields(include_warnings=False) == ['iban', 'total_vat_amount']

    def test_retryable_failures(self):
        report = AuditReport.from_checks(make_checks())
        assert [c.status for c in report.retryable_failures] == [
            AuditStatus.FAILED, AuditStatus.FAILED, AuditStatus.WARNING
        ]

    def test_json_round_trip(self):
        report = AuditReport.from_checks(make_checks())
        restored = AuditReport.model_validate_json(report.model_dump_json())
        assert restored == report

    def test_summary(self):
        summary = AuditReport.from_checks(make_checks()).summary()
        assert summary == {
            'overall_status': 'FAILED',
            'checks': 5,
            'passed': 1,
            'failed': 2,
            'warnings': 1,
            'incomplete': 1,
        }


class TestAuditCheck:
    """Tests for individual checks"""

    def test_checks_are_immutable(self):
        check = AuditCheck.passed(CheckType.MATH_TOTALS, 'total_amount', "ok")
        with pytest.raises(ValidationError):
            check.status = AuditStatus.FAILED

    def test_display_names(self):
        assert CheckType.CHECKSUM_OGM.display_name == "OGM Payment Reference"
        assert CheckType.MATH_TOTALS.is_math
        assert not CheckType.VAT_RATE.is_math

    def test_serialized_values(self):
        check = AuditCheck.failed(CheckType.VAT_RATE, 'vat_amount', "bad", expected="21%", actual="22.00%")
        data = check.model_dump(mode='json')
        assert data['type'] == 'vat_rate'
        assert data['status'] == 'FAILED'
        assert data['expected'] == '21%'
