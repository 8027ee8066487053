"""
Audit Data Models

AuditCheck is a single, immutable verification result produced by one
validator invocation. AuditReport aggregates a list of checks into the
verdict used for self-correction and auto-confirm routing.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CheckType(str, Enum):
    """Kind of verification an AuditCheck represents"""
    MATH_TOTALS = "math_totals"
    MATH_LINE_ITEMS = "math_line_items"
    MATH_LINE_ITEM_CALCULATION = "math_line_item_calculation"
    CHECKSUM_IBAN = "checksum_iban"
    CHECKSUM_OGM = "checksum_ogm"
    VAT_RATE = "vat_rate"
    LINE_ITEMS = "line_items"

    @property
    def display_name(self) -> str:
        return CHECK_TYPE_DISPLAY_NAMES[self]

    @property
    def is_math(self) -> bool:
        return self in (
            CheckType.MATH_TOTALS,
            CheckType.MATH_LINE_ITEMS,
            CheckType.MATH_LINE_ITEM_CALCULATION,
        )


CHECK_TYPE_DISPLAY_NAMES = {
    CheckType.MATH_TOTALS: "Totals Verification",
    CheckType.MATH_LINE_ITEMS: "Line Items Sum",
    CheckType.MATH_LINE_ITEM_CALCULATION: "Line Item Calculation",
    CheckType.CHECKSUM_IBAN: "IBAN Bank Account",
    CheckType.CHECKSUM_OGM: "OGM Payment Reference",
    CheckType.VAT_RATE: "VAT Rate",
    CheckType.LINE_ITEMS: "Line Items",
}


class AuditStatus(str, Enum):
    """Outcome of a single check, or of a whole report"""
    PASSED = "PASSED"
    FAILED = "FAILED"
    WARNING = "WARNING"
    INCOMPLETE = "INCOMPLETE"


class AuditCheck(BaseModel):
    """
    One verification result.

    INCOMPLETE means the validator could not evaluate because input data
    was missing; it is not a failure. `expected`/`actual` carry the values
    a correction prompt can quote back to the model.
    """
    model_config = ConfigDict(frozen=True)

    type: CheckType
    field: str
    status: AuditStatus
    message: str
    hint: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None

    @classmethod
    def passed(cls, type: CheckType, field: str, message: str, **kwargs: Any) -> 'AuditCheck':
        return cls(type=type, field=field, status=AuditStatus.PASSED, message=message, **kwargs)

    @classmethod
    def failed(cls, type: CheckType, field: str, message: str, **kwargs: Any) -> 'AuditCheck':
        return cls(type=type, field=field, status=AuditStatus.FAILED, message=message, **kwargs)

    @classmethod
    def warning(cls, type: CheckType, field: str, message: str, **kwargs: Any) -> 'AuditCheck':
        return cls(type=type, field=field, status=AuditStatus.WARNING, message=message, **kwargs)

    @classmethod
    def incomplete(cls, type: CheckType, field: str, message: str, **kwargs: Any) -> 'AuditCheck':
        return cls(type=type, field=field, status=AuditStatus.INCOMPLETE, message=message, **kwargs)

    @property
    def is_failure(self) -> bool:
        return self.status == AuditStatus.FAILED

    @property
    def is_warning(self) -> bool:
        return self.status == AuditStatus.WARNING


class AuditReport(BaseModel):
    """
    Aggregate verdict over a list of checks.

    Invariant: overall_status is PASSED iff there are no critical failures.
    Warnings never change overall_status; INCOMPLETE checks stay in
    `checks` for display but count as neither failures nor warnings.

    Build reports with AuditReport.from_checks().
    """
    model_config = ConfigDict(frozen=True)

    checks: List[AuditCheck] = Field(default_factory=list)
    overall_status: AuditStatus = AuditStatus.PASSED
    passed_count: int = 0
    failed_count: int = 0
    critical_failures: List[AuditCheck] = Field(default_factory=list)
    warnings: List[AuditCheck] = Field(default_factory=list)

    @classmethod
    def from_checks(cls, checks: List[AuditCheck]) -> 'AuditReport':
        """Partition checks by status and derive the overall verdict"""
        checks = list(checks)
        critical_failures = [c for c in checks if c.status == AuditStatus.FAILED]
        warnings = [c for c in checks if c.status == AuditStatus.WARNING]

        return cls(
            checks=checks,
            overall_status=AuditStatus.PASSED if not critical_failures else AuditStatus.FAILED,
            passed_count=sum(1 for c in checks if c.status == AuditStatus.PASSED),
            failed_count=len(critical_failures),
            critical_failures=critical_failures,
            warnings=warnings,
        )

    @classmethod
    def empty(cls) -> 'AuditReport':
        return cls.from_checks([])

    @model_validator(mode='after')
    def check_overall_status(self) -> 'AuditReport':
        """Reject reports whose verdict disagrees with their failures"""
        expected = AuditStatus.PASSED if not self.critical_failures else AuditStatus.FAILED
        if self.overall_status != expected:
            raise ValueError(
                f"overall_status {self.overall_status.value} is inconsistent with "
                f"{len(self.critical_failures)} critical failure(s)"
            )
        return self

    @property
    def is_passed(self) -> bool:
        return self.overall_status == AuditStatus.PASSED

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def incomplete_checks(self) -> List[AuditCheck]:
        return [c for c in self.checks if c.status == AuditStatus.INCOMPLETE]

    @property
    def incomplete_count(self) -> int:
        return len(self.incomplete_checks)

    @property
    def retryable_failures(self) -> List[AuditCheck]:
        """Critical failures followed by warnings, in check order"""
        return self.critical_failures + self.warnings

    def failure_fields(self, include_warnings: bool = True) -> List[str]:
        """Distinct fields of failing checks, preserving order"""
        source = self.retryable_failures if include_warnings else self.critical_failures
        fields: List[str] = []
        for check in source:
            if check.field not in fields:
                fields.append(check.field)
        return fields

    def summary(self) -> Dict[str, Any]:
        """Compact counts for logging"""
        return {
            'overall_status': self.overall_status.value,
            'checks': len(self.checks),
            'passed': self.passed_count,
            'failed': self.failed_count,
            'warnings': self.warning_count,
            'incomplete': self.incomplete_count,
        }
