"""
Retry Models

Configuration for the feedback-driven retry loop and its terminal result.
RetryResult is a tagged union of three pydantic models discriminated by
`kind`, so a result serializes to JSON and can be rebuilt with
parse_retry_result().
"""

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing_extensions import Annotated, Literal

from docaudit.models.audit import AuditCheck, AuditReport

T = TypeVar('T')


class RetryConfig(BaseModel):
    """Retry loop configuration"""
    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(2, ge=0, description="Hard ceiling on re-extraction calls")
    retry_on_warnings: bool = Field(False, description="Treat warnings as retryable")
    attempt_timeout_seconds: Optional[float] = Field(
        None, gt=0, description="Bound on a single re-extraction call"
    )

    def needs_retry(self, report: AuditReport) -> bool:
        """True when the report still has something this config retries on"""
        if report.critical_failures:
            return True
        return self.retry_on_warnings and bool(report.warnings)


class NoRetryNeeded(BaseModel):
    """Initial audit passed or had nothing retryable"""
    model_config = ConfigDict(frozen=True)

    kind: Literal['no_retry_needed'] = 'no_retry_needed'

    @property
    def is_success(self) -> bool:
        return True


class CorrectedOnRetry(BaseModel, Generic[T]):
    """A re-extraction cleared every retryable failure"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal['corrected_on_retry'] = 'corrected_on_retry'
    data: T
    attempt: int = Field(..., ge=1)
    corrected_fields: List[str] = Field(default_factory=list)
    original_failures: List[AuditCheck] = Field(default_factory=list)
    final_report: Optional[AuditReport] = None

    @property
    def is_success(self) -> bool:
        return True


class StillFailing(BaseModel, Generic[T]):
    """Retry budget exhausted; carries the last best-effort extraction"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal['still_failing'] = 'still_failing'
    data: T
    attempts: int = Field(..., ge=0)
    remaining_failures: List[AuditCheck] = Field(default_factory=list)
    final_report: Optional[AuditReport] = None

    @property
    def is_success(self) -> bool:
        return False


RetryResult = Union[NoRetryNeeded, CorrectedOnRetry[T], StillFailing[T]]


def parse_retry_result(payload: Dict[str, Any], data_type: Type[Any] = Any) -> RetryResult:
    """
    Rebuild a RetryResult from its JSON form.

    Args:
        payload: Output of model_dump(mode="json") on any variant
        data_type: Type of the carried extraction (e.g. ExtractedInvoiceData)

    Returns:
        The matching variant, with `data` validated as data_type
    """
    adapter = TypeAdapter(
        Annotated[
            Union[NoRetryNeeded, CorrectedOnRetry[data_type], StillFailing[data_type]],
            Field(discriminator='kind'),
        ]
    )
    return adapter.validate_python(payload)


class RetryAttemptOutcome(str, Enum):
    """What happened on a single re-extraction attempt"""
    CORRECTED = "corrected"
    STILL_FAILING = "still_failing"
    NO_RESULT = "no_result"
    ERROR = "error"
    TIMEOUT = "timeout"


class RetryAttempt(BaseModel):
    """Per-attempt record kept for observability"""
    attempt: int
    outcome: RetryAttemptOutcome
    failure_count: Optional[int] = None
    error: Optional[str] = None
