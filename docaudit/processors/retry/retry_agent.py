"""
Feedback-Driven Retry Agent

Re-invokes extraction with a prompt naming the previous attempt's audit
failures, re-audits the result and stops on success or when the retry
budget is spent. Attempts run strictly one after another because each
prompt is built from the previous attempt's audit.

A re-extraction call that raises, is cancelled, times out or returns
nothing only costs its attempt; the carried-forward extraction and
report stay as they were. Cancelling the agent itself still propagates.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar, Union

from docaudit.models.audit import AuditReport
from docaudit.models.retry import (
    CorrectedOnRetry,
    NoRetryNeeded,
    RetryAttempt,
    RetryAttemptOutcome,
    RetryConfig,
    RetryResult,
    StillFailing,
)
from docaudit.processors.retry.feedback_prompt_builder import FeedbackPromptBuilder

logger = logging.getLogger(__name__)

T = TypeVar('T')

# (images, feedback_prompt) -> extraction or None; may be a coroutine function
Extractor = Callable[[Sequence[Any], Optional[str]], Union[Optional[T], Awaitable[Optional[T]]]]
Validator = Callable[[T], AuditReport]


class FeedbackDrivenRetryAgent(Generic[T]):
    """
    Bounded self-correction loop for one document.

    The agent keeps no state between documents except `last_attempts`,
    the per-attempt log of the most recent run.

    Usage:
        agent = FeedbackDrivenRetryAgent(extractor, service.validator_for('INVOICE'),
                                         RetryConfig(max_retries=2))
        result = await agent.attempt_correction(images, extraction, report)
    """

    def __init__(
        self,
        extractor: Extractor,
        validator: Validator,
        config: Optional[RetryConfig] = None,
        prompt_builder: Optional[FeedbackPromptBuilder] = None
    ):
        self.extractor = extractor
        self.validator = validator
        self.config = config or RetryConfig()
        self.prompt_builder = prompt_builder or FeedbackPromptBuilder()
        self.last_attempts: List[RetryAttempt] = []

    async def attempt_correction(
        self,
        images: Sequence[Any],
        initial_extraction: T,
        initial_report: AuditReport
    ) -> RetryResult:
        """
        Run the retry loop.

        Args:
            images: Document page images handed through to the extractor
            initial_extraction: First extraction of the document
            initial_report: Audit report of initial_extraction

        Returns:
            NoRetryNeeded, CorrectedOnRetry or StillFailing
        """
        self.last_attempts = []

        if not self.config.needs_retry(initial_report):
            logger.debug("Initial audit has nothing retryable")
            return NoRetryNeeded()

        original_failures = initial_report.retryable_failures
        original_fields = self._failure_fields(initial_report)
        max_retries = self.config.max_retries

        logger.info(f"Starting self-correction: {len(original_failures)} issue(s), "
                    f"up to {max_retries} attempt(s)")

        current_data = initial_extraction
        current_report = initial_report
        attempt = 0

        while attempt < max_retries:
            attempt += 1
            prompt = self.prompt_builder.build_feedback_prompt(current_report, attempt, max_retries)

            # Shielded so the extractor cancelling itself is told apart from the agent being cancelled
            call = asyncio.ensure_future(self._call_extractor(images, prompt))
            try:
                result = await asyncio.shield(call)
            except asyncio.CancelledError:
                if not call.done() or self._being_cancelled():
                    call.cancel()
                    raise
                logger.warning(f"Retry attempt {attempt}/{max_retries} was cancelled by the extractor")
                self._record(attempt, RetryAttemptOutcome.ERROR, error="cancelled")
                continue
            except asyncio.TimeoutError:
                logger.warning(f"Retry attempt {attempt}/{max_retries} timed out after "
                               f"{self.config.attempt_timeout_seconds}s")
                self._record(attempt, RetryAttemptOutcome.TIMEOUT, error="timeout")
                continue
            except Exception as e:
                logger.warning(f"Retry attempt {attempt}/{max_retries} failed: {e}")
                self._record(attempt, RetryAttemptOutcome.ERROR, error=str(e))
                continue

            if result is None:
                logger.warning(f"Retry attempt {attempt}/{max_retries} returned no extraction")
                self._record(attempt, RetryAttemptOutcome.NO_RESULT)
                continue

            new_report = self.validator(result)
            current_data, current_report = result, new_report

            if not self.config.needs_retry(new_report):
                remaining_fields = self._failure_fields(new_report)
                corrected_fields = [f for f in original_fields if f not in remaining_fields]
                self._record(attempt, RetryAttemptOutcome.CORRECTED, failure_count=0)
                logger.info(f"Extraction corrected on attempt {attempt}: {corrected_fields}")
                return CorrectedOnRetry(
                    data=result,
                    attempt=attempt,
                    corrected_fields=corrected_fields,
                    original_failures=original_failures,
                    final_report=new_report,
                )

            failure_count = len(self._retryable(new_report))
            self._record(attempt, RetryAttemptOutcome.STILL_FAILING, failure_count=failure_count)
            logger.info(f"Retry attempt {attempt}/{max_retries} still has {failure_count} issue(s)")

        remaining = current_report.retryable_failures
        logger.info(f"Self-correction exhausted after {attempt} attempt(s), "
                    f"{len(remaining)} issue(s) remain")
        return StillFailing(
            data=current_data,
            attempts=attempt,
            remaining_failures=remaining,
            final_report=current_report,
        )

    async def _call_extractor(self, images: Sequence[Any], prompt: str) -> Optional[T]:
        result = self.extractor(images, prompt)
        if inspect.isawaitable(result):
            timeout = self.config.attempt_timeout_seconds
            if timeout is not None:
                return await asyncio.wait_for(result, timeout=timeout)
            return await result
        return result

    @staticmethod
    def _being_cancelled() -> bool:
        """True when cancellation targets the agent's own task"""
        task = asyncio.current_task()
        cancelling = getattr(task, 'cancelling', None)
        return bool(cancelling and cancelling())

    def _retryable(self, report: AuditReport) -> list:
        if self.config.retry_on_warnings:
            return report.retryable_failures
        return report.critical_failures

    def _failure_fields(self, report: AuditReport) -> List[str]:
        return report.failure_fields(include_warnings=self.config.retry_on_warnings)

    def _record(
        self,
        attempt: int,
        outcome: RetryAttemptOutcome,
        failure_count: Optional[int] = None,
        error: Optional[str] = None
    ) -> None:
        self.last_attempts.append(RetryAttempt(
            attempt=attempt,
            outcome=outcome,
            failure_count=failure_count,
            error=error,
        ))
