"""
Tests for the feedback-driven retry loop
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from pydantic import ValidationError

from docaudit.models.audit import AuditCheck, AuditReport, CheckType
from docaudit.models.documents import ExtractedInvoiceData
from docaudit.models.retry import (
    CorrectedOnRetry,
    NoRetryNeeded,
    RetryAttemptOutcome,
    RetryConfig,
    StillFailing,
    parse_retry_result,
)
from docaudit.processors.retry.retry_agent import FeedbackDrivenRetryAgent

IMAGES = [b"page-1"]


def make_agent(extractor, audit_service, **config):
    return FeedbackDrivenRetryAgent(
        extractor=extractor,
        validator=audit_service.audit_invoice,
        config=RetryConfig(**config),
    )


class TestRetryConfig:
    """Tests for RetryConfig"""

    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 2
        assert config.retry_on_warnings is False
        assert config.attempt_timeout_seconds is None

    def test_negative_max_retries_rejected(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_retries=-1)

    def test_needs_retry(self):
        warning_only = AuditReport.from_checks([
            AuditCheck.warning(CheckType.LINE_ITEMS, 'line_items', "No line items extracted"),
        ])
        assert not RetryConfig().needs_retry(warning_only)
        assert RetryConfig(retry_on_warnings=True).needs_retry(warning_only)
        assert not RetryConfig(retry_on_warnings=True).needs_retry(AuditReport.empty())


class TestAttemptCorrection:
    """Tests for FeedbackDrivenRetryAgent.attempt_correction"""

    @pytest.mark.asyncio
    async def test_passing_report_needs_no_retry(self, audit_service, valid_invoice):
        """The extractor is never called when the initial audit passes"""
        extractor = AsyncMock()
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, valid_invoice, audit_service.audit_invoice(valid_invoice))

        assert isinstance(result, NoRetryNeeded)
        assert result.is_success
        extractor.assert_not_called()
        assert agent.last_attempts == []

    @pytest.mark.asyncio
    async def test_warnings_only_retry_when_configured(self, audit_service, invoice_payload):
        invoice_payload['line_items'] = []
        invoice = ExtractedInvoiceData.model_validate(invoice_payload)
        report = audit_service.audit_invoice(invoice)
        assert report.is_passed and report.warning_count == 1

        extractor = AsyncMock(return_value=invoice)
        result = await make_agent(extractor, audit_service).attempt_correction(IMAGES, invoice, report)
        assert isinstance(result, NoRetryNeeded)
        extractor.assert_not_called()

        result = await make_agent(extractor, audit_service, retry_on_warnings=True).attempt_correction(
            IMAGES, invoice, report
        )
        assert isinstance(result, StillFailing)
        assert extractor.await_count == 2

    @pytest.mark.asyncio
    async def test_corrected_on_second_attempt(self, audit_service, bad_invoice, valid_invoice):
        extractor = AsyncMock(side_effect=[bad_invoice, valid_invoice])
        agent = make_agent(extractor, audit_service)
        initial_report = audit_service.audit_invoice(bad_invoice)

        result = await agent.attempt_correction(IMAGES, bad_invoice, initial_report)

        assert isinstance(result, CorrectedOnRetry)
        assert result.is_success
        assert result.attempt == 2
        assert result.data is valid_invoice
        assert result.corrected_fields == ['total_amount']
        assert [c.field for c in result.original_failures] == ['total_amount']
        assert result.final_report.is_passed
        assert [a.outcome for a in agent.last_attempts] == [
            RetryAttemptOutcome.STILL_FAILING,
            RetryAttemptOutcome.CORRECTED,
        ]

        # Each call gets the images and a prompt naming the failure
        first_images, first_prompt = extractor.await_args_list[0].args
        assert first_images == IMAGES
        assert "Attempt 1 of 2" in first_prompt
        assert "total_amount" in first_prompt
        _, second_prompt = extractor.await_args_list[1].args
        assert "This is your FINAL attempt" in second_prompt

    @pytest.mark.asyncio
    async def test_still_failing_after_budget(self, audit_service, bad_invoice):
        extractor = AsyncMock(return_value=bad_invoice)
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, StillFailing)
        assert not result.is_success
        assert result.attempts == 2
        assert [c.field for c in result.remaining_failures] == ['total_amount']
        assert extractor.await_count == 2

    @pytest.mark.asyncio
    async def test_exception_costs_one_attempt(self, audit_service, bad_invoice, valid_invoice):
        extractor = AsyncMock(side_effect=[RuntimeError("model overloaded"), valid_invoice])
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, CorrectedOnRetry)
        assert result.attempt == 2
        assert agent.last_attempts[0].outcome == RetryAttemptOutcome.ERROR
        assert agent.last_attempts[0].error == "model overloaded"

    @pytest.mark.asyncio
    async def test_cancelled_call_costs_one_attempt(self, audit_service, bad_invoice, valid_invoice):
        """An extractor call that ends cancelled is a failed attempt, not the end of the loop"""
        extractor = AsyncMock(side_effect=[asyncio.CancelledError(), valid_invoice])
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, CorrectedOnRetry)
        assert result.attempt == 2
        assert agent.last_attempts[0].outcome == RetryAttemptOutcome.ERROR
        assert agent.last_attempts[0].error == "cancelled"

    @pytest.mark.asyncio
    async def test_cancelling_the_agent_propagates(self, audit_service, bad_invoice):
        started = asyncio.Event()

        async def hang(images, prompt):
            started.set()
            await asyncio.sleep(5)

        agent = make_agent(hang, audit_service)
        task = asyncio.ensure_future(
            agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert agent.last_attempts == []

    @pytest.mark.asyncio
    async def test_non_finite_quantity_on_retry(self, audit_service, bad_invoice, invoice_payload):
        """A re-extraction with a NaN quantity is audited, not a crash"""
        invoice_payload['line_items'][0]['quantity'] = 'NaN'
        extractor = AsyncMock(return_value=ExtractedInvoiceData.model_validate(invoice_payload))
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, CorrectedOnRetry)
        assert result.attempt == 1
        assert result.data.line_items[0].quantity is None
        assert result.corrected_fields == ['total_amount']

    @pytest.mark.asyncio
    async def test_none_keeps_previous_extraction(self, audit_service, bad_invoice):
        extractor = AsyncMock(return_value=None)
        agent = make_agent(extractor, audit_service)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, StillFailing)
        assert result.data is bad_invoice
        assert result.attempts == 2
        assert all(a.outcome == RetryAttemptOutcome.NO_RESULT for a in agent.last_attempts)

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, audit_service, bad_invoice, valid_invoice):
        calls = []

        async def slow_then_fast(images, prompt):
            calls.append(prompt)
            if len(calls) == 1:
                await asyncio.sleep(5)
            return valid_invoice

        agent = make_agent(slow_then_fast, audit_service, attempt_timeout_seconds=0.05)
        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, CorrectedOnRetry)
        assert result.attempt == 2
        assert agent.last_attempts[0].outcome == RetryAttemptOutcome.TIMEOUT

    @pytest.mark.asyncio
    async def test_zero_retries(self, audit_service, bad_invoice):
        extractor = AsyncMock()
        agent = make_agent(extractor, audit_service, max_retries=0)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, StillFailing)
        assert result.attempts == 0
        assert result.data is bad_invoice
        extractor.assert_not_called()

    @pytest.mark.asyncio
    async def test_sync_extractor(self, audit_service, bad_invoice, valid_invoice):
        extractor = Mock(return_value=valid_invoice)
        agent = make_agent(extractor, audit_service, max_retries=1)

        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        assert isinstance(result, CorrectedOnRetry)
        assert result.attempt == 1
        extractor.assert_called_once()


class TestRetryResultSerialization:
    """Tests for rebuilding results from JSON"""

    @pytest.mark.asyncio
    async def test_corrected_round_trip(self, audit_service, bad_invoice, valid_invoice):
        agent = make_agent(AsyncMock(return_value=valid_invoice), audit_service)
        result = await agent.attempt_correction(IMAGES, bad_invoice, audit_service.audit_invoice(bad_invoice))

        restored = parse_retry_result(result.model_dump(mode='json'), ExtractedInvoiceData)

        assert isinstance(restored, CorrectedOnRetry)
        assert restored.data == valid_invoice
        assert restored.corrected_fields == ['total_amount']
        assert restored.final_report == result.final_report

    def test_no_retry_round_trip(self):
        assert isinstance(parse_retry_result(NoRetryNeeded().model_dump(mode='json')), NoRetryNeeded)

    def test_still_failing_round_trip(self):
        payload = StillFailing(data={'total_amount': '131.00'}, attempts=2).model_dump(mode='json')
        restored = parse_retry_result(payload)
        assert isinstance(restored, StillFailing)
        assert restored.kind == 'still_failing'
        assert restored.data == {'total_amount': '131.00'}
