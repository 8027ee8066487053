"""
Extraction Audit Pipeline

Sequential pipeline for one document:
extract -> audit -> self-correct -> classify

The extractor is an external collaborator (a vision-model call); the
pipeline only awaits it, audits what it returns and decides whether the
result can be auto-confirmed.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field

from docaudit.config.audit_config import AuditConfig, AuditSettings
from docaudit.models.audit import AuditReport
from docaudit.models.documents import DocumentType, ExtractedDocument
from docaudit.models.retry import CorrectedOnRetry, RetryAttempt, StillFailing
from docaudit.processors.outcome_classifier import (
    ExtractionOutcome,
    OutcomeClassifier,
    OutcomeDecision,
)
from docaudit.processors.retry.feedback_prompt_builder import FeedbackPromptBuilder
from docaudit.processors.retry.retry_agent import Extractor, FeedbackDrivenRetryAgent
from docaudit.processors.validation.audit_service import ExtractionAuditService

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    """Pipeline processing stages"""
    EXTRACT = "extract"
    AUDIT = "audit"
    SELF_CORRECT = "self_correct"
    CLASSIFY = "classify"
    COMPLETE = "complete"


@dataclass
class PipelineContext:
    """Context passed through pipeline stages"""
    document_type: DocumentType
    images: Sequence[Any]
    classification_confidence: float
    extraction_supplied: bool = False

    # Stage results
    extraction: Optional[ExtractedDocument] = None
    extraction_confidence: Optional[float] = None
    initial_report: Optional[AuditReport] = None
    final_report: Optional[AuditReport] = None
    retry_result: Optional[Any] = None
    retry_attempts: List[RetryAttempt] = field(default_factory=list)
    decision: Optional[OutcomeDecision] = None

    # Status tracking
    current_stage: PipelineStage = PipelineStage.EXTRACT

    # Timing
    stage_times: Dict[str, int] = field(default_factory=dict)
    total_time_ms: int = 0

    # Errors
    error: Optional[str] = None
    error_stage: Optional[PipelineStage] = None


class PipelineResult(BaseModel):
    """Serializable outcome of one pipeline run"""
    document_type: DocumentType
    success: bool
    extraction: Optional[Dict[str, Any]] = None
    initial_report: Optional[AuditReport] = None
    final_report: Optional[AuditReport] = None
    retry_result: Optional[Dict[str, Any]] = None
    retry_attempts: List[RetryAttempt] = Field(default_factory=list)
    decision: OutcomeDecision
    stage_times: Dict[str, int] = Field(default_factory=dict)
    total_time_ms: int = 0
    error: Optional[str] = None
    error_stage: Optional[PipelineStage] = None

    @property
    def outcome(self) -> ExtractionOutcome:
        return self.decision.outcome


class ExtractionPipeline:
    """
    End-to-end audit and self-correction for one document.

    Usage:
        pipeline = ExtractionPipeline(extractor, AuditConfig().settings())
        result = await pipeline.process(DocumentType.INVOICE, images,
                                        classification_confidence=0.97)
    """

    def __init__(
        self,
        extractor: Extractor,
        settings: Optional[AuditSettings] = None,
        audit_service: Optional[ExtractionAuditService] = None,
        classifier: Optional[OutcomeClassifier] = None,
        prompt_builder: Optional[FeedbackPromptBuilder] = None
    ):
        self.extractor = extractor
        self.settings = settings or AuditSettings()
        self.audit_service = audit_service or ExtractionAuditService.from_settings(self.settings)
        self.classifier = classifier or OutcomeClassifier(self.settings.confidence_threshold)
        self.prompt_builder = prompt_builder or FeedbackPromptBuilder()

        self._stage_callbacks: Dict[PipelineStage, List[Callable]] = {}

    async def process(
        self,
        document_type: Union[DocumentType, str],
        images: Sequence[Any],
        initial_extraction: Optional[Union[ExtractedDocument, Mapping[str, Any]]] = None,
        classification_confidence: float = 1.0,
        extraction_confidence: Optional[float] = None
    ) -> PipelineResult:
        """
        Process a document through the complete pipeline.

        Args:
            document_type: Classified type of the document
            images: Page images handed to the extractor
            initial_extraction: Extraction already produced upstream; the
                extractor is called without feedback when omitted
            classification_confidence: Confidence of the type classification
            extraction_confidence: Overrides the initial extraction's own
                confidence; a re-extraction kept by self-correction is
                judged on its own confidence

        Returns:
            PipelineResult; failures are reported in it, not raised
        """
        start_time = time.time()
        document_type = DocumentType.parse(document_type)

        ctx = PipelineContext(
            document_type=document_type,
            images=images,
            classification_confidence=classification_confidence,
            extraction_confidence=extraction_confidence,
        )
        if initial_extraction is not None:
            ctx.extraction_supplied = True
            ctx.extraction = self._to_model(document_type, initial_extraction)

        try:
            await self._run_stage(ctx, PipelineStage.EXTRACT, self._stage_extract)
            await self._run_stage(ctx, PipelineStage.AUDIT, self._stage_audit)
            await self._run_stage(ctx, PipelineStage.SELF_CORRECT, self._stage_self_correct)
            await self._run_stage(ctx, PipelineStage.CLASSIFY, self._stage_classify)
            ctx.current_stage = PipelineStage.COMPLETE
        except Exception as e:
            logger.exception(f"Pipeline failed at {ctx.current_stage.value}: {e}")
            ctx.decision = OutcomeDecision(
                outcome=ExtractionOutcome.MANUAL_REVIEW_REQUIRED,
                reasons=[f"Pipeline failed at {ctx.current_stage.value}: {e}"],
                classification_confidence=classification_confidence,
                extraction_confidence=self._extraction_confidence(ctx),
                threshold=self.classifier.threshold,
            )

        ctx.total_time_ms = int((time.time() - start_time) * 1000)
        return self._build_result(ctx)

    def on_stage(self, stage: PipelineStage, callback: Callable) -> None:
        """Register a callback for a pipeline stage"""
        self._stage_callbacks.setdefault(stage, []).append(callback)

    async def _run_stage(
        self,
        ctx: PipelineContext,
        stage: PipelineStage,
        stage_func: Callable
    ) -> None:
        """Run a pipeline stage with timing and error handling"""
        ctx.current_stage = stage
        start = time.time()

        try:
            await stage_func(ctx)

            for callback in self._stage_callbacks.get(stage, []):
                try:
                    callback(ctx)
                except Exception as e:
                    logger.warning(f"Stage callback failed: {e}")

        except Exception as e:
            ctx.error = str(e)
            ctx.error_stage = stage
            raise

        finally:
            ctx.stage_times[stage.value] = int((time.time() - start) * 1000)

    async def _stage_extract(self, ctx: PipelineContext) -> None:
        """Extract stage: call the extractor unless an extraction was supplied"""
        if ctx.extraction is not None:
            logger.debug("Using supplied initial extraction")
            return
        if ctx.extraction_supplied:
            raise ValueError(f"Supplied extraction does not match the {ctx.document_type.value} model")

        ctx.extraction = await self._extract(ctx.document_type, ctx.images, None)
        if ctx.extraction is None:
            raise ValueError("Extractor returned no data")

    async def _stage_audit(self, ctx: PipelineContext) -> None:
        """Audit stage: run the document type's audit"""
        validate = self.audit_service.validator_for(ctx.document_type)
        ctx.initial_report = validate(ctx.extraction)
        ctx.final_report = ctx.initial_report
        logger.info(f"Initial audit of {ctx.document_type.value}: {ctx.initial_report.summary()}")

    async def _stage_self_correct(self, ctx: PipelineContext) -> None:
        """Self-correct stage: feedback-driven retries"""

        async def extract_with_feedback(images, feedback_prompt):
            return await self._extract(ctx.document_type, images, feedback_prompt)

        agent = FeedbackDrivenRetryAgent(
            extract_with_feedback,
            self.audit_service.validator_for(ctx.document_type),
            self.settings.retry,
            self.prompt_builder,
        )
        ctx.retry_result = await agent.attempt_correction(
            ctx.images, ctx.extraction, ctx.initial_report
        )
        ctx.retry_attempts = list(agent.last_attempts)

        if isinstance(ctx.retry_result, (CorrectedOnRetry, StillFailing)):
            if ctx.retry_result.data is not ctx.extraction:
                # The override described the extraction being replaced
                ctx.extraction_confidence = None
            ctx.extraction = ctx.retry_result.data
            if ctx.retry_result.final_report is not None:
                ctx.final_report = ctx.retry_result.final_report

    async def _stage_classify(self, ctx: PipelineContext) -> None:
        """Classify stage: auto-confirm or manual review"""
        ctx.decision = self.classifier.decide(
            ctx.classification_confidence,
            self._extraction_confidence(ctx),
            ctx.final_report,
        )

    async def _extract(
        self,
        document_type: DocumentType,
        images: Sequence[Any],
        feedback_prompt: Optional[str]
    ) -> Optional[ExtractedDocument]:
        result = self.extractor(images, feedback_prompt)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        return self._to_model(document_type, result)

    def _to_model(
        self,
        document_type: DocumentType,
        data: Union[ExtractedDocument, Mapping[str, Any]]
    ) -> Optional[ExtractedDocument]:
        if isinstance(data, Mapping):
            return self.audit_service.parse_payload(document_type, data)
        return data

    @staticmethod
    def _extraction_confidence(ctx: PipelineContext) -> float:
        if ctx.extraction_confidence is not None:
            return ctx.extraction_confidence
        if ctx.extraction is not None:
            return ctx.extraction.confidence
        return 0.0

    @staticmethod
    def _build_result(ctx: PipelineContext) -> PipelineResult:
        return PipelineResult(
            document_type=ctx.document_type,
            success=ctx.error is None,
            extraction=ctx.extraction.model_dump(mode='json') if ctx.extraction is not None else None,
            initial_report=ctx.initial_report,
            final_report=ctx.final_report,
            retry_result=ctx.retry_result.model_dump(mode='json') if ctx.retry_result is not None else None,
            retry_attempts=ctx.retry_attempts,
            decision=ctx.decision,
            stage_times=ctx.stage_times,
            total_time_ms=ctx.total_time_ms,
            error=ctx.error,
            error_stage=ctx.error_stage,
        )


async def process_document(
    document_type: Union[DocumentType, str],
    images: Sequence[Any],
    extractor: Extractor,
    initial_extraction: Optional[Union[ExtractedDocument, Mapping[str, Any]]] = None,
    classification_confidence: float = 1.0,
    config: Optional[AuditConfig] = None
) -> PipelineResult:
    """
    Convenience function to audit and self-correct one document.

    Args:
        document_type: Classified type of the document
        images: Page images handed to the extractor
        extractor: (images, feedback_prompt) -> extraction, sync or async
        initial_extraction: Extraction already produced upstream
        classification_confidence: Confidence of the type classification
        config: Configuration; packaged defaults plus user file when omitted

    Returns:
        PipelineResult
    """
    settings = (config or AuditConfig()).settings()
    pipeline = ExtractionPipeline(extractor, settings)
    return await pipeline.process(
        document_type,
        images,
        initial_extraction=initial_extraction,
        classification_confidence=classification_confidence,
    )
