"""
Outcome Classifier

Final routing decision for an extraction: auto-confirm when both the
classification and extraction confidences clear the threshold and the
audit passed, manual review otherwise.
"""

import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from docaudit.models.audit import AuditReport

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.8


class ExtractionOutcome(str, Enum):
    """Where an extraction goes next"""
    AUTO_CONFIRM_ELIGIBLE = "AUTO_CONFIRM_ELIGIBLE"
    MANUAL_REVIEW_REQUIRED = "MANUAL_REVIEW_REQUIRED"


class OutcomeDecision(BaseModel):
    """Outcome plus the reasons a human reviewer needs"""
    outcome: ExtractionOutcome
    reasons: List[str] = Field(default_factory=list)
    classification_confidence: float
    extraction_confidence: float
    threshold: float

    @property
    def is_auto_confirm(self) -> bool:
        return self.outcome == ExtractionOutcome.AUTO_CONFIRM_ELIGIBLE


class OutcomeClassifier:
    """
    Pure auto-confirm vs. manual-review decision.

    Usage:
        classifier = OutcomeClassifier(threshold=0.8)
        outcome = classifier.classify(0.95, 0.9, report)
    """

    def __init__(self, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {threshold}")
        self.threshold = threshold

    def classify(
        self,
        classification_confidence: float,
        extraction_confidence: float,
        audit_report: AuditReport,
        threshold: Optional[float] = None
    ) -> ExtractionOutcome:
        """Eligible iff both confidences >= threshold and the audit passed"""
        threshold = self.threshold if threshold is None else threshold
        if (classification_confidence >= threshold
                and extraction_confidence >= threshold
                and audit_report.is_passed):
            return ExtractionOutcome.AUTO_CONFIRM_ELIGIBLE
        return ExtractionOutcome.MANUAL_REVIEW_REQUIRED

    def decide(
        self,
        classification_confidence: float,
        extraction_confidence: float,
        audit_report: AuditReport,
        threshold: Optional[float] = None
    ) -> OutcomeDecision:
        """classify() plus human-readable reasons for manual review"""
        threshold = self.threshold if threshold is None else threshold
        outcome = self.classify(
            classification_confidence, extraction_confidence, audit_report, threshold
        )

        reasons = []
        if classification_confidence < threshold:
            reasons.append(
                f"Low classification confidence: {classification_confidence:.1%} "
                f"(threshold {threshold:.1%})"
            )
        if extraction_confidence < threshold:
            reasons.append(
                f"Low extraction confidence: {extraction_confidence:.1%} "
                f"(threshold {threshold:.1%})"
            )
        for check in audit_report.critical_failures:
            reasons.append(f"{check.type.display_name} failed on '{check.field}': {check.message}")

        logger.info(f"Outcome: {outcome.value} ({len(reasons)} reason(s))")
        return OutcomeDecision(
            outcome=outcome,
            reasons=reasons,
            classification_confidence=classification_confidence,
            extraction_confidence=extraction_confidence,
            threshold=threshold,
        )
