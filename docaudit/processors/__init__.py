"""
Document audit processors: validators, self-correction and routing.
"""

from docaudit.processors.validation import ExtractionAuditService
from docaudit.processors.retry import FeedbackDrivenRetryAgent, FeedbackPromptBuilder
from docaudit.processors.outcome_classifier import (
    ExtractionOutcome,
    OutcomeClassifier,
    OutcomeDecision,
)

__all__ = [
    'ExtractionAuditService',
    'FeedbackDrivenRetryAgent',
    'FeedbackPromptBuilder',
    'ExtractionOutcome',
    'OutcomeClassifier',
    'OutcomeDecision',
]
