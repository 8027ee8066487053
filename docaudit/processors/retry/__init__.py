from docaudit.processors.retry.feedback_prompt_builder import (
    CORRECTION_HINTS,
    CorrectionHint,
    FeedbackPromptBuilder,
    build_feedback_prompt,
)
from docaudit.processors.retry.retry_agent import FeedbackDrivenRetryAgent

__all__ = [
    'CORRECTION_HINTS',
    'CorrectionHint',
    'FeedbackPromptBuilder',
    'build_feedback_prompt',
    'FeedbackDrivenRetryAgent',
]
