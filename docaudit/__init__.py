"""
docaudit - Financial Document Extraction Audit

Audits structured extractions of invoices, bills, receipts, expenses and
credit notes against deterministic rules (totals math, IBAN and OGM
checksums, Belgian VAT rates) and drives a bounded, feedback-driven
re-extraction loop before deciding between auto-confirm and manual review.

Basic usage:
    from docaudit import ExtractionAuditService, DocumentType

    service = ExtractionAuditService()
    report = service.audit(DocumentType.INVOICE, {
        'subtotal': '100.00',
        'total_vat_amount': '21.00',
        'total_amount': '121.00',
        'iban': 'BE68 5390 0754 7034',
    })
    print(report.overall_status)
"""

from docaudit.models import (
    AuditCheck,
    AuditReport,
    AuditStatus,
    CheckType,
    DocumentType,
    ExpenseCategory,
    Money,
    RetryConfig,
)
from docaudit.config.audit_config import AuditConfig, AuditSettings
from docaudit.processors.validation import ExtractionAuditService
from docaudit.processors.retry import FeedbackDrivenRetryAgent
from docaudit.processors.outcome_classifier import ExtractionOutcome, OutcomeClassifier

__all__ = [
    'AuditCheck',
    'AuditReport',
    'AuditStatus',
    'CheckType',
    'DocumentType',
    'ExpenseCategory',
    'Money',
    'RetryConfig',
    'AuditConfig',
    'AuditSettings',
    'ExtractionAuditService',
    'FeedbackDrivenRetryAgent',
    'ExtractionOutcome',
    'OutcomeClassifier',
]

__version__ = '0.1.0'
