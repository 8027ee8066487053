from docaudit.models.money import Money
from docaudit.models.audit import AuditCheck, AuditReport, AuditStatus, CheckType
from docaudit.models.documents import (
    DocumentType,
    ExpenseCategory,
    LineItemView,
    InvoiceLineItem,
    BillLineItem,
    ReceiptItem,
    ExtractedDocument,
    ExtractedInvoiceData,
    ExtractedBillData,
    ExtractedReceiptData,
    ExtractedExpenseData,
    ExtractedCreditNoteData,
    model_for,
)
from docaudit.models.retry import (
    RetryConfig,
    RetryResult,
    NoRetryNeeded,
    CorrectedOnRetry,
    StillFailing,
    RetryAttempt,
    RetryAttemptOutcome,
    parse_retry_result,
)

__all__ = [
    'Money',
    'AuditCheck',
    'AuditReport',
    'AuditStatus',
    'CheckType',
    'DocumentType',
    'ExpenseCategory',
    'LineItemView',
    'InvoiceLineItem',
    'BillLineItem',
    'ReceiptItem',
    'ExtractedDocument',
    'ExtractedInvoiceData',
    'ExtractedBillData',
    'ExtractedReceiptData',
    'ExtractedExpenseData',
    'ExtractedCreditNoteData',
    'model_for',
    'RetryConfig',
    'RetryResult',
    'NoRetryNeeded',
    'CorrectedOnRetry',
    'StillFailing',
    'RetryAttempt',
    'RetryAttemptOutcome',
    'parse_retry_result',
]
