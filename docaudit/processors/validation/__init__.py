from docaudit.processors.validation.checksum_validator import ChecksumValidator, IBAN_LENGTHS
from docaudit.processors.validation.math_validator import MathValidator
from docaudit.processors.validation.vat_rate_validator import (
    VatJurisdiction,
    VatRateRule,
    VatRateValidator,
)
from docaudit.processors.validation.line_item_validator import LineItemValidator
from docaudit.processors.validation.audit_service import ExtractionAuditService

__all__ = [
    'ChecksumValidator',
    'IBAN_LENGTHS',
    'MathValidator',
    'VatJurisdiction',
    'VatRateRule',
    'VatRateValidator',
    'LineItemValidator',
    'ExtractionAuditService',
]
