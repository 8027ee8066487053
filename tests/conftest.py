"""
Shared fixtures for docaudit tests
"""

import copy

import pytest

from docaudit.models.documents import ExtractedInvoiceData
from docaudit.processors.validation.audit_service import ExtractionAuditService

VALID_BE_IBAN = "BE68 5390 0754 7034"
VALID_OGM = "+++090/0000/01565+++"


@pytest.fixture
def invoice_payload():
    """A Belgian invoice that passes every check"""
    return {
        'invoice_number': 'INV-2026-0042',
        'vendor_name': 'Acme BV',
        'issue_date': '2026-01-15',
        'currency': 'EUR',
        'subtotal': '100.00',
        'total_vat_amount': '21.00',
        'total_amount': '121.00',
        'iban': VALID_BE_IBAN,
        'payment_reference': VALID_OGM,
        'line_items': [
            {'description': 'Consulting', 'quantity': 2, 'unit_price': '40.00', 'line_total': '80.00'},
            {'description': 'Travel', 'quantity': 1, 'unit_price': '20.00', 'line_total': '20.00'},
        ],
        'confidence': 0.95,
    }


@pytest.fixture
def bad_total_payload(invoice_payload):
    """Same invoice with a misread total"""
    payload = copy.deepcopy(invoice_payload)
    payload['total_amount'] = '131.00'
    return payload


@pytest.fixture
def valid_invoice(invoice_payload):
    return ExtractedInvoiceData.model_validate(invoice_payload)


@pytest.fixture
def bad_invoice(bad_total_payload):
    return ExtractedInvoiceData.model_validate(bad_total_payload)


@pytest.fixture
def audit_service():
    return ExtractionAuditService()
