"""
Extraction Audit Service

Composes the math, checksum, VAT-rate and line-item validators into one
audit per document type. Every audit returns an AuditReport built from
an ordered list of checks; nothing here raises for missing data.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from docaudit.exceptions import UnsupportedDocumentTypeError
from docaudit.models.audit import AuditCheck, AuditReport, CheckType
from docaudit.models.documents import (
    DocumentType,
    ExtractedBillData,
    ExtractedCreditNoteData,
    ExtractedDocument,
    ExtractedExpenseData,
    ExtractedInvoiceData,
    ExtractedReceiptData,
    model_for,
)
from docaudit.models.money import Money
from docaudit.processors.validation.checksum_validator import ChecksumValidator
from docaudit.processors.validation.line_item_validator import LineItemValidator
from docaudit.processors.validation.math_validator import MathValidator
from docaudit.processors.validation.vat_rate_validator import VatRateValidator
from docaudit.utils.dates import parse_document_date

if TYPE_CHECKING:
    from docaudit.config.audit_config import AuditSettings

logger = logging.getLogger(__name__)

DEFAULT_EXPECT_LINE_ITEMS = frozenset({DocumentType.INVOICE})
DEFAULT_EXCLUDE_INCLUDED_FEES = frozenset({
    DocumentType.INVOICE,
    DocumentType.BILL,
    DocumentType.CREDIT_NOTE,
})


def _money(value: Optional[str]) -> Optional[Money]:
    """Parse a raw amount; currency markers are dropped so amounts always combine"""
    amount = Money.parse(value)
    return Money.from_minor(amount.minor) if amount is not None else None


class ExtractionAuditService:
    """
    Audits extracted financial documents.

    Usage:
        service = ExtractionAuditService()
        report = service.audit(DocumentType.INVOICE, extraction)

        validate = service.validator_for(DocumentType.BILL)
        report = validate(bill)
    """

    def __init__(
        self,
        math_validator: Optional[MathValidator] = None,
        vat_validator: Optional[VatRateValidator] = None,
        line_item_validator: Optional[LineItemValidator] = None,
        checksum_validator: Optional[ChecksumValidator] = None,
        expect_line_items: Optional[Iterable[DocumentType]] = None,
        exclude_included_fees: Optional[Iterable[DocumentType]] = None
    ):
        self.math_validator = math_validator or MathValidator()
        self.vat_validator = vat_validator or VatRateValidator()
        self.line_item_validator = line_item_validator or LineItemValidator(self.math_validator)
        self.checksum_validator = checksum_validator or ChecksumValidator()
        self.expect_line_items = frozenset(
            DEFAULT_EXPECT_LINE_ITEMS if expect_line_items is None else expect_line_items
        )
        self.exclude_included_fees = frozenset(
            DEFAULT_EXCLUDE_INCLUDED_FEES if exclude_included_fees is None else exclude_included_fees
        )

        self._audits: Dict[DocumentType, Callable[[Any], AuditReport]] = {
            DocumentType.INVOICE: self.audit_invoice,
            DocumentType.BILL: self.audit_bill,
            DocumentType.RECEIPT: self.audit_receipt,
            DocumentType.EXPENSE: self.audit_expense,
            DocumentType.CREDIT_NOTE: self.audit_credit_note,
        }

    @classmethod
    def from_settings(cls, settings: 'AuditSettings') -> 'ExtractionAuditService':
        """Build a service from typed configuration"""
        math_validator = MathValidator(
            tolerance_minor=settings.tolerances.totals_minor,
            line_tolerance_minor=settings.tolerances.line_item_minor,
        )
        return cls(
            math_validator=math_validator,
            vat_validator=VatRateValidator(settings.jurisdiction),
            line_item_validator=LineItemValidator(
                math_validator,
                included_fee_prefixes=settings.line_items.included_fee_prefixes,
                included_fee_markers=settings.line_items.included_fee_markers,
            ),
            expect_line_items=settings.line_items.expect_items_for,
            exclude_included_fees=settings.line_items.exclude_included_fees_for,
        )

    # Dispatch

    def audit(
        self,
        document_type: Union[DocumentType, str],
        data: Union[ExtractedDocument, Mapping[str, Any]]
    ) -> AuditReport:
        """
        Audit a document of the given type.

        Args:
            document_type: DocumentType or its name
            data: Extraction payload model, or its raw dict form

        Returns:
            AuditReport for the document
        """
        validate = self.validator_for(document_type)
        if isinstance(data, Mapping):
            data = model_for(DocumentType.parse(document_type)).model_validate(dict(data))
        return validate(data)

    def validator_for(self, document_type: Union[DocumentType, str]) -> Callable[[Any], AuditReport]:
        """The (payload -> AuditReport) validator used by the retry loop"""
        try:
            return self._audits[DocumentType.parse(document_type)]
        except (KeyError, ValueError):
            raise UnsupportedDocumentTypeError(f"No audit defined for document type: {document_type}")

    def parse_payload(
        self,
        document_type: Union[DocumentType, str],
        payload: Mapping[str, Any]
    ) -> Optional[ExtractedDocument]:
        """Validate a raw payload; None when it does not fit the document model"""
        try:
            return model_for(DocumentType.parse(document_type)).model_validate(dict(payload))
        except PydanticValidationError as e:
            logger.warning(f"Extraction payload does not match {document_type} model: {e}")
            return None

    # Per-type audits

    def audit_invoice(self, invoice: ExtractedInvoiceData) -> AuditReport:
        """Totals, payment reference, IBAN, VAT rate and line items"""
        subtotal = _money(invoice.subtotal)
        vat_amount = _money(invoice.total_vat_amount)
        total = _money(invoice.total_amount)

        checks = [
            self.math_validator.verify_totals(subtotal, vat_amount, total),
            self.checksum_validator.audit_ogm(invoice.payment_reference),
            self.checksum_validator.audit_iban(invoice.iban),
            self.vat_validator.verify(
                subtotal, vat_amount, parse_document_date(invoice.issue_date),
                None, field='total_vat_amount'
            ),
        ]
        checks += self._line_item_checks(DocumentType.INVOICE, invoice.line_items, subtotal)
        return self._report(DocumentType.INVOICE, checks)

    def resolve_bill_amounts(self, bill: ExtractedBillData) -> Dict[str, Optional[Money]]:
        """
        Work out net, VAT and gross for a bill.

        An explicit total that differs from `amount` makes `amount` the net;
        otherwise `amount` is the gross and net = gross - VAT.
        """
        amount = _money(bill.amount)
        explicit_total = _money(bill.total_amount)
        vat_amount = _money(bill.vat_amount)
        gross = explicit_total if explicit_total is not None else amount

        if explicit_total is not None and amount is not None and explicit_total != amount:
            net = amount
        elif gross is not None and vat_amount is not None:
            net = gross - vat_amount
        else:
            net = None

        return {'net': net, 'vat': vat_amount, 'gross': gross}

    def audit_bill(self, bill: ExtractedBillData) -> AuditReport:
        """Resolved totals, bank account, payment reference, VAT rate and line items"""
        amounts = self.resolve_bill_amounts(bill)

        checks = [
            self.math_validator.verify_totals(amounts['net'], amounts['vat'], amounts['gross']),
            self.checksum_validator.audit_iban(bill.bank_account, field='bank_account'),
            self.checksum_validator.audit_ogm(bill.payment_reference),
            self.vat_validator.verify(
                amounts['net'], amounts['vat'], parse_document_date(bill.issue_date),
                bill.category
            ),
        ]
        checks += self._line_item_checks(DocumentType.BILL, bill.line_items, amounts['net'])
        return self._report(DocumentType.BILL, checks)

    def audit_receipt(self, receipt: ExtractedReceiptData) -> AuditReport:
        """Totals, VAT rate with the suggested category, items against the gross total"""
        subtotal = _money(receipt.subtotal)
        vat_amount = _money(receipt.vat_amount)
        total = _money(receipt.total_amount)

        checks = [
            self.math_validator.verify_totals(subtotal, vat_amount, total),
            self.vat_validator.verify(
                subtotal, vat_amount, parse_document_date(receipt.transaction_date),
                receipt.suggested_category
            ),
        ]
        # Receipt item prices include VAT
        checks += self._line_item_checks(
            DocumentType.RECEIPT, receipt.items, total,
            target_name='total', field='items'
        )
        return self._report(DocumentType.RECEIPT, checks)

    def audit_expense(self, expense: ExtractedExpenseData) -> AuditReport:
        """Totals and VAT rate, with the net derived from total - VAT"""
        vat_amount = _money(expense.vat_amount)
        total = _money(expense.total_amount)
        subtotal = total - vat_amount if total is not None and vat_amount is not None else None

        checks = [
            self.math_validator.verify_totals(subtotal, vat_amount, total),
            self.vat_validator.verify(
                subtotal, vat_amount, parse_document_date(expense.expense_date),
                expense.category
            ),
        ]
        return self._report(DocumentType.EXPENSE, checks)

    def audit_credit_note(self, credit_note: ExtractedCreditNoteData) -> AuditReport:
        """Invoice-style audit; amounts may carry a minus sign"""
        subtotal = _money(credit_note.subtotal)
        vat_amount = _money(credit_note.vat_amount)
        total = _money(credit_note.total_amount)

        checks = [
            self.math_validator.verify_totals(subtotal, vat_amount, total),
            self.checksum_validator.audit_iban(credit_note.iban),
            self.vat_validator.verify(
                subtotal, vat_amount, parse_document_date(credit_note.issue_date), None
            ),
        ]

        if not credit_note.original_invoice_number:
            checks.append(AuditCheck.warning(
                CheckType.LINE_ITEMS, 'original_invoice_number',
                "Credit note does not reference the invoice it corrects",
                hint="Look for 'credit note for invoice', 'ref.' or 'betreft factuur' near the header",
            ))

        # Lines are often printed positive under a negative total
        target = subtotal
        line_totals = [item.get_net_amount() for item in credit_note.line_items]
        if (subtotal is not None and subtotal.is_negative
                and all(t is None or not t.is_negative for t in line_totals)):
            target = -subtotal

        checks += self._line_item_checks(DocumentType.CREDIT_NOTE, credit_note.line_items, target)
        return self._report(DocumentType.CREDIT_NOTE, checks)

    # Helpers

    def _line_item_checks(
        self,
        document_type: DocumentType,
        items: List[Any],
        target: Optional[Money],
        target_name: str = 'subtotal',
        field: str = 'line_items'
    ) -> List[AuditCheck]:
        return self.line_item_validator.validate(
            items,
            target,
            expect_items=document_type in self.expect_line_items,
            exclude_included_fees=document_type in self.exclude_included_fees,
            target_name=target_name,
            field=field,
        )

    def _report(self, document_type: DocumentType, checks: List[AuditCheck]) -> AuditReport:
        report = AuditReport.from_checks(checks)
        logger.debug(f"{document_type.value} audit: {report.summary()}")
        return report
