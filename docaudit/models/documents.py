"""
Extracted Document Models

Structured payloads produced by the (external) vision-model extraction
for each supported document type. Amounts are kept exactly as the model
emitted them and only parsed to Money during the audit, so a malformed
amount surfaces as an INCOMPLETE check instead of a validation crash.

Each document type has its own line-item shape; all of them implement
the LineItemView protocol so the line-item math runs once for every type.
"""

import math
from enum import Enum
from typing import Any, List, Optional, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from typing_extensions import Annotated, Protocol, runtime_checkable

from docaudit.models.money import Money


class DocumentType(str, Enum):
    """Supported financial document types"""
    INVOICE = "INVOICE"
    BILL = "BILL"
    RECEIPT = "RECEIPT"
    EXPENSE = "EXPENSE"
    CREDIT_NOTE = "CREDIT_NOTE"

    @classmethod
    def parse(cls, value: Any) -> 'DocumentType':
        """Parse from enum value or loose spelling ("credit-note", "Credit Note")"""
        if isinstance(value, DocumentType):
            return value
        normalized = str(value).strip().upper().replace('-', '_').replace(' ', '_')
        return cls(normalized)


class ExpenseCategory(str, Enum):
    """Expense categories used to select applicable VAT rates"""
    OFFICE_SUPPLIES = "OFFICE_SUPPLIES"
    HARDWARE = "HARDWARE"
    SOFTWARE = "SOFTWARE"
    TRAVEL = "TRAVEL"
    TELECOMMUNICATIONS = "TELECOMMUNICATIONS"
    INSURANCE = "INSURANCE"
    RENT = "RENT"
    MARKETING = "MARKETING"
    PROFESSIONAL_SERVICES = "PROFESSIONAL_SERVICES"
    UTILITIES = "UTILITIES"
    HORECA = "HORECA"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> Optional['ExpenseCategory']:
        """Parse a category case-insensitively; unknown names map to OTHER"""
        if value is None:
            return None
        if isinstance(value, ExpenseCategory):
            return value
        text = str(value).strip()
        if not text:
            return None
        # "OfficeSupplies" / "office supplies" / "office-supplies"
        normalized = ''.join(
            f"_{c}" if c.isupper() and i and text[i - 1].islower() else c
            for i, c in enumerate(text)
        )
        normalized = normalized.upper().replace('-', '_').replace(' ', '_')
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


def _amount_text(value: Any) -> Optional[str]:
    """Keep amounts as text; numbers from JSON become their string form"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Money):
        return value.to_display_string()
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value).strip()
    return text or None


def _quantity(value: Any) -> Optional[float]:
    """Quantities may be fractional (weights, hours); unreadable values become None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        quantity = float(value)
    else:
        text = str(value).strip().replace(',', '.')
        if not text:
            return None
        try:
            quantity = float(text)
        except ValueError:
            return None
    # "nan" and "inf" parse as floats but are not quantities
    return quantity if math.isfinite(quantity) else None


AmountText = Annotated[Optional[str], BeforeValidator(_amount_text)]
Quantity = Annotated[Optional[float], BeforeValidator(_quantity)]
Category = Annotated[Optional[ExpenseCategory], BeforeValidator(ExpenseCategory.parse)]


@runtime_checkable
class LineItemView(Protocol):
    """Accessors shared by every document type's line items"""

    def get_description(self) -> str:
        ...

    def get_quantity(self) -> Optional[float]:
        ...

    def get_unit_price(self) -> Optional[Money]:
        ...

    def get_net_amount(self) -> Optional[Money]:
        ...


class _LineItemBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')

    @staticmethod
    def _money(value: Optional[str]) -> Optional[Money]:
        amount = Money.parse(value)
        # Currency markers are irrelevant to line math
        return Money.from_minor(amount.minor) if amount is not None else None


class InvoiceLineItem(_LineItemBase):
    """Invoice (and credit note) line"""
    description: str = ""
    quantity: Quantity = None
    unit_price: AmountText = None
    line_total: AmountText = None
    vat_rate: Optional[str] = None

    def get_description(self) -> str:
        return self.description

    def get_quantity(self) -> Optional[float]:
        return self.quantity

    def get_unit_price(self) -> Optional[Money]:
        return self._money(self.unit_price)

    def get_net_amount(self) -> Optional[Money]:
        return self._money(self.line_total)


class BillLineItem(_LineItemBase):
    """Supplier bill line"""
    description: str = ""
    quantity: Quantity = None
    price: AmountText = None
    amount: AmountText = None

    def get_description(self) -> str:
        return self.description

    def get_quantity(self) -> Optional[float]:
        return self.quantity

    def get_unit_price(self) -> Optional[Money]:
        return self._money(self.price)

    def get_net_amount(self) -> Optional[Money]:
        return self._money(self.amount)


class ReceiptItem(_LineItemBase):
    """Till receipt line; prices are VAT inclusive"""
    name: str = ""
    quantity: Quantity = None
    price: AmountText = None
    total: AmountText = None

    def get_description(self) -> str:
        return self.name

    def get_quantity(self) -> Optional[float]:
        return self.quantity

    def get_unit_price(self) -> Optional[Money]:
        return self._money(self.price)

    def get_net_amount(self) -> Optional[Money]:
        return self._money(self.total)


class ExtractedDocument(BaseModel):
    """Common base for extraction payloads"""
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')

    currency: Optional[str] = None

    # Extraction metadata
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class ExtractedInvoiceData(ExtractedDocument):
    """Outgoing or incoming sales invoice"""
    invoice_number: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_vat_number: Optional[str] = None
    customer_name: Optional[str] = None

    issue_date: Optional[str] = None
    due_date: Optional[str] = None

    subtotal: AmountText = None
    total_vat_amount: AmountText = None
    total_amount: AmountText = None

    iban: Optional[str] = None
    payment_reference: Optional[str] = None

    line_items: List[InvoiceLineItem] = Field(default_factory=list)


class ExtractedBillData(ExtractedDocument):
    """
    Supplier bill.

    `amount` is whatever the model read as "the amount"; it may be net or
    gross, which is why the audit resolves net/VAT/gross before checking.
    """
    supplier_name: Optional[str] = None
    supplier_vat_number: Optional[str] = None
    invoice_number: Optional[str] = None

    issue_date: Optional[str] = None
    due_date: Optional[str] = None

    amount: AmountText = None
    vat_amount: AmountText = None
    total_amount: AmountText = None

    category: Category = None
    bank_account: Optional[str] = None
    payment_reference: Optional[str] = None

    line_items: List[BillLineItem] = Field(default_factory=list)


class ExtractedReceiptData(ExtractedDocument):
    """Till receipt"""
    merchant_name: Optional[str] = None
    transaction_date: Optional[str] = None

    subtotal: AmountText = None
    vat_amount: AmountText = None
    total_amount: AmountText = None

    suggested_category: Category = None
    payment_method: Optional[str] = None

    items: List[ReceiptItem] = Field(default_factory=list)


class ExtractedExpenseData(ExtractedDocument):
    """Expense without itemization (parking ticket, fuel, taxi...)"""
    merchant: Optional[str] = None
    expense_date: Optional[str] = None
    description: Optional[str] = None

    total_amount: AmountText = None
    vat_amount: AmountText = None

    category: Category = None


class ExtractedCreditNoteData(ExtractedDocument):
    """Credit note; amounts may be printed negative"""
    credit_note_number: Optional[str] = None
    original_invoice_number: Optional[str] = None
    counterparty_name: Optional[str] = None
    reason: Optional[str] = None

    issue_date: Optional[str] = None

    subtotal: AmountText = None
    vat_amount: AmountText = None
    total_amount: AmountText = None

    iban: Optional[str] = None

    line_items: List[InvoiceLineItem] = Field(default_factory=list)


DOCUMENT_MODELS = {
    DocumentType.INVOICE: ExtractedInvoiceData,
    DocumentType.BILL: ExtractedBillData,
    DocumentType.RECEIPT: ExtractedReceiptData,
    DocumentType.EXPENSE: ExtractedExpenseData,
    DocumentType.CREDIT_NOTE: ExtractedCreditNoteData,
}


def model_for(document_type: DocumentType) -> Type[ExtractedDocument]:
    """Payload model class for a document type"""
    return DOCUMENT_MODELS[DocumentType.parse(document_type)]
