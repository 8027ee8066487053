"""
Date parsing helpers for model-emitted document dates.
"""

from datetime import date, datetime
from typing import Any, Optional

# European day-first formats come before anything ambiguous
DOCUMENT_DATE_FORMATS = [
    '%Y-%m-%d',      # ISO format
    '%d/%m/%Y',      # EU format
    '%d.%m.%Y',
    '%d-%m-%Y',
    '%Y/%m/%d',
    '%d %B %Y',      # 15 January 2026
    '%d %b %Y',      # 15 Jan 2026
    '%B %d, %Y',     # January 15, 2026
    '%b %d, %Y',     # Jan 15, 2026
]


def parse_document_date(value: Any) -> Optional[date]:
    """
    Parse a document date, returning None when it cannot be read.

    Accepts date/datetime objects and the string formats in
    DOCUMENT_DATE_FORMATS. ISO timestamps are reduced to their date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    # "2026-03-01T10:00:00" style timestamps
    if len(text) > 10 and text[4:5] == '-' and text[10:11] in ('T', ' '):
        text = text[:10]

    for fmt in DOCUMENT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
