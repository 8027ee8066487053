from docaudit.utils.dates import parse_document_date, DOCUMENT_DATE_FORMATS

__all__ = ['parse_document_date', 'DOCUMENT_DATE_FORMATS']
