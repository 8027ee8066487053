"""
Exceptions raised by docaudit.

Validators never raise for missing or malformed extraction data; these
cover contract violations only.
"""


class DocAuditError(Exception):
    """Base class for docaudit errors"""
    pass


class ConfigurationError(DocAuditError):
    """Raised when configuration values are missing or invalid"""
    pass


class UnsupportedDocumentTypeError(DocAuditError):
    """Raised when no audit is defined for a document type"""
    pass
