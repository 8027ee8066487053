from docaudit.config.audit_config import (
    AuditConfig,
    AuditSettings,
    LineItemSettings,
    ToleranceSettings,
)

__all__ = ['AuditConfig', 'AuditSettings', 'LineItemSettings', 'ToleranceSettings']
