"""
docaudit Configuration Management

Loads the packaged default configuration, merges an optional user file
on top and builds the typed settings consumed by the validators, the
retry loop and the outcome classifier.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from docaudit.exceptions import ConfigurationError
from docaudit.models.documents import DocumentType
from docaudit.models.retry import RetryConfig
from docaudit.processors.validation.vat_rate_validator import VatJurisdiction

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'default_config.yaml'
USER_CONFIG_PATH = Path.home() / '.docaudit' / 'config.yaml'


class ToleranceSettings(BaseModel):
    """Absolute tolerances in minor units"""
    model_config = ConfigDict(frozen=True)

    totals_minor: int = Field(1, ge=0)
    line_item_minor: int = Field(1, ge=0)


class LineItemSettings(BaseModel):
    """Per document type line-item rules"""
    model_config = ConfigDict(frozen=True)

    expect_items_for: List[DocumentType] = Field(default_factory=lambda: [DocumentType.INVOICE])
    exclude_included_fees_for: List[DocumentType] = Field(default_factory=lambda: [
        DocumentType.INVOICE, DocumentType.BILL, DocumentType.CREDIT_NOTE,
    ])
    included_fee_prefixes: List[str] = Field(default_factory=lambda: [
        'incl ', 'incl.', 'included ', 'inclusief ',
    ])
    included_fee_markers: List[str] = Field(default_factory=lambda: ['recupel', 'auvibel'])


class AuditSettings(BaseModel):
    """Typed view of the audit section plus retry configuration"""
    model_config = ConfigDict(frozen=True)

    tolerances: ToleranceSettings = Field(default_factory=ToleranceSettings)
    confidence_threshold: float = Field(0.8, ge=0.0, le=1.0)
    line_items: LineItemSettings = Field(default_factory=LineItemSettings)
    jurisdiction: VatJurisdiction = Field(default_factory=VatJurisdiction.belgium)
    retry: RetryConfig = Field(default_factory=RetryConfig)


class AuditConfig:
    """
    Manages docaudit configuration.

    Values come from the packaged default_config.yaml, deep-merged with
    ~/.docaudit/config.yaml when it exists.

    Usage:
        config = AuditConfig()
        config.get('audit.tolerances.totals_minor')
        settings = config.settings()
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None, load_user_config: bool = True):
        with open(DEFAULT_CONFIG_PATH, 'r', encoding='utf-8') as f:
            self.config: Dict[str, Any] = yaml.safe_load(f) or {}

        self.config_file = Path(config_file) if config_file else USER_CONFIG_PATH
        if config_file is not None or (load_user_config and self.config_file.exists()):
            self._load_config()

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'AuditConfig':
        """Load defaults overlaid with a specific configuration file"""
        return cls(config_file=config_path)

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> 'AuditConfig':
        """Defaults overlaid with in-memory values; the user file is ignored"""
        instance = cls(load_user_config=False)
        instance._update_config_recursive(instance.config, overrides)
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key"""
        try:
            value = self.config
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-notation key"""
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def settings(self) -> AuditSettings:
        """Build typed settings; invalid values raise ConfigurationError"""
        audit = self.get('audit', {}) or {}
        try:
            return AuditSettings(
                tolerances=audit.get('tolerances') or {},
                confidence_threshold=audit.get('confidence_threshold', 0.8),
                line_items=audit.get('line_items') or {},
                jurisdiction=audit.get('jurisdiction') or VatJurisdiction.belgium(),
                retry=self.get('retry') or {},
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid audit configuration: {e}") from e

    def retry_config(self) -> RetryConfig:
        return self.settings().retry

    def jurisdiction(self) -> VatJurisdiction:
        return self.settings().jurisdiction

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write the merged configuration as YAML"""
        target = Path(path) if path else self.config_file
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Configuration saved to {target}")
        return target

    def _load_config(self) -> None:
        if not self.config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_file}")

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {self.config_file}: {e}") from e

        if file_config is None:
            logger.warning(f"Configuration file is empty: {self.config_file}")
            return
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration must be a mapping: {self.config_file}")

        self._update_config_recursive(self.config, file_config)
        logger.info(f"Configuration loaded from {self.config_file}")

    @staticmethod
    def _update_config_recursive(target: Dict[str, Any], source: Dict[str, Any]) -> None:
        """Deep-merge source into target"""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                AuditConfig._update_config_recursive(target[key], value)
            else:
                target[key] = copy.deepcopy(value)
