"""
docaudit CLI commands

Audit extraction JSON files from the command line.
"""

import json
import logging
from datetime import date

import click

from docaudit.config.audit_config import AuditConfig
from docaudit.exceptions import DocAuditError
from docaudit.models.documents import DocumentType, ExpenseCategory
from docaudit.processors.outcome_classifier import OutcomeClassifier
from docaudit.processors.retry.feedback_prompt_builder import FeedbackPromptBuilder
from docaudit.processors.validation.audit_service import ExtractionAuditService
from docaudit.processors.validation.vat_rate_validator import VatJurisdiction
from docaudit.utils.dates import parse_document_date

DOCUMENT_TYPES = [t.value for t in DocumentType]
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _load_extraction(path: str) -> dict:
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON in {path}: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"Expected a JSON object in {path}")
    return data


def _audit(ctx: click.Context, document_type: str, path: str):
    service = ExtractionAuditService.from_settings(ctx.obj['settings'])
    try:
        return service.audit(document_type, _load_extraction(path))
    except DocAuditError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option('--config', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              help='Logging level (defaults to logging.level in the configuration)')
@click.pass_context
def cli(ctx, config, log_level):
    """docaudit command-line interface"""
    try:
        audit_config = AuditConfig.from_file(config) if config else AuditConfig()
        settings = audit_config.settings()
    except DocAuditError as e:
        raise click.ClickException(str(e))

    level = log_level or str(audit_config.get('logging.level', 'WARNING')).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format=audit_config.get('logging.format', LOG_FORMAT),
    )

    ctx.ensure_object(dict)
    ctx.obj['config'] = audit_config
    ctx.obj['settings'] = settings


@cli.command()
@click.argument('extraction_file', type=click.Path(exists=True))
@click.option('--type', 'document_type', type=click.Choice(DOCUMENT_TYPES, case_sensitive=False),
              required=True, help='Document type of the extraction')
@click.pass_context
def audit(ctx, extraction_file, document_type):
    """Audit an extraction JSON file and print the report"""
    report = _audit(ctx, document_type, extraction_file)
    click.echo(json.dumps(report.model_dump(mode='json'), indent=2))
    ctx.exit(0 if report.is_passed else 1)


@cli.command()
@click.argument('extraction_file', type=click.Path(exists=True))
@click.option('--type', 'document_type', type=click.Choice(DOCUMENT_TYPES, case_sensitive=False),
              required=True, help='Document type of the extraction')
@click.option('--classification-confidence', type=click.FloatRange(0.0, 1.0), default=1.0,
              help='Confidence of the document type classification')
@click.option('--extraction-confidence', type=click.FloatRange(0.0, 1.0),
              help='Extraction confidence (defaults to the file\'s confidence field)')
@click.option('--threshold', type=click.FloatRange(0.0, 1.0), help='Confidence threshold override')
@click.pass_context
def outcome(ctx, extraction_file, document_type, classification_confidence,
            extraction_confidence, threshold):
    """Audit an extraction and decide auto-confirm vs. manual review"""
    report = _audit(ctx, document_type, extraction_file)
    if extraction_confidence is None:
        extraction_confidence = float(_load_extraction(extraction_file).get('confidence') or 0.0)

    classifier = OutcomeClassifier(ctx.obj['settings'].confidence_threshold)
    decision = classifier.decide(classification_confidence, extraction_confidence, report, threshold)

    click.echo(json.dumps({
        'decision': decision.model_dump(mode='json'),
        'report': report.summary(),
    }, indent=2))
    ctx.exit(0 if report.is_passed else 1)


@cli.command()
@click.argument('extraction_file', type=click.Path(exists=True))
@click.option('--type', 'document_type', type=click.Choice(DOCUMENT_TYPES, case_sensitive=False),
              required=True, help='Document type of the extraction')
@click.option('--attempt', type=click.IntRange(min=1), default=1, help='Attempt number')
@click.pass_context
def feedback(ctx, extraction_file, document_type, attempt):
    """Print the correction prompt a retry would send"""
    report = _audit(ctx, document_type, extraction_file)
    max_retries = ctx.obj['settings'].retry.max_retries
    click.echo(FeedbackPromptBuilder().build_feedback_prompt(report, attempt, max(max_retries, attempt)))
    if report.retryable_failures:
        click.echo()
        click.echo(FeedbackPromptBuilder.build_correction_summary(report.retryable_failures))


@cli.command()
@click.option('--category', help='Expense category, e.g. HORECA')
@click.option('--date', 'document_date', help='Document date, e.g. 2026-03-01')
@click.pass_context
def rates(ctx, category, document_date):
    """Print the VAT rates valid for a category on a date"""
    jurisdiction: VatJurisdiction = ctx.obj['settings'].jurisdiction

    parsed_date = None
    if document_date:
        parsed_date = parse_document_date(document_date)
        if parsed_date is None:
            raise click.BadParameter(f"Unreadable date: {document_date}", param_hint='--date')

    parsed_category = ExpenseCategory.parse(category)
    applicable = jurisdiction.applicable_rates(parsed_category, parsed_date)

    click.echo(f"Jurisdiction: {jurisdiction.country_code}")
    click.echo(f"Category: {parsed_category.value if parsed_category else '-'}")
    click.echo(f"Date: {parsed_date.isoformat() if isinstance(parsed_date, date) else '-'}")
    click.echo(f"Rates: {', '.join(f'{r:g}%' for r in applicable)}")


if __name__ == '__main__':
    cli()
