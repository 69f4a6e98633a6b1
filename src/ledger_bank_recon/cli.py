"""
Command-line interface for the company ledger / bank statement reconciliation tool.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import (
    PairwiseRules,
    PairwiseWithReviewRules,
    ReconConfig,
    generate_default_config,
    load_config,
    validate_rule_set,
)
from .matching.engine import ReconciliationEngine
from .models.result import ReconciliationResult
from .models.table import cell_text
from .parsers.check_extraction import enrich_company_table
from .parsers.table_reader import TableReader
from .reports.excel_generator import ExcelReportGenerator
from .utils.exceptions import ConfigurationError
from .utils.logging_config import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

REVIEW_KEYS = ("amount", "check_number", "date")


def _parse_mappings(ctx, param, values) -> list[tuple[str, str, str]]:
    """Parse repeated LABEL=COMPANY_COLUMN:BANK_COLUMN options."""
    mappings = []
    for value in values:
        label, sep, columns = value.partition("=")
        company_column, sep2, bank_column = columns.partition(":")
        if not sep or not sep2 or not label.strip():
            raise click.BadParameter(
                f"'{value}' is not of the form LABEL=COMPANY_COLUMN:BANK_COLUMN"
            )
        mappings.append((label.strip(), company_column.strip(), bank_column.strip()))
    return mappings


map_option = click.option(
    "-m",
    "--map",
    "mappings",
    multiple=True,
    callback=_parse_mappings,
    metavar="LABEL=COMPANY:BANK",
    help="Map a matching column to its company and bank columns (repeatable)",
)
config_option = click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)


@click.group()
@click.version_option(version=__version__)
def main():
    """Company Ledger / Bank Statement Reconciliation Tool."""
    pass


@main.command()
@click.argument("company_file", type=click.Path(exists=True, path_type=Path))
@click.argument("bank_file", type=click.Path(exists=True, path_type=Path))
@click.option("-t", "--type", "type_key", required=True, help="Classification type key")
@config_option
@map_option
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--date-tolerance", type=click.IntRange(min=0), default=None,
    help="Enable date tolerance with this many days",
)
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Rows per batch")
@click.option("--no-extract", is_flag=True, help="Skip check number extraction from narratives")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Run the reconciliation without writing a report"
)
def reconcile(
    company_file: Path,
    bank_file: Path,
    type_key: str,
    config: Optional[Path],
    mappings: list[tuple[str, str, str]],
    output: Optional[Path],
    date_tolerance: Optional[int],
    batch_size: Optional[int],
    no_extract: bool,
    verbose: bool,
    dry_run: bool,
):
    """
    Reconcile a company ledger with a bank statement.

    COMPANY_FILE: Path to the company ledger (.xlsx or .csv)
    BANK_FILE: Path to the bank statement (.xlsx or .csv)
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        recon_config = load_config(config)
        if not verbose:
            log_file = recon_config.logging.file
            setup_logging(
                getattr(logging, recon_config.logging.level.upper(), logging.INFO),
                log_file=Path(log_file) if log_file else None,
                log_format=recon_config.logging.format,
            )
        rule_set = recon_config.get_rule_set(type_key)
        rule_set = _apply_overrides(rule_set, mappings, date_tolerance)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            reader = TableReader(recon_config)

            task = progress.add_task("Reading company ledger...", total=None)
            company = reader.read(company_file)
            if recon_config.ingestion.extract_check_numbers and not no_extract:
                company = enrich_company_table(
                    company, recon_config.ingestion.company_narrative_column
                )
            progress.update(task, total=1, completed=1)

            task = progress.add_task("Reading bank statement...", total=None)
            bank = reader.read(bank_file)
            progress.update(task, total=1, completed=1)

            task = progress.add_task(f"Reconciling {rule_set.name or type_key}...", total=None)

            def on_progress(processed: int, total: int) -> None:
                progress.update(task, completed=processed, total=total)

            engine = ReconciliationEngine(recon_config, batch_size=batch_size)
            result = engine.reconcile(company, bank, rule_set, progress=on_progress)
            progress.update(task, total=1, completed=1)

        _display_summary(result, rule_set.name or type_key)

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        report_generator = ExcelReportGenerator(recon_config)
        if output is None:
            output = Path(report_generator.build_filename(f"Reconciliation_{type_key}"))
        report_path = report_generator.generate_summary_workbook(
            result, output, title=f"Reconciliation Summary - {rule_set.name or type_key}"
        )

        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command()
@click.option("-t", "--type", "type_key", required=True, help="Classification type key")
@config_option
@map_option
def validate(type_key: str, config: Optional[Path], mappings: list[tuple[str, str, str]]):
    """Check that a classification type is ready to run."""
    try:
        recon_config = load_config(config)
        rule_set = _apply_overrides(recon_config.get_rule_set(type_key), mappings, None)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    report = validate_rule_set(rule_set)
    if report.valid:
        console.print(f"[green]'{type_key}' is valid ({rule_set.strategy})[/green]")
        return

    console.print(f"[red]'{type_key}' has {len(report.errors)} configuration error(s):[/red]")
    for error in report.errors:
        console.print(f"  - {error}")
    sys.exit(1)


@main.command("list-types")
@config_option
def list_types(config: Optional[Path]):
    """List the configured classification types."""
    try:
        recon_config = load_config(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    table = Table(title="Classification Types")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Strategy")
    table.add_column("Company Patterns", justify="right")
    table.add_column("Bank Patterns", justify="right")
    table.add_column("Ready")

    for key, rule_set in recon_config.classification_types.items():
        report = validate_rule_set(rule_set)
        table.add_row(
            key,
            rule_set.name,
            rule_set.strategy,
            str(len(rule_set.company.patterns)),
            str(len(rule_set.bank.patterns)),
            "[green]yes[/green]" if report.valid else "[yellow]needs mapping[/yellow]",
        )

    console.print(table)


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--rows", type=click.IntRange(min=0), default=20, help="Rows to display")
@click.option("--sheet", default=None, help="Sheet name or index for workbooks")
def inspect(file: Path, rows: int, sheet: Optional[str]):
    """
    Show the headers and first rows of a ledger or statement.

    FILE: Path to an .xlsx or .csv file
    """
    sheet_ref = int(sheet) if sheet is not None and sheet.isdigit() else sheet

    try:
        data = TableReader(ReconConfig()).read(file, sheet=sheet_ref)
    except Exception as e:
        console.print(f"[red]Error reading file: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"{file.name}")
    for header in data.headers:
        table.add_column(header or "-")

    for row in data.rows[:rows]:
        cells = [cell_text(row[i]) if i < len(row) else "" for i in range(len(data.headers))]
        table.add_row(*[c[:40] + "..." if len(c) > 40 else c for c in cells])

    console.print(table)

    if len(data) > rows:
        console.print(f"\n... and {len(data) - rows} more rows")

    console.print(f"\nTotal rows: {len(data)}")


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_summary(result: ReconciliationResult, title: str) -> None:
    """Display reconciliation summary in console."""
    stats = result.stats
    table = Table(title=f"Reconciliation Summary: {title}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Strategy", result.strategy)
    table.add_row("Total Company Rows", str(stats.total_company_rows))
    table.add_row("Total Bank Rows", str(stats.total_bank_rows))
    table.add_row("Classified Company", str(stats.classified_company_rows))
    table.add_row("Classified Bank", str(stats.classified_bank_rows))
    table.add_row("Matched Pairs", str(stats.matched_pairs))
    if result.review_company is not None:
        table.add_row("Review Pairs", str(stats.review_pairs))
    table.add_row("Unmatched Company", str(stats.unmatched_company_rows))
    table.add_row("Unmatched Bank", str(stats.unmatched_bank_rows))
    table.add_row("Match Rate", f"{stats.match_rate}%")

    if stats.company_total is not None:
        table.add_row("Company Total", f"{stats.company_total:,.2f}")
        table.add_row("Bank Total", f"{stats.bank_total:,.2f}")
        table.add_row("Difference", f"{stats.totals_difference:,.2f}")
        table.add_row("Totals Match", "[green]yes[/green]" if stats.totals_match else "[red]no[/red]")

    console.print(table)

    if result.grouped_by_pattern:
        groups = Table(title="Bank Rows by Pattern")
        groups.add_column("Pattern", style="cyan")
        groups.add_column("Rows", justify="right")
        groups.add_column("Total", justify="right")
        for group in result.grouped_by_pattern:
            total = f"{group.total_amount:,.2f}" if group.total_amount is not None else "-"
            groups.add_row(group.pattern, str(group.count), total)
        console.print(groups)


def _apply_overrides(rule_set, mappings: list[tuple[str, str, str]], date_tolerance: Optional[int]):
    """Return a copy of rule_set with column mappings and date tolerance applied."""
    if mappings:
        rule_set = _apply_column_mappings(rule_set, mappings)

    if date_tolerance is not None:
        if not isinstance(rule_set, (PairwiseRules, PairwiseWithReviewRules)):
            raise ConfigurationError(
                f"Strategy '{rule_set.strategy}' does not compare dates"
            )
        rule_set = rule_set.model_copy(
            update={"date_tolerance": date_tolerance, "use_date_tolerance": True}
        )
        logger.debug(f"Date tolerance overridden to {date_tolerance} days")

    return rule_set


def _label_key(label: str) -> str:
    return label.replace("_", " ").strip().casefold()


def _apply_column_mappings(rule_set, mappings: list[tuple[str, str, str]]):
    """Fill company/bank columns of matching columns selected by label."""
    if isinstance(rule_set, PairwiseRules):
        columns = list(rule_set.matching_columns)
        for label, company_column, bank_column in mappings:
            positions = [
                i for i, column in enumerate(columns)
                if _label_key(column.label) == _label_key(label)
            ]
            if not positions:
                raise ConfigurationError(f"No matching column labelled '{label}'")
            index = positions[0]
            columns[index] = columns[index].model_copy(
                update={"company_column": company_column, "bank_column": bank_column}
            )
        return rule_set.model_copy(update={"matching_columns": columns})

    if isinstance(rule_set, PairwiseWithReviewRules):
        updates = {}
        for label, company_column, bank_column in mappings:
            key = next(
                (
                    k for k in REVIEW_KEYS
                    if _label_key(label) in (_label_key(k), _label_key(getattr(rule_set, k).label))
                ),
                None,
            )
            if key is None:
                raise ConfigurationError(
                    f"No matching column labelled '{label}' (expected one of: {', '.join(REVIEW_KEYS)})"
                )
            current = updates.get(key, getattr(rule_set, key))
            updates[key] = current.model_copy(
                update={"company_column": company_column, "bank_column": bank_column}
            )
        return rule_set.model_copy(update=updates)

    raise ConfigurationError(f"Strategy '{rule_set.strategy}' has no matching columns to map")


if __name__ == "__main__":
    main()
