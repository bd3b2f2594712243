#!/usr/bin/env python3
"""
Order Importer CLI
Parses supplier purchase order PDFs and exports them for the ordering system.
"""

import json
import logging
import sys
import threading
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import LOGGING, Settings
from .conversion_engine import ConversionEngine
from .exceptions import OrderImportError
from .exporter import OrderExporter
from .pipeline import BatchResult, OrderPipeline

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(level: str, verbose: bool = False):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOGGING['format'])
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _apply_overrides(settings: Settings, **paths) -> Settings:
    for name, value in paths.items():
        if value:
            setattr(settings, name, Path(value))
    return settings


def run_batch(pipeline: OrderPipeline, pdf_paths: Tuple[str, ...], allow_duplicates: bool) -> BatchResult:
    """Run a batch with a progress spinner. Ctrl+C stops after the current file."""
    cancel = threading.Event()

    def on_duplicate(order) -> bool:
        if allow_duplicates:
            return True
        console.print(f"[yellow]⚠️ Duplicate PO {order.purchase_order_number} in {order.source_filename}, skipped[/yellow]")
        return False

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        task = progress.add_task("Processing PDFs...", total=None)

        def on_progress(index, total, filename):
            progress.update(task, description=f"Processing {filename} ({index + 1}/{total})...")

        try:
            result = pipeline.process_batch(list(pdf_paths), cancel=cancel,
                                            on_duplicate=on_duplicate, on_progress=on_progress)
        except KeyboardInterrupt:
            cancel.set()
            raise
        progress.update(task, description="✅ Processing complete!")

    for failure in result.failures:
        console.print(f"[red]❌ {failure['filename']}: {failure['error']}[/red]")
    return result


def print_orders(result: BatchResult):
    table = Table(title="Processed Orders")
    table.add_column("File")
    table.add_column("Template")
    table.add_column("PO")
    table.add_column("Customer")
    table.add_column("Products", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Total", justify="right")

    for order in result.orders:
        table.add_row(
            order.source_filename,
            order.template_type.value,
            order.purchase_order_number or "-",
            f"{order.customer_name} ({order.customer_code})",
            str(len(order.line_items)),
            str(len(order.warnings)),
            f"£{order.total:.2f}",
        )
    console.print(table)


@click.group()
@click.option('--catalog', type=click.Path(exists=True), help='Product catalog file (code,description)')
@click.option('--conversions', type=click.Path(exists=True), help='Product conversions file')
@click.option('--registry', type=click.Path(), help='Processed PO numbers file (JSON)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, catalog: Optional[str], conversions: Optional[str], registry: Optional[str], verbose: bool):
    """Order Importer - supplier purchase order PDF parser."""
    settings = _apply_overrides(
        Settings.from_env(),
        catalog_path=catalog,
        conversions_path=conversions,
        registry_path=registry,
    )
    setup_logging(settings.log_level, verbose)
    ctx.obj = settings


@cli.command()
@click.argument('pdf_paths', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--output', '-o', type=click.Path(), help='Output JSON file path')
@click.pass_obj
def parse(settings: Settings, pdf_paths: Tuple[str, ...], output: Optional[str]):
    """Parse PDFs and print the extracted orders as JSON."""
    pipeline = OrderPipeline.from_settings(settings)
    result = run_batch(pipeline, pdf_paths, allow_duplicates=True)

    payload = json.dumps([order.to_dict() for order in result.orders], indent=2, ensure_ascii=False)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(payload)
        console.print(f"[green]💾 Results saved to: {output}[/green]")
    else:
        click.echo(payload)

    if result.failures:
        sys.exit(1)


@cli.command()
@click.argument('pdf_paths', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--customers', type=click.Path(exists=True), help='Customer emails file')
@click.option('--vendors', type=click.Path(exists=True), help='Product vendors file')
@click.option('--output-dir', type=click.Path(file_okay=False), help='Directory for the workbook')
@click.option('--force', is_flag=True, help='Export even when conversion warnings remain')
@click.option('--allow-duplicates', is_flag=True, help='Process PO numbers seen before')
@click.pass_obj
def export(settings: Settings, pdf_paths: Tuple[str, ...], customers: Optional[str], vendors: Optional[str],
           output_dir: Optional[str], force: bool, allow_duplicates: bool):
    """Process PDFs and export them to an import workbook."""
    settings = _apply_overrides(settings, customers_path=customers, vendors_path=vendors, output_dir=output_dir)
    pipeline = OrderPipeline.from_settings(settings)
    result = run_batch(pipeline, pdf_paths, allow_duplicates)

    if not result.orders:
        console.print("[red]❌ No orders to export[/red]")
        raise click.Abort()
    print_orders(result)

    def confirm_warnings(warnings) -> bool:
        console.print(f"[yellow]⚠️ {len(warnings)} product(s) have decimal quantities that may round incorrectly:[/yellow]")
        for warning in warnings[:5]:
            console.print(f"  • {warning['productCode']} ({warning['quantity']}kg) in {warning['filename']}")
        if len(warnings) > 5:
            console.print(f"  • ... and {len(warnings) - 5} more")
        return force or click.confirm("Continue with export anyway?", default=False)

    exporter = OrderExporter.with_files(pipeline.engine, settings.customers_path, settings.vendors_path)
    try:
        export_result = exporter.export(result.orders, settings.output_dir,
                                        confirm_warnings=confirm_warnings, registry=pipeline.registry)
    except OrderImportError as e:
        console.print(Panel(str(e), title="❌ Cannot export", border_style="red"))
        raise click.Abort()

    console.print(Panel(export_result.format_message(), border_style="green"))


@cli.command('convert-example')
@click.argument('product_code')
@click.argument('each_weight_grams')
@click.option('--kg', default='0.5', show_default=True, help='Example quantity in kilos')
def convert_example(product_code: str, each_weight_grams: str, kg: str):
    """Preview how a conversion setting converts a kilo quantity."""
    check = ConversionEngine.validate_conversion(product_code, each_weight_grams)
    if not check['valid']:
        console.print(f"[red]❌ {check['error']}[/red]")
        sys.exit(1)
    console.print(ConversionEngine.example_conversion(product_code, each_weight_grams, kg))


def main():
    cli()


if __name__ == '__main__':
    main()
