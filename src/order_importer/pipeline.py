#!/usr/bin/env python3
"""
Batch processing of purchase order PDFs.

Each file runs extract -> classify -> parse -> catalog resolve -> normalize.
Files are processed one after another so duplicate PO detection sees every
order accepted earlier in the same batch.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from .catalog import Catalog, ConversionTable, file_catalog_loader, load_code_table, load_conversion_table
from .catalog_resolver import CatalogResolver
from .config import Settings
from .conversion_engine import ConversionEngine
from .duplicates import DuplicateRegistry
from .exceptions import CatalogUnavailable, ExtractionError
from .models import Order
from .order_assembler import OrderAssembler
from .parser import parse_order
from .pdf_extractor import TextExtractor

logger = logging.getLogger(__name__)

DuplicateHandler = Callable[[Order], bool]


@dataclass
class BatchResult:
    """Outcome of one batch run."""
    orders: List[Order] = field(default_factory=list)
    failures: List[Dict[str, str]] = field(default_factory=list)
    duplicates: List[Order] = field(default_factory=list)
    cancelled: bool = False


class OrderPipeline:
    """Owns the catalog and conversion caches for a batch and runs files through them."""

    def __init__(self, catalog: Catalog, conversions: ConversionTable,
                 registry: Optional[DuplicateRegistry] = None,
                 extractor: Optional[TextExtractor] = None,
                 fallback_names: Optional[Dict[str, str]] = None,
                 partial_overrides=()):
        self.catalog = catalog
        self.conversions = conversions
        self.registry = registry or DuplicateRegistry()
        self.extractor = extractor or TextExtractor()
        self.resolver = CatalogResolver(catalog, fallback_names, partial_overrides)
        self.engine = ConversionEngine(conversions)
        self.assembler = OrderAssembler(self.resolver, self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrderPipeline":
        if settings.catalog_path:
            loader = file_catalog_loader(settings.catalog_path)
        else:
            logger.warning("⚠️ No product catalog configured, catalog matching disabled")
            loader = dict

        conversions = ConversionTable()
        if settings.conversions_path:
            conversions = load_conversion_table(settings.conversions_path)

        fallback_names = {}
        if settings.fallback_names_path:
            fallback_names = load_code_table(settings.fallback_names_path)

        registry = DuplicateRegistry()
        if settings.registry_path:
            registry = DuplicateRegistry.from_file(settings.registry_path)

        return cls(
            Catalog(loader, ttl_seconds=settings.catalog_ttl_seconds),
            conversions,
            registry=registry,
            fallback_names=fallback_names,
        )

    def prepare(self) -> None:
        """Load the catalog before a batch starts."""
        try:
            self.catalog.refresh_if_stale()
        except CatalogUnavailable as e:
            logger.error(f"❌ Catalog could not be loaded, items will be marked unresolved: {e}")

    def parse_text(self, text: str, filename: str) -> Order:
        """Parse and catalog-enrich already extracted text."""
        order = parse_order(text, filename)
        return self.assembler.enrich(order)

    def parse_file(self, source: Union[str, Path, bytes], filename: Optional[str] = None) -> Order:
        """
        Extract, parse and enrich one PDF. Raises ExtractionError if unreadable.
        """
        if not filename:
            filename = "<bytes>" if isinstance(source, bytes) else Path(source).name
        lines = self.extractor.extract_first_page(source)
        return self.parse_text("\n".join(lines), filename)

    def process_file(self, source: Union[str, Path, bytes], filename: Optional[str] = None) -> Order:
        """Run the full pipeline for one file, without duplicate checks."""
        return self.assembler.assemble(self.parse_file(source, filename))

    def process_batch(self, paths: Sequence[Union[str, Path]],
                      cancel: Optional[threading.Event] = None,
                      on_duplicate: Optional[DuplicateHandler] = None,
                      on_progress: Optional[Callable[[int, int, str], None]] = None) -> BatchResult:
        """
        Process files strictly in order.

        Args:
            paths: PDF files to process
            cancel: When set, no further files are started; finished orders are kept
            on_duplicate: Called for an already-seen PO number; return True to process anyway
            on_progress: Called with (index, total, filename) before each file

        Returns:
            BatchResult with assembled orders, per-file failures and skipped duplicates
        """
        self.prepare()
        result = BatchResult()

        for index, path in enumerate(paths):
            filename = Path(path).name
            if cancel is not None and cancel.is_set():
                logger.warning(f"Batch cancelled before {filename}, {len(result.orders)} orders kept")
                result.cancelled = True
                break

            if on_progress:
                on_progress(index, len(paths), filename)

            try:
                order = self.parse_file(path, filename)
            except ExtractionError as e:
                logger.error(f"❌ Error processing {filename}: {e}")
                result.failures.append({'filename': filename, 'error': str(e)})
                continue

            po_number = order.purchase_order_number
            if self.registry.has(po_number):
                logger.warning(f"⚠️ Duplicate purchase order {po_number} in {filename}")
                if not (on_duplicate and on_duplicate(order)):
                    result.duplicates.append(order)
                    continue

            self.assembler.assemble(order)
            result.orders.append(order)
            self.registry.add(po_number)

        logger.info(
            f"Batch complete: {len(result.orders)} orders, {len(result.failures)} failures, "
            f"{len(result.duplicates)} duplicates skipped"
        )
        return result
