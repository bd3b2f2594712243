#!/usr/bin/env python3
"""
Order assembly: catalog enrichment and quantity normalization of parsed
orders, plus the manual edit operations that re-run normalization.
"""

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation

from .catalog_resolver import CatalogResolver
from .conversion_engine import ConversionEngine
from .models import CaseUnit, Order

logger = logging.getLogger(__name__)


class OrderAssembler:
    """Takes a parsed order through catalog resolution and normalization."""

    def __init__(self, resolver: CatalogResolver, engine: ConversionEngine):
        self.resolver = resolver
        self.engine = engine

    def enrich(self, order: Order) -> Order:
        """Resolve every line item against the catalog. Done once per order."""
        logger.info(f"🔍 Enhancing {len(order.line_items)} products with catalog descriptions...")
        order.line_items = [self.resolver.enhance(item) for item in order.line_items]
        return order

    def assemble(self, order: Order) -> Order:
        """Normalize every line item; the order total follows from the net prices."""
        self.engine.process_order(order)

        stats = self.engine.conversion_stats(order.line_items)
        logger.info(
            f"Assembled {order.source_filename}: {len(order.line_items)} items, total {order.total:.2f} "
            f"({stats['converted']} converted, {stats['warnings']} warnings, {stats['whole']} whole)"
        )
        return order

    def edit_quantity(self, order: Order, index: int, quantity) -> Order:
        """
        Replace a line's quantity with an operator-entered figure.

        The entered figure becomes the new baseline for normalization. The
        original unit price is kept, so the line is re-priced from it.
        """
        try:
            new_quantity = Decimal(str(quantity))
        except InvalidOperation:
            new_quantity = Decimal("0")
        if not new_quantity.is_finite() or new_quantity < 0:
            new_quantity = Decimal("0")

        item = replace(order.line_items[index], original_quantity=new_quantity, quantity=new_quantity)
        order.replace_item(index, self.engine.normalize(item))
        logger.debug(f"Quantity edit on {order.source_filename}[{index}] -> {new_quantity}, total {order.total}")
        return order

    def edit_product_code(self, order: Order, index: int, product_code: str) -> Order:
        """Change a line's product code and re-apply conversion for the new code."""
        item = replace(order.line_items[index], product_code=product_code.strip().upper())
        order.replace_item(index, self.engine.normalize(item))
        return order

    def edit_case_unit(self, order: Order, index: int, case_unit) -> Order:
        item = replace(order.line_items[index], case_unit=CaseUnit(case_unit))
        order.replace_item(index, item)
        return order
