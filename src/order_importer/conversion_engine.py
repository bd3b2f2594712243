#!/usr/bin/env python3
"""
Decimal quantity conversion.

Fractional kilo quantities round unpredictably in the ordering system, so
they are converted to whole "each" units using a per-product each-weight.
The monetary value of the line is fixed to the figures on the document:
only the split between quantity and unit price changes.
"""

import logging
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Any

from .catalog import ConversionTable, validate_conversion
from .exceptions import ConversionUnavailable
from .models import CaseUnit, ConversionStatus, LineItem, Order

logger = logging.getLogger(__name__)

GRAMS_PER_KILO = Decimal("1000")
CENTS = Decimal("0.01")
WHOLE_TOLERANCE = Decimal("0.001")


def is_decimal_quantity(quantity: Decimal) -> bool:
    return quantity % 1 != 0


def _round_half_up(value: Decimal, exp: Decimal = Decimal("1")) -> Decimal:
    return value.quantize(exp, rounding=ROUND_HALF_UP)


class ConversionEngine:
    """Normalizes line item quantities to whole units."""

    def __init__(self, conversions: ConversionTable):
        self.conversions = conversions

    def normalize(self, item: LineItem) -> LineItem:
        """
        Convert a line item's quantity to whole units where possible.

        Always derived from ``original_quantity`` and ``original_unit_price``,
        so calling it again on its own output changes nothing.

        Args:
            item: Parsed (and optionally catalog-enriched) line item

        Returns:
            A new line item with quantity, prices and conversion flags set
        """
        original_qty = item.original_quantity
        original_price = item.original_unit_price
        net_price = original_qty * original_price
        code = item.product_code

        reset = dict(
            quantity=original_qty,
            unit_price=original_price,
            net_price=net_price,
            conversion_applied=False,
            has_warning=False,
            note="",
        )

        if not is_decimal_quantity(original_qty):
            logger.debug(f"{code}: Whole number, no conversion needed")
            return replace(item, conversion_status=ConversionStatus.WHOLE, **reset)

        try:
            conversion = self.conversions.require(code)
        except ConversionUnavailable:
            logger.info(f"⚠️ {code}: No conversion available for {original_qty}kg")
            reset.update(has_warning=True, note=f"⚠️ {original_qty}kg may round incorrectly in the ordering system")
            return replace(item, conversion_status=ConversionStatus.NO_CONVERSION, **reset)

        grams = original_qty * GRAMS_PER_KILO
        each_units = grams / conversion.each_weight_grams
        rounded_units = _round_half_up(each_units, CENTS)
        whole_units = _round_half_up(rounded_units)

        logger.debug(
            f"{code}: {original_qty}kg = {grams}g ÷ {conversion.each_weight_grams}g = "
            f"{each_units} units (rounded: {rounded_units})"
        )

        if abs(rounded_units - whole_units) > WHOLE_TOLERANCE or whole_units == 0:
            logger.info(f"⚠️ {code}: Still decimal after conversion ({rounded_units})")
            reset.update(
                has_warning=True,
                note=f"⚠️ {original_qty}kg → {rounded_units:.1f} {code}E (still decimal)",
            )
            return replace(item, conversion_status=ConversionStatus.STILL_DECIMAL, **reset)

        unit_price = net_price / whole_units
        logger.info(f"✅ {code}: Converted {original_qty}kg to {whole_units} units at {unit_price:.2f} each")

        return replace(
            item,
            quantity=whole_units,
            unit_price=unit_price,
            net_price=net_price,
            conversion_applied=True,
            has_warning=False,
            note=f"✅ {original_qty}kg → {whole_units} {code}E ({conversion.each_weight_grams}g each)",
            conversion_status=ConversionStatus.CONVERTED,
        )

    def sku_suffix(self, item: LineItem) -> str:
        """Unit-of-sale suffix appended to the product code on export."""
        if item.conversion_applied:
            return 'E'

        if item.case_unit == CaseUnit.KILO:
            # A convertible decimal line should already be converted; never export it as K
            if item.product_code in self.conversions and is_decimal_quantity(item.original_quantity):
                return 'E'
            return 'K'
        if item.case_unit == CaseUnit.BOX:
            return 'B'
        return 'E'

    def process_order(self, order: Order) -> Order:
        """Normalize every line item of an order in place."""
        order.line_items = [self.normalize(item) for item in order.line_items]
        return order

    @staticmethod
    def conversion_stats(items: Iterable[LineItem]) -> Dict[str, int]:
        stats = {'converted': 0, 'warnings': 0, 'whole': 0}
        for item in items:
            if not is_decimal_quantity(item.original_quantity):
                stats['whole'] += 1
            elif item.conversion_applied:
                stats['converted'] += 1
            else:
                stats['warnings'] += 1
        return stats

    @staticmethod
    def conversion_warnings(orders: Iterable[Order]) -> List[Dict[str, Any]]:
        """Every flagged item, with enough context to find and fix it."""
        warnings = []
        for order in orders:
            for item in order.line_items:
                if item.has_warning:
                    warnings.append({
                        'productCode': item.product_code,
                        'quantity': item.original_quantity,
                        'filename': order.source_filename,
                        'status': item.conversion_status.value,
                        'warning': item.note,
                    })
        return warnings

    @staticmethod
    def conversion_summary(orders: Iterable[Order]) -> Dict[str, int]:
        orders = list(orders)
        return {
            'totalConverted': sum(1 for o in orders for i in o.line_items if i.conversion_applied),
            'totalWarnings': sum(1 for o in orders for i in o.line_items if i.has_warning),
            'totalProducts': sum(len(o.line_items) for o in orders),
        }

    @staticmethod
    def validate_conversion(product_code: str, each_weight_grams) -> Dict[str, Any]:
        return validate_conversion(product_code, each_weight_grams)

    @staticmethod
    def example_conversion(product_code: str, each_weight_grams, example_kg=Decimal("0.5")) -> str:
        """Human-readable preview of a conversion setting, e.g. ``0.5kg AB → 2.5 ABE``."""
        example_kg = Decimal(str(example_kg))
        grams = example_kg * GRAMS_PER_KILO
        each_units = _round_half_up(grams / Decimal(str(each_weight_grams)), Decimal("0.1"))
        return f"{example_kg}kg {product_code} → {each_units} {product_code}E"
