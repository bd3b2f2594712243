#!/usr/bin/env python3
"""
Purchase order parsers for the Standard and Consolidated templates.
Header fields and line items are pulled out of the flat page text with
ordered regex patterns.
"""

import re
import logging
from typing import List, Dict, Optional, Pattern
from decimal import Decimal, InvalidOperation

from .models import CaseUnit, LineItem, Order, TemplateType
from .template_classifier import classify

logger = logging.getLogger(__name__)

KILO_UNITS = {'kg', 'kgs', 'kilo', 'kilos'}
BOX_UNITS = {'box', 'boxes', 'bx', 'case'}


def to_decimal(value: str) -> Decimal:
    """Parse a numeric string captured by a pattern. Unparseable values become 0."""
    if not value:
        return Decimal("0")
    try:
        return Decimal(value.replace(',', '').strip())
    except InvalidOperation:
        logger.warning(f"Invalid numeric value: {value}")
        return Decimal("0")


def case_unit_from_pack_size(pack_size: str) -> CaseUnit:
    """
    Map a printed pack-size token to a unit of sale.

    Only a bare unit counts: ``1xKG`` or ``£ per Kg`` is sold by the kilo,
    ``1xBOX`` by the box. Weighted packs such as ``1x5Kg`` are counted units.
    """
    if not pack_size:
        return CaseUnit.EACH

    unit = pack_size.strip().lower()
    if 'per kg' in unit:
        return CaseUnit.KILO
    if unit.startswith('1x'):
        unit = unit[2:].strip()

    if unit in KILO_UNITS:
        return CaseUnit.KILO
    if unit in BOX_UNITS:
        return CaseUnit.BOX
    return CaseUnit.EACH


class BaseOrderParser:
    """
    Shared contract for template parsers.

    Subclasses fill ``header_patterns`` (field name -> ordered patterns) and
    implement ``produce_line_items``.
    """

    template_type = TemplateType.STANDARD

    def __init__(self):
        self.header_patterns: Dict[str, List[Pattern]] = {}

    def parse(self, text: str, filename: str) -> Order:
        """Parse document text into an order. Missing fields stay empty."""
        order = Order(source_filename=filename, template_type=self.template_type)

        self.extract_header(text, order)
        order.line_items = self.produce_line_items(text)

        logger.info(
            f"Parsed {self.template_type.value} order {order.purchase_order_number or '(no PO)'} "
            f"from {filename}: {len(order.line_items)} line items"
        )
        return order

    def extract_header(self, text: str, order: Order) -> None:
        for field_name, patterns in self.header_patterns.items():
            value = self.first_match(patterns, text)
            if value is not None:
                setattr(order, field_name, value)
            else:
                logger.debug(f"No match for header field {field_name}")

    def produce_line_items(self, text: str) -> List[LineItem]:
        raise NotImplementedError

    @staticmethod
    def first_match(patterns: List[Pattern], text: str) -> Optional[str]:
        """Return group 1 of the first pattern that matches, trimmed."""
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def _line_item_from_table_match(self, match) -> LineItem:
        """Build a priced line item from a six-group tabular match."""
        pack_size = match.group(4).strip()
        return LineItem.create(
            quantity=to_decimal(match.group(1)),
            description=match.group(2).strip(),
            product_code=match.group(3).strip(),
            case_unit=case_unit_from_pack_size(pack_size),
            unit_price=to_decimal(match.group(5)),
            net_price=to_decimal(match.group(6)),
            pack_size=pack_size,
        )


class StandardOrderParser(BaseOrderParser):
    """Parser for the default purchase order layout."""

    template_type = TemplateType.STANDARD

    def __init__(self):
        super().__init__()
        self.header_patterns = {
            'purchase_order_number': [re.compile(r'PO Number:\s*([A-Z0-9]+)')],
            'order_date': [re.compile(r'Order Date:\s*(\d{2}/\d{2}/\d{4})')],
            'delivery_date': [re.compile(r'Delivery Date:\s*(\d{2}/\d{2}/\d{4})')],
            'customer_code': [re.compile(r'Account No:\s*([A-Z0-9]+)')],
            'customer_name': [re.compile(r'Deliver To\s+([^\n]+)')],
        }

        # quantity, DESCRIPTION, CODE, 1xUNIT, unit price, net price
        self.table_pattern = re.compile(
            r'(\d+\.?\d*)\s+([A-Z\s]+?)\s+([A-Z]+)\s+(1x\w+)\s+(\d+\.?\d*)\s+(\d+\.?\d*)'
        )

    def produce_line_items(self, text: str) -> List[LineItem]:
        # Every row is accepted as printed, without the price guard the
        # Consolidated layout applies.
        line_items = []
        for match in self.table_pattern.finditer(text):
            item = self._line_item_from_table_match(match)
            logger.debug(f"Standard row: {item.product_code} x {item.quantity}")
            line_items.append(item)
        return line_items


class ConsolidatedOrderParser(BaseOrderParser):
    """Parser for consolidated purchase orders covering several outlets."""

    template_type = TemplateType.CONSOLIDATED

    def __init__(self):
        super().__init__()
        self.header_patterns = {
            'purchase_order_number': [
                re.compile(r'PO Number:\s*([A-Z0-9]+)', re.IGNORECASE),
                re.compile(r'Purchase Order[^:]*:\s*([A-Z0-9]+)', re.IGNORECASE),
                re.compile(r'PO[:\s]+([A-Z0-9]+)', re.IGNORECASE),
            ],
            'order_date': [
                re.compile(r'Order Date:\s*(\d{2}/\d{2}/\d{4})'),
                re.compile(r'Date:\s*(\d{2}/\d{2}/\d{4})'),
            ],
            'delivery_date': [
                re.compile(r'Delivery Date:\s*(\d{2}/\d{2}/\d{4})'),
                re.compile(r'Deliver[^:]*:\s*(\d{2}/\d{2}/\d{4})'),
            ],
        }

        # Group 1 is the outlet name, group 2 its code
        self.customer_patterns = [
            re.compile(r'following outlets[^:]*:\s*([^(]+)\s*\(([^)]+)\)', re.IGNORECASE),
            re.compile(r'outlets[^:]*:\s*([^(]+)\s*\(([^)]+)\)', re.IGNORECASE),
            re.compile(r'The\s+([^(]+)\s*\(([^)]+)\)', re.IGNORECASE),
        ]

        self.table_patterns = [
            re.compile(r'(\d+\.?\d*)\s+([A-Z\s]+?)\s+([A-Z]+)\s+(1x[A-Za-z]+)\s+(\d+\.?\d*)\s+(\d+\.?\d*)'),
            re.compile(r'(\d+\.?\d*)\s+([A-Z][A-Z\s]+?)\s+([A-Z]{2,5})\s+([^\d]+)\s+(\d+\.?\d*)\s+(\d+\.?\d*)'),
        ]

        self.total_patterns = [
            re.compile(r'Net Total[:\s]+(\d+\.?\d*)', re.IGNORECASE),
            re.compile(r'Total[:\s]+(\d+\.?\d*)', re.IGNORECASE),
        ]

    def parse(self, text: str, filename: str) -> Order:
        order = super().parse(text, filename)

        if not order.line_items:
            stated = self.first_match(self.total_patterns, text)
            if stated is not None:
                order.stated_total = to_decimal(stated)
                logger.info(f"No line items recognised, document states total {order.stated_total}")

        return order

    def extract_header(self, text: str, order: Order) -> None:
        super().extract_header(text, order)

        for pattern in self.customer_patterns:
            match = pattern.search(text)
            if match:
                order.customer_name = match.group(1).strip()
                order.customer_code = match.group(2).strip()
                break

    def produce_line_items(self, text: str) -> List[LineItem]:
        line_items = []

        # The looser second pattern is only consulted when the first finds nothing
        for pattern in self.table_patterns:
            for match in pattern.finditer(text):
                item = self._line_item_from_table_match(match)
                if item.quantity > 0 and item.product_code and item.unit_price > 0:
                    line_items.append(item)
                else:
                    logger.debug(f"Rejected consolidated row: {match.group(0)!r}")

            if line_items:
                break

        return line_items


def get_parser(template_type: TemplateType) -> BaseOrderParser:
    """Return a parser instance for the given template."""
    from .picking_note_parser import PickingNoteParser

    parsers = {
        TemplateType.STANDARD: StandardOrderParser,
        TemplateType.CONSOLIDATED: ConsolidatedOrderParser,
        TemplateType.PICKING_NOTE: PickingNoteParser,
    }
    return parsers[template_type]()


def parse_order(text: str, filename: str) -> Order:
    """
    Classify the document and parse it with the matching template parser.

    Args:
        text: Page text, one extracted line per text line
        filename: Source file name recorded on the order

    Returns:
        The parsed order (possibly with empty fields and no line items)
    """
    template_type = classify(text)
    logger.info(f"🔍 {filename}: detected {template_type.value} template")
    return get_parser(template_type).parse(text, filename)
