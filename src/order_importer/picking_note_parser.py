#!/usr/bin/env python3
"""
Picking Note parser.

Picking notes carry no prices and have the loosest table layout of the
three templates. Lines are matched against progressively looser patterns,
and a whole-document sweep recovers products the table pass missed.
"""

import re
import logging
from decimal import Decimal
from typing import List, Optional, Set

from .models import CaseUnit, LineItem, Order, TemplateType
from .parser import BaseOrderParser, case_unit_from_pack_size, to_decimal

logger = logging.getLogger(__name__)

MONTHS = {
    'Jan': '01', 'Feb': '02', 'Mar': '03', 'Apr': '04',
    'May': '05', 'Jun': '06', 'Jul': '07', 'Aug': '08',
    'Sep': '09', 'Oct': '10', 'Nov': '11', 'Dec': '12',
}

CUSTOMER_NAME_KEYWORDS = ['Ltd', 'Hospital', 'Kitchen', 'Restaurant']

# Any of these ends the product table unless the line is itself a product line
TABLE_END_MARKERS = ['Total', 'Delivery', 'Comments']

HEADER_WORDS = ['description', 'product', 'quantity', 'pack size']

MIN_FALLBACK_ITEMS = 5
MAX_TABLE_QUANTITY = Decimal("10000")
MAX_FALLBACK_QUANTITY = Decimal("1000")


def convert_picking_date(date_str: str) -> str:
    """
    Convert a picking note date such as ``30-Jul-2025`` to ``30/07/2025``.

    An unrecognised month name becomes ``01``; a string that does not split
    into three parts is returned unchanged.
    """
    parts = date_str.split('-')
    if len(parts) != 3:
        return date_str

    day = parts[0].zfill(2)
    month = MONTHS.get(parts[1], '01')
    year = parts[2]
    return f"{day}/{month}/{year}"


class PickingNoteParser(BaseOrderParser):
    """Parser for picking notes (basket exports without pricing)."""

    template_type = TemplateType.PICKING_NOTE

    def __init__(self):
        super().__init__()
        self.header_patterns = {
            'purchase_order_number': [re.compile(r'Basket ID\s+(\d+)')],
            'customer_code': [re.compile(r'Customer ref\s+(\S+)')],
        }
        self.order_date_pattern = re.compile(r'Order date\s+(\d{1,2}-[A-Za-z]{3}-\d{4})')
        self.delivery_date_pattern = re.compile(r'Delivery date\s+(\d{1,2}-[A-Za-z]{3}-\d{4})')

        self.table_start_patterns = [
            re.compile(r'^\d+[A-Z]+/?-?\s'),
            re.compile(r'^\d+[A-Z]{2,}'),
        ]
        self.product_line_start = re.compile(r'^\d+[A-Z]')

        # Tried in order on each table line; groups are
        # (code, description, pack size, quantity) or (code, description, quantity)
        pack = r'(1x\w+|\d+\.\d+\s*Kg|£\s*per\s*Kg)'
        self.product_patterns = [
            re.compile(r'^(\d+[A-Z]+)/?-?\s+(.+?)\s+' + pack + r'\s+(\d+(?:\.\d+)?)\s*(?:Kg\s*)?_*$'),
            re.compile(r'^(\d+[A-Z]+)\s+(.+?)\s+' + pack + r'\s+(\d+(?:\.\d+)?)\s*(?:Kg\s*)?_*$'),
            re.compile(r'^(\d+[A-Z]+)/?-?\s+(.{5,}?)\s+(1x\w+|\d+\.\d+\s*Kg|£\s*per\s*Kg|\w+)\s+(\d+(?:\.\d+)?)\s*_*$'),
            re.compile(r'^(\d+[A-Z]+)/?-?\s+(.{3,}?)\s+(\d+(?:\.\d+)?)\s*(?:Kg\s*)?_*$'),
        ]

        self.fallback_pattern = re.compile(r'(\d{4,6}[A-Z]{1,5})\s*[/\-]?\s*(.{10,80}?)\s+(\d+(?:\.\d+)?)')

    def extract_header(self, text: str, order: Order) -> None:
        super().extract_header(text, order)

        match = self.order_date_pattern.search(text)
        if match:
            order.order_date = convert_picking_date(match.group(1))

        match = self.delivery_date_pattern.search(text)
        if match:
            order.delivery_date = convert_picking_date(match.group(1))

        order.customer_name = self.extract_customer_name(text)

    @staticmethod
    def extract_customer_name(text: str) -> str:
        """Best-effort scan of the Delivery Address section for an organisation line."""
        if 'Delivery Address' not in text:
            return ""

        section = text.split('Delivery Address', 1)[1]
        for line in re.split(r'[\n\r]+', section):
            if any(keyword in line for keyword in CUSTOMER_NAME_KEYWORDS):
                return line.strip()
        return ""

    def isolate_product_lines(self, text: str) -> List[str]:
        """Return the lines of the product table region."""
        product_lines = []
        in_section = False

        for raw_line in text.splitlines():
            line = raw_line.strip()

            if ('Description' in line and 'Quantity' in line) or \
                    any(pattern.match(line) for pattern in self.table_start_patterns):
                in_section = True

            if in_section and (not line or any(marker in line for marker in TABLE_END_MARKERS)):
                # Tables often have no footer, so a product-looking line keeps the capture open
                if not self.product_line_start.match(line):
                    break

            if in_section and line:
                product_lines.append(line)

        logger.debug(f"Product lines found: {product_lines}")
        return product_lines

    def parse_product_line(self, line: str) -> Optional[LineItem]:
        """Match one table line against the product patterns, loosest last."""
        for index, pattern in enumerate(self.product_patterns, start=1):
            match = pattern.match(line)
            if not match:
                continue

            groups = match.groups()
            if len(groups) == 4:
                code, description, pack_size, quantity = groups
            else:
                code, description, quantity = groups
                pack_size = ""

            code = code.rstrip('/-')
            description = description.strip()
            qty = to_decimal(quantity)

            if len(code) >= 3 and len(description) >= 3 and 0 < qty < MAX_TABLE_QUANTITY:
                logger.debug(f"Pattern {index} matched: {code} {description!r} {pack_size!r} {qty}")
                return LineItem.create(
                    quantity=qty,
                    description=description,
                    product_code=code,
                    case_unit=case_unit_from_pack_size(pack_size) if pack_size else CaseUnit.EACH,
                    pack_size=pack_size.strip(),
                )

            logger.debug(f"Pattern {index} matched but failed validation: {line!r}")

        return None

    def produce_line_items(self, text: str) -> List[LineItem]:
        line_items: List[LineItem] = []

        for line in self.isolate_product_lines(text):
            lowered = line.lower()
            if any(word in lowered for word in HEADER_WORDS):
                continue

            item = self.parse_product_line(line)
            if item:
                line_items.append(item)
            else:
                logger.info(f"No pattern matched for line: {line}")

        if len(line_items) < MIN_FALLBACK_ITEMS:
            logger.info(f"Only {len(line_items)} products found, running fallback sweep")
            line_items.extend(self._fallback_sweep(text, {item.product_code for item in line_items}))

        return line_items

    def _fallback_sweep(self, text: str, seen_codes: Set[str]) -> List[LineItem]:
        """
        Re-scan the whole document with one permissive pattern.

        This trades precision for recall: a product already captured under a
        differently spelled code can be added a second time.
        """
        found = []
        for match in self.fallback_pattern.finditer(text):
            code, description, quantity = match.groups()
            qty = to_decimal(quantity)

            if code in seen_codes or not (0 < qty < MAX_FALLBACK_QUANTITY):
                continue

            item = LineItem.create(quantity=qty, description=description.strip(), product_code=code)
            logger.info(f"Fallback product extracted: {code} - {item.description} x {qty}")
            seen_codes.add(code)
            found.append(item)

        return found
