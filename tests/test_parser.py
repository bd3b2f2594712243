#!/usr/bin/env python3
"""
Tests for template classification and the Standard/Consolidated parsers.
"""

import sys
import unittest
from decimal import Decimal
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from order_importer.models import CaseUnit, TemplateType
from order_importer.parser import (
    ConsolidatedOrderParser,
    StandardOrderParser,
    case_unit_from_pack_size,
    parse_order,
    to_decimal,
)
from order_importer.template_classifier import classify


STANDARD_TEXT = """Purchase Order
PO Number: PO12345
Order Date: 30/07/2025
Delivery Date: 31/07/2025
Account No: ACC001
Deliver To Main Kitchen Ltd
Qty Description Code Pack Price Net
2 FRESH KIWI KIWI 1xKG 3.50 7.00
1 APPLES APPLE 1xBOX 10.00 10.00"""

CONSOLIDATED_TEXT = """Consolidated Purchase Order
PO Number: CP9876
Order Date: 01/08/2025
Delivery Date: 02/08/2025
Orders for the following outlets: The Grand Hotel (GH01)
3 RED ONIONS ONION 1xKG 1.20 3.60
0 LEEKS LEEK 1xKG 2.00 0.00
Net Total: 3.60"""


class TestTemplateClassifier(unittest.TestCase):

    def test_picking_note_wins_over_consolidated(self):
        text = "Consolidated Purchase Order\nPicking Note\nBasket ID 1"
        self.assertEqual(classify(text), TemplateType.PICKING_NOTE)

    def test_consolidated(self):
        self.assertEqual(classify(CONSOLIDATED_TEXT), TemplateType.CONSOLIDATED)

    def test_default_is_standard(self):
        self.assertEqual(classify(STANDARD_TEXT), TemplateType.STANDARD)
        self.assertEqual(classify(""), TemplateType.STANDARD)

    def test_markers_are_case_sensitive(self):
        self.assertEqual(classify("picking note"), TemplateType.STANDARD)


class TestParserHelpers(unittest.TestCase):

    def test_to_decimal(self):
        test_cases = [
            ("3.50", Decimal("3.50")),
            ("1,234.50", Decimal("1234.50")),
            ("", Decimal("0")),
            ("abc", Decimal("0")),
        ]
        for value, expected in test_cases:
            with self.subTest(value=value):
                self.assertEqual(to_decimal(value), expected)

    def test_case_unit_from_pack_size(self):
        test_cases = [
            ("1xKG", CaseUnit.KILO),
            ("£ per Kg", CaseUnit.KILO),
            ("1xBOX", CaseUnit.BOX),
            ("1x5Kg", CaseUnit.EACH),
            ("1xEACH", CaseUnit.EACH),
            ("", CaseUnit.EACH),
        ]
        for pack_size, expected in test_cases:
            with self.subTest(pack_size=pack_size):
                self.assertEqual(case_unit_from_pack_size(pack_size), expected)


class TestStandardOrderParser(unittest.TestCase):

    def setUp(self):
        self.parser = StandardOrderParser()

    def test_header_fields(self):
        order = self.parser.parse(STANDARD_TEXT, "standard.pdf")

        self.assertEqual(order.source_filename, "standard.pdf")
        self.assertEqual(order.template_type, TemplateType.STANDARD)
        self.assertEqual(order.purchase_order_number, "PO12345")
        self.assertEqual(order.order_date, "30/07/2025")
        self.assertEqual(order.delivery_date, "31/07/2025")
        self.assertEqual(order.customer_code, "ACC001")
        self.assertEqual(order.customer_name, "Main Kitchen Ltd")

    def test_line_items(self):
        order = self.parser.parse(STANDARD_TEXT, "standard.pdf")

        self.assertEqual(len(order.line_items), 2)
        kiwi, apple = order.line_items
        self.assertEqual(kiwi.product_code, "KIWI")
        self.assertEqual(kiwi.description, "FRESH KIWI")
        self.assertEqual(kiwi.quantity, Decimal("2"))
        self.assertEqual(kiwi.original_quantity, Decimal("2"))
        self.assertEqual(kiwi.unit_price, Decimal("3.50"))
        self.assertEqual(kiwi.net_price, Decimal("7.00"))
        self.assertEqual(kiwi.case_unit, CaseUnit.KILO)
        self.assertEqual(apple.product_code, "APPLE")
        self.assertEqual(apple.case_unit, CaseUnit.BOX)
        self.assertEqual(order.total, Decimal("17.00"))

    def test_unpriced_rows_are_kept(self):
        text = "PO Number: PO1\n3 SAMPLE BAGS BAG 1xEACH 0 0"
        order = self.parser.parse(text, "free.pdf")

        self.assertEqual(len(order.line_items), 1)
        self.assertEqual(order.line_items[0].unit_price, Decimal("0"))

    def test_missing_fields_stay_empty(self):
        order = self.parser.parse("Nothing useful here", "empty.pdf")

        self.assertEqual(order.purchase_order_number, "")
        self.assertEqual(order.customer_code, "")
        self.assertEqual(order.line_items, [])
        self.assertEqual(order.total, Decimal("0"))


class TestConsolidatedOrderParser(unittest.TestCase):

    def setUp(self):
        self.parser = ConsolidatedOrderParser()

    def test_header_fields(self):
        order = self.parser.parse(CONSOLIDATED_TEXT, "consolidated.pdf")

        self.assertEqual(order.purchase_order_number, "CP9876")
        self.assertEqual(order.order_date, "01/08/2025")
        self.assertEqual(order.delivery_date, "02/08/2025")
        self.assertEqual(order.customer_name, "The Grand Hotel")
        self.assertEqual(order.customer_code, "GH01")

    def test_zero_quantity_rows_rejected(self):
        order = self.parser.parse(CONSOLIDATED_TEXT, "consolidated.pdf")

        self.assertEqual([item.product_code for item in order.line_items], ["ONION"])
        self.assertEqual(order.line_items[0].net_price, Decimal("3.60"))
        self.assertIsNone(order.stated_total)

    def test_stated_total_when_no_rows(self):
        text = "Consolidated Purchase Order\nPO Number: CP1\nNet Total: 125.50"
        order = self.parser.parse(text, "summary.pdf")

        self.assertEqual(order.line_items, [])
        self.assertEqual(order.stated_total, Decimal("125.50"))
        self.assertEqual(order.total, Decimal("0"))

    def test_purchase_order_fallback_pattern(self):
        text = "Consolidated Purchase Order\nPurchase Order Ref: XY77"
        order = self.parser.parse(text, "po.pdf")
        self.assertEqual(order.purchase_order_number, "XY77")


class TestParseOrder(unittest.TestCase):

    def test_dispatches_on_template(self):
        self.assertEqual(parse_order(STANDARD_TEXT, "a.pdf").template_type, TemplateType.STANDARD)
        self.assertEqual(parse_order(CONSOLIDATED_TEXT, "b.pdf").template_type, TemplateType.CONSOLIDATED)
        self.assertEqual(parse_order("Picking Note\nBasket ID 9", "c.pdf").template_type,
                         TemplateType.PICKING_NOTE)


if __name__ == "__main__":
    unittest.main()
