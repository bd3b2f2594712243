#!/usr/bin/env python3
"""
Tests for batch processing and the processed-PO registry.
"""

import os
import tempfile
import threading
import unittest
from decimal import Decimal
from unittest.mock import MagicMock

from order_importer.catalog import Catalog, ConversionTable
from order_importer.duplicates import DuplicateRegistry
from order_importer.exceptions import ExtractionError
from order_importer.models import CaseUnit, ConversionStatus, TemplateType
from order_importer.pipeline import OrderPipeline


def picking_note(basket_id, line="4021AB Fresh Kiwi 1x5Kg 2.5"):
    return [
        "Picking Note",
        f"Basket ID {basket_id}",
        "Order date 30-Jul-2025",
        "Customer ref CUST42",
        "Code Description Pack size Quantity",
        line,
        "Comments",
    ]


class FakeExtractor:
    """Returns canned lines per file name; unknown files are unreadable."""

    def __init__(self, documents):
        self.documents = documents
        self.calls = []

    def extract_first_page(self, source):
        name = os.path.basename(str(source))
        self.calls.append(name)
        if name not in self.documents:
            raise ExtractionError("Could not open PDF for text extraction", pdf_path=name)
        return self.documents[name]


class TestOrderPipeline(unittest.TestCase):

    def make_pipeline(self, documents, registry=None):
        self.extractor = FakeExtractor(documents)
        return OrderPipeline(
            Catalog(lambda: {"4021AB": "Kiwi Fruit"}),
            ConversionTable.from_mapping({"4021AB": 500}),
            registry=registry,
            extractor=self.extractor,
        )

    def test_end_to_end_conversion(self):
        pipeline = self.make_pipeline({"kiwi.pdf": picking_note("12345")})
        order = pipeline.process_file("kiwi.pdf")

        self.assertEqual(order.template_type, TemplateType.PICKING_NOTE)
        self.assertEqual(order.purchase_order_number, "12345")
        item = order.line_items[0]
        self.assertEqual(item.original_quantity, Decimal("2.5"))
        self.assertEqual(item.quantity, Decimal("5"))
        self.assertEqual(item.case_unit, CaseUnit.EACH)
        self.assertEqual(item.conversion_status, ConversionStatus.CONVERTED)
        self.assertEqual(order.total, Decimal("0"))

    def test_bytes_source_filename(self):
        pipeline = self.make_pipeline({})
        pipeline.extractor = MagicMock()
        pipeline.extractor.extract_first_page.return_value = picking_note("55")

        order = pipeline.process_file(b"%PDF-1.4 raw upload")
        self.assertEqual(order.source_filename, "<bytes>")
        self.assertEqual(order.purchase_order_number, "55")

        named = pipeline.process_file(b"%PDF-1.4 raw upload", filename="upload.pdf")
        self.assertEqual(named.source_filename, "upload.pdf")

    def test_blank_line_ends_picking_table(self):
        lines = picking_note("9")[:-1] + ["", "7001ZZ Misc 3"]
        pipeline = self.make_pipeline({"blank.pdf": lines})
        order = pipeline.process_file("blank.pdf")

        self.assertEqual([item.product_code for item in order.line_items], ["4021AB"])

    def test_parse_text_does_not_normalize(self):
        pipeline = self.make_pipeline({})
        order = pipeline.parse_text("\n".join(picking_note("1")), "kiwi.pdf")

        self.assertEqual(order.line_items[0].quantity, Decimal("2.5"))
        self.assertEqual(order.line_items[0].description, "Fresh Kiwi")

    def test_batch_skips_duplicates(self):
        pipeline = self.make_pipeline({
            "a.pdf": picking_note("100"),
            "b.pdf": picking_note("100"),
            "c.pdf": picking_note("200"),
        })
        result = pipeline.process_batch(["a.pdf", "b.pdf", "c.pdf"])

        self.assertEqual([o.source_filename for o in result.orders], ["a.pdf", "c.pdf"])
        self.assertEqual([o.source_filename for o in result.duplicates], ["b.pdf"])
        self.assertTrue(pipeline.registry.has("200"))

    def test_batch_duplicates_allowed_by_handler(self):
        pipeline = self.make_pipeline(
            {"a.pdf": picking_note("100")},
            registry=DuplicateRegistry(["100"]),
        )
        seen = []

        def allow(order):
            seen.append(order.purchase_order_number)
            return True

        result = pipeline.process_batch(["a.pdf"], on_duplicate=allow)

        self.assertEqual(seen, ["100"])
        self.assertEqual(len(result.orders), 1)
        self.assertEqual(result.duplicates, [])

    def test_extraction_failure_does_not_stop_batch(self):
        pipeline = self.make_pipeline({"good.pdf": picking_note("1")})
        result = pipeline.process_batch(["broken.pdf", "good.pdf"])

        self.assertEqual(len(result.failures), 1)
        self.assertEqual(result.failures[0]['filename'], "broken.pdf")
        self.assertIn("Could not open PDF", result.failures[0]['error'])
        self.assertEqual([o.source_filename for o in result.orders], ["good.pdf"])

    def test_cancel_keeps_finished_orders(self):
        pipeline = self.make_pipeline({
            "a.pdf": picking_note("1"),
            "b.pdf": picking_note("2"),
            "c.pdf": picking_note("3"),
        })
        cancel = threading.Event()
        progress = []

        def on_progress(index, total, filename):
            progress.append((index, total, filename))
            cancel.set()

        result = pipeline.process_batch(["a.pdf", "b.pdf", "c.pdf"], cancel=cancel, on_progress=on_progress)

        self.assertTrue(result.cancelled)
        self.assertEqual(progress, [(0, 3, "a.pdf")])
        self.assertEqual([o.source_filename for o in result.orders], ["a.pdf"])
        self.assertEqual(result.orders[0].line_items[0].quantity, Decimal("5"))
        self.assertEqual(self.extractor.calls, ["a.pdf"])

    def test_catalog_outage_marks_items(self):
        def broken():
            raise OSError("catalog offline")

        pipeline = OrderPipeline(
            Catalog(broken),
            ConversionTable(),
            extractor=FakeExtractor({"a.pdf": picking_note("1")}),
        )
        result = pipeline.process_batch(["a.pdf"])

        self.assertEqual(len(result.orders), 1)
        self.assertEqual(result.orders[0].line_items[0].catalog_match.value, "error")
        self.assertTrue(result.orders[0].line_items[0].has_warning)


class TestDuplicateRegistry(unittest.TestCase):

    def test_has_and_add(self):
        registry = DuplicateRegistry(["PO1", ""])

        self.assertTrue(registry.has("PO1"))
        self.assertFalse(registry.has("PO2"))
        self.assertFalse(registry.has(""))
        registry.add("")
        self.assertEqual(len(registry), 1)

    def test_persistence(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "data", "processed.json")

            registry = DuplicateRegistry.from_file(path)
            self.assertEqual(len(registry), 0)
            registry.add("PO9")
            registry.save()

            reloaded = DuplicateRegistry.from_file(path)
            self.assertTrue(reloaded.has("PO9"))


if __name__ == "__main__":
    unittest.main()
