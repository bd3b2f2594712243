#!/usr/bin/env python3
"""
Tests for the command-line interface and settings.
"""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from order_importer.cli import cli
from order_importer.config import DEFAULT_CATALOG_TTL_SECONDS, Settings
from order_importer.pdf_extractor import TextExtractor


PICKING_NOTE_LINES = [
    "Picking Note",
    "Basket ID 12345",
    "Order date 30-Jul-2025",
    "Code Description Pack size Quantity",
    "4021AB Fresh Kiwi 1x5Kg 2.5",
    "Comments",
]


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dotenv = os.path.join(self.temp_dir.name, ".env")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_defaults(self):
        Path(self.dotenv).write_text("")
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env(self.dotenv)

        self.assertIsNone(settings.catalog_path)
        self.assertEqual(settings.output_dir, Path('.'))
        self.assertEqual(settings.catalog_ttl_seconds, DEFAULT_CATALOG_TTL_SECONDS)
        self.assertEqual(settings.log_level, "INFO")

    def test_environment_and_dotenv(self):
        Path(self.dotenv).write_text("ORDER_IMPORTER_CATALOG_TTL=60\nORDER_IMPORTER_VENDORS=data/vendors.csv\n")
        env = {"ORDER_IMPORTER_CATALOG": "/data/catalog.csv", "ORDER_IMPORTER_LOG_LEVEL": "debug"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env(self.dotenv)

        self.assertEqual(settings.catalog_path, Path("/data/catalog.csv"))
        self.assertEqual(settings.vendors_path, Path("data/vendors.csv"))
        self.assertEqual(settings.catalog_ttl_seconds, 60)
        self.assertEqual(settings.log_level, "DEBUG")


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_convert_example(self):
        result = self.runner.invoke(cli, ['convert-example', 'KIWI', '200', '--kg', '0.6'])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("0.6kg KIWI → 3.0 KIWIE", result.output)

    def test_convert_example_rejects_bad_weight(self):
        result = self.runner.invoke(cli, ['convert-example', 'KIWI', '0'])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("positive weight required", result.output)

    @patch.object(TextExtractor, 'extract_first_page', return_value=PICKING_NOTE_LINES)
    def test_parse_writes_json(self, mock_extract):
        with self.runner.isolated_filesystem():
            Path("picking.pdf").write_bytes(b"%PDF-1.4")
            Path("conversions.csv").write_text("ProductCode,ProductName,EachWeightGrams\n4021AB,Kiwi,500\n")

            result = self.runner.invoke(cli, ['--conversions', 'conversions.csv', 'parse', 'picking.pdf', '-o', 'out.json'])
            self.assertEqual(result.exit_code, 0, result.output)

            orders = json.loads(Path("out.json").read_text(encoding="utf-8"))

        self.assertEqual(len(orders), 1)
        self.assertEqual(orders[0]["poNumber"], "12345")
        self.assertEqual(orders[0]["type"], "Picking Note")
        item = orders[0]["lineItems"][0]
        self.assertEqual(item["productCode"], "4021AB")
        self.assertEqual(item["quantity"], "5")
        self.assertEqual(item["originalQuantity"], "2.5")
        self.assertTrue(item["conversionApplied"])


if __name__ == "__main__":
    unittest.main()
