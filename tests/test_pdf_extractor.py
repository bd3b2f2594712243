#!/usr/bin/env python3
"""
Tests for first-page text extraction.
"""

import io
import subprocess
import unittest
from unittest.mock import MagicMock, patch

from order_importer.exceptions import ExtractionError
from order_importer.pdf_extractor import TextExtractor, extract_first_page_text


def fake_pdf(*page_texts):
    """pdfplumber.open() stand-in whose first page returns the given texts in turn."""
    page = MagicMock()
    page.extract_text.side_effect = list(page_texts)
    pdf = MagicMock()
    pdf.pages = [page]
    opener = MagicMock()
    opener.return_value.__enter__.return_value = pdf
    return opener


class TestTextExtractor(unittest.TestCase):

    def setUp(self):
        self.extractor = TextExtractor()

    def test_clean_lines(self):
        text = "Picking Note\r\n(cid:3)Basket   ID\t12345\n\n   \nComments  "
        self.assertEqual(
            TextExtractor.clean_lines(text),
            ["Picking Note", "Basket ID 12345", "", "Comments"],
        )
        self.assertEqual(TextExtractor.clean_lines(""), [])

    def test_clean_lines_trims_outer_blank_lines(self):
        self.assertEqual(TextExtractor.clean_lines("\n\n  \nOrder\n\n\n"), ["Order"])
        self.assertEqual(TextExtractor.clean_lines(" \n\t\n"), [])

    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_extract_with_pdfplumber(self, mock_open):
        mock_open.side_effect = fake_pdf("Picking Note\nBasket ID 12345")

        lines = self.extractor.extract_first_page("order.pdf")

        self.assertEqual(lines, ["Picking Note", "Basket ID 12345"])
        mock_open.assert_called_once_with("order.pdf")

    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_layout_retry_when_plain_text_empty(self, mock_open):
        mock_open.side_effect = fake_pdf("", "PO Number: PO1")

        self.assertEqual(self.extractor.extract_first_page("order.pdf"), ["PO Number: PO1"])

    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_bytes_source(self, mock_open):
        mock_open.side_effect = fake_pdf("Order")

        self.assertEqual(self.extractor.extract_first_page(b"%PDF-1.4"), ["Order"])
        self.assertIsInstance(mock_open.call_args[0][0], io.BytesIO)

    @patch('order_importer.pdf_extractor.shutil.which', return_value=None)
    @patch('order_importer.pdf_extractor.pdfplumber.open', side_effect=ValueError("not a PDF"))
    def test_unreadable_document(self, mock_open, mock_which):
        with self.assertRaises(ExtractionError) as ctx:
            self.extractor.extract_first_page("broken.pdf")

        self.assertEqual(ctx.exception.pdf_path, "broken.pdf")
        self.assertIsInstance(ctx.exception.original_error, ValueError)
        self.assertEqual(ctx.exception.details['error_type'], "ValueError")

    @patch('order_importer.pdf_extractor.shutil.which', return_value=None)
    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_blank_page_returns_no_lines(self, mock_open, mock_which):
        mock_open.side_effect = fake_pdf("", "")
        self.assertEqual(self.extractor.extract_first_page("blank.pdf"), [])

    @patch('order_importer.pdf_extractor.subprocess.run')
    @patch('order_importer.pdf_extractor.shutil.which', return_value="/usr/bin/pdftotext")
    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_pdftotext_fallback(self, mock_open, mock_which, mock_run):
        mock_open.side_effect = fake_pdf("", "")
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="Consolidated Purchase Order\n")

        self.assertEqual(self.extractor.extract_first_page("scan.pdf"), ["Consolidated Purchase Order"])
        args = mock_run.call_args[0][0]
        self.assertEqual(args[:6], ['pdftotext', '-f', '1', '-l', '1', '-layout'])

    @patch('order_importer.pdf_extractor.pdfplumber.open')
    def test_extract_first_page_text(self, mock_open):
        mock_open.side_effect = fake_pdf("A\n\n\nB")
        self.assertEqual(extract_first_page_text("x.pdf"), "A\n\nB")


if __name__ == "__main__":
    unittest.main()
