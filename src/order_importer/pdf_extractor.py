#!/usr/bin/env python3
"""
First-page PDF text extraction with a command-line fallback.
"""

import io
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import List, Union

import pdfplumber

from .exceptions import ExtractionError

logger = logging.getLogger(__name__)

PDFSource = Union[str, Path, bytes]


class TextExtractor:
    """Turns page 1 of a PDF into an ordered list of text lines."""

    def __init__(self):
        self.extraction_methods = [
            self._extract_with_pdfplumber,
            self._extract_with_pdftotext,
        ]

    def extract_first_page(self, source: PDFSource) -> List[str]:
        """
        Extract the text lines of the first page.

        Args:
            source: Path to the PDF file or its raw bytes

        Returns:
            Cleaned, non-empty text lines in reading order

        Raises:
            ExtractionError: if no method could open the document
        """
        label = "<bytes>" if isinstance(source, bytes) else str(source)
        errors = []
        opened = False

        for method in self.extraction_methods:
            try:
                text = method(source)
            except Exception as e:
                logger.warning(f"Method {method.__name__} failed: {e}")
                errors.append(e)
                continue

            if text is None:
                continue
            opened = True
            lines = self.clean_lines(text)
            if lines:
                logger.info(f"Extracted {len(lines)} lines from {label} using {method.__name__}")
                return lines

        if not opened:
            raise ExtractionError(
                "Could not open PDF for text extraction",
                pdf_path=label,
                original_error=errors[0] if errors else None,
            )

        logger.warning(f"No text found on the first page of {label}")
        return []

    def _extract_with_pdfplumber(self, source: PDFSource) -> str:
        """Extract first-page text using pdfplumber."""
        handle = io.BytesIO(source) if isinstance(source, bytes) else source
        with pdfplumber.open(handle) as pdf:
            if not pdf.pages:
                return ""
            page = pdf.pages[0]
            page_text = page.extract_text()
            if not page_text:
                page_text = page.extract_text(layout=True, x_tolerance=3, y_tolerance=3)
            return page_text or ""

    def _extract_with_pdftotext(self, source: PDFSource):
        """Extract first-page text using the pdftotext command-line tool."""
        if isinstance(source, bytes):
            return None
        if shutil.which('pdftotext') is None:
            logger.debug("pdftotext not available")
            return None

        result = subprocess.run(
            ['pdftotext', '-f', '1', '-l', '1', '-layout', str(source), '-'],
            capture_output=True, text=True,
        )
        if result.returncode != 0:
            raise RuntimeError(f"pdftotext failed: {result.stderr.strip()}")
        return result.stdout

    @staticmethod
    def clean_lines(text: str) -> List[str]:
        """
        Strip CID artifacts and normalize line breaks.

        Runs of blank lines collapse to a single empty line, since a blank
        line ends a picking-note table. Leading and trailing blanks are dropped.
        """
        if not text:
            return []

        text = re.sub(r'\(cid:\d+\)', '', text)
        text = text.replace('\r\n', '\n').replace('\r', '\n')

        lines: List[str] = []
        for line in text.split('\n'):
            line = re.sub(r'[ \t]+', ' ', line).strip()
            if line or (lines and lines[-1]):
                lines.append(line)

        if lines and not lines[-1]:
            lines.pop()
        return lines


def extract_first_page_text(source: PDFSource) -> str:
    """
    Convenience function returning page 1 as newline-joined text.

    Args:
        source: Path to the PDF file or its raw bytes

    Returns:
        Extracted text
    """
    lines = TextExtractor().extract_first_page(source)
    return "\n".join(lines)
