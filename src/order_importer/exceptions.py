"""
Custom exceptions for purchase-order import operations.

Only extraction failures stop a file. Catalog and conversion problems are
caught by the pipeline and turned into item-level flags.
"""

from typing import Optional, Dict, Any, List


class OrderImportError(Exception):
    """Base exception for all order import errors."""

    def __init__(self, message: str, pdf_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.pdf_path = pdf_path
        self.details = details or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.pdf_path:
            base_msg = f"{base_msg} (PDF: {self.pdf_path})"
        return base_msg


class ExtractionError(OrderImportError):
    """Raised when a PDF cannot be opened or tokenized."""

    def __init__(self, message: str, pdf_path: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message, pdf_path)
        self.original_error = original_error
        if original_error:
            self.details['original_error'] = str(original_error)
            self.details['error_type'] = type(original_error).__name__


class CatalogUnavailable(OrderImportError):
    """Raised when the product catalog backing store cannot be read."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error
        if original_error:
            self.details['original_error'] = str(original_error)


class ConversionUnavailable(OrderImportError):
    """Raised when a product has no weight-to-each conversion factor."""

    def __init__(self, product_code: str):
        super().__init__(f"No conversion factor for product {product_code}")
        self.product_code = product_code
        self.details['product_code'] = product_code


class ExportValidationError(OrderImportError):
    """Raised by the export pre-flight gate when orders cannot be exported."""

    def __init__(self, message: str, problems: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.problems = problems or []
        self.details['problems'] = self.problems
