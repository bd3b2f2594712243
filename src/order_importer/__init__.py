"""
Order Importer

Parses supplier purchase order PDFs, reconciles them against the product
catalog and exports them in the ordering system's import format.
"""

__version__ = "1.0.0"
__author__ = "Order Importer Maintainers"

from .catalog import Catalog, ConversionTable
from .conversion_engine import ConversionEngine
from .exporter import OrderExporter
from .models import CaseUnit, LineItem, Order, TemplateType
from .pipeline import OrderPipeline
from .parser import parse_order

__all__ = [
    "Catalog",
    "ConversionTable",
    "ConversionEngine",
    "OrderExporter",
    "OrderPipeline",
    "CaseUnit",
    "LineItem",
    "Order",
    "TemplateType",
    "parse_order",
]
