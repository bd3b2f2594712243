#!/usr/bin/env python3
"""
Spreadsheet export in the ordering system's 79-column import format.

One row is written per line item. Order-level columns are only filled on
the first row of each order.
"""

import logging
import random
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from openpyxl import Workbook

from .catalog import load_code_table, read_csv_rows
from .config import EXPORT_DEFAULTS
from .conversion_engine import ConversionEngine
from .duplicates import DuplicateRegistry
from .exceptions import ExportValidationError
from .models import LineItem, Order

logger = logging.getLogger(__name__)

HEADERS = [
    "Name", "Email", "Financial Status", "Paid at", "Fulfillment Status", "Fulfilled at",
    "Accepts Marketing", "Currency", "Subtotal", "Shipping", "Taxes", "Total",
    "Discount Code", "Discount Amount", "Shipping Method", "Created at",
    "Lineitem quantity", "Lineitem name", "Lineitem price", "Lineitem compare at price",
    "Lineitem sku", "Lineitem requires shipping", "Lineitem taxable", "Lineitem fulfillment status",
    "Billing Name", "Billing Street", "Billing Address1", "Billing Address2", "Billing Company",
    "Billing City", "Billing Zip", "Billing Province", "Billing Country", "Billing Phone",
    "Shipping Name", "Shipping Street", "Shipping Address1", "Shipping Address2", "Shipping Company",
    "Shipping City", "Shipping Zip", "Shipping Province", "Shipping Country", "Shipping Phone",
    "Notes", "Note Attributes", "Cancelled at", "Payment Method", "Payment Reference",
    "Refunded Amount", "Vendor", "Outstanding Balance", "Employee", "Location", "Device ID",
    "Id", "Tags", "Risk Level", "Source", "Lineitem discount", "Tax 1 Name", "Tax 1 Value",
    "Tax 2 Name", "Tax 2 Value", "Tax 3 Name", "Tax 3 Value", "Tax 4 Name", "Tax 4 Value",
    "Tax 5 Name", "Tax 5 Value", "Phone", "Receipt Number", "Duties", "Billing Province Name",
    "Shipping Province Name", "Payment ID", "Payment Terms Name", "Next Payment Due At", "Payment References",
]

COLUMN_COUNT = len(HEADERS)
COL = {name: index for index, name in enumerate(HEADERS)}


def to_iso_date(dd_mm_yyyy: str) -> str:
    """``30/07/2025`` -> ``2025-07-30``."""
    if not dd_mm_yyyy:
        return ""
    return "-".join(reversed(dd_mm_yyyy.split('/')))


class CustomerDirectory:
    """Customer code -> (name, email) mapping used for export."""

    def __init__(self, customers: Optional[Mapping[str, Tuple[str, str]]] = None):
        self.customers: Dict[str, Tuple[str, str]] = dict(customers or {})

    @classmethod
    def from_file(cls, path) -> "CustomerDirectory":
        customers = {}
        for row in read_csv_rows(Path(path)):
            code = row.get('customercode') or row.get('code')
            if code:
                customers[code] = (row.get('customername', ''), row.get('email', ''))
        logger.info(f"Loaded {len(customers)} customer email mappings from {path}")
        return cls(customers)

    def email_for(self, customer_code: str, customer_name: str = "") -> str:
        if customer_code in self.customers:
            return self.customers[customer_code][1].strip()

        wanted = customer_name.strip().lower()
        if wanted:
            for name, email in self.customers.values():
                if name.strip().lower() == wanted:
                    return email.strip()
        return ""

    def name_for(self, customer_code: str) -> Optional[str]:
        entry = self.customers.get(customer_code)
        return entry[0] if entry and entry[0] else None


@dataclass
class ExportResult:
    path: Path
    order_count: int
    product_count: int
    conversion_summary: Dict[str, int]

    def format_message(self) -> str:
        message = (f"✅ Export successful!\n\nFile: {self.path.name}\n"
                   f"Approved Orders: {self.order_count}\nTotal Products: {self.product_count}")
        if self.conversion_summary['totalConverted'] > 0:
            message += f"\n\nDecimal Conversions Applied: {self.conversion_summary['totalConverted']}"
        if self.conversion_summary['totalWarnings'] > 0:
            message += f"\nWarnings: {self.conversion_summary['totalWarnings']} (may need attention)"
        return message


class OrderExporter:
    """Builds import rows for approved orders and writes them to a workbook."""

    def __init__(self, engine: ConversionEngine, customers: Optional[CustomerDirectory] = None,
                 vendors: Optional[Mapping[str, str]] = None, rng: Optional[random.Random] = None):
        self.engine = engine
        self.customers = customers or CustomerDirectory()
        self.vendors = dict(vendors or {})
        self.rng = rng or random.Random()

    @classmethod
    def with_files(cls, engine: ConversionEngine, customers_path=None, vendors_path=None) -> "OrderExporter":
        customers = CustomerDirectory.from_file(customers_path) if customers_path else None
        vendors = load_code_table(vendors_path, value_columns=('vendor', 'name')) if vendors_path else None
        return cls(engine, customers, vendors)

    def preflight(self, orders: List[Order]) -> List[Dict[str, Any]]:
        """
        Check orders can be exported.

        Raises:
            ExportValidationError: no orders, or customers without an email mapping

        Returns:
            Conversion warnings the operator should confirm before exporting
        """
        if not orders:
            raise ExportValidationError("No orders approved for export")

        missing = []
        for order in orders:
            if not self.customers.email_for(order.customer_code, order.customer_name):
                missing.append({
                    'customerCode': order.customer_code,
                    'customerName': order.customer_name,
                    'filename': order.source_filename,
                })
        if missing:
            listing = "\n".join(f"• {m['customerCode']} ({m['customerName']}) - from {m['filename']}" for m in missing)
            raise ExportValidationError(f"Missing customer email mappings:\n{listing}", problems=missing)

        return self.engine.conversion_warnings(orders)

    def build_rows(self, orders: List[Order]) -> List[List[Any]]:
        rows = []
        for order in orders:
            email = self.customers.email_for(order.customer_code, order.customer_name)
            for index, item in enumerate(order.line_items):
                rows.append(self.build_row(order, item, index, email))
        return rows

    def build_row(self, order: Order, item: LineItem, index: int, email: str) -> List[Any]:
        d = EXPORT_DEFAULTS
        row: List[Any] = [""] * COLUMN_COUNT

        row[COL["Name"]] = order.purchase_order_number or f"PO-{order.customer_code}-{order.order_date}"
        row[COL["Email"]] = email

        if index == 0:
            delivery = to_iso_date(order.delivery_date)
            total = order.total
            billing_name = self.customers.name_for(order.customer_code) or order.customer_name

            row[COL["Financial Status"]] = d['financial_status']
            row[COL["Fulfillment Status"]] = d['fulfillment_status']
            row[COL["Fulfilled at"]] = f"{delivery} {d['fulfilled_time']}"
            row[COL["Accepts Marketing"]] = d['accepts_marketing']
            row[COL["Currency"]] = d['currency']
            row[COL["Subtotal"]] = total
            row[COL["Shipping"]] = 0
            row[COL["Taxes"]] = 0
            row[COL["Total"]] = total
            row[COL["Shipping Method"]] = d['shipping_method']
            row[COL["Payment Method"]] = d['payment_method']
            row[COL["Refunded Amount"]] = "0"
            row[COL["Outstanding Balance"]] = total

            for prefix in ("Billing", "Shipping"):
                row[COL[f"{prefix} Name"]] = f"{billing_name} ({order.customer_code})"
                row[COL[f"{prefix} Street"]] = d['billing_street']
                row[COL[f"{prefix} Address1"]] = d['billing_street']
                row[COL[f"{prefix} City"]] = d['billing_city']
                row[COL[f"{prefix} Zip"]] = d['billing_zip']
                row[COL[f"{prefix} Province"]] = d['province_code']
                row[COL[f"{prefix} Country"]] = d['country_code']

            row[COL["Note Attributes"]] = f"{d['delivery_note_prefix']}{delivery}"

        # Line item columns, on every row
        row[COL["Created at"]] = f"{to_iso_date(order.order_date)} {d['created_time']}"
        row[COL["Lineitem quantity"]] = item.quantity
        row[COL["Lineitem name"]] = item.description
        row[COL["Lineitem price"]] = item.unit_price
        row[COL["Lineitem sku"]] = item.product_code + self.engine.sku_suffix(item)
        row[COL["Lineitem requires shipping"]] = "TRUE"
        row[COL["Lineitem taxable"]] = "FALSE"
        row[COL["Lineitem fulfillment status"]] = d['fulfillment_status']
        row[COL["Vendor"]] = self.vendors.get(item.product_code, "")
        row[COL["Location"]] = d['location']
        row[COL["Id"]] = f"1.207{self.rng.randint(0, 99999):05d}E+13"
        row[COL["Tags"]] = d['tags']
        row[COL["Risk Level"]] = d['risk_level']
        row[COL["Source"]] = d['source']
        row[COL["Billing Province Name"]] = d['province_name']
        row[COL["Shipping Province Name"]] = d['province_name']

        return row

    def export(self, orders: List[Order], output_dir=Path('.'),
               confirm_warnings: Optional[Callable[[List[Dict[str, Any]]], bool]] = None,
               registry: Optional[DuplicateRegistry] = None,
               today: Optional[date] = None) -> ExportResult:
        """
        Validate and write approved orders to ``orders_<date>.xlsx``.

        Args:
            orders: Approved, assembled orders
            output_dir: Directory for the workbook
            confirm_warnings: Asked when conversion warnings exist; export stops unless it returns True
            registry: Receives the exported PO numbers
            today: Date used in the file name
        """
        warnings = self.preflight(orders)
        if warnings:
            logger.warning(f"⚠️ {len(warnings)} product(s) have decimal quantities that may round incorrectly")
            if confirm_warnings is None or not confirm_warnings(warnings):
                raise ExportValidationError("Export cancelled by user", problems=warnings)

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Orders"
        sheet.append(HEADERS)
        for row in self.build_rows(orders):
            sheet.append(row)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        today = today or date.today()
        path = output_dir / f"{EXPORT_DEFAULTS['filename_prefix']}{today.isoformat()}.xlsx"
        workbook.save(path)
        logger.info(f"💾 Wrote {sheet.max_row - 1} rows to {path}")

        if registry is not None:
            for order in orders:
                registry.add(order.purchase_order_number)
            registry.save()

        return ExportResult(
            path=path,
            order_count=len(orders),
            product_count=sum(len(order.line_items) for order in orders),
            conversion_summary=self.engine.conversion_summary(orders),
        )
