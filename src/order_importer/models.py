"""
Data models for the purchase-order importer.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class CaseUnit(str, Enum):
    """Unit of sale for a line item."""
    EACH = "Each"
    KILO = "Kilo"
    BOX = "Box"


class TemplateType(str, Enum):
    """Supplier document layouts we know how to parse."""
    STANDARD = "Standard"
    CONSOLIDATED = "Consolidated"
    PICKING_NOTE = "Picking Note"


class MatchKind(str, Enum):
    """How a line item was reconciled against the product catalog."""
    NONE = "none"
    DIRECT = "direct"
    FALLBACK = "fallback"
    REVERSE_EXACT = "reverse-exact"
    REVERSE_SIMPLE = "reverse-simple"
    REVERSE_KEYWORD = "reverse-keywords"
    REVERSE_PARTIAL = "reverse-partial"
    ERROR = "error"

    @property
    def is_reverse(self) -> bool:
        return self.value.startswith("reverse-")


class ConversionStatus(str, Enum):
    """Outcome of quantity normalization."""
    WHOLE = "whole"
    CONVERTED = "converted"
    NO_CONVERSION = "no-conversion"
    STILL_DECIMAL = "still-decimal"


@dataclass(frozen=True)
class LineItem:
    """
    A single product line on a purchase order.

    ``original_quantity`` and ``original_unit_price`` are the figures the
    document gave us; normalization always works from them, never from the
    current ``quantity``/``unit_price``.
    """
    quantity: Decimal
    original_quantity: Decimal
    description: str
    product_code: str
    case_unit: CaseUnit
    unit_price: Decimal
    original_unit_price: Decimal
    net_price: Decimal
    pack_size: str = ""
    original_product_code: Optional[str] = None
    catalog_match: MatchKind = MatchKind.NONE
    conversion_applied: bool = False
    has_warning: bool = False
    note: str = ""
    conversion_status: ConversionStatus = ConversionStatus.WHOLE

    @classmethod
    def create(cls, quantity: Decimal, description: str, product_code: str,
               case_unit: CaseUnit = CaseUnit.EACH, unit_price: Decimal = Decimal("0"),
               net_price: Optional[Decimal] = None, pack_size: str = "") -> "LineItem":
        """Build a freshly parsed line item, snapshotting the original figures."""
        if net_price is None:
            net_price = quantity * unit_price
        return cls(
            quantity=quantity,
            original_quantity=quantity,
            description=description,
            product_code=product_code,
            case_unit=case_unit,
            unit_price=unit_price,
            original_unit_price=unit_price,
            net_price=net_price,
            pack_size=pack_size,
        )

    def to_dict(self) -> dict:
        return {
            "productCode": self.product_code,
            "originalProductCode": self.original_product_code,
            "description": self.description,
            "caseUnit": self.case_unit.value,
            "packSize": self.pack_size,
            "quantity": str(self.quantity),
            "originalQuantity": str(self.original_quantity),
            "unitPrice": str(self.unit_price),
            "originalUnitPrice": str(self.original_unit_price),
            "netPrice": str(self.net_price),
            "catalogMatch": self.catalog_match.value,
            "conversionApplied": self.conversion_applied,
            "conversionStatus": self.conversion_status.value,
            "hasWarning": self.has_warning,
            "note": self.note,
        }


@dataclass
class Order:
    """A purchase order parsed from one PDF file."""
    source_filename: str
    template_type: TemplateType
    customer_code: str = ""
    customer_name: str = ""
    purchase_order_number: str = ""
    order_date: str = ""
    delivery_date: str = ""
    line_items: List[LineItem] = field(default_factory=list)
    # Document total printed on the PDF, kept only when no line item was recognised
    stated_total: Optional[Decimal] = None

    @property
    def total(self) -> Decimal:
        return sum((item.net_price for item in self.line_items), Decimal("0"))

    def replace_item(self, index: int, item: LineItem) -> None:
        self.line_items[index] = item

    @property
    def warnings(self) -> List[LineItem]:
        return [item for item in self.line_items if item.has_warning]

    def to_dict(self) -> dict:
        return {
            "filename": self.source_filename,
            "type": self.template_type.value,
            "poNumber": self.purchase_order_number,
            "customerCode": self.customer_code,
            "customerName": self.customer_name,
            "orderDate": self.order_date,
            "deliveryDate": self.delivery_date,
            "total": str(self.total),
            "statedTotal": str(self.stated_total) if self.stated_total is not None else None,
            "lineItems": [item.to_dict() for item in self.line_items],
        }
