#!/usr/bin/env python3
"""
Product catalog and weight conversion tables.

Both are loaded once before a batch and read-only afterwards. The catalog
has a time-based expiry and can be reloaded from its loader; the
conversion table is static for the lifetime of a pipeline.
"""

import csv
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import CatalogUnavailable, ConversionUnavailable

logger = logging.getLogger(__name__)

CatalogLoader = Callable[[], Mapping[str, str]]

MIN_EACH_WEIGHT_GRAMS = Decimal("1")
MAX_EACH_WEIGHT_GRAMS = Decimal("10000")


class Catalog:
    """Product code -> description lookup with a time-based expiry."""

    def __init__(self, loader: CatalogLoader, ttl_seconds: float = 1800,
                 clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, str] = {}
        self._expires_at: Optional[float] = None

    def __len__(self) -> int:
        return len(self._entries)

    def is_stale(self) -> bool:
        return self._expires_at is None or self._clock() >= self._expires_at

    def reload(self) -> None:
        """Reload every entry from the backing store."""
        logger.info("🔄 Reloading product catalog cache...")
        try:
            entries = dict(self._loader())
        except CatalogUnavailable:
            raise
        except Exception as e:
            raise CatalogUnavailable(f"Could not load product catalog: {e}", original_error=e) from e

        self._entries = {str(code).strip(): str(desc).strip() for code, desc in entries.items() if code}
        self._expires_at = self._clock() + self._ttl_seconds
        logger.info(f"✅ Loaded {len(self._entries)} catalog entries")

    def refresh_if_stale(self) -> bool:
        """Reload when never loaded or past the TTL. Returns True if a reload happened."""
        if self.is_stale():
            self.reload()
            return True
        return False

    def lookup_by_code(self, code: str) -> Optional[str]:
        return self._entries.get(code)

    def all_entries(self) -> List[Tuple[str, str]]:
        """Entries in catalog order, for reverse description scans."""
        return list(self._entries.items())


@dataclass(frozen=True)
class Conversion:
    """How many grams one countable unit of a product weighs."""
    product_code: str
    display_name: str
    each_weight_grams: Decimal


def validate_conversion(product_code: str, each_weight_grams) -> Dict[str, object]:
    """Check a conversion setting before it is accepted into the table."""
    try:
        weight = Decimal(str(each_weight_grams)) if each_weight_grams not in (None, "") else None
    except InvalidOperation:
        weight = None

    if not product_code or weight is None or weight <= 0:
        return {'valid': False, 'error': 'Product code and positive weight required'}
    if weight > MAX_EACH_WEIGHT_GRAMS:
        return {'valid': False, 'error': 'Weight seems too large (max 10kg each)'}
    if weight < MIN_EACH_WEIGHT_GRAMS:
        return {'valid': False, 'error': 'Weight too small (min 1g each)'}
    return {'valid': True}


class ConversionTable:
    """Product code -> each-weight conversion settings."""

    def __init__(self, conversions: Iterable[Conversion] = ()):
        self._conversions: Dict[str, Conversion] = {}
        for conversion in conversions:
            self.add(conversion)

    def __len__(self) -> int:
        return len(self._conversions)

    def __contains__(self, product_code: str) -> bool:
        return product_code in self._conversions

    def add(self, conversion: Conversion) -> bool:
        check = validate_conversion(conversion.product_code, conversion.each_weight_grams)
        if not check['valid']:
            logger.warning(f"⚠️ Skipping conversion for {conversion.product_code!r}: {check['error']}")
            return False
        self._conversions[conversion.product_code] = conversion
        return True

    def lookup(self, product_code: str) -> Optional[Conversion]:
        return self._conversions.get(product_code)

    def require(self, product_code: str) -> Conversion:
        conversion = self.lookup(product_code)
        if conversion is None:
            raise ConversionUnavailable(product_code)
        return conversion

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> "ConversionTable":
        """Build from ``{code: grams}`` or ``{code: {"productName": ..., "eachWeight": ...}}``."""
        conversions = []
        for code, value in mapping.items():
            if isinstance(value, Mapping):
                name = str(value.get('productName') or value.get('displayName') or '')
                grams = value.get('eachWeight', value.get('eachWeightGrams'))
            else:
                name, grams = '', value
            conversions.append(_make_conversion(code, name, grams))
        return cls(c for c in conversions if c is not None)


def _make_conversion(code, name, grams) -> Optional[Conversion]:
    try:
        weight = Decimal(str(grams).strip())
    except (InvalidOperation, AttributeError):
        logger.warning(f"⚠️ Invalid each weight for {code!r}: {grams!r}")
        return None
    return Conversion(product_code=str(code).strip(), display_name=str(name).strip(), each_weight_grams=weight)


def read_csv_rows(path: Path) -> List[Dict[str, str]]:
    """Read a CSV file into dict rows; header names are matched case-insensitively."""
    with open(path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.DictReader(f)
        return [{(k or '').strip().lower(): (v or '').strip() for k, v in row.items()} for row in reader]


def _pick(row: Dict[str, str], *names: str) -> str:
    for name in names:
        if row.get(name):
            return row[name]
    return ''


def load_code_table(path, key_columns=('code', 'productcode', 'sku'),
                    value_columns=('description', 'name', 'productname')) -> Dict[str, str]:
    """
    Load a two-column code lookup from CSV or JSON.

    JSON may be an object ``{code: value}`` or a list of row objects.
    """
    path = Path(path)
    if path.suffix.lower() == '.json':
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            return {str(k).strip(): str(v).strip() for k, v in data.items() if not str(k).startswith('_')}
        rows = [{str(k).lower(): str(v) for k, v in row.items()} for row in data]
    else:
        rows = read_csv_rows(path)

    table = {}
    for row in rows:
        code = _pick(row, *key_columns)
        if code:
            table[code.strip()] = _pick(row, *value_columns).strip()
    logger.debug(f"Loaded {len(table)} rows from {path}")
    return table


def file_catalog_loader(path) -> CatalogLoader:
    """Catalog loader reading ``code,description`` rows from a file on every reload."""
    def load() -> Mapping[str, str]:
        try:
            return load_code_table(path)
        except (OSError, ValueError) as e:
            raise CatalogUnavailable(f"Could not read catalog file {path}: {e}", original_error=e) from e
    return load


def load_conversion_table(path) -> ConversionTable:
    """Load ``ProductCode,ProductName,EachWeightGrams`` rows from CSV or JSON."""
    path = Path(path)
    if path.suffix.lower() == '.json':
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            table = ConversionTable.from_mapping(data)
            logger.info(f"Loaded {len(table)} product conversions from {path}")
            return table
        rows = [{str(k).lower(): str(v) for k, v in row.items()} for row in data]
    else:
        rows = read_csv_rows(path)

    conversions = []
    for row in rows:
        code = _pick(row, 'productcode', 'code')
        if not code:
            continue
        conversion = _make_conversion(
            code,
            _pick(row, 'productname', 'displayname', 'name'),
            _pick(row, 'eachweightgrams', 'eachweight', 'grams'),
        )
        if conversion:
            conversions.append(conversion)

    table = ConversionTable(conversions)
    logger.info(f"Loaded {len(table)} product conversions from {path}")
    return table
