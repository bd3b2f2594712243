#!/usr/bin/env python3
"""
Configuration for the order importer.

Data file locations are read from environment variables (or a ``.env``
file in the working directory); command-line options override them.

    ORDER_IMPORTER_CATALOG          product catalog (code,description)
    ORDER_IMPORTER_CONVERSIONS      product conversions (ProductCode,ProductName,EachWeightGrams)
    ORDER_IMPORTER_CUSTOMERS        customer emails (CustomerCode,CustomerName,Email)
    ORDER_IMPORTER_VENDORS          product vendors (ProductCode,Vendor)
    ORDER_IMPORTER_FALLBACK_NAMES   fallback product names (code,name)
    ORDER_IMPORTER_REGISTRY         processed PO numbers (JSON list)
    ORDER_IMPORTER_OUTPUT_DIR       where exported workbooks are written
    ORDER_IMPORTER_CATALOG_TTL      catalog cache lifetime in seconds
    ORDER_IMPORTER_LOG_LEVEL        DEBUG, INFO, WARNING, ERROR
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = 'ORDER_IMPORTER_'

# Catalog cache lifetime
DEFAULT_CATALOG_TTL_SECONDS = 30 * 60

# Fixed values written into every exported order
EXPORT_DEFAULTS = {
    'financial_status': 'pending',
    'fulfillment_status': 'fulfilled',
    'accepts_marketing': 'yes',
    'currency': 'GBP',
    'shipping_method': 'FREE DELIVERY',
    'payment_method': 'custom',
    'billing_street': 'Address Line 1',
    'billing_city': 'London',
    'billing_zip': 'SW1A 0AA',
    'province_code': 'ENG',
    'country_code': 'GB',
    'province_name': 'England',
    'location': 'Unit 2 Horner House',
    'tags': 'checkout-by-draft',
    'risk_level': 'Low',
    'source': 'shopify_draft_order',
    'created_time': '20:29:32 +0100',
    'fulfilled_time': '21:21:42 +0100',
    'delivery_note_prefix': 'mw-delivery-date: ',
    'filename_prefix': 'orders_',
}

LOGGING = {
    'level': 'INFO',
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
}


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(ENV_PREFIX + name, '').strip()
    return Path(value) if value else None


@dataclass
class Settings:
    """Locations of the data files and runtime options."""
    catalog_path: Optional[Path] = None
    conversions_path: Optional[Path] = None
    customers_path: Optional[Path] = None
    vendors_path: Optional[Path] = None
    fallback_names_path: Optional[Path] = None
    registry_path: Optional[Path] = None
    output_dir: Path = Path('.')
    catalog_ttl_seconds: float = DEFAULT_CATALOG_TTL_SECONDS
    log_level: str = LOGGING['level']

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)

        ttl = os.environ.get(ENV_PREFIX + 'CATALOG_TTL', '').strip()
        return cls(
            catalog_path=_env_path('CATALOG'),
            conversions_path=_env_path('CONVERSIONS'),
            customers_path=_env_path('CUSTOMERS'),
            vendors_path=_env_path('VENDORS'),
            fallback_names_path=_env_path('FALLBACK_NAMES'),
            registry_path=_env_path('REGISTRY'),
            output_dir=_env_path('OUTPUT_DIR') or Path('.'),
            catalog_ttl_seconds=float(ttl) if ttl else DEFAULT_CATALOG_TTL_SECONDS,
            log_level=os.environ.get(ENV_PREFIX + 'LOG_LEVEL', LOGGING['level']).upper(),
        )
