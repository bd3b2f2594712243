#!/usr/bin/env python3
"""
Template classification for supplier purchase orders.
Picks a parsing strategy from marker phrases in the extracted text.
"""

import logging

from .models import TemplateType

logger = logging.getLogger(__name__)

# Checked in order, first marker present wins
TEMPLATE_MARKERS = [
    ("Picking Note", TemplateType.PICKING_NOTE),
    ("Consolidated Purchase Order", TemplateType.CONSOLIDATED),
]


def classify(text: str) -> TemplateType:
    """Return the template type for the given document text. Defaults to Standard."""
    for marker, template_type in TEMPLATE_MARKERS:
        if marker in text:
            logger.debug(f"Template marker '{marker}' found -> {template_type.value}")
            return template_type
    return TemplateType.STANDARD
