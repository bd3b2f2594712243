#!/usr/bin/env python3
"""
Catalog reconciliation for parsed line items.

Resolution is layered: direct code lookup, reverse lookup by description,
a static fallback name table, and finally no match. A "not found" outcome
never raises; the match kind tells the caller how confident we are.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalog import Catalog
from .exceptions import CatalogUnavailable
from .models import LineItem, MatchKind

logger = logging.getLogger(__name__)

MAX_KEYWORD_DESCRIPTION_LENGTH = 50

# Preferred code suffixes when several catalog entries match, Each before Box
SUFFIX_PRIORITY = ('E', 'B')

Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one (code, description) pair."""
    code: str
    description: str
    match_kind: MatchKind


def _herb(name: str) -> Predicate:
    # Dried "dust" variants are a different product from the fresh herb
    return lambda catalog: name in catalog and 'dust' not in catalog


def _contains(word: str) -> Predicate:
    return lambda catalog: word in catalog


def _equals(word: str) -> Predicate:
    return lambda catalog: catalog == word


def has_word(word: str, text: str) -> bool:
    """True when word appears in text as a whole word, plural allowed."""
    return re.search(rf'\b{re.escape(word)}(?:e?s)?\b', text) is not None


def _grape_rule(query: str) -> Optional[Predicate]:
    if has_word('red', query):
        return _contains('black grape')
    if has_word('green', query):
        return _contains('white grape')
    return None


# (query trigger, catalog predicate) in priority order. Triggers match whole
# words only, so "grape" never fires on "grapefruit". The first trigger found
# in the query decides, whether or not its predicate matches anything.
SIMPLE_RULES: List[Tuple[str, Callable[[str], Optional[Predicate]]]] = [
    ('kiwi', lambda q: _equals('kiwi')),
    ('mango', lambda q: _equals('mango')),
    ('easy peeler', lambda q: _contains('easy peeler')),
    ('rosemary', lambda q: _herb('rosemary')),
    ('thyme', lambda q: _herb('thyme')),
    ('dill', lambda q: _herb('dill')),
    ('watermelon', lambda q: _contains('watermelon')),
    ('honeydew', lambda q: _contains('honeydew')),
    ('cantaloupe', lambda q: _contains('cantaloupe')),
    ('galia', lambda q: _contains('galia')),
    ('grape', _grape_rule),
]


def simple_rule_for(query: str) -> Optional[Predicate]:
    for trigger, rule in SIMPLE_RULES:
        if has_word(trigger, query):
            return rule(query)
    return None


class CatalogResolver:
    """Resolve extracted product codes and descriptions against the catalog."""

    def __init__(self, catalog: Catalog, fallback_names: Optional[Mapping[str, str]] = None,
                 partial_overrides: Sequence[Tuple[str, str]] = ()):
        self.catalog = catalog
        self.fallback_names: Dict[str, str] = dict(fallback_names or {})
        self.partial_overrides = [(q.lower(), c.lower()) for q, c in partial_overrides]

    def resolve(self, code: str, description: str = "") -> Resolution:
        """
        Resolve a product to its canonical catalog identity.

        Args:
            code: Product code as extracted from the document
            description: Extracted description, used for reverse lookup

        Returns:
            Resolution with the best known code and description
        """
        try:
            direct = self._direct_lookup(code)
            if direct:
                return direct

            if description and len(description) > 2:
                logger.debug(f"🔍 Trying reverse lookup for: {description!r}")
                reverse = self.find_by_description(description)
                if reverse:
                    logger.info(f"✅ Reverse match found: {reverse.code} - {reverse.description}")
                    return reverse
        except CatalogUnavailable as e:
            logger.error(f"❌ Catalog unavailable while resolving {code}: {e}")
            return Resolution(code, description, MatchKind.ERROR)

        base_code = re.sub(r'[EKB]$', '', code)
        if base_code in self.fallback_names:
            return Resolution(code, self.fallback_names[base_code], MatchKind.FALLBACK)

        logger.info(f"❌ No match found for {code} or {description!r}")
        return Resolution(code, description, MatchKind.NONE)

    def _direct_lookup(self, code: str) -> Optional[Resolution]:
        if not code:
            return None

        if not self.catalog.is_stale():
            description = self.catalog.lookup_by_code(code)
            if description:
                logger.debug(f"✅ Direct SKU match {code}: {description[:50]}")
                return Resolution(code, description, MatchKind.DIRECT)
            return None

        # Expired or never loaded: reload once, synchronously, then retry
        self.catalog.reload()
        description = self.catalog.lookup_by_code(code)
        if description:
            logger.debug(f"✅ Direct SKU match after reload {code}: {description[:50]}")
            return Resolution(code, description, MatchKind.DIRECT)
        return None

    def strategies(self, query: str) -> List[Tuple[MatchKind, Predicate]]:
        """Reverse-lookup strategies for one query, strictly in priority order."""
        keywords = [word for word in query.split() if len(word) > 2]
        simple = simple_rule_for(query)
        overrides = [(q, c) for q, c in self.partial_overrides if q in query]

        return [
            (MatchKind.REVERSE_EXACT, lambda catalog: catalog.strip() == query),
            (MatchKind.REVERSE_SIMPLE, simple or (lambda catalog: False)),
            (MatchKind.REVERSE_KEYWORD, lambda catalog: (
                any(word in catalog for word in keywords)
                and len(catalog) < MAX_KEYWORD_DESCRIPTION_LENGTH
            )),
            (MatchKind.REVERSE_PARTIAL, lambda catalog: any(c in catalog for _, c in overrides)),
        ]

    def find_by_description(self, description: str) -> Optional[Resolution]:
        """Reverse lookup: find the catalog entry whose description best fits."""
        if self.catalog.is_stale():
            self.catalog.reload()

        query = description.lower().strip()
        entries = self.catalog.all_entries()

        for match_kind, predicate in self.strategies(query):
            matches = [(code, desc) for code, desc in entries if predicate(desc.lower())]
            if matches:
                code, desc = self._prioritise(matches)
                logger.debug(f"   {len(matches)} {match_kind.value} matches, selected {code}")
                return Resolution(code, desc, match_kind)

        logger.debug(f"   No reverse matches found for {description!r}")
        return None

    @staticmethod
    def _prioritise(matches: List[Tuple[str, str]]) -> Tuple[str, str]:
        for suffix in SUFFIX_PRIORITY:
            for code, desc in matches:
                if code.endswith(suffix):
                    return code, desc
        return matches[0]

    def enhance(self, item: LineItem) -> LineItem:
        """Apply a catalog resolution to a parsed line item."""
        if not item.product_code:
            logger.debug("No product code to enhance")
            return item

        description = item.description
        if description.startswith('- '):
            description = description[2:]

        resolution = self.resolve(item.product_code, description)
        changes = {'catalog_match': resolution.match_kind}

        if resolution.match_kind not in (MatchKind.NONE, MatchKind.ERROR):
            if resolution.match_kind.is_reverse and resolution.code != item.product_code \
                    and item.original_product_code is None:
                logger.info(f"🔄 SKU changed: {item.product_code} → {resolution.code}")
                changes['original_product_code'] = item.product_code
                changes['product_code'] = resolution.code

            if resolution.description and len(resolution.description) > len(item.description):
                changes['description'] = resolution.description

        return replace(item, **changes)
