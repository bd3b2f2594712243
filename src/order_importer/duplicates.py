#!/usr/bin/env python3
"""
Registry of purchase order numbers that have already been processed.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)


class DuplicateRegistry:
    """Set of seen PO numbers, optionally persisted to a JSON file."""

    def __init__(self, seen: Iterable[str] = (), path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._seen: Set[str] = {po for po in seen if po}

    @classmethod
    def from_file(cls, path) -> "DuplicateRegistry":
        path = Path(path)
        seen = []
        if path.exists():
            with open(path, 'r', encoding='utf-8') as f:
                seen = json.load(f)
            logger.debug(f"Loaded {len(seen)} processed PO numbers from {path}")
        return cls(seen, path=path)

    def __len__(self) -> int:
        return len(self._seen)

    def has(self, po_number: str) -> bool:
        return bool(po_number) and po_number in self._seen

    def add(self, po_number: str) -> None:
        if po_number:
            self._seen.add(po_number)

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(sorted(self._seen), f, indent=2)
        logger.info(f"💾 Saved {len(self._seen)} processed PO numbers to {self.path}")
