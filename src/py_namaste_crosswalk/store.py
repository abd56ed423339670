# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import threading
from collections import Counter
from typing import Dict, Iterable, List, Optional
from .models import Catalog, Page, TerminologyCode, utcnow


class TerminologyStore:
    """
    In-memory holder for the NAMASTE and ICD-11 catalogs, keyed by code.
    Iteration order is the order in which codes were first saved.
    """

    def __init__(self):
        self._catalogs: Dict[Catalog, Dict[str, TerminologyCode]] = {
            Catalog.NAMASTE: {},
            Catalog.ICD11: {},
        }
        self._lock = threading.RLock()

    def save(self, code: TerminologyCode) -> TerminologyCode:
        """Inserts or replaces a code, keeping its original creation time."""
        with self._lock:
            catalog = self._catalogs[code.catalog]
            existing = catalog.get(code.code)
            now = utcnow()
            code.created_at = existing.created_at if existing and existing.created_at else (code.created_at or now)
            code.updated_at = now
            catalog[code.code] = code
            return code

    def save_all(self, codes: Iterable[TerminologyCode]) -> int:
        count = 0
        for code in codes:
            self.save(code)
            count += 1
        return count

    def find_by_code(self, catalog: Catalog, code: str) -> Optional[TerminologyCode]:
        return self._catalogs[catalog].get(code)

    def all(self, catalog: Catalog) -> List[TerminologyCode]:
        with self._lock:
            return list(self._catalogs[catalog].values())

    def count(self, catalog: Catalog) -> int:
        return len(self._catalogs[catalog])

    def delete(self, catalog: Catalog, code: str) -> bool:
        with self._lock:
            return self._catalogs[catalog].pop(code, None) is not None

    def search_by_term(self, catalog: Catalog, term: str, page: int = 0, size: int = 20) -> Page:
        """Case-insensitive substring search over display, code and definition."""
        needle = (term or "").lower()
        matches = [
            c for c in self.all(catalog)
            if needle in c.display.lower()
            or needle in c.code.lower()
            or (c.definition is not None and needle in c.definition.lower())
        ]
        start = max(page, 0) * size
        return Page(content=matches[start:start + size], page=page, size=size, total_elements=len(matches))

    def find_by_prefix(self, catalog: Catalog, term: str, limit: int = 10) -> List[TerminologyCode]:
        """Case-insensitive prefix match on display or code, capped at `limit`."""
        prefix = (term or "").lower()
        results = []
        for c in self.all(catalog):
            if len(results) >= limit:
                break
            if c.display.lower().startswith(prefix) or c.code.lower().startswith(prefix):
                results.append(c)
        return results

    def find_by_tag(self, catalog: Catalog, tag) -> List[TerminologyCode]:
        return [c for c in self.all(catalog) if c.tag == tag]

    def find_by_category(self, catalog: Catalog, category: str) -> List[TerminologyCode]:
        return [c for c in self.all(catalog) if c.category == category]

    def categories(self, catalog: Catalog, tag=None) -> List[str]:
        """Distinct non-null categories (chapters for ICD-11), optionally for one tag."""
        seen = {}
        for c in self.all(catalog):
            if c.category is not None and (tag is None or c.tag == tag):
                seen.setdefault(c.category, None)
        return list(seen)

    def find_with_cross_references(self) -> List[TerminologyCode]:
        """NAMASTE codes carrying a TM2 or Biomedicine cross-reference."""
        return [
            c for c in self.all(Catalog.NAMASTE)
            if c.icd11_tm2_code is not None or c.icd11_biomedicine_code is not None
        ]

    def count_by_tag(self, catalog: Catalog) -> Dict[str, int]:
        counts = Counter(c.tag.value for c in self.all(catalog))
        return dict(counts)
