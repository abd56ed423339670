# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import itertools
import threading
from typing import Dict, List, Optional, Tuple
from .exceptions import MappingNotFoundError
from .models import ConceptMapping, MappingEquivalence, utcnow


class MappingRegistry:
    """
    In-memory store of ConceptMapping records.

    All query results come back in insertion order. `create` never
    deduplicates; `get_or_create` is the atomic, triple-keyed form used by
    automatic generation.
    """

    def __init__(self):
        self._mappings: Dict[int, ConceptMapping] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def create(
        self,
        source_code: str,
        source_system: str,
        target_code: str,
        target_system: str,
        equivalence: MappingEquivalence,
        comment: Optional[str] = None,
        confidence_score: Optional[float] = None,
        mapping_version: Optional[str] = None,
    ) -> ConceptMapping:
        with self._lock:
            now = utcnow()
            mapping = ConceptMapping(
                id=next(self._ids),
                source_code=source_code,
                source_system=source_system,
                target_code=target_code,
                target_system=target_system,
                equivalence=equivalence,
                comment=comment,
                confidence_score=confidence_score,
                mapping_version=mapping_version,
                created_at=now,
                updated_at=now,
            )
            self._mappings[mapping.id] = mapping
            return mapping

    def get_or_create(
        self,
        source_code: str,
        source_system: str,
        target_code: str,
        target_system: str,
        equivalence: MappingEquivalence,
        comment: Optional[str] = None,
    ) -> Tuple[ConceptMapping, bool]:
        """
        Returns the first mapping for (source_code, source_system, target_system)
        or creates one. The boolean is True when a mapping was created.
        """
        with self._lock:
            existing = self.find_by_source_and_target_system(source_code, source_system, target_system)
            if existing is not None:
                return existing, False
            return self.create(source_code, source_system, target_code, target_system, equivalence, comment), True

    def get(self, mapping_id: int) -> ConceptMapping:
        mapping = self._mappings.get(mapping_id)
        if mapping is None:
            raise MappingNotFoundError(mapping_id)
        return mapping

    def all(self) -> List[ConceptMapping]:
        with self._lock:
            return list(self._mappings.values())

    def find_for_code(self, code: str, system: str) -> List[ConceptMapping]:
        """Mappings in which the code takes part, as source or as target, within `system`."""
        return [
            m for m in self.all()
            if (m.source_code == code and m.source_system == system)
            or (m.target_code == code and m.target_system == system)
        ]

    def find_by_source_and_system(self, code: str, system: str) -> List[ConceptMapping]:
        return [m for m in self.all() if m.source_code == code and m.source_system == system]

    def find_by_target_and_system(self, code: str, system: str) -> List[ConceptMapping]:
        return [m for m in self.all() if m.target_code == code and m.target_system == system]

    def find_by_source_and_target_system(
        self, source_code: str, source_system: str, target_system: str
    ) -> Optional[ConceptMapping]:
        for m in self.all():
            if m.source_code == source_code and m.source_system == source_system and m.target_system == target_system:
                return m
        return None

    def find_by_equivalence(self, equivalence: MappingEquivalence) -> List[ConceptMapping]:
        return [m for m in self.all() if m.equivalence == equivalence]

    def find_between_systems(self, source_system: str, target_system: str) -> List[ConceptMapping]:
        return [m for m in self.all() if m.source_system == source_system and m.target_system == target_system]

    def count_between_systems(self, source_system: str, target_system: str) -> int:
        return len(self.find_between_systems(source_system, target_system))

    def delete(self, mapping_id: int) -> None:
        with self._lock:
            if mapping_id not in self._mappings:
                raise MappingNotFoundError(mapping_id)
            del self._mappings[mapping_id]

    def count(self) -> int:
        return len(self._mappings)
