# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import List, Optional
from .audit import AuditLogger
from .config import settings
from .models import ConceptMapping


class TranslationEngine:
    """
    Answers directional "what does this code map to" questions against the
    mapping registry. Nothing here writes; an unmatched code gives [].

    Only TM2 -> NAMASTE is offered in the reverse direction. There is no
    Biomedicine -> NAMASTE lookup.
    """

    def __init__(self, registry, audit: Optional[AuditLogger] = None,
                 namaste_system: str = None, tm2_system: str = None, biomedicine_system: str = None):
        self.registry = registry
        self.audit = audit or AuditLogger()
        self.namaste_system = namaste_system or settings.namaste_system
        self.tm2_system = tm2_system or settings.icd11_tm2_system
        self.biomedicine_system = biomedicine_system or settings.icd11_biomedicine_system

    def translate(self, code: str, source_system: str, target_system: str) -> List[ConceptMapping]:
        """Mappings from (code, source_system) whose target lies in target_system."""
        results = [
            m for m in self.registry.find_by_source_and_system(code, source_system)
            if m.target_system == target_system
        ]
        self.audit.mapping_translation(code, source_system, target_system, len(results))
        return results

    def namaste_to_tm2(self, code: str) -> List[ConceptMapping]:
        return self.translate(code, self.namaste_system, self.tm2_system)

    def namaste_to_biomedicine(self, code: str) -> List[ConceptMapping]:
        return self.translate(code, self.namaste_system, self.biomedicine_system)

    def tm2_to_namaste(self, code: str) -> List[ConceptMapping]:
        """Mappings that point at the TM2 code from a NAMASTE source."""
        results = [
            m for m in self.registry.find_by_target_and_system(code, self.tm2_system)
            if m.source_system == self.namaste_system
        ]
        self.audit.mapping_translation(code, self.tm2_system, self.namaste_system, len(results))
        return results
