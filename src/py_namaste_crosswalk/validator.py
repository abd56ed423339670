# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Optional
from .audit import AuditLogger
from .config import settings
from .models import Catalog, ValidationResult
from .store import TerminologyStore


class DualCodingValidator:
    """Checks that a NAMASTE code and an ICD-11 code may be recorded together."""

    def __init__(self, store: TerminologyStore, registry, audit: Optional[AuditLogger] = None):
        self.store = store
        self.registry = registry
        self.audit = audit or AuditLogger()

    def validate(self, namaste_code: str, icd11_code: str, system_hint: Optional[str] = None) -> ValidationResult:
        """
        Valid when both codes exist and some mapping links them within the
        hinted ICD-11 module (exactly "TM2", anything else meaning Biomedicine).
        The mapping's equivalence is not considered.
        """
        errors = []
        if self.store.find_by_code(Catalog.NAMASTE, namaste_code) is None:
            errors.append(f"NAMASTE code not found: {namaste_code}")
        if self.store.find_by_code(Catalog.ICD11, icd11_code) is None:
            errors.append(f"ICD-11 code not found: {icd11_code}")
        if errors:
            self.audit.dual_coding(namaste_code, icd11_code, False)
            return ValidationResult(valid=False, errors=errors)

        target_system = (
            settings.icd11_tm2_system
            if system_hint == "TM2"
            else settings.icd11_biomedicine_system
        )
        for mapping in self.registry.find_for_code(namaste_code, settings.namaste_system):
            if mapping.target_code == icd11_code and mapping.target_system == target_system:
                self.audit.dual_coding(namaste_code, icd11_code, True)
                return ValidationResult(valid=True, mapping=mapping)

        self.audit.dual_coding(namaste_code, icd11_code, False)
        return ValidationResult(
            valid=False,
            errors=[f"No mapping found between NAMASTE code {namaste_code} and ICD-11 code {icd11_code}"],
        )
