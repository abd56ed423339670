# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module maps internal mapping equivalences to the FHIR R4 ConceptMap
equivalence vocabulary, and holds the fixed policy used when mappings are
derived from cross-reference fields.

See https://hl7.org/fhir/R4/valueset-concept-map-equivalence.html
"""
from typing import Optional
from .models import Icd11Module, MappingEquivalence

# Anything not in the table below is published as a generic relation.
DEFAULT_FHIR_EQUIVALENCE = "relatedto"

MAPPING_EQUIVALENCE_TO_FHIR = {
    MappingEquivalence.RELATEDTO: "relatedto",
    MappingEquivalence.EQUIVALENT: "equivalent",
    MappingEquivalence.EQUAL: "equal",
    MappingEquivalence.WIDER: "wider",
    MappingEquivalence.SUBSUMES: "subsumes",
    MappingEquivalence.NARROWER: "narrower",
    MappingEquivalence.SPECIALIZES: "specializes",
    MappingEquivalence.INEXACT: "inexact",
    MappingEquivalence.UNMATCHED: "unmatched",
    MappingEquivalence.DISJOINT: "disjoint",
}

# Equivalence asserted for mappings derived from a cross-reference field.
AUTO_MAPPING_EQUIVALENCE = {
    Icd11Module.TM2: MappingEquivalence.EQUIVALENT,
    Icd11Module.BIOMEDICINE: MappingEquivalence.RELATEDTO,
}


def get_fhir_equivalence(equivalence) -> str:
    """Maps an equivalence (enum or its name) to a FHIR equivalence code."""
    if equivalence is None:
        return DEFAULT_FHIR_EQUIVALENCE
    if isinstance(equivalence, str) and not isinstance(equivalence, MappingEquivalence):
        equivalence = equivalence.upper()
    return MAPPING_EQUIVALENCE_TO_FHIR.get(equivalence, DEFAULT_FHIR_EQUIVALENCE)


def parse_equivalence(value: Optional[str]) -> MappingEquivalence:
    """Parses user input such as 'equivalent' or 'RELATEDTO'. Raises ValueError on unknown names."""
    if not value:
        return MappingEquivalence.RELATEDTO
    try:
        return MappingEquivalence(value.strip().upper())
    except ValueError:
        raise ValueError(
            f"Unknown equivalence '{value}'. Expected one of: {[e.value for e in MappingEquivalence]}"
        )
