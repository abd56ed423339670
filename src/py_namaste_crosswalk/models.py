# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Catalog(str, Enum):
    """The two terminology catalogs held by the store."""
    NAMASTE = "NAMASTE"
    ICD11 = "ICD11"


class TraditionalSystem(str, Enum):
    """Medical system a NAMASTE code belongs to."""
    AYURVEDA = "AYURVEDA"
    SIDDHA = "SIDDHA"
    UNANI = "UNANI"


class Icd11Module(str, Enum):
    """ICD-11 module a target code belongs to."""
    TM2 = "TM2"
    BIOMEDICINE = "BIOMEDICINE"


class MappingEquivalence(str, Enum):
    """Semantic relationship asserted by a mapping, from source to target."""
    RELATEDTO = "RELATEDTO"
    EQUIVALENT = "EQUIVALENT"
    EQUAL = "EQUAL"
    WIDER = "WIDER"
    SUBSUMES = "SUBSUMES"
    NARROWER = "NARROWER"
    SPECIALIZES = "SPECIALIZES"
    INEXACT = "INEXACT"
    UNMATCHED = "UNMATCHED"
    DISJOINT = "DISJOINT"


NAMASTE_ONLY_FIELDS = ("subcategory", "who_terminology_code", "icd11_tm2_code", "icd11_biomedicine_code", "version")
ICD11_ONLY_FIELDS = ("linearization_uri", "foundation_uri")


class TerminologyCode(BaseModel):
    """
    A code in either catalog. The `catalog` field decides which tag enum
    applies and which catalog-specific extras may be set.
    For ICD-11 codes `display` is the title and `category` is the chapter.
    """
    catalog: Catalog
    code: str = Field(..., min_length=1)
    display: str
    definition: Optional[str] = None
    tag: Union[TraditionalSystem, Icd11Module]
    category: Optional[str] = None
    parent: Optional[str] = None

    # NAMASTE extras
    subcategory: Optional[str] = None
    who_terminology_code: Optional[str] = None
    icd11_tm2_code: Optional[str] = None
    icd11_biomedicine_code: Optional[str] = None
    version: Optional[str] = None

    # ICD-11 extras
    synonyms: Dict[str, str] = Field(default_factory=dict)
    linearization_uri: Optional[str] = None
    foundation_uri: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_catalog_shape(self):
        if self.catalog == Catalog.NAMASTE:
            if not isinstance(self.tag, TraditionalSystem):
                raise ValueError(f"NAMASTE code {self.code} must be tagged with a traditional system, got {self.tag}")
            foreign = [f for f in ICD11_ONLY_FIELDS if getattr(self, f) is not None]
            if self.synonyms:
                foreign.append("synonyms")
        else:
            if not isinstance(self.tag, Icd11Module):
                raise ValueError(f"ICD-11 code {self.code} must be tagged with an ICD-11 module, got {self.tag}")
            foreign = [f for f in NAMASTE_ONLY_FIELDS if getattr(self, f) is not None]
        if foreign:
            raise ValueError(f"Fields {foreign} are not valid for {self.catalog.value} code {self.code}")
        return self

    @property
    def is_tm2(self) -> bool:
        return self.tag == Icd11Module.TM2


class ConceptMapping(BaseModel):
    """
    A directed edge from a code in one coding system to a code in another.
    Identity is `id`; the same code pair may be mapped more than once.
    """
    id: Optional[int] = None
    source_code: str
    source_system: str
    target_code: str
    target_system: str
    equivalence: MappingEquivalence
    comment: Optional[str] = None
    confidence_score: Optional[float] = None
    mapping_version: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def touch(self) -> None:
        self.updated_at = utcnow()


class Page(BaseModel):
    """One page of a paged search result."""
    content: List[TerminologyCode]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total_elements + self.size - 1) // self.size


class ValidationResult(BaseModel):
    """Outcome of a dual-coding check."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    mapping: Optional[ConceptMapping] = None


class GenerationStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class GenerationReport(BaseModel):
    """
    Summary of one automatic-mapping run. `processed_count` is reported as 0
    when the run fails; `mappings_created` always holds what was committed.
    """
    status: GenerationStatus
    processed_count: int = 0
    mappings_created: int = 0
    error: Optional[str] = None


class TerminologyStats(BaseModel):
    """Counts across both catalogs and the mapping registry."""
    namaste_total: int
    namaste_by_system: Dict[str, int]
    icd11_total: int
    icd11_by_module: Dict[str, int]
    mapping_total: int
    mappings_to_tm2: int = 0
    mappings_to_biomedicine: int = 0
