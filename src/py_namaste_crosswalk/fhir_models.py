# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Pydantic shapes for the subset of FHIR R4 resources the crosswalk publishes.

Field names are snake_case in Python and camelCase on the wire. Field order
follows the FHIR element order so XML output is valid. Empty lists and
None values are dropped when a resource is dumped.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _prune(value):
    if isinstance(value, dict):
        pruned = {k: _prune(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if v not in (None, [], {})}
    if isinstance(value, list):
        return [_prune(v) for v in value if v not in (None, [], {})]
    return value


class FhirModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_fhir(self) -> Dict[str, Any]:
        """Dumps the resource as FHIR JSON-ready data."""
        return _prune(self.model_dump(by_alias=True, exclude_none=True, mode="json"))


# --- Datatypes ---

class Coding(FhirModel):
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(FhirModel):
    coding: List[Coding] = Field(default_factory=list)
    text: Optional[str] = None


class Reference(FhirModel):
    reference: str


class Identifier(FhirModel):
    system: Optional[str] = None
    value: Optional[str] = None


class Annotation(FhirModel):
    text: str


# --- CodeSystem ---

class CodeSystemProperty(FhirModel):
    code: str
    description: Optional[str] = None
    type: str = "string"


class ConceptProperty(FhirModel):
    code: str
    value_string: str


class CodeSystemConcept(FhirModel):
    code: str
    display: Optional[str] = None
    definition: Optional[str] = None
    properties: List[ConceptProperty] = Field(default_factory=list, alias="property")


class CodeSystem(FhirModel):
    resource_type: Literal["CodeSystem"] = "CodeSystem"
    id: str
    url: str
    version: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    status: str = "active"
    date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    content: str = "complete"
    count: Optional[int] = None
    properties: List[CodeSystemProperty] = Field(default_factory=list, alias="property")
    concept: List[CodeSystemConcept] = Field(default_factory=list)


# --- ConceptMap ---

class ConceptMapTarget(FhirModel):
    code: str
    display: Optional[str] = None
    equivalence: str
    comment: Optional[str] = None


class ConceptMapElement(FhirModel):
    code: str
    display: Optional[str] = None
    target: List[ConceptMapTarget] = Field(default_factory=list)


class ConceptMapGroup(FhirModel):
    source: str
    target: str
    element: List[ConceptMapElement] = Field(default_factory=list)


class ConceptMap(FhirModel):
    resource_type: Literal["ConceptMap"] = "ConceptMap"
    id: str
    url: str
    version: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    status: str = "active"
    date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    source_uri: Optional[str] = None
    target_uri: Optional[str] = None
    group: List[ConceptMapGroup] = Field(default_factory=list)


# --- ValueSet ---

class ValueSetFilter(FhirModel):
    filter_property: str = Field(alias="property")
    op: str
    value: str


class ValueSetInclude(FhirModel):
    system: str
    filters: List[ValueSetFilter] = Field(default_factory=list, alias="filter")


class ValueSetCompose(FhirModel):
    include: List[ValueSetInclude] = Field(default_factory=list)


class ValueSetDesignation(FhirModel):
    use: Optional[Coding] = None
    value: str


class ValueSetContains(FhirModel):
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None
    designation: List[ValueSetDesignation] = Field(default_factory=list)


class ValueSetExpansion(FhirModel):
    timestamp: str
    total: Optional[int] = None
    contains: List[ValueSetContains] = Field(default_factory=list)


class ValueSet(FhirModel):
    resource_type: Literal["ValueSet"] = "ValueSet"
    id: str
    url: str
    version: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    status: str = "active"
    date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    compose: Optional[ValueSetCompose] = None
    expansion: Optional[ValueSetExpansion] = None


# --- Clinical ---

class Patient(FhirModel):
    resource_type: Literal["Patient"] = "Patient"
    id: str
    identifier: List[Identifier] = Field(default_factory=list)


class Condition(FhirModel):
    resource_type: Literal["Condition"] = "Condition"
    id: Optional[str] = None
    clinical_status: Optional[CodeableConcept] = None
    verification_status: Optional[CodeableConcept] = None
    code: Optional[CodeableConcept] = None
    subject: Optional[Reference] = None
    onset_date_time: Optional[str] = None
    recorded_date: Optional[str] = None
    note: List[Annotation] = Field(default_factory=list)


class BundleRequest(FhirModel):
    method: str
    url: str


class BundleEntry(FhirModel):
    resource: Dict[str, Any]
    request: Optional[BundleRequest] = None


class Bundle(FhirModel):
    resource_type: Literal["Bundle"] = "Bundle"
    id: Optional[str] = None
    type: str = "collection"
    timestamp: Optional[str] = None
    total: Optional[int] = None
    entry: List[BundleEntry] = Field(default_factory=list)


# --- CapabilityStatement ---

class ResourceInteraction(FhirModel):
    code: str


class ResourceOperation(FhirModel):
    name: str
    definition: str


class RestResource(FhirModel):
    type: str
    interaction: List[ResourceInteraction] = Field(default_factory=list)
    operation: List[ResourceOperation] = Field(default_factory=list)


class Rest(FhirModel):
    mode: str = "server"
    resource: List[RestResource] = Field(default_factory=list)


class CapabilityStatement(FhirModel):
    resource_type: Literal["CapabilityStatement"] = "CapabilityStatement"
    id: str
    url: Optional[str] = None
    version: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    status: str = "active"
    date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    kind: str = "instance"
    fhir_version: str = "4.0.1"
    format: List[str] = Field(default_factory=list)
    rest: List[Rest] = Field(default_factory=list)


# --- Parameters ---

class ParametersParameter(FhirModel):
    name: str
    value_boolean: Optional[bool] = None
    value_code: Optional[str] = None
    value_string: Optional[str] = None
    value_coding: Optional[Coding] = None
    part: List["ParametersParameter"] = Field(default_factory=list)


class Parameters(FhirModel):
    resource_type: Literal["Parameters"] = "Parameters"
    parameter: List[ParametersParameter] = Field(default_factory=list)
