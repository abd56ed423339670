# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import copy
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from rich.console import Console
from .audit import AuditLogger
from .config import settings
from .equivalence import get_fhir_equivalence
from .fhir_models import (
    Annotation, Bundle, BundleEntry, BundleRequest, CapabilityStatement, CodeableConcept,
    CodeSystem, CodeSystemConcept, CodeSystemProperty, Coding, ConceptMap, ConceptMapElement,
    ConceptMapGroup, ConceptMapTarget, ConceptProperty, Condition, Identifier, Parameters,
    ParametersParameter, Patient, Reference, ResourceInteraction, ResourceOperation, Rest,
    RestResource, ValueSet, ValueSetCompose, ValueSetContains, ValueSetDesignation,
    ValueSetExpansion, ValueSetFilter, ValueSetInclude,
)
from .models import Catalog, TerminologyCode, TraditionalSystem
from .store import TerminologyStore
from .translation import TranslationEngine

console = Console(stderr=True)

CONDITION_CLINICAL_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-clinical"
CONDITION_VERIFICATION_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-ver-status"
DESIGNATION_USAGE_SYSTEM = "http://terminology.hl7.org/CodeSystem/designation-usage"
HEALTH_ID_SYSTEM = "https://healthid.ndhm.gov.in"
TRANSLATE_OPERATION_DEFINITION = "http://hl7.org/fhir/OperationDefinition/ConceptMap-translate"
AUTOCOMPLETE_VALUESET_URL = "http://terminology.ayush.gov.in/ValueSet/dual-coding-autocomplete"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ResourceSynthesizer:
    """
    Builds FHIR R4 resources from the terminology store and the mapping
    registry. Nothing here mutates either of them.
    """

    def __init__(self, store: TerminologyStore, registry, translator: Optional[TranslationEngine] = None,
                 audit: Optional[AuditLogger] = None):
        self.store = store
        self.registry = registry
        self.audit = audit or AuditLogger()
        self.translator = translator or TranslationEngine(registry, audit=self.audit)

    def _icd11_system(self, code: TerminologyCode) -> str:
        return settings.icd11_tm2_system if code.is_tm2 else settings.icd11_biomedicine_system

    # --- CodeSystem ---

    def code_system(self) -> CodeSystem:
        """The complete NAMASTE catalog as a CodeSystem."""
        concepts = []
        for code in self.store.all(Catalog.NAMASTE):
            properties = []
            if code.tag is not None:
                properties.append(ConceptProperty(code="system", value_string=code.tag.value))
            if code.category is not None:
                properties.append(ConceptProperty(code="category", value_string=code.category))
            if code.who_terminology_code is not None:
                properties.append(ConceptProperty(code="who-terminology", value_string=code.who_terminology_code))
            concepts.append(CodeSystemConcept(
                code=code.code,
                display=code.display,
                definition=code.definition,
                properties=properties,
            ))

        self.audit.resource_access("CodeSystem", "namaste-codes", "READ")
        return CodeSystem(
            id="namaste-codes",
            url=settings.namaste_system,
            version=settings.namaste_version,
            name="NAMASTE",
            title="National AYUSH Morbidity & Standardized Terminologies Electronic",
            date=_now(),
            publisher=settings.publisher,
            description="Standardized terminology codes for Ayurveda, Siddha, and Unani disorders",
            count=len(concepts),
            properties=[
                CodeSystemProperty(code="system", description="Traditional medicine system"),
                CodeSystemProperty(code="category", description="Disorder category"),
                CodeSystemProperty(code="who-terminology", description="WHO International Terminology code"),
            ],
            concept=concepts,
        )

    # --- ConceptMap ---

    def concept_map(self) -> ConceptMap:
        """
        Every mapping with a NAMASTE source, grouped by target module: TM2
        first, Biomedicine second. Mappings into any other system are left out.
        """
        groups = {
            settings.icd11_tm2_system: ConceptMapGroup(source=settings.namaste_system, target=settings.icd11_tm2_system),
            settings.icd11_biomedicine_system: ConceptMapGroup(
                source=settings.namaste_system, target=settings.icd11_biomedicine_system),
        }
        elements: Dict[str, Dict[str, ConceptMapElement]] = {target: {} for target in groups}

        for mapping in self.registry.all():
            if mapping.source_system != settings.namaste_system or mapping.target_system not in groups:
                continue
            index = elements[mapping.target_system]
            element = index.get(mapping.source_code)
            if element is None:
                source = self.store.find_by_code(Catalog.NAMASTE, mapping.source_code)
                element = ConceptMapElement(code=mapping.source_code, display=source.display if source else None)
                index[mapping.source_code] = element
                groups[mapping.target_system].element.append(element)
            target = self.store.find_by_code(Catalog.ICD11, mapping.target_code)
            element.target.append(ConceptMapTarget(
                code=mapping.target_code,
                display=target.display if target else None,
                equivalence=get_fhir_equivalence(mapping.equivalence),
                comment=mapping.comment,
            ))

        self.audit.resource_access("ConceptMap", "namaste-to-icd11", "READ")
        return ConceptMap(
            id="namaste-to-icd11",
            url=f"{settings.fhir_base_url}/ConceptMap/namaste-to-icd11",
            version="1.0",
            name="NAMASTEToICD11",
            title="NAMASTE to ICD-11 Concept Mapping",
            date=_now(),
            publisher=settings.publisher,
            description="Mappings from NAMASTE codes to ICD-11 TM2 and Biomedicine",
            source_uri=settings.namaste_system,
            target_uri=settings.icd11_biomedicine_system,
            group=list(groups.values()),
        )

    # --- ValueSet ---

    def value_set(self, filter_text: Optional[str] = None, system: Optional[TraditionalSystem] = None) -> ValueSet:
        """An intensional subset of NAMASTE, narrowed by display text and/or traditional system."""
        filters = []
        if filter_text is not None and filter_text.strip():
            filters.append(ValueSetFilter(filter_property="display", op="regex", value=f".*{filter_text}.*"))
        if system is not None:
            filters.append(ValueSetFilter(filter_property="system", op="=", value=TraditionalSystem(system).value))

        self.audit.resource_access("ValueSet", "namaste-valueset", "READ")
        return ValueSet(
            id="namaste-valueset",
            url=f"{settings.fhir_base_url}/ValueSet/namaste",
            version=settings.namaste_version,
            name="NAMASTEValueSet",
            title="NAMASTE Value Set",
            date=_now(),
            publisher=settings.publisher,
            compose=ValueSetCompose(include=[ValueSetInclude(system=settings.namaste_system, filters=filters)]),
        )

    def autocomplete(self, term: str, limit: Optional[int] = None) -> ValueSet:
        """
        Expansion listing the top prefix matches from NAMASTE followed by the
        top prefix matches from ICD-11. Each catalog is capped separately.
        """
        limit = limit or settings.autocomplete_limit
        preferred = Coding(system=DESIGNATION_USAGE_SYSTEM, code="preferred")
        contains = []
        for code in self.store.find_by_prefix(Catalog.NAMASTE, term, limit):
            contains.append(ValueSetContains(
                system=settings.namaste_system,
                code=code.code,
                display=code.display,
                designation=[ValueSetDesignation(use=preferred, value=f"NAMASTE: {code.display}")],
            ))
        for code in self.store.find_by_prefix(Catalog.ICD11, term, limit):
            contains.append(ValueSetContains(
                system=self._icd11_system(code),
                code=code.code,
                display=code.display,
                designation=[ValueSetDesignation(use=preferred, value=f"ICD-11 {code.tag.value}: {code.display}")],
            ))

        return ValueSet(
            id="dual-coding-autocomplete",
            url=AUTOCOMPLETE_VALUESET_URL,
            name="DualCodingAutoComplete",
            title="Dual Coding Autocomplete",
            expansion=ValueSetExpansion(timestamp=_now(), total=len(contains), contains=contains),
        )

    # --- Condition ---

    def dual_coding(self, namaste_code: str) -> CodeableConcept:
        """
        The NAMASTE coding, then a coding for every TM2 and every Biomedicine
        mapping target found in the ICD-11 catalog. Targets missing from the
        catalog are skipped. A code missing from the NAMASTE catalog gives an
        empty concept even when mappings still reference it.
        """
        source = self.store.find_by_code(Catalog.NAMASTE, namaste_code)
        if source is None:
            return CodeableConcept()
        codings = [Coding(system=settings.namaste_system, code=source.code, display=source.display)]

        translated = self.translator.namaste_to_tm2(namaste_code) + self.translator.namaste_to_biomedicine(namaste_code)
        for mapping in translated:
            target = self.store.find_by_code(Catalog.ICD11, mapping.target_code)
            if target is None:
                continue
            codings.append(Coding(system=mapping.target_system, code=target.code, display=target.display))

        return CodeableConcept(coding=codings, text=source.display)

    def dual_coded_condition(
        self,
        namaste_code: str,
        patient_id: str,
        clinical_status: str = "active",
        verification_status: str = "confirmed",
        onset_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Condition:
        onset = None
        if onset_date:
            try:
                onset = date.fromisoformat(onset_date).isoformat()
            except ValueError:
                console.log(f"[yellow]Ignoring invalid onset date '{onset_date}' for patient {patient_id}.[/yellow]")

        condition = Condition(
            id=f"condition-{int(time.time() * 1000)}",
            clinical_status=CodeableConcept(coding=[Coding(system=CONDITION_CLINICAL_SYSTEM, code=clinical_status)]),
            verification_status=CodeableConcept(
                coding=[Coding(system=CONDITION_VERIFICATION_SYSTEM, code=verification_status)]),
            code=self.dual_coding(namaste_code),
            subject=Reference(reference=f"Patient/{patient_id}"),
            onset_date_time=onset,
            recorded_date=_now(),
            note=[Annotation(text=notes)] if notes else [],
        )
        self.audit.resource_access("Condition", condition.id, "CREATE")
        return condition

    # --- Bundles ---

    def bundle(self, patient_id: str, conditions: List[Condition]) -> Bundle:
        """Collection bundle upserting the patient and posting each condition."""
        patient = Patient(id=patient_id, identifier=[Identifier(system=HEALTH_ID_SYSTEM, value=patient_id)])
        entries = [BundleEntry(resource=patient.to_fhir(), request=BundleRequest(method="PUT", url=f"Patient/{patient_id}"))]
        for condition in conditions:
            entries.append(BundleEntry(resource=condition.to_fhir(), request=BundleRequest(method="POST", url="Condition")))
        return Bundle(id=f"bundle-{int(time.time() * 1000)}", timestamp=_now(), entry=entries)

    def process_dual_coded_bundle(self, bundle: Dict[str, Any]) -> Dict[str, Any]:
        """
        Returns a copy of a FHIR bundle in which every Condition coded with a
        single NAMASTE coding is expanded to dual coding. Other entries are
        passed through untouched.
        """
        processed = copy.deepcopy(bundle)
        for entry in processed.get("entry", []):
            resource = entry.get("resource") or {}
            if resource.get("resourceType") != "Condition":
                continue
            codings = (resource.get("code") or {}).get("coding", [])
            if len(codings) > 1:
                continue
            namaste = next((c for c in codings if c.get("system") == settings.namaste_system), None)
            if namaste is not None and namaste.get("code"):
                resource["code"] = self.dual_coding(namaste["code"]).to_fhir()
        return processed

    def problem_list(self, patient_id: str) -> Bundle:
        """Always an empty bundle: conditions are emitted, never stored, so there is nothing to list."""
        return Bundle(id=f"problem-list-{patient_id}", timestamp=_now(), total=0)

    # --- Operations ---

    def translate_parameters(self, code: str, system: str, target_system: Optional[str] = None) -> Parameters:
        """Result of the ConceptMap $translate operation."""
        if system == settings.namaste_system:
            targets = [target_system] if target_system else [settings.icd11_tm2_system, settings.icd11_biomedicine_system]
            mappings = [m for t in targets for m in self.translator.translate(code, system, t)]
            matched = [(m.target_system, m.target_code, m.equivalence) for m in mappings]
        elif system == settings.icd11_tm2_system and target_system in (None, settings.namaste_system):
            matched = [(m.source_system, m.source_code, m.equivalence) for m in self.translator.tm2_to_namaste(code)]
        else:
            matched = []

        parameters = [ParametersParameter(name="result", value_boolean=bool(matched))]
        if not matched:
            parameters.append(ParametersParameter(name="message", value_string=f"No mappings found for {system}|{code}"))
        for match_system, match_code, equivalence in matched:
            catalog = Catalog.NAMASTE if match_system == settings.namaste_system else Catalog.ICD11
            found = self.store.find_by_code(catalog, match_code)
            parameters.append(ParametersParameter(name="match", part=[
                ParametersParameter(name="equivalence", value_code=get_fhir_equivalence(equivalence)),
                ParametersParameter(name="concept", value_coding=Coding(
                    system=match_system, code=match_code, display=found.display if found else None)),
            ]))
        return Parameters(parameter=parameters)

    def capability_statement(self) -> CapabilityStatement:
        return CapabilityStatement(
            id="namaste-icd11-terminology-capability",
            url=f"{settings.fhir_base_url}/metadata",
            version="1.0.0",
            name="NAMASTEIcd11TerminologyCapability",
            title="NAMASTE ICD-11 Terminology Service Capability Statement",
            date=_now(),
            publisher=settings.publisher,
            description="FHIR R4 terminology service for NAMASTE and ICD-11 TM2/Biomedicine dual coding",
            format=["json", "xml"],
            rest=[Rest(resource=[
                RestResource(type="CodeSystem", interaction=[
                    ResourceInteraction(code="read"), ResourceInteraction(code="search-type")]),
                RestResource(
                    type="ConceptMap",
                    interaction=[ResourceInteraction(code="read")],
                    operation=[ResourceOperation(name="translate", definition=TRANSLATE_OPERATION_DEFINITION)],
                ),
                RestResource(type="ValueSet", interaction=[ResourceInteraction(code="read")]),
            ])],
        )
