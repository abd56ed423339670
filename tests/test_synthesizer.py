import pytest

from py_namaste_crosswalk.models import MappingEquivalence, TraditionalSystem
from py_namaste_crosswalk.synthesizer import (
    CONDITION_CLINICAL_SYSTEM, CONDITION_VERIFICATION_SYSTEM, HEALTH_ID_SYSTEM,
)

from .conftest import BIOMEDICINE, NAMASTE, TM2


# --- CodeSystem ---

def test_code_system_lists_every_namaste_code(synthesizer):
    cs = synthesizer.code_system().to_fhir()

    assert cs["resourceType"] == "CodeSystem"
    assert cs["id"] == "namaste-codes"
    assert cs["url"] == NAMASTE
    assert cs["content"] == "complete"
    assert [p["code"] for p in cs["property"]] == ["system", "category", "who-terminology"]
    assert [c["code"] for c in cs["concept"]] == ["AY001", "AY002", "SD001"]


def test_code_system_concept_properties_only_when_present(synthesizer):
    concepts = {c["code"]: c for c in synthesizer.code_system().to_fhir()["concept"]}

    assert concepts["AY001"]["property"] == [
        {"code": "system", "valueString": "AYURVEDA"},
        {"code": "category", "valueString": "Jwara"},
        {"code": "who-terminology", "valueString": "ITA-1"},
    ]
    assert concepts["AY001"]["definition"] == "Fever of Vata origin"
    assert concepts["SD001"]["property"] == [{"code": "system", "valueString": "SIDDHA"}]
    assert "definition" not in concepts["SD001"]


# --- ConceptMap ---

def test_concept_map_groups_tm2_then_biomedicine(generator, synthesizer):
    generator.run()

    cm = synthesizer.concept_map().to_fhir()

    assert [g["target"] for g in cm["group"]] == [TM2, BIOMEDICINE]
    tm2_group, bio_group = cm["group"]
    assert [e["code"] for e in tm2_group["element"]] == ["AY001", "AY002"], "two codes give two TM2 elements"
    assert tm2_group["element"][0]["target"][0]["equivalence"] == "equivalent"
    assert bio_group["element"][0]["target"][0] == {
        "code": "BM-1",
        "display": "Fever of unknown origin",
        "equivalence": "relatedto",
        "comment": "Automatic mapping from NAMASTE BIOMEDICINE cross-reference",
    }


def test_concept_map_merges_targets_per_source_element(registry, synthesizer):
    registry.create("AY001", NAMASTE, "TM2-A1", TM2, MappingEquivalence.EQUIVALENT)
    registry.create("AY002", NAMASTE, "TM2-A2", TM2, MappingEquivalence.EQUIVALENT)
    registry.create("AY001", NAMASTE, "TM2-A2", TM2, MappingEquivalence.WIDER)

    tm2_group = synthesizer.concept_map().to_fhir()["group"][0]

    assert [e["code"] for e in tm2_group["element"]] == ["AY001", "AY002"]
    assert [(t["code"], t["equivalence"]) for t in tm2_group["element"][0]["target"]] == [
        ("TM2-A1", "equivalent"), ("TM2-A2", "wider")]


def test_concept_map_skips_other_systems(registry, synthesizer):
    registry.create("AY001", NAMASTE, "X-1", "http://snomed.info/sct", MappingEquivalence.EQUAL)
    registry.create("TM2-A1", TM2, "AY001", NAMASTE, MappingEquivalence.EQUAL)

    cm = synthesizer.concept_map().to_fhir()

    assert len(cm["group"]) == 2
    assert all("element" not in g for g in cm["group"])


# --- ValueSet ---

@pytest.mark.parametrize("filter_text, system, expected", [
    (None, None, []),
    ("   ", None, []),
    ("jwara", None, [("display", "regex", ".*jwara.*")]),
    (None, TraditionalSystem.UNANI, [("system", "=", "UNANI")]),
    ("jwara", TraditionalSystem.AYURVEDA, [("display", "regex", ".*jwara.*"), ("system", "=", "AYURVEDA")]),
])
def test_value_set_filters(synthesizer, filter_text, system, expected):
    vs = synthesizer.value_set(filter_text, system).to_fhir()
    include = vs["compose"]["include"][0]

    assert include["system"] == NAMASTE
    assert [(f["property"], f["op"], f["value"]) for f in include.get("filter", [])] == expected


def test_autocomplete_lists_namaste_then_icd11(synthesizer):
    vs = synthesizer.autocomplete("v").to_fhir()
    contains = vs["expansion"]["contains"]

    assert vs["id"] == "dual-coding-autocomplete"
    assert [(c["system"], c["code"]) for c in contains] == [
        (NAMASTE, "AY001"), (NAMASTE, "SD001"), (TM2, "TM2-A1")]
    assert contains[0]["designation"][0]["value"] == "NAMASTE: Vata Jwara"
    assert contains[0]["designation"][0]["use"]["code"] == "preferred"
    assert contains[2]["designation"][0]["value"] == "ICD-11 TM2: Vata pattern fever"


def test_autocomplete_caps_each_catalog(synthesizer):
    contains = synthesizer.autocomplete("", limit=1).to_fhir()["expansion"]["contains"]
    assert [c["code"] for c in contains] == ["AY001", "TM2-A1"]


def test_autocomplete_biomedicine_system(synthesizer):
    contains = synthesizer.autocomplete("fever").to_fhir()["expansion"]["contains"]
    assert [(c["system"], c["designation"][0]["value"]) for c in contains] == [
        (BIOMEDICINE, "ICD-11 BIOMEDICINE: Fever of unknown origin")]


# --- Condition ---

def test_condition_coding_count(generator, synthesizer):
    """One NAMASTE coding plus one per resolvable TM2 and Biomedicine target."""
    generator.run()

    condition = synthesizer.dual_coded_condition("AY001", "patient-1").to_fhir()

    codings = condition["code"]["coding"]
    assert [(c["system"], c["code"]) for c in codings] == [
        (NAMASTE, "AY001"), (TM2, "TM2-A1"), (BIOMEDICINE, "BM-1")]
    assert condition["subject"] == {"reference": "Patient/patient-1"}
    assert condition["clinicalStatus"]["coding"][0] == {"system": CONDITION_CLINICAL_SYSTEM, "code": "active"}
    assert condition["verificationStatus"]["coding"][0] == {
        "system": CONDITION_VERIFICATION_SYSTEM, "code": "confirmed"}
    assert condition["id"].startswith("condition-")


def test_condition_skips_unresolvable_targets(registry, synthesizer):
    registry.create("AY002", NAMASTE, "TM2-A2", TM2, MappingEquivalence.EQUIVALENT)
    registry.create("AY002", NAMASTE, "TM2-GONE", TM2, MappingEquivalence.EQUIVALENT)

    codings = synthesizer.dual_coded_condition("AY002", "p").to_fhir()["code"]["coding"]

    assert [c["code"] for c in codings] == ["AY002", "TM2-A2"]


def test_condition_for_unknown_code_has_no_codings(synthesizer):
    condition = synthesizer.dual_coded_condition("NOPE", "p").to_fhir()
    assert "coding" not in condition.get("code", {})


def test_dual_coding_ignores_mappings_of_missing_namaste_code(registry, synthesizer):
    registry.create("GONE", NAMASTE, "TM2-A1", TM2, MappingEquivalence.EQUIVALENT)
    registry.create("GONE", NAMASTE, "BM-1", BIOMEDICINE, MappingEquivalence.RELATEDTO)

    concept = synthesizer.dual_coding("GONE")

    assert concept.coding == []
    assert concept.text is None


def test_condition_onset_and_note(synthesizer):
    condition = synthesizer.dual_coded_condition("AY001", "p", onset_date="2024-03-01", notes="Since last week").to_fhir()
    assert condition["onsetDateTime"] == "2024-03-01"
    assert condition["note"] == [{"text": "Since last week"}]


def test_condition_invalid_onset_is_ignored(synthesizer):
    condition = synthesizer.dual_coded_condition("AY001", "p", onset_date="yesterday").to_fhir()
    assert "onsetDateTime" not in condition


# --- Bundles ---

def test_bundle_puts_patient_and_posts_conditions(synthesizer):
    condition = synthesizer.dual_coded_condition("AY001", "p-9")
    bundle = synthesizer.bundle("p-9", [condition]).to_fhir()

    assert bundle["type"] == "collection"
    patient_entry, condition_entry = bundle["entry"]
    assert patient_entry["request"] == {"method": "PUT", "url": "Patient/p-9"}
    assert patient_entry["resource"]["identifier"] == [{"system": HEALTH_ID_SYSTEM, "value": "p-9"}]
    assert condition_entry["request"] == {"method": "POST", "url": "Condition"}
    assert condition_entry["resource"]["resourceType"] == "Condition"


def test_process_dual_coded_bundle(generator, synthesizer):
    generator.run()
    incoming = {
        "resourceType": "Bundle",
        "type": "collection",
        "entry": [
            {"resource": {"resourceType": "Patient", "id": "p"}},
            {"resource": {"resourceType": "Condition",
                          "code": {"coding": [{"system": NAMASTE, "code": "AY001"}]}}},
            {"resource": {"resourceType": "Condition",
                          "code": {"coding": [{"system": NAMASTE, "code": "AY002"},
                                              {"system": TM2, "code": "TM2-A2"}]}}},
        ],
    }

    processed = synthesizer.process_dual_coded_bundle(incoming)

    expanded = processed["entry"][1]["resource"]["code"]["coding"]
    assert [c["code"] for c in expanded] == ["AY001", "TM2-A1", "BM-1"]
    assert processed["entry"][2] == incoming["entry"][2]
    assert len(incoming["entry"][1]["resource"]["code"]["coding"]) == 1, "input is left untouched"


def test_problem_list_is_empty(synthesizer):
    bundle = synthesizer.problem_list("p").to_fhir()
    assert bundle["total"] == 0
    assert "entry" not in bundle


# --- Operations ---

def test_translate_parameters_with_matches(generator, synthesizer):
    generator.run()

    params = synthesizer.translate_parameters("AY001", NAMASTE).to_fhir()["parameter"]

    assert params[0] == {"name": "result", "valueBoolean": True}
    matches = [p for p in params if p["name"] == "match"]
    assert [m["part"][1]["valueCoding"]["code"] for m in matches] == ["TM2-A1", "BM-1"]
    assert matches[0]["part"][0] == {"name": "equivalence", "valueCode": "equivalent"}


def test_translate_parameters_without_matches(synthesizer):
    params = synthesizer.translate_parameters("AY001", NAMASTE, TM2).to_fhir()["parameter"]
    assert params[0] == {"name": "result", "valueBoolean": False}
    assert params[1]["name"] == "message"


def test_translate_parameters_reverse_tm2(generator, synthesizer):
    generator.run()
    params = synthesizer.translate_parameters("TM2-A1", TM2).to_fhir()["parameter"]
    assert params[1]["part"][1]["valueCoding"] == {"system": NAMASTE, "code": "AY001", "display": "Vata Jwara"}


def test_capability_statement(synthesizer):
    cap = synthesizer.capability_statement().to_fhir()

    assert cap["fhirVersion"] == "4.0.1"
    assert cap["format"] == ["json", "xml"]
    resources = {r["type"]: r for r in cap["rest"][0]["resource"]}
    assert set(resources) == {"CodeSystem", "ConceptMap", "ValueSet"}
    assert [i["code"] for i in resources["CodeSystem"]["interaction"]] == ["read", "search-type"]
    assert resources["ConceptMap"]["operation"][0]["name"] == "translate"
