import pytest
from pydantic import ValidationError

from py_namaste_crosswalk.equivalence import (
    DEFAULT_FHIR_EQUIVALENCE, AUTO_MAPPING_EQUIVALENCE, get_fhir_equivalence, parse_equivalence,
)
from py_namaste_crosswalk.models import (
    Catalog, ConceptMapping, Icd11Module, MappingEquivalence, Page, TerminologyCode, TraditionalSystem,
)


def test_namaste_code_requires_traditional_system_tag():
    with pytest.raises(ValidationError):
        TerminologyCode(catalog=Catalog.NAMASTE, code="AY001", display="Vata Jwara", tag=Icd11Module.TM2)


def test_icd11_code_rejects_namaste_extras():
    with pytest.raises(ValidationError):
        TerminologyCode(catalog=Catalog.ICD11, code="TM2-A1", display="Vata pattern fever",
                        tag=Icd11Module.TM2, icd11_tm2_code="TM2-A1")


def test_namaste_code_rejects_icd11_extras():
    with pytest.raises(ValidationError):
        TerminologyCode(catalog=Catalog.NAMASTE, code="AY001", display="Vata Jwara",
                        tag=TraditionalSystem.AYURVEDA, foundation_uri="http://id.who.int/icd/entity/1")


def test_tag_accepts_enum_names():
    code = TerminologyCode(catalog="ICD11", code="BM-1", display="Fever", tag="BIOMEDICINE")
    assert code.tag == Icd11Module.BIOMEDICINE
    assert not code.is_tm2


def test_empty_code_is_rejected():
    with pytest.raises(ValidationError):
        TerminologyCode(catalog=Catalog.NAMASTE, code="", display="Nothing", tag=TraditionalSystem.AYURVEDA)


def test_touch_refreshes_updated_at():
    mapping = ConceptMapping(source_code="A", source_system="s", target_code="B", target_system="t",
                             equivalence=MappingEquivalence.EQUAL)
    assert mapping.updated_at is None
    mapping.touch()
    assert mapping.updated_at is not None


def test_page_total_pages():
    assert Page(content=[], page=0, size=10, total_elements=21).total_pages == 3
    assert Page(content=[], page=0, size=10, total_elements=0).total_pages == 0


@pytest.mark.parametrize("equivalence", list(MappingEquivalence))
def test_every_equivalence_has_a_fhir_code(equivalence):
    """Each of the ten equivalences maps to its own lower-case FHIR code."""
    assert get_fhir_equivalence(equivalence) == equivalence.value.lower()


def test_unknown_equivalence_falls_back_to_default():
    assert get_fhir_equivalence("SOMETHING_ELSE") == DEFAULT_FHIR_EQUIVALENCE == "relatedto"
    assert get_fhir_equivalence(None) == "relatedto"
    assert get_fhir_equivalence("wider") == "wider"


def test_parse_equivalence():
    assert parse_equivalence("equivalent") == MappingEquivalence.EQUIVALENT
    assert parse_equivalence(None) == MappingEquivalence.RELATEDTO
    with pytest.raises(ValueError):
        parse_equivalence("close-enough")


def test_auto_mapping_policy():
    assert AUTO_MAPPING_EQUIVALENCE[Icd11Module.TM2] == MappingEquivalence.EQUIVALENT
    assert AUTO_MAPPING_EQUIVALENCE[Icd11Module.BIOMEDICINE] == MappingEquivalence.RELATEDTO
