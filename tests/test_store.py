from py_namaste_crosswalk.models import Catalog, Icd11Module, TraditionalSystem

from .conftest import namaste_code


def test_find_by_code_is_per_catalog(store):
    assert store.find_by_code(Catalog.NAMASTE, "AY001").display == "Vata Jwara"
    assert store.find_by_code(Catalog.ICD11, "AY001") is None
    assert store.find_by_code(Catalog.ICD11, "TM2-A1").tag == Icd11Module.TM2


def test_save_keeps_created_at_and_refreshes_updated_at(store):
    original = store.find_by_code(Catalog.NAMASTE, "AY002")
    created = original.created_at

    store.save(namaste_code("AY002", "Pitta Jwara (revised)"))

    updated = store.find_by_code(Catalog.NAMASTE, "AY002")
    assert updated.display == "Pitta Jwara (revised)"
    assert updated.created_at == created
    assert updated.updated_at >= created


def test_search_by_term_matches_display_code_and_definition(store):
    assert [c.code for c in store.search_by_term(Catalog.NAMASTE, "jwara").content] == ["AY001", "AY002"]
    assert [c.code for c in store.search_by_term(Catalog.NAMASTE, "sd0").content] == ["SD001"]
    assert [c.code for c in store.search_by_term(Catalog.NAMASTE, "origin vata").content] == []
    assert [c.code for c in store.search_by_term(Catalog.NAMASTE, "of vata").content] == ["AY001"]


def test_search_by_term_pages(store):
    page = store.search_by_term(Catalog.NAMASTE, "", page=1, size=2)
    assert page.total_elements == 3
    assert page.total_pages == 2
    assert [c.code for c in page.content] == ["SD001"]


def test_find_by_prefix_respects_limit(store):
    assert [c.code for c in store.find_by_prefix(Catalog.NAMASTE, "ay", limit=1)] == ["AY001"]
    assert [c.code for c in store.find_by_prefix(Catalog.NAMASTE, "pitta")] == ["AY002"]
    assert store.find_by_prefix(Catalog.ICD11, "zz") == []


def test_tags_categories_and_counts(store):
    assert [c.code for c in store.find_by_tag(Catalog.NAMASTE, TraditionalSystem.SIDDHA)] == ["SD001"]
    assert store.categories(Catalog.NAMASTE) == ["Jwara"]
    assert store.categories(Catalog.NAMASTE, TraditionalSystem.SIDDHA) == []
    assert store.count_by_tag(Catalog.NAMASTE) == {"AYURVEDA": 2, "SIDDHA": 1}
    assert store.count_by_tag(Catalog.ICD11) == {"TM2": 2, "BIOMEDICINE": 1}


def test_find_with_cross_references(store):
    assert [c.code for c in store.find_with_cross_references()] == ["AY001", "AY002"]


def test_delete(store):
    assert store.delete(Catalog.NAMASTE, "SD001")
    assert not store.delete(Catalog.NAMASTE, "SD001")
    assert store.count(Catalog.NAMASTE) == 2
    assert store.count(Catalog.ICD11) == 3
