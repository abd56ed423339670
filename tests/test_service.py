import pytest
from unittest.mock import MagicMock

from py_namaste_crosswalk.config import settings
from py_namaste_crosswalk.exceptions import CatalogLoadError, CodeNotFoundError, MappingNotFoundError
from py_namaste_crosswalk.models import Catalog, GenerationStatus, MappingEquivalence, TraditionalSystem
from py_namaste_crosswalk.service import CrosswalkService

from .conftest import BIOMEDICINE, NAMASTE, TM2


@pytest.fixture
def synchronizer():
    sync = MagicMock()
    sync.token_manager.configured = False
    sync.sync.return_value = {"TM2": 1, "BIOMEDICINE": 2}
    return sync


@pytest.fixture
def service(monkeypatch, namaste_csv, icd11_csv, synchronizer):
    monkeypatch.setattr(settings, "namaste_csv_path", str(namaste_csv))
    monkeypatch.setattr(settings, "icd11_csv_path", str(icd11_csv))
    svc = CrosswalkService(synchronizer=synchronizer)
    yield svc
    svc.shutdown()


def test_initialize_loads_both_catalogs(service, synchronizer):
    service.initialize()

    assert service.store.count(Catalog.NAMASTE) == 4
    assert service.store.count(Catalog.ICD11) == 2
    synchronizer.token_manager.initialize.assert_called_once()


def test_initialize_fails_when_namaste_source_is_unreadable(monkeypatch, service, tmp_path):
    monkeypatch.setattr(settings, "namaste_csv_path", str(tmp_path / "missing.csv"))
    with pytest.raises(CatalogLoadError):
        service.initialize()


def test_missing_icd11_sample_is_not_fatal(monkeypatch, service, tmp_path):
    monkeypatch.setattr(settings, "icd11_csv_path", str(tmp_path / "missing.csv"))
    service.initialize()
    assert service.store.count(Catalog.ICD11) == 0


def test_admin_triggers_acknowledge(service, synchronizer):
    service.initialize()

    assert service.generate_mappings() == "Automatic mapping generation initiated"
    report = service.last_generation.result(timeout=5)
    assert report.status == GenerationStatus.SUCCESS
    assert service.registry.count() == 2

    assert service.sync_target_catalog() == "ICD-11 data synchronization initiated"
    assert service.last_sync.result(timeout=5) == {"TM2": 1, "BIOMEDICINE": 2}

    assert service.reload_source_catalog().startswith("NAMASTE data reload completed")
    assert service.store.count(Catalog.NAMASTE) == 4


def test_background_sync_failure_is_contained(service, synchronizer):
    synchronizer.sync.side_effect = RuntimeError("WHO API down")
    service.sync_target_catalog()
    assert service.last_sync.result(timeout=5) == {}


def test_lookup_and_stats(service):
    service.initialize()
    service.generator.run()

    assert service.lookup(Catalog.NAMASTE, "AY001").display == "Vata Jwara"
    with pytest.raises(CodeNotFoundError):
        service.lookup(Catalog.ICD11, "NOPE")

    stats = service.stats()
    assert stats.namaste_total == 4
    assert stats.namaste_by_system == {"AYURVEDA": 2, "SIDDHA": 1, "UNANI": 1}
    assert stats.icd11_by_module == {"TM2": 1, "BIOMEDICINE": 1}
    assert stats.mapping_total == 2
    assert stats.mappings_to_tm2 == 1
    assert stats.mappings_to_biomedicine == 1


def test_coding_suggestions(service):
    service.initialize()
    service.generator.run()

    suggestions = service.coding_suggestions("ay0")

    assert [c.code for c in suggestions["namaste"]] == ["AY001"]
    assert suggestions["icd11"] == []
    assert {m.source_code for m in suggestions["mappings"]} == {"AY001"}
    assert all(m.source_system == NAMASTE for m in suggestions["mappings"])


def test_background_jobs_need_credentials(service):
    service.start_background_jobs()
    assert service.scheduler.tasks == {}


def test_failed_reload_keeps_the_catalog(monkeypatch, service, tmp_path):
    service.initialize()
    created = service.store.find_by_code(Catalog.NAMASTE, "AY001").created_at

    monkeypatch.setattr(settings, "namaste_csv_path", str(tmp_path / "missing.csv"))
    with pytest.raises(CatalogLoadError):
        service.reload_source_catalog()

    assert service.store.count(Catalog.NAMASTE) == 4
    assert service.store.find_by_code(Catalog.NAMASTE, "AY001").created_at == created


def test_reload_upserts_and_drops_unlisted_codes(service, tmp_path):
    service.initialize()
    created = service.store.find_by_code(Catalog.NAMASTE, "AY001").created_at
    source = tmp_path / "reload.csv"
    source.write_text(
        "code,display,definition,system\nAY001,Vata Jwara (revised),,AYURVEDA\nAY900,New code,,AYURVEDA\n",
        encoding="utf-8",
    )

    assert service.reload_source_catalog(str(source)) == "NAMASTE data reload completed (2 codes)"

    assert sorted(c.code for c in service.store.all(Catalog.NAMASTE)) == ["AY001", "AY900"]
    ay001 = service.store.find_by_code(Catalog.NAMASTE, "AY001")
    assert ay001.display == "Vata Jwara (revised)"
    assert ay001.created_at == created


def test_mapping_maintenance_is_audited(synchronizer):
    audit = MagicMock()
    service = CrosswalkService(synchronizer=synchronizer, audit=audit)
    try:
        mapping = service.create_mapping("AY001", NAMASTE, "TM2-A1", TM2, "equivalent", comment="manual")
        assert mapping.equivalence == MappingEquivalence.EQUIVALENT
        audit.mapping_created.assert_called_once_with(mapping)

        service.delete_mapping(mapping.id)
        audit.mapping_deleted.assert_called_once_with(mapping.id)

        with pytest.raises(MappingNotFoundError):
            service.delete_mapping(mapping.id)
        assert audit.mapping_deleted.call_count == 1
    finally:
        service.shutdown()


def test_create_mapping_defaults_to_relatedto(service):
    mapping = service.create_mapping("AY001", NAMASTE, "BM-1", BIOMEDICINE)
    assert mapping.equivalence == MappingEquivalence.RELATEDTO


def test_find_mappings(service):
    service.initialize()
    service.generator.run()

    assert {m.target_code for m in service.find_mappings("AY001")} == {"TM2-A1", "BM-1"}
    assert [m.source_code for m in service.find_mappings("TM2-A1", TM2)] == ["AY001"]
    assert [m.target_code for m in service.find_mappings(equivalence="relatedto")] == ["BM-1"]
    assert len(service.find_mappings()) == 2


def test_categories_and_codes_by_tag(service):
    service.initialize()

    grouped = service.categories()
    assert {k: [c.code for c in v] for k, v in grouped.items()} == {"Jwara": ["AY001"], "Suram": ["SD001"]}
    assert list(service.categories(TraditionalSystem.SIDDHA)) == ["Suram"]
    assert [c.code for c in service.codes_by_tag(Catalog.NAMASTE, TraditionalSystem.UNANI)] == ["UN001"]
