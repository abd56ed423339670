import pytest
from pathlib import Path

from py_namaste_crosswalk.config import settings
from py_namaste_crosswalk.models import Catalog, Icd11Module, TerminologyCode, TraditionalSystem
from py_namaste_crosswalk.registry import MappingRegistry
from py_namaste_crosswalk.store import TerminologyStore
from py_namaste_crosswalk.translation import TranslationEngine
from py_namaste_crosswalk.auto_mapper import AutoMappingGenerator
from py_namaste_crosswalk.validator import DualCodingValidator
from py_namaste_crosswalk.synthesizer import ResourceSynthesizer

NAMASTE = settings.namaste_system
TM2 = settings.icd11_tm2_system
BIOMEDICINE = settings.icd11_biomedicine_system


def namaste_code(code, display, tag=TraditionalSystem.AYURVEDA, **extra) -> TerminologyCode:
    return TerminologyCode(catalog=Catalog.NAMASTE, code=code, display=display, tag=tag, **extra)


def icd11_code(code, display, tag=Icd11Module.TM2, **extra) -> TerminologyCode:
    return TerminologyCode(catalog=Catalog.ICD11, code=code, display=display, tag=tag, **extra)


def _write_csv(path: Path, header: str, rows: list[str]) -> Path:
    """Helper to create a CSV file with a header row."""
    path.write_text("\n".join([header] + rows) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def store() -> TerminologyStore:
    """
    A store holding a small NAMASTE catalog with cross-references and the
    ICD-11 codes they point at.
    """
    s = TerminologyStore()
    s.save(namaste_code("AY001", "Vata Jwara", definition="Fever of Vata origin",
                        category="Jwara", who_terminology_code="ITA-1", icd11_tm2_code="TM2-A1",
                        icd11_biomedicine_code="BM-1"))
    s.save(namaste_code("AY002", "Pitta Jwara", category="Jwara", icd11_tm2_code="TM2-A2"))
    s.save(namaste_code("SD001", "Vali Suram", tag=TraditionalSystem.SIDDHA))
    s.save(icd11_code("TM2-A1", "Vata pattern fever"))
    s.save(icd11_code("TM2-A2", "Pitta pattern fever"))
    s.save(icd11_code("BM-1", "Fever of unknown origin", tag=Icd11Module.BIOMEDICINE))
    return s


@pytest.fixture
def registry() -> MappingRegistry:
    return MappingRegistry()


@pytest.fixture
def engine(registry) -> TranslationEngine:
    return TranslationEngine(registry)


@pytest.fixture
def generator(store, registry) -> AutoMappingGenerator:
    return AutoMappingGenerator(store, registry)


@pytest.fixture
def validator(store, registry) -> DualCodingValidator:
    return DualCodingValidator(store, registry)


@pytest.fixture
def synthesizer(store, registry, engine) -> ResourceSynthesizer:
    return ResourceSynthesizer(store, registry, engine)


@pytest.fixture
def namaste_csv(tmp_path) -> Path:
    """A NAMASTE CSV with one good row per system and two malformed rows."""
    return _write_csv(
        tmp_path / "namaste.csv",
        "code,display,definition,system,category,subcategory,who_terminology_code,icd11_tm2_code,icd11_biomedicine_code",
        [
            "AY001,Vata Jwara,Fever of Vata origin,AYURVEDA,Jwara,,ITA-1,TM2-A1,BM-1",
            "SD001,Vali Suram,,siddha,Suram",
            "UN001,Humma,Fever,UNANI",
            "XX001,Short row",
            "HM001,Unknown system,,HOMEOPATHY",
        ],
    )


@pytest.fixture
def icd11_csv(tmp_path) -> Path:
    return _write_csv(
        tmp_path / "icd11.csv",
        "code,title,definition,module,chapter,parent",
        [
            "TM2-A1,Vata pattern fever,,TM2,26,",
            "BM-1,Fever of unknown origin,Raised temperature,BIOMEDICINE,21,",
            "ZZ-1,Bad module,,DENTAL,,",
        ],
    )
