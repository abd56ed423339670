# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from rich.console import Console
from .audit import AuditLogger
from .auto_mapper import AutoMappingGenerator
from .config import settings
from .equivalence import parse_equivalence
from .exceptions import CatalogLoadError, CodeNotFoundError
from .icd11_client import Icd11Synchronizer, build_synchronizer
from .models import Catalog, ConceptMapping, Page, TerminologyCode, TerminologyStats, TraditionalSystem
from .parser import Icd11CsvParser, NamasteCsvParser
from .registry import MappingRegistry
from .scheduler import Scheduler
from .store import TerminologyStore
from .synthesizer import ResourceSynthesizer
from .translation import TranslationEngine
from .validator import DualCodingValidator

console = Console(stderr=True)


class CrosswalkService:
    """
    Wires the store, the mapping registry and the engines together, owns
    startup loading and exposes the admin triggers.

    Target-catalog sync and mapping generation run on a background worker
    pool so the triggers return immediately with an acknowledgement.
    """

    def __init__(
        self,
        registry=None,
        store: Optional[TerminologyStore] = None,
        synchronizer: Optional[Icd11Synchronizer] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.audit = audit or AuditLogger()
        self.store = store or TerminologyStore()
        self.registry = registry if registry is not None else MappingRegistry()
        self.translator = TranslationEngine(self.registry, audit=self.audit)
        self.generator = AutoMappingGenerator(self.store, self.registry, audit=self.audit)
        self.validator = DualCodingValidator(self.store, self.registry, audit=self.audit)
        self.synthesizer = ResourceSynthesizer(self.store, self.registry, self.translator, audit=self.audit)
        self.synchronizer = synchronizer or build_synchronizer(self.store, audit=self.audit)
        self.scheduler = Scheduler()
        self._executor = ThreadPoolExecutor(max_workers=settings.background_workers,
                                            thread_name_prefix="crosswalk")
        self.last_sync: Optional[Future] = None
        self.last_generation: Optional[Future] = None

    # --- Startup ---

    def initialize(self) -> None:
        """
        Loads the catalogs. A NAMASTE source that cannot be read aborts
        startup; sample ICD-11 data and the API token are best effort.
        """
        console.log("Initializing terminology service...")
        try:
            self.load_source_catalog()
        except CatalogLoadError as e:
            console.log(f"[bold red]Failed to load NAMASTE data: {e}[/bold red]")
            raise
        if settings.icd11_csv_path:
            try:
                self.load_target_sample()
            except CatalogLoadError as e:
                console.log(f"[yellow]ICD-11 sample data not loaded: {e}[/yellow]")
        self.synchronizer.token_manager.initialize()
        console.log("[green]Terminology service initialized.[/green]")

    def load_source_catalog(self, path: Optional[str] = None) -> int:
        codes = NamasteCsvParser(path or settings.namaste_csv_path).parse()
        count = self.store.save_all(codes)
        self.audit.data_sync("NAMASTE_CSV", "SUCCESS", count)
        return count

    def load_target_sample(self, path: Optional[str] = None) -> int:
        codes = Icd11CsvParser(path or settings.icd11_csv_path).parse()
        count = self.store.save_all(codes)
        self.audit.data_sync("ICD11_CSV", "SUCCESS", count)
        return count

    def start_background_jobs(self) -> None:
        """Hourly token refresh and daily ICD-11 synchronization."""
        token_manager = self.synchronizer.token_manager
        if not token_manager.configured:
            console.log("[yellow]ICD-11 credentials not configured. Background sync disabled.[/yellow]")
            return
        self.scheduler.schedule("token-refresh", settings.token_refresh_seconds, token_manager.refresh)
        self.scheduler.schedule("icd11-sync", settings.sync_interval_seconds, self.synchronizer.sync)
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.stop()
        self._executor.shutdown(wait=True)

    # --- Admin triggers ---

    def reload_source_catalog(self, path: Optional[str] = None) -> str:
        """
        Re-reads the NAMASTE file, upserts its codes and drops codes the file
        no longer lists. A failed read leaves the catalog as it was.
        """
        codes = NamasteCsvParser(path or settings.namaste_csv_path).parse()
        count = self.store.save_all(codes)
        listed = {c.code for c in codes}
        dropped = [c.code for c in self.store.all(Catalog.NAMASTE) if c.code not in listed]
        for code in dropped:
            self.store.delete(Catalog.NAMASTE, code)
        if dropped:
            console.log(f"Removed {len(dropped)} NAMASTE code(s) no longer in the source file.")
        self.audit.data_sync("NAMASTE_CSV", "SUCCESS", count)
        return f"NAMASTE data reload completed ({count} codes)"

    def sync_target_catalog(self) -> str:
        self.last_sync = self._executor.submit(self._sync_in_background)
        return "ICD-11 data synchronization initiated"

    def _sync_in_background(self) -> Dict[str, int]:
        try:
            return self.synchronizer.sync()
        except Exception as e:
            console.log(f"[bold red]ICD-11 synchronization failed: {e}[/bold red]")
            self.audit.data_sync("ICD11_API", "FAILED", 0)
            return {}

    def generate_mappings(self) -> str:
        self.last_generation = self._executor.submit(self.generator.run)
        return "Automatic mapping generation initiated"

    # --- Queries ---

    def lookup(self, catalog: Catalog, code: str) -> TerminologyCode:
        self.audit.code_lookup(code, catalog.value)
        found = self.store.find_by_code(catalog, code)
        if found is None:
            raise CodeNotFoundError("NAMASTE" if catalog == Catalog.NAMASTE else "ICD-11", code)
        return found

    def categories(self, system: Optional[TraditionalSystem] = None) -> Dict[str, List[TerminologyCode]]:
        """NAMASTE codes grouped by category, optionally for one traditional system."""
        return {
            category: [c for c in self.store.find_by_category(Catalog.NAMASTE, category) if system is None or c.tag == system]
            for category in self.store.categories(Catalog.NAMASTE, system)
        }

    def codes_by_tag(self, catalog: Catalog, tag) -> List[TerminologyCode]:
        """Codes of one traditional system (NAMASTE) or one module (ICD-11)."""
        return self.store.find_by_tag(catalog, tag)

    def search(self, catalog: Catalog, term: str, page: int = 0, size: int = 20) -> Page:
        return self.store.search_by_term(catalog, term, page, size)

    def coding_suggestions(self, term: str, limit: Optional[int] = None) -> Dict[str, Any]:
        """Prefix matches from both catalogs plus the mappings of the NAMASTE matches."""
        limit = limit or settings.autocomplete_limit
        namaste = self.store.find_by_prefix(Catalog.NAMASTE, term, limit)
        icd11 = self.store.find_by_prefix(Catalog.ICD11, term, limit)
        mappings = []
        for code in namaste:
            mappings.extend(self.registry.find_for_code(code.code, settings.namaste_system))
        return {"namaste": namaste, "icd11": icd11, "mappings": mappings}

    # --- Mapping maintenance ---

    def create_mapping(self, source_code: str, source_system: str, target_code: str, target_system: str,
                       equivalence: Optional[str] = None, comment: Optional[str] = None) -> ConceptMapping:
        mapping = self.registry.create(
            source_code, source_system, target_code, target_system, parse_equivalence(equivalence), comment=comment)
        self.audit.mapping_created(mapping)
        return mapping

    def delete_mapping(self, mapping_id: int) -> None:
        self.registry.delete(mapping_id)
        self.audit.mapping_deleted(mapping_id)

    def find_mappings(
        self,
        code: Optional[str] = None,
        system: Optional[str] = None,
        equivalence: Optional[str] = None,
    ) -> List[ConceptMapping]:
        """
        Mappings in which `code` takes part within `system` (NAMASTE when not
        given). Without a code, every mapping with the given equivalence, or
        every mapping when no equivalence is given either.
        """
        if code is not None:
            return self.registry.find_for_code(code, system or settings.namaste_system)
        if equivalence is not None:
            return self.registry.find_by_equivalence(parse_equivalence(equivalence))
        return self.registry.all()

    def stats(self) -> TerminologyStats:
        return TerminologyStats(
            namaste_total=self.store.count(Catalog.NAMASTE),
            namaste_by_system=self.store.count_by_tag(Catalog.NAMASTE),
            icd11_total=self.store.count(Catalog.ICD11),
            icd11_by_module=self.store.count_by_tag(Catalog.ICD11),
            mapping_total=self.registry.count(),
            mappings_to_tm2=self.registry.count_between_systems(settings.namaste_system, settings.icd11_tm2_system),
            mappings_to_biomedicine=self.registry.count_between_systems(
                settings.namaste_system, settings.icd11_biomedicine_system),
        )
