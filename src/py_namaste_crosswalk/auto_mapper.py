# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import threading
from typing import Optional
from rich.console import Console
from .audit import AuditLogger
from .config import settings
from .equivalence import AUTO_MAPPING_EQUIVALENCE
from .models import GenerationReport, GenerationStatus, Icd11Module
from .store import TerminologyStore

console = Console(stderr=True)


class AutoMappingGenerator:
    """
    Materializes mappings from the TM2 and Biomedicine cross-reference fields
    of NAMASTE codes. Re-running adds nothing for triples that already have a
    mapping.

    Only one run executes at a time; a run requested while another is in
    progress returns a SKIPPED report at once.
    """

    def __init__(self, store: TerminologyStore, registry, audit: Optional[AuditLogger] = None):
        self.store = store
        self.registry = registry
        self.audit = audit or AuditLogger()
        self._run_lock = threading.Lock()

    def _targets(self, code):
        """(module, target code, target system) for each cross-reference set on the code."""
        if code.icd11_tm2_code is not None:
            yield Icd11Module.TM2, code.icd11_tm2_code, settings.icd11_tm2_system
        if code.icd11_biomedicine_code is not None:
            yield Icd11Module.BIOMEDICINE, code.icd11_biomedicine_code, settings.icd11_biomedicine_system

    def run(self) -> GenerationReport:
        if not self._run_lock.acquire(blocking=False):
            console.log("[yellow]Automatic mapping generation already in progress. Skipping.[/yellow]")
            return GenerationReport(status=GenerationStatus.SKIPPED)
        try:
            return self._generate()
        finally:
            self._run_lock.release()

    def _generate(self) -> GenerationReport:
        console.log("Generating automatic mappings from cross-reference fields...")
        created = 0
        try:
            codes = self.store.find_with_cross_references()
            for code in codes:
                for module, target_code, target_system in self._targets(code):
                    _, was_created = self.registry.get_or_create(
                        source_code=code.code,
                        source_system=settings.namaste_system,
                        target_code=target_code,
                        target_system=target_system,
                        equivalence=AUTO_MAPPING_EQUIVALENCE[module],
                        comment=f"Automatic mapping from NAMASTE {module.value} cross-reference",
                    )
                    if was_created:
                        created += 1
        except Exception as e:
            # Mappings written before the failure are kept.
            console.log(f"[bold red]Automatic mapping generation failed after {created} new mapping(s): {e}[/bold red]")
            self.audit.data_sync("AUTO_MAPPING", GenerationStatus.FAILED.value, 0)
            return GenerationReport(
                status=GenerationStatus.FAILED,
                processed_count=0,
                mappings_created=created,
                error=str(e),
            )

        console.log(f"[green]Processed {len(codes)} NAMASTE code(s), created {created} new mapping(s).[/green]")
        self.audit.data_sync("AUTO_MAPPING", GenerationStatus.SUCCESS.value, len(codes))
        return GenerationReport(
            status=GenerationStatus.SUCCESS,
            processed_count=len(codes),
            mappings_created=created,
        )
