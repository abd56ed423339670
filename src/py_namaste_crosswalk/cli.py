# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
import logging
from pathlib import Path
from time import sleep
from typing import Optional
import typer
from neo4j import GraphDatabase
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .audit import AUDIT_LOGGER_NAME
from .config import settings
from .graph_registry import Neo4jMappingRegistry
from .models import Catalog, Icd11Module, TraditionalSystem
from .serialization import render
from .service import CrosswalkService

app = typer.Typer(
    name="py-namaste-crosswalk",
    help="Crosswalk between NAMASTE and ICD-11 (TM2 and Biomedicine) with FHIR R4 output."
)
console = Console(stderr=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", help="Show audit records on stderr.")):
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(logging.INFO if verbose else logging.WARNING)


def _open_service(use_neo4j: bool, auto_map: bool = True):
    """Builds and initializes a service. Returns it with the Neo4j driver, if one was opened."""
    driver = None
    registry = None
    if use_neo4j:
        driver = GraphDatabase.driver(settings.neo4j_uri, auth=(settings.neo4j_user, settings.neo4j_password))
        registry = Neo4jMappingRegistry(driver=driver)
    service = CrosswalkService(registry=registry)
    service.initialize()
    if auto_map and not use_neo4j:
        # The in-memory registry starts empty on every invocation.
        service.generator.run()
    return service, driver


def _close(service: Optional[CrosswalkService], driver) -> None:
    if service:
        service.shutdown()
    if driver:
        driver.close()


def _fail(action: str, e: Exception):
    console.print_exception()
    console.print(Panel(f"[bold red]An error occurred while {action}: {e}", title="[bold red]Error[/bold red]"))
    raise typer.Exit(code=1)


def _emit(resource, fmt: str) -> None:
    rendered = render(resource, fmt)
    console.log(f"Content-Type: {rendered.media_type}; Cache-Control: {rendered.cache_control}")
    typer.echo(rendered.body)


def _dump(records) -> str:
    return json.dumps([r.model_dump(mode="json") for r in records], indent=2)


NEO4J_OPTION = typer.Option(False, "--neo4j", help="Read and write mappings in Neo4j instead of memory.")
FORMAT_OPTION = typer.Option("json", "--format", "-f", help="Output format: json or xml.")


@app.command(name="stats", help="Show catalog and mapping counts.")
def stats(use_neo4j: bool = NEO4J_OPTION):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        result = service.stats()
        table = Table(title="Terminology Statistics")
        table.add_column("Catalog")
        table.add_column("Group")
        table.add_column("Count", justify="right")
        for system, count in result.namaste_by_system.items():
            table.add_row("NAMASTE", system, str(count))
        for module, count in result.icd11_by_module.items():
            table.add_row("ICD-11", module, str(count))
        table.add_row("Mappings", "all", str(result.mapping_total))
        table.add_row("Mappings", "NAMASTE -> TM2", str(result.mappings_to_tm2))
        table.add_row("Mappings", "NAMASTE -> BIOMEDICINE", str(result.mappings_to_biomedicine))
        Console().print(table)
    except Exception as e:
        _fail("collecting statistics", e)
    finally:
        _close(service, driver)


@app.command(name="search", help="Search a catalog by display, code or definition.")
def search(
    term: str = typer.Argument(..., help="Text to look for."),
    catalog: Catalog = typer.Option(Catalog.NAMASTE, "--catalog", "-c", help="Catalog to search."),
    page: int = typer.Option(0, "--page", help="Zero-based page number."),
    size: int = typer.Option(10, "--size", help="Page size."),
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        result = service.search(catalog, term, page, size)
        if not result.content:
            Console().print("No results found.")
            return
        table = Table(title=f"{catalog.value} results for '{term}'")
        table.add_column("Code")
        table.add_column("Display")
        table.add_column("Group")
        for code in result.content:
            table.add_row(code.code, code.display, code.tag.value)
        Console().print(table)
        Console().print(f"Showing {len(result.content)} of {result.total_elements} total results")
    except Exception as e:
        _fail("searching", e)
    finally:
        _close(service, None)


@app.command(name="translate", help="Translate a code along its mappings.")
def translate(
    code: str = typer.Argument(..., help="Code to translate."),
    direction: str = typer.Option(
        "namaste-tm2", "--direction", "-d",
        help="One of: namaste-tm2, namaste-biomedicine, tm2-namaste."
    ),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        handlers = {
            "namaste-tm2": service.translator.namaste_to_tm2,
            "namaste-biomedicine": service.translator.namaste_to_biomedicine,
            "tm2-namaste": service.translator.tm2_to_namaste,
        }
        if direction not in handlers:
            raise ValueError(f"Unknown direction '{direction}'. Expected one of: {list(handlers)}")
        mappings = handlers[direction](code)
        typer.echo(_dump(mappings))
    except Exception as e:
        _fail("translating", e)
    finally:
        _close(service, driver)


@app.command(name="lookup", help="Show one code from either catalog.")
def lookup(
    code: str = typer.Argument(..., help="Code to look up."),
    catalog: Catalog = typer.Option(Catalog.NAMASTE, "--catalog", "-c", help="Catalog holding the code."),
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        typer.echo(service.lookup(catalog, code).model_dump_json(indent=2))
    except Exception as e:
        _fail("looking up the code", e)
    finally:
        _close(service, None)


@app.command(name="codes", help="List the NAMASTE codes of one traditional system or the ICD-11 codes of one module.")
def codes(group: str = typer.Argument(..., help="AYURVEDA, SIDDHA, UNANI, TM2 or BIOMEDICINE.")):
    service = None
    try:
        name = group.upper()
        if name in TraditionalSystem.__members__:
            catalog, tag = Catalog.NAMASTE, TraditionalSystem(name)
        elif name in Icd11Module.__members__:
            catalog, tag = Catalog.ICD11, Icd11Module(name)
        else:
            raise ValueError(f"Unknown system or module '{group}'.")
        service, _ = _open_service(False, auto_map=False)
        found = service.codes_by_tag(catalog, tag)
        table = Table(title=f"{catalog.value} {tag.value} codes")
        table.add_column("Code")
        table.add_column("Display")
        table.add_column("Category")
        for code in found:
            table.add_row(code.code, code.display, code.category or "")
        Console().print(table)
    except Exception as e:
        _fail("listing codes", e)
    finally:
        _close(service, None)


@app.command(name="categories", help="List NAMASTE categories with their codes.")
def categories(
    system: Optional[TraditionalSystem] = typer.Option(None, "--system", help="Restrict to one traditional system."),
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        table = Table(title="NAMASTE Categories")
        table.add_column("Category")
        table.add_column("Codes")
        for category, members in service.categories(system).items():
            table.add_row(category, ", ".join(c.code for c in members))
        Console().print(table)
    except Exception as e:
        _fail("listing categories", e)
    finally:
        _close(service, None)


@app.command(name="suggest", help="Coding suggestions across both catalogs with the mappings of NAMASTE matches.")
def suggest(
    term: str = typer.Argument(..., help="Prefix to match."),
    limit: int = typer.Option(settings.autocomplete_limit, "--limit", help="Matches per catalog."),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        suggestions = service.coding_suggestions(term, limit)
        typer.echo(json.dumps(
            {key: [r.model_dump(mode="json") for r in records] for key, records in suggestions.items()},
            indent=2,
        ))
    except Exception as e:
        _fail("building suggestions", e)
    finally:
        _close(service, driver)


@app.command(name="mappings", help="List mappings for a code, or all mappings with an equivalence.")
def mappings(
    code: Optional[str] = typer.Argument(None, help="Code taking part in the mappings, as source or target."),
    system: Optional[str] = typer.Option(None, "--system", help="System URI of the code. Defaults to NAMASTE."),
    equivalence: Optional[str] = typer.Option(None, "--equivalence", "-e", help="Equivalence to filter on."),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        typer.echo(_dump(service.find_mappings(code, system, equivalence)))
    except Exception as e:
        _fail("listing mappings", e)
    finally:
        _close(service, driver)


@app.command(name="create-mapping", help="Create a mapping between two codes.")
def create_mapping(
    source_code: str = typer.Argument(..., help="Source code."),
    target_code: str = typer.Argument(..., help="Target code."),
    source_system: str = typer.Option(settings.namaste_system, "--source-system", help="Source system URI."),
    target_system: str = typer.Option(settings.icd11_tm2_system, "--target-system", help="Target system URI."),
    equivalence: Optional[str] = typer.Option(None, "--equivalence", "-e", help="Equivalence. Defaults to relatedto."),
    comment: Optional[str] = typer.Option(None, "--comment", help="Free-text comment."),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        if not use_neo4j:
            console.log("[yellow]In-memory registry: the mapping is discarded when the command exits.[/yellow]")
        mapping = service.create_mapping(source_code, source_system, target_code, target_system, equivalence, comment)
        typer.echo(mapping.model_dump_json(indent=2))
    except Exception as e:
        _fail("creating the mapping", e)
    finally:
        _close(service, driver)


@app.command(name="delete-mapping", help="Delete a mapping by id.")
def delete_mapping(
    mapping_id: int = typer.Argument(..., help="Mapping id."),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        service.delete_mapping(mapping_id)
        console.print(Panel(f"[bold green]Mapping {mapping_id} deleted.[/bold green]", border_style="green"))
    except Exception as e:
        _fail("deleting the mapping", e)
    finally:
        _close(service, driver)


@app.command(name="validate", help="Check that a NAMASTE code and an ICD-11 code may be dual coded.")
def validate(
    namaste_code: str = typer.Argument(..., help="NAMASTE code."),
    icd11_code: str = typer.Argument(..., help="ICD-11 code."),
    system: str = typer.Option("TM2", "--system", "-s", help="ICD-11 module of the code: TM2 or BIOMEDICINE."),
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        result = service.validator.validate(namaste_code, icd11_code, system)
    except Exception as e:
        _fail("validating", e)
    finally:
        _close(service, driver)
    typer.echo(result.model_dump_json(indent=2))
    if not result.valid:
        raise typer.Exit(code=2)


@app.command(name="codesystem", help="Emit the NAMASTE CodeSystem.")
def codesystem(fmt: str = FORMAT_OPTION):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        _emit(service.synthesizer.code_system(), fmt)
    except Exception as e:
        _fail("building the CodeSystem", e)
    finally:
        _close(service, None)


@app.command(name="conceptmap", help="Emit the NAMASTE to ICD-11 ConceptMap.")
def conceptmap(fmt: str = FORMAT_OPTION, use_neo4j: bool = NEO4J_OPTION):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        _emit(service.synthesizer.concept_map(), fmt)
    except Exception as e:
        _fail("building the ConceptMap", e)
    finally:
        _close(service, driver)


@app.command(name="valueset", help="Emit a filtered NAMASTE ValueSet.")
def valueset(
    filter_text: Optional[str] = typer.Option(None, "--filter", help="Display text to match."),
    system: Optional[TraditionalSystem] = typer.Option(None, "--system", help="Restrict to one traditional system."),
    fmt: str = FORMAT_OPTION,
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        _emit(service.synthesizer.value_set(filter_text, system), fmt)
    except Exception as e:
        _fail("building the ValueSet", e)
    finally:
        _close(service, None)


@app.command(name="autocomplete", help="Emit an autocomplete expansion across both catalogs.")
def autocomplete(
    term: str = typer.Argument(..., help="Prefix to complete."),
    limit: int = typer.Option(settings.autocomplete_limit, "--limit", help="Matches per catalog."),
    fmt: str = FORMAT_OPTION,
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        _emit(service.synthesizer.autocomplete(term, limit), fmt)
    except Exception as e:
        _fail("building the autocomplete expansion", e)
    finally:
        _close(service, None)


@app.command(name="condition", help="Emit a dual-coded Condition, optionally wrapped in a Bundle.")
def condition(
    namaste_code: str = typer.Argument(..., help="NAMASTE code of the diagnosis."),
    patient_id: str = typer.Option(..., "--patient", "-p", help="Patient identifier."),
    onset: Optional[str] = typer.Option(None, "--onset", help="Onset date (YYYY-MM-DD)."),
    note: Optional[str] = typer.Option(None, "--note", help="Free-text clinical note."),
    as_bundle: bool = typer.Option(False, "--bundle", help="Wrap the Condition in a collection Bundle."),
    fmt: str = FORMAT_OPTION,
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        resource = service.synthesizer.dual_coded_condition(namaste_code, patient_id, onset_date=onset, notes=note)
        if as_bundle:
            resource = service.synthesizer.bundle(patient_id, [resource])
        _emit(resource, fmt)
    except Exception as e:
        _fail("building the Condition", e)
    finally:
        _close(service, driver)


@app.command(name="process-bundle", help="Expand single NAMASTE codings in a FHIR Bundle file to dual coding.")
def process_bundle(
    bundle_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="FHIR JSON Bundle."),
    fmt: str = FORMAT_OPTION,
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        bundle = json.loads(bundle_file.read_text(encoding="utf-8"))
        _emit(service.synthesizer.process_dual_coded_bundle(bundle), fmt)
    except Exception as e:
        _fail("processing the Bundle", e)
    finally:
        _close(service, driver)


@app.command(name="fhir-translate", help="Run the ConceptMap $translate operation.")
def fhir_translate(
    code: str = typer.Argument(..., help="Code to translate."),
    system: str = typer.Option(settings.namaste_system, "--system", help="System URI of the code."),
    target: Optional[str] = typer.Option(None, "--target", help="Target system URI. Omit for both ICD-11 modules."),
    fmt: str = FORMAT_OPTION,
    use_neo4j: bool = NEO4J_OPTION,
):
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j)
        _emit(service.synthesizer.translate_parameters(code, system, target), fmt)
    except Exception as e:
        _fail("translating", e)
    finally:
        _close(service, driver)


@app.command(name="capability", help="Emit the CapabilityStatement.")
def capability(fmt: str = FORMAT_OPTION):
    service = None
    try:
        service = CrosswalkService()
        _emit(service.synthesizer.capability_statement(), fmt)
    except Exception as e:
        _fail("building the CapabilityStatement", e)
    finally:
        _close(service, None)


@app.command(name="generate-mappings", help="Create mappings from NAMASTE cross-reference fields.")
def generate_mappings(use_neo4j: bool = NEO4J_OPTION):
    console.print(Panel("[bold cyan]Generating automatic mappings[/bold cyan]", border_style="cyan"))
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j, auto_map=False)
        report = service.generator.run()
    except Exception as e:
        _fail("generating mappings", e)
    finally:
        _close(service, driver)
    typer.echo(report.model_dump_json(indent=2))
    if report.status.value == "FAILED":
        raise typer.Exit(code=1)


@app.command(name="sync-icd11", help="Pull the TM2 and Biomedicine hierarchies from the WHO ICD API.")
def sync_icd11():
    console.print(Panel("[bold cyan]Starting ICD-11 synchronization[/bold cyan]", border_style="cyan"))
    service = None
    try:
        service = CrosswalkService()
        if not service.synchronizer.token_manager.initialize():
            raise RuntimeError(
                "Could not obtain an ICD-11 access token. Set PYNAMASTECROSSWALK_ICD11_CLIENT_ID "
                "and PYNAMASTECROSSWALK_ICD11_CLIENT_SECRET."
            )
        results = service.synchronizer.sync()
        console.print(Panel(
            f"[bold green]Synchronized ICD-11 codes: {results}[/bold green]",
            title="[bold green]Sync Complete[/bold green]"
        ))
    except Exception as e:
        _fail("synchronizing ICD-11", e)
    finally:
        _close(service, None)


@app.command(name="init-graph", help="Create Neo4j constraints for the mapping registry.")
def init_graph():
    driver = None
    try:
        driver = GraphDatabase.driver(settings.neo4j_uri, auth=(settings.neo4j_user, settings.neo4j_password))
        Neo4jMappingRegistry(driver=driver).ensure_constraints()
        console.print(Panel(
            "[bold green]Mapping registry constraints are in place.[/bold green]",
            title="[bold green]Graph Initialized[/bold green]"
        ))
    except Exception as e:
        _fail("initializing the graph", e)
    finally:
        if driver:
            driver.close()


@app.command(name="problem-list", help="Emit the problem list Bundle of a patient.")
def problem_list(
    patient_id: str = typer.Argument(..., help="Patient identifier."),
    fmt: str = FORMAT_OPTION,
):
    service = None
    try:
        service = CrosswalkService()
        _emit(service.synthesizer.problem_list(patient_id), fmt)
    except Exception as e:
        _fail("building the problem list", e)
    finally:
        _close(service, None)


@app.command(name="reload-namaste", help="Reload the NAMASTE catalog and report the loaded count.")
def reload_namaste(
    source: Optional[Path] = typer.Option(
        None, "--file", exists=True, dir_okay=False, help="NAMASTE CSV to reload from. Defaults to the configured file."
    ),
):
    service = None
    try:
        service, _ = _open_service(False, auto_map=False)
        message = service.reload_source_catalog(str(source) if source else None)
        console.print(Panel(f"[bold green]{message}[/bold green]", title="[bold green]Reload Complete[/bold green]"))
    except Exception as e:
        _fail("reloading NAMASTE data", e)
    finally:
        _close(service, None)


SERVE_POLL_SECONDS = 1


@app.command(name="serve", help="Load the catalogs, start mapping generation and ICD-11 sync, then run the scheduled jobs.")
def serve(use_neo4j: bool = NEO4J_OPTION):
    console.print(Panel("[bold cyan]Starting crosswalk service[/bold cyan]", border_style="cyan"))
    service = driver = None
    try:
        service, driver = _open_service(use_neo4j, auto_map=False)
        console.log(service.generate_mappings())
        if service.synchronizer.token_manager.configured:
            console.log(service.sync_target_catalog())
        service.start_background_jobs()
        console.log("Service running. Press Ctrl+C to stop.")
        while True:
            sleep(SERVE_POLL_SECONDS)
    except KeyboardInterrupt:
        console.log("Shutting down...")
    except Exception as e:
        _fail("running the service", e)
    finally:
        _close(service, driver)


if __name__ == "__main__":
    app()
