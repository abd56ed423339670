# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import csv
from pathlib import Path
from typing import List, Optional
from pydantic import ValidationError
from rich.console import Console
from .config import settings
from .exceptions import CatalogLoadError
from .models import Catalog, Icd11Module, TerminologyCode, TraditionalSystem

console = Console(stderr=True)

# Column indices for the NAMASTE CSV
CODE_I, DISPLAY_I, DEFINITION_I, SYSTEM_I, CATEGORY_I, SUBCATEGORY_I, WHO_I, TM2_I, BIOMED_I = range(9)
NAMASTE_MIN_COLUMNS = 4

# Column indices for the ICD-11 sample CSV
ICD_CODE_I, ICD_TITLE_I, ICD_DEFINITION_I, ICD_MODULE_I, ICD_CHAPTER_I, ICD_PARENT_I = range(6)
ICD11_MIN_COLUMNS = 4


def _optional(row: List[str], index: int) -> Optional[str]:
    """Returns the trimmed column, or None when it is missing or blank."""
    if index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def parse_traditional_system(value: str) -> TraditionalSystem:
    """Unknown or blank system names fall back to Ayurveda."""
    value = (value or "").strip().upper()
    if value == TraditionalSystem.SIDDHA.value:
        return TraditionalSystem.SIDDHA
    if value == TraditionalSystem.UNANI.value:
        return TraditionalSystem.UNANI
    return TraditionalSystem.AYURVEDA


def parse_icd11_module(value: str) -> Icd11Module:
    value = (value or "").strip().upper()
    if value in ("TM2", "TRADITIONAL_MEDICINE"):
        return Icd11Module.TM2
    if value in ("BIOMEDICINE", "MMS"):
        return Icd11Module.BIOMEDICINE
    raise ValueError(f"Unknown ICD-11 module '{value}'")


def _read_rows(path: Path, label: str) -> List[List[str]]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise CatalogLoadError(f"Failed to read {label} file {path}: {e}") from e
    # First row is the header
    return rows[1:]


class NamasteCsvParser:
    """Parses the NAMASTE terminology CSV into TerminologyCode records."""

    def __init__(self, path):
        self.path = Path(path)

    def _parse_row(self, row: List[str]) -> TerminologyCode:
        return TerminologyCode(
            catalog=Catalog.NAMASTE,
            code=row[CODE_I].strip(),
            display=row[DISPLAY_I].strip(),
            definition=_optional(row, DEFINITION_I),
            tag=parse_traditional_system(row[SYSTEM_I]),
            category=_optional(row, CATEGORY_I),
            subcategory=_optional(row, SUBCATEGORY_I),
            who_terminology_code=_optional(row, WHO_I),
            icd11_tm2_code=_optional(row, TM2_I),
            icd11_biomedicine_code=_optional(row, BIOMED_I),
            version=settings.namaste_version,
        )

    def parse(self) -> List[TerminologyCode]:
        console.log(f"Parsing NAMASTE codes from {self.path}...")
        codes = []
        skipped = 0
        for line_no, row in enumerate(_read_rows(self.path, "NAMASTE CSV"), start=2):
            if not row or not any(cell.strip() for cell in row):
                continue
            if len(row) < NAMASTE_MIN_COLUMNS:
                console.log(f"[yellow]Skipping line {line_no}: expected at least {NAMASTE_MIN_COLUMNS} columns, got {len(row)}.[/yellow]")
                skipped += 1
                continue
            try:
                codes.append(self._parse_row(row))
            except ValidationError as e:
                console.log(f"[yellow]Skipping malformed line {line_no}: {e.errors()[0]['msg']}[/yellow]")
                skipped += 1
        console.log(f"Parsed {len(codes)} NAMASTE codes ({skipped} skipped).")
        return codes


class Icd11CsvParser:
    """Parses sample ICD-11 data (code, title, definition, module, chapter, parent)."""

    def __init__(self, path):
        self.path = Path(path)

    def parse(self) -> List[TerminologyCode]:
        console.log(f"Parsing ICD-11 codes from {self.path}...")
        codes = []
        skipped = 0
        for line_no, row in enumerate(_read_rows(self.path, "ICD-11 CSV"), start=2):
            if not row or not any(cell.strip() for cell in row):
                continue
            if len(row) < ICD11_MIN_COLUMNS:
                console.log(f"[yellow]Skipping line {line_no}: expected at least {ICD11_MIN_COLUMNS} columns, got {len(row)}.[/yellow]")
                skipped += 1
                continue
            try:
                codes.append(TerminologyCode(
                    catalog=Catalog.ICD11,
                    code=row[ICD_CODE_I].strip(),
                    display=row[ICD_TITLE_I].strip(),
                    definition=_optional(row, ICD_DEFINITION_I),
                    tag=parse_icd11_module(row[ICD_MODULE_I]),
                    category=_optional(row, ICD_CHAPTER_I),
                    parent=_optional(row, ICD_PARENT_I),
                ))
            except (ValueError, ValidationError) as e:
                console.log(f"[yellow]Skipping malformed line {line_no}: {e}[/yellow]")
                skipped += 1
        console.log(f"Parsed {len(codes)} ICD-11 codes ({skipped} skipped).")
        return codes
