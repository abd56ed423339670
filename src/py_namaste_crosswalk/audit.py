# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Audit trail for terminology operations.

Records go to the `py_namaste_crosswalk.audit` logger with the operation
name and its fields attached as `extra`, so any handler (the CLI installs a
RichHandler) can render or ship them.
"""
import logging

AUDIT_LOGGER_NAME = "py_namaste_crosswalk.audit"


class AuditLogger:
    """Writes one structured record per audited operation."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def _record(self, operation: str, message: str, **fields):
        self.logger.info(message, extra={"operation": operation, "audit": fields})

    def code_lookup(self, code: str, system: str, user: str = "system"):
        self._record("CODE_LOOKUP", f"Code lookup: code={code} system={system} user={user}",
                     code=code, system=system, user=user)

    def mapping_translation(self, source_code: str, source_system: str, target_system: str, results: int):
        self._record(
            "MAPPING_TRANSLATION",
            f"Translation: {source_code} ({source_system}) -> {target_system}, {results} result(s)",
            source_code=source_code, source_system=source_system, target_system=target_system, results=results,
        )

    def resource_access(self, resource_type: str, resource_id: str, operation: str):
        self._record("FHIR_RESOURCE_ACCESS", f"FHIR {operation} {resource_type}/{resource_id}",
                     resource_type=resource_type, resource_id=resource_id, access=operation)

    def dual_coding(self, namaste_code: str, icd11_code: str, valid: bool):
        self._record("DUAL_CODING", f"Dual coding check {namaste_code} <-> {icd11_code}: valid={valid}",
                     namaste_code=namaste_code, icd11_code=icd11_code, valid=valid)

    def data_sync(self, source: str, status: str, records: int):
        self._record("DATA_SYNC", f"Data sync from {source}: {status} ({records} records)",
                     source=source, status=status, records=records)

    def mapping_created(self, mapping):
        self._record(
            "MAPPING_CREATED",
            f"Mapping {mapping.id} created: {mapping.source_code} ({mapping.source_system}) -> "
            f"{mapping.target_code} ({mapping.target_system}) {mapping.equivalence.value}",
            mapping_id=mapping.id, source_code=mapping.source_code, source_system=mapping.source_system,
            target_code=mapping.target_code, target_system=mapping.target_system,
            equivalence=mapping.equivalence.value,
        )

    def mapping_deleted(self, mapping_id: int):
        self._record("MAPPING_DELETED", f"Mapping {mapping_id} deleted", mapping_id=mapping_id)
