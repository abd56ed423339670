# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import List, Optional, Tuple
from neo4j import Driver
from rich.console import Console
from .config import settings
from .exceptions import MappingNotFoundError
from .models import ConceptMapping, MappingEquivalence, utcnow

console = Console(stderr=True)

MAPPING_FIELDS = (
    "source_code", "source_system", "target_code", "target_system", "equivalence",
    "comment", "confidence_score", "mapping_version", "created_at", "updated_at",
)


def _mapping_key(source_code: str, source_system: str, target_system: str) -> str:
    return f"{source_system}|{source_code}|{target_system}"


class Neo4jMappingRegistry:
    """
    Mapping registry persisted as :ConceptMapping nodes in Neo4j.

    Ids come from a singleton :MappingSequence node. Mappings made through
    `get_or_create` carry a `mapping_key` protected by a uniqueness
    constraint, so concurrent generation runs cannot duplicate them.
    Mappings made through `create` carry no key and may repeat.
    """

    def __init__(self, driver: Optional[Driver], database: Optional[str] = None):
        if not driver:
            raise ValueError("A Neo4j driver is required for the graph mapping registry.")
        self.driver = driver
        self.database = database or settings.neo4j_database

    def _run_query(self, query: str, params: dict = None) -> list:
        """Helper to run a query and return its records."""
        records, _, _ = self.driver.execute_query(query, parameters_=params, database_=self.database)
        return records

    def _to_mapping(self, node) -> ConceptMapping:
        return ConceptMapping(**dict(node))

    def _properties(self, mapping: ConceptMapping) -> dict:
        data = mapping.model_dump(mode="json", include=set(MAPPING_FIELDS))
        return {k: v for k, v in data.items() if v is not None}

    def ensure_constraints(self):
        """Creates unique constraints for mapping ids and generation keys."""
        console.log("Ensuring mapping registry constraints exist...")
        self._run_query("CREATE CONSTRAINT IF NOT EXISTS FOR (m:ConceptMapping) REQUIRE m.id IS UNIQUE")
        self._run_query("CREATE CONSTRAINT IF NOT EXISTS FOR (m:ConceptMapping) REQUIRE m.mapping_key IS UNIQUE")
        self._run_query("CREATE INDEX IF NOT EXISTS FOR (m:ConceptMapping) ON (m.source_code, m.source_system)")
        self._run_query("CREATE INDEX IF NOT EXISTS FOR (m:ConceptMapping) ON (m.target_code, m.target_system)")
        console.log("[green]Constraints are in place.[/green]")

    def _next_id(self) -> int:
        records = self._run_query(
            "MERGE (s:MappingSequence {id: 'singleton'}) "
            "SET s.value = coalesce(s.value, 0) + 1 "
            "RETURN s.value AS value"
        )
        return records[0]["value"]

    def create(
        self,
        source_code: str,
        source_system: str,
        target_code: str,
        target_system: str,
        equivalence: MappingEquivalence,
        comment: Optional[str] = None,
        confidence_score: Optional[float] = None,
        mapping_version: Optional[str] = None,
    ) -> ConceptMapping:
        now = utcnow()
        mapping = ConceptMapping(
            id=self._next_id(),
            source_code=source_code,
            source_system=source_system,
            target_code=target_code,
            target_system=target_system,
            equivalence=equivalence,
            comment=comment,
            confidence_score=confidence_score,
            mapping_version=mapping_version,
            created_at=now,
            updated_at=now,
        )
        records = self._run_query(
            "CREATE (m:ConceptMapping {id: $id}) SET m += $props RETURN m",
            params={"id": mapping.id, "props": self._properties(mapping)},
        )
        return self._to_mapping(records[0]["m"])

    def get_or_create(
        self,
        source_code: str,
        source_system: str,
        target_code: str,
        target_system: str,
        equivalence: MappingEquivalence,
        comment: Optional[str] = None,
    ) -> Tuple[ConceptMapping, bool]:
        existing = self.find_by_source_and_target_system(source_code, source_system, target_system)
        if existing is not None:
            return existing, False

        now = utcnow()
        mapping = ConceptMapping(
            id=self._next_id(),
            source_code=source_code,
            source_system=source_system,
            target_code=target_code,
            target_system=target_system,
            equivalence=equivalence,
            comment=comment,
            created_at=now,
            updated_at=now,
        )
        records = self._run_query(
            "MERGE (m:ConceptMapping {mapping_key: $key}) "
            "ON CREATE SET m.id = $id, m += $props "
            "RETURN m, m.id = $id AS created",
            params={
                "key": _mapping_key(source_code, source_system, target_system),
                "id": mapping.id,
                "props": self._properties(mapping),
            },
        )
        return self._to_mapping(records[0]["m"]), bool(records[0]["created"])

    def get(self, mapping_id: int) -> ConceptMapping:
        records = self._run_query("MATCH (m:ConceptMapping {id: $id}) RETURN m", params={"id": mapping_id})
        if not records:
            raise MappingNotFoundError(mapping_id)
        return self._to_mapping(records[0]["m"])

    def _find(self, where: str, params: dict = None) -> List[ConceptMapping]:
        query = f"MATCH (m:ConceptMapping) {where} RETURN m ORDER BY m.id"
        return [self._to_mapping(r["m"]) for r in self._run_query(query, params=params)]

    def all(self) -> List[ConceptMapping]:
        return self._find("")

    def find_for_code(self, code: str, system: str) -> List[ConceptMapping]:
        return self._find(
            "WHERE (m.source_code = $code AND m.source_system = $system) "
            "OR (m.target_code = $code AND m.target_system = $system)",
            {"code": code, "system": system},
        )

    def find_by_source_and_system(self, code: str, system: str) -> List[ConceptMapping]:
        return self._find("WHERE m.source_code = $code AND m.source_system = $system",
                          {"code": code, "system": system})

    def find_by_target_and_system(self, code: str, system: str) -> List[ConceptMapping]:
        return self._find("WHERE m.target_code = $code AND m.target_system = $system",
                          {"code": code, "system": system})

    def find_by_source_and_target_system(
        self, source_code: str, source_system: str, target_system: str
    ) -> Optional[ConceptMapping]:
        found = self._find(
            "WHERE m.source_code = $code AND m.source_system = $source_system AND m.target_system = $target_system",
            {"code": source_code, "source_system": source_system, "target_system": target_system},
        )
        return found[0] if found else None

    def find_by_equivalence(self, equivalence: MappingEquivalence) -> List[ConceptMapping]:
        return self._find("WHERE m.equivalence = $equivalence",
                          {"equivalence": MappingEquivalence(equivalence).value})

    def find_between_systems(self, source_system: str, target_system: str) -> List[ConceptMapping]:
        return self._find("WHERE m.source_system = $source_system AND m.target_system = $target_system",
                          {"source_system": source_system, "target_system": target_system})

    def count_between_systems(self, source_system: str, target_system: str) -> int:
        records = self._run_query(
            "MATCH (m:ConceptMapping {source_system: $source_system, target_system: $target_system}) "
            "RETURN count(m) AS total",
            params={"source_system": source_system, "target_system": target_system},
        )
        return records[0]["total"]

    def delete(self, mapping_id: int) -> None:
        records = self._run_query(
            "MATCH (m:ConceptMapping {id: $id}) DETACH DELETE m RETURN count(*) AS deleted",
            params={"id": mapping_id},
        )
        if not records or records[0]["deleted"] == 0:
            raise MappingNotFoundError(mapping_id)

    def count(self) -> int:
        records = self._run_query("MATCH (m:ConceptMapping) RETURN count(m) AS total")
        return records[0]["total"]
