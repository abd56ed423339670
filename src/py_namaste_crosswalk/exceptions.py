# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""Exceptions raised by the crosswalk engine."""


class CrosswalkError(Exception):
    """Base exception for the crosswalk engine."""


class NotFoundError(CrosswalkError):
    """A requested record does not exist."""


class CodeNotFoundError(NotFoundError):
    """A code is absent from its catalog."""

    def __init__(self, catalog: str, code: str):
        self.catalog = catalog
        self.code = code
        super().__init__(f"{catalog} code not found: {code}")


class MappingNotFoundError(NotFoundError):
    """A mapping id is absent from the registry."""

    def __init__(self, mapping_id):
        self.mapping_id = mapping_id
        super().__init__(f"Mapping not found with id: {mapping_id}")


class CatalogLoadError(CrosswalkError):
    """A catalog source could not be read."""
