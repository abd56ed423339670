# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Renders FHIR resources as JSON or XML.

XML follows the FHIR conventions: the root element is named after the
resourceType in the FHIR namespace, primitives carry their value in a
`value` attribute, arrays become repeated elements and resources nested in
a bundle entry are wrapped in an element named after their own type.
"""
import json
import xml.etree.ElementTree as ET
from typing import Any, Dict, Union
import defusedxml.minidom as minidom
from pydantic import BaseModel
from .fhir_models import FhirModel

FHIR_NAMESPACE = "http://hl7.org/fhir"

MEDIA_TYPES = {
    "json": "application/fhir+json",
    "xml": "application/fhir+xml",
}

DEFAULT_CACHE_CONTROL = "no-cache"
CACHE_CONTROL = {
    "CodeSystem": "max-age=3600",
    "ConceptMap": "max-age=1800",
    "ValueSet": "max-age=1800",
}


class RenderedResource(BaseModel):
    """A serialized resource with the headers a server would send with it."""
    body: str
    media_type: str
    cache_control: str


def normalize_format(fmt: str) -> str:
    fmt = (fmt or "json").lower()
    if fmt not in MEDIA_TYPES:
        raise ValueError(f"Unsupported format '{fmt}'. Expected one of: {list(MEDIA_TYPES)}")
    return fmt


def _as_dict(resource: Union[FhirModel, Dict[str, Any]]) -> Dict[str, Any]:
    return resource.to_fhir() if isinstance(resource, FhirModel) else resource


def to_json(resource: Union[FhirModel, Dict[str, Any]]) -> str:
    return json.dumps(_as_dict(resource), indent=2, ensure_ascii=False)


def _primitive(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _append(parent: ET.Element, name: str, value) -> None:
    if isinstance(value, list):
        for item in value:
            _append(parent, name, item)
    elif isinstance(value, dict):
        element = ET.SubElement(parent, name)
        if "resourceType" in value:
            # contained resource: <resource><Patient>...</Patient></resource>
            _fill(ET.SubElement(element, value["resourceType"]), value)
        else:
            _fill(element, value)
    else:
        ET.SubElement(parent, name, value=_primitive(value))


def _fill(element: ET.Element, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if key == "resourceType":
            continue
        _append(element, key, value)


def to_xml(resource: Union[FhirModel, Dict[str, Any]]) -> str:
    data = _as_dict(resource)
    root = ET.Element(data["resourceType"], xmlns=FHIR_NAMESPACE)
    _fill(root, data)
    return minidom.parseString(ET.tostring(root).decode("utf-8")).toprettyxml(indent="  ")


def render(resource: Union[FhirModel, Dict[str, Any]], fmt: str = "json") -> RenderedResource:
    """Serializes a resource in the requested format, with its cache policy."""
    fmt = normalize_format(fmt)
    data = _as_dict(resource)
    body = to_xml(data) if fmt == "xml" else to_json(data)
    return RenderedResource(
        body=body,
        media_type=MEDIA_TYPES[fmt],
        cache_control=CACHE_CONTROL.get(data.get("resourceType"), DEFAULT_CACHE_CONTROL),
    )
