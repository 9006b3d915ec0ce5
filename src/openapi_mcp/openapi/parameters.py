from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..errors import DuplicatePropertyError
from .models import LOCATION_KEY, ParameterLocation, ParameterSpec, SchemaFragment, as_schema
from .normalizer import normalize_schema

__all__ = ["ClassifiedParameter", "classify_parameter", "classify_parameters", "parameter_from_dict"]


@dataclass(frozen=True)
class ClassifiedParameter:
    """A parameter folded into one flat input property."""

    property_name: str
    schema: SchemaFragment
    location: ParameterLocation
    required: bool
    spec: ParameterSpec


def parameter_from_dict(raw: Dict) -> ParameterSpec:
    """Build a ``ParameterSpec`` from a resolved OpenAPI parameter object.

    Parameters that describe themselves with ``content`` instead of ``schema``
    use the schema of their first media type.
    """
    schema = raw.get("schema")
    if schema is None and isinstance(raw.get("content"), dict) and raw["content"]:
        first = next(iter(raw["content"].values()))
        schema = first.get("schema") if isinstance(first, dict) else None
    return ParameterSpec(
        name=raw["name"],
        location=raw["in"],
        required=bool(raw.get("required", False)),
        schema_=as_schema(schema) or {"type": "string"},
        description=raw.get("description"),
        style=raw.get("style"),
        explode=raw.get("explode"),
    )


def classify_parameter(param: ParameterSpec) -> ClassifiedParameter:
    schema = normalize_schema(param.schema_)
    if param.description and "description" not in schema:
        schema["description"] = param.description
    schema[LOCATION_KEY] = param.location
    return ClassifiedParameter(
        property_name=param.name,
        schema=schema,
        location=param.location,
        # path parameters are mandatory whatever the document says
        required=param.required or param.location == "path",
        spec=param,
    )


def classify_parameters(
    params: Iterable[ParameterSpec],
    *,
    operation: Optional[str] = None,
) -> List[ClassifiedParameter]:
    """Classify in order; two parameters on one property name is an error."""
    out: List[ClassifiedParameter] = []
    seen: Dict[str, ParameterLocation] = {}
    for param in params:
        classified = classify_parameter(param)
        name = classified.property_name
        if name in seen:
            raise DuplicatePropertyError(name, seen[name], classified.location, operation=operation)
        seen[name] = classified.location
        out.append(classified)
    return out
