from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from ..errors import DuplicatePropertyError, OpenAPIParseError, SchemaBuildError, log_exception
from ..logging import get_logger
from .body import select_body
from .models import (
    ArgumentBinding,
    MediaTypeSpec,
    OpenAPISpec,
    OperationSchema,
    ParameterSpec,
    RequestBodySpec,
    SchemaFragment,
    ToolDefinition,
    as_schema,
)
from .options import BuildReport, OpenAPIOptions, OperationReport
from .parameters import classify_parameters, parameter_from_dict
from .refs import resolve_refs
from .runtime import (
    ALLOWED_METHODS,
    merge_parameters,
    op_description,
    op_tool_name,
    pick_effective_base_url,
)

__all__ = [
    "iter_operations",
    "parse_operation",
    "build_tool_definition",
    "build_tool_definitions",
]

log = get_logger(__name__)

_LOCATION_ORDER = {"path": 0, "query": 1, "header": 2, "cookie": 3}
_PARAMETER_LOCATIONS = frozenset(_LOCATION_ORDER)


# -------- Document parsing --------


def iter_operations(spec: OpenAPISpec) -> Iterator[Tuple[str, str, Dict[str, Any], Dict[str, Any]]]:
    """Yield ``(path, method, path_item, operation)`` in document order."""
    for path, path_item in (spec.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        if "$ref" in path_item:
            path_item = resolve_refs(path_item, spec)
        for method, op in path_item.items():
            if method.lower() not in ALLOWED_METHODS or not isinstance(op, dict):
                continue
            yield path, method.lower(), path_item, op


def _swagger2_base_url(spec: OpenAPISpec) -> str:
    host = spec.get("host")
    if not host:
        return ""
    scheme = (spec.get("schemes") or ["https"])[0]
    return f"{scheme}://{host}{spec.get('basePath', '')}".rstrip("/")


def _swagger2_request_body(
    spec: OpenAPISpec, op: Dict[str, Any], params: List[Dict[str, Any]]
) -> Optional[RequestBodySpec]:
    """Turn Swagger 2.0 ``in: body`` / ``in: formData`` parameters into a request body."""
    consumes = op.get("consumes") or spec.get("consumes") or []
    body_param = next((p for p in params if p.get("in") == "body"), None)
    if body_param is not None:
        media = next((c for c in consumes if "json" in c), consumes[0] if consumes else "application/json")
        return RequestBodySpec(
            content=(MediaTypeSpec(media_type=media, schema_=as_schema(body_param.get("schema"))),),
            required=bool(body_param.get("required")),
            required_declared=body_param.get("required"),
            description=body_param.get("description"),
        )

    form_params = [p for p in params if p.get("in") == "formData"]
    if not form_params:
        return None
    has_file = any(p.get("type") == "file" for p in form_params)
    media = "multipart/form-data" if has_file or "multipart/form-data" in consumes else "application/x-www-form-urlencoded"
    properties: Dict[str, SchemaFragment] = {}
    required: List[str] = []
    for p in form_params:
        properties[p["name"]] = {
            k: v for k, v in p.items() if k not in ("name", "in", "required", "collectionFormat")
        }
        if p.get("required"):
            required.append(p["name"])
    schema: SchemaFragment = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return RequestBodySpec(
        content=(MediaTypeSpec(media_type=media, schema_=schema),),
        required=bool(required),
    )


def _swagger2_parameter(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Swagger 2.0 keeps schema keywords on the parameter itself."""
    if "schema" in raw or "content" in raw:
        return raw
    schema = {k: v for k, v in raw.items() if k not in ("name", "in", "required", "description", "collectionFormat")}
    out = {k: raw[k] for k in ("name", "in", "required", "description") if k in raw}
    out["schema"] = schema
    if raw.get("collectionFormat") == "multi":
        out["explode"] = True
    elif raw.get("collectionFormat") in ("csv", None) and schema.get("type") == "array":
        out["explode"] = False
    return out


def _request_body(spec: OpenAPISpec, op: Dict[str, Any]) -> Optional[RequestBodySpec]:
    raw = op.get("requestBody")
    if not isinstance(raw, dict):
        return None
    raw = resolve_refs(raw, spec)
    content = raw.get("content") or {}
    if not content:
        return None
    media_types: List[MediaTypeSpec] = []
    for media_type, entry in content.items():
        entry = entry if isinstance(entry, dict) else {}
        media_types.append(
            MediaTypeSpec(
                media_type=media_type,
                schema_=as_schema(entry.get("schema")),
                encoding=entry.get("encoding") or {},
            )
        )
    declared = raw.get("required")
    return RequestBodySpec(
        content=tuple(media_types),
        required=bool(declared),
        required_declared=declared if isinstance(declared, bool) else None,
        description=raw.get("description"),
    )


def parse_operation(
    spec: OpenAPISpec,
    path: str,
    method: str,
    path_item: Dict[str, Any],
    op: Dict[str, Any],
    *,
    base_url: Optional[str] = None,
) -> OperationSchema:
    """Resolve one operation of ``spec`` into an ``OperationSchema``.

    Raises:
        SchemaBuildError: a parameter or the request body is malformed.
    """
    try:
        return _parse_operation(spec, path, method, path_item, op, base_url)
    except ValidationError as exc:
        reason = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise SchemaBuildError(
            f"Malformed operation {method.upper()} {path}: {reason}",
            operation=op.get("operationId"),
        ) from exc


def _parse_operation(
    spec: OpenAPISpec,
    path: str,
    method: str,
    path_item: Dict[str, Any],
    op: Dict[str, Any],
    base_url: Optional[str],
) -> OperationSchema:
    swagger2 = str(spec.get("swagger", "")).startswith("2")
    resolved_item = {"parameters": resolve_refs(path_item.get("parameters") or [], spec)}
    resolved_op = {"parameters": resolve_refs(op.get("parameters") or [], spec)}
    raw_params = merge_parameters(resolved_item, resolved_op)

    parameters: List[ParameterSpec] = []
    for raw in raw_params:
        if raw.get("in") not in _PARAMETER_LOCATIONS:
            if not (swagger2 and raw.get("in") in ("body", "formData")):
                log.warning("Skipping parameter %r with unsupported location %r", raw.get("name"), raw.get("in"))
            continue
        parameters.append(parameter_from_dict(_swagger2_parameter(raw) if swagger2 else raw))

    if swagger2:
        request_body = _swagger2_request_body(spec, op, raw_params)
        server_url = base_url.rstrip("/") if base_url else _swagger2_base_url(spec)
    else:
        request_body = _request_body(spec, op)
        server_url = pick_effective_base_url(spec, path_item, op, override=base_url)

    return OperationSchema(
        method=method.upper(),
        path=path,
        operation_id=op.get("operationId"),
        summary=op.get("summary"),
        description=op.get("description"),
        tags=tuple(op.get("tags") or ()),
        parameters=tuple(parameters),
        request_body=request_body,
        server_url=server_url,
    )


# -------- Tool building --------


def build_tool_definition(
    operation: OperationSchema,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> ToolDefinition:
    """Flatten one operation into a ``ToolDefinition``.

    Properties are merged path -> query -> header -> cookie -> body. Any name
    collision raises ``DuplicatePropertyError`` (a ``SchemaBuildError``).
    """
    label = operation.label
    ordered = sorted(operation.parameters, key=lambda p: _LOCATION_ORDER[p.location])

    properties: Dict[str, SchemaFragment] = {}
    required: List[str] = []
    bindings: Dict[str, ArgumentBinding] = {}

    for param in classify_parameters(ordered, operation=label):
        properties[param.property_name] = param.schema
        if param.required:
            required.append(param.property_name)
        bindings[param.property_name] = ArgumentBinding(
            name=param.property_name,
            location=param.location,
            style=param.spec.effective_style,
            explode=param.spec.effective_explode,
        )

    selected = select_body(operation.request_body)
    if selected is not None:
        location = "body-field" if selected.flattened else "body"
        for body_field in selected.fields:
            if body_field.name in properties:
                raise DuplicatePropertyError(
                    body_field.name,
                    bindings[body_field.name].location,
                    "body",
                    operation=label,
                )
            properties[body_field.name] = body_field.schema
            if body_field.required:
                required.append(body_field.name)
            bindings[body_field.name] = ArgumentBinding(
                name=body_field.name,
                location=location,
                content_media_type=body_field.content_media_type,
                content_encoding=body_field.content_encoding,
            )

    default_description = op_description(
        operation.path,
        operation.method,
        {"summary": operation.summary, "description": operation.description},
    )
    return ToolDefinition(
        name=name or op_tool_name(operation.path, operation.method, operation.operation_id),
        description=description or default_description,
        input_schema={"type": "object", "properties": properties, "required": required},
        method=operation.method,
        path=operation.path,
        base_url=operation.server_url,
        operation_id=operation.operation_id,
        tags=operation.tags,
        bindings=bindings,
        body_media_type=selected.media_type if selected else None,
        body_mode=selected.mode if selected else None,
    )


def build_tool_definitions(
    spec: OpenAPISpec,
    options: Optional[OpenAPIOptions] = None,
    *,
    base_url: Optional[str] = None,
) -> Tuple[List[ToolDefinition], BuildReport]:
    """Build one tool per included operation of ``spec``.

    Operations whose build fails are skipped and recorded in the report; with
    ``options.strict`` the first failure is raised instead. Nothing partially
    built is ever returned.
    """
    if not isinstance(spec, dict):
        raise OpenAPIParseError("OpenAPI document must be a mapping", details={"type": type(spec).__name__})
    options = options or OpenAPIOptions()
    report = BuildReport(title=(spec.get("info") or {}).get("title") or "")
    tools: List[ToolDefinition] = []
    used_names: Dict[str, int] = {}

    for path, method, path_item, op in iter_operations(spec):
        report.total_ops += 1
        if not options.should_include_operation(path, method, op):
            report.filtered_ops += 1
            continue

        default_name = op_tool_name(path, method, op.get("operationId"))
        tool_name = options.get_tool_name(default_name, method.upper(), path, op)
        if tool_name in used_names:
            used_names[tool_name] += 1
            deduped = f"{tool_name}_{used_names[tool_name]}"
            report.warnings.append(f"Duplicate tool name {tool_name!r} for {method.upper()} {path}; using {deduped!r}")
            tool_name = deduped
        else:
            used_names[tool_name] = 1

        try:
            operation = parse_operation(spec, path, method, path_item, op, base_url=base_url)
            description = options.get_description(op_description(path, method, op), op)
            tool = build_tool_definition(operation, name=tool_name, description=description)
        except (SchemaBuildError, OpenAPIParseError) as exc:
            if options.strict:
                raise
            report.skipped_ops += 1
            report.errors.append(f"{method.upper()} {path}: {exc.message}")
            log_exception(log.logger, f"Skipping {method.upper()} {path}", exc, include_traceback=False)
            continue

        if not tool.base_url:
            report.warnings.append(f"No base URL for {method.upper()} {path}; set base_url or servers[]")
        tools.append(tool)
        report.ops.append(
            OperationReport(tool_name=tool.name, method=tool.method, path=path, operation_id=tool.operation_id)
        )

    report.registered_tools = len(tools)
    log.info(report.summary())
    return tools, report
