from __future__ import annotations

import json
from pathlib import Path
from typing import Union

import httpx
import yaml

from ..errors import OpenAPIParseError
from ..logging import get_logger
from .models import OpenAPISpec

__all__ = ["load_openapi", "load_spec"]

log = get_logger(__name__)


def load_openapi(source: Union[str, Path, dict], *, timeout: float = 30.0) -> OpenAPISpec:
    """Load an OpenAPI document from various sources.

    Supports:
    - Dict: returned as-is (already parsed)
    - URL (http/https): fetched with httpx
    - Local file path: JSON or YAML
    - Raw JSON/YAML string: parsed directly

    Example:
        spec = load_openapi("https://api.example.com/openapi.json")
        spec = load_openapi(Path("./openapi.yaml"))
        spec = load_openapi('{"openapi": "3.1.0", ...}')

    Raises:
        OpenAPIParseError: the source cannot be read or is not a mapping.
    """
    if isinstance(source, dict):
        return source

    source_str = str(source)

    if source_str.startswith(("http://", "https://")):
        spec = _fetch_openapi_url(source_str, timeout=timeout)
    elif _is_existing_file(source_str):
        spec = _load_openapi_file(Path(source_str))
    elif isinstance(source, Path) or _is_single_line_filename(source_str):
        raise OpenAPIParseError(f"OpenAPI file not found: {source_str}", source=source_str)
    else:
        spec = _parse_openapi_string(source_str, source="<string>")

    if not isinstance(spec, dict):
        raise OpenAPIParseError(
            "OpenAPI document must be a JSON/YAML mapping",
            source=source_str[:200],
            details={"type": type(spec).__name__},
        )
    return spec


def _is_existing_file(text: str) -> bool:
    if "\n" in text or len(text) > 1024:
        return False
    try:
        return Path(text).is_file()
    except OSError:
        return False


def _is_single_line_filename(text: str) -> bool:
    stripped = text.strip()
    return "\n" not in stripped and stripped.endswith((".json", ".yaml", ".yml"))


def _fetch_openapi_url(url: str, *, timeout: float) -> OpenAPISpec:
    log.info("Fetching OpenAPI document from %s", url)
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            resp = client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise OpenAPIParseError(f"Failed to fetch OpenAPI document: {exc}", source=url) from exc

    content_type = resp.headers.get("content-type", "")
    if "json" in content_type or url.endswith(".json"):
        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise OpenAPIParseError(f"Invalid JSON in OpenAPI document: {exc}", source=url) from exc
    return _parse_openapi_string(resp.text, source=url)


def _load_openapi_file(path: Path) -> OpenAPISpec:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OpenAPIParseError(f"Cannot read OpenAPI file: {exc}", source=str(path)) from exc

    if path.suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise OpenAPIParseError(f"Invalid JSON in {path}: {exc}", source=str(path)) from exc
    return _parse_openapi_string(text, source=str(path))


def _parse_openapi_string(text: str, *, source: str) -> OpenAPISpec:
    """Parse raw JSON, falling back to YAML."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise OpenAPIParseError(f"Document is neither valid JSON nor YAML: {exc}", source=source) from exc


def load_spec(source: Union[str, Path, dict]) -> OpenAPISpec:
    """Alias for load_openapi."""
    return load_openapi(source)
