"""Turn flat tool arguments back into HTTP requests.

``route_arguments`` is the pure inverse of the build-time flattening: each
argument goes to the location its ``ArgumentBinding`` records. Unknown keys
are dropped. ``InvocationRouter`` adds the I/O: auth headers, sending with
httpx, and the single retry an auth provider may ask for.

Header precedence, lowest first: auth provider headers, forwarded inbound
headers, ``header``-location arguments. The body's own content type always
replaces an auth-supplied ``Content-Type``.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from ..auth import AuthProvider, is_auth_error
from ..context import RequestContext
from ..errors import InvocationError, MissingPathParameterError
from ..logging import RequestLogger, get_logger
from .models import ArgumentBinding, HttpRequestDescriptor, ToolDefinition

__all__ = ["route_arguments", "InvocationRouter"]

log = get_logger(__name__)

_DELIMITERS = {"form": ",", "simple": ",", "spaceDelimited": " ", "pipeDelimited": "|"}


# -------- Value serialization --------


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _simple(value: Any, explode: bool) -> str:
    """RFC 6570 simple expansion, used for path and header values."""
    if isinstance(value, (list, tuple)):
        return ",".join(_scalar(v) for v in value)
    if isinstance(value, dict):
        if explode:
            return ",".join(f"{k}={_scalar(v)}" for k, v in value.items())
        return ",".join(f"{k},{_scalar(v)}" for k, v in value.items())
    return _scalar(value)


def _query_pairs(name: str, value: Any, binding: ArgumentBinding) -> List[Tuple[str, str]]:
    style = binding.style or "form"
    if isinstance(value, (list, tuple)):
        if binding.explode:
            return [(name, _scalar(v)) for v in value]
        return [(name, _DELIMITERS.get(style, ",").join(_scalar(v) for v in value))]
    if isinstance(value, dict):
        if style == "deepObject":
            return [(f"{name}[{k}]", _scalar(v)) for k, v in value.items() if v is not None]
        if binding.explode:
            return [(str(k), _scalar(v)) for k, v in value.items() if v is not None]
        return [(name, ",".join(f"{k},{_scalar(v)}" for k, v in value.items()))]
    return [(name, _scalar(value))]


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def _drop_header(headers: Dict[str, str], name: str) -> None:
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]


def _decode_base64(name: str, value: Any, tool: ToolDefinition) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return base64.b64decode(str(value), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvocationError(
            f"Argument '{name}' must be base64-encoded",
            tool_name=tool.name,
            details={"argument": name},
        ) from exc


def _is_base64(binding: ArgumentBinding) -> bool:
    return binding.content_encoding == "base64"


# -------- Body assembly --------


def _multipart_part(name: str, value: Any, binding: ArgumentBinding, tool: ToolDefinition) -> Tuple[str, Tuple[Any, ...]]:
    if _is_base64(binding):
        media = binding.content_media_type or "application/octet-stream"
        return name, (name, _decode_base64(name, value, tool), media)
    if isinstance(value, (dict, list)):
        return name, (None, json.dumps(value), binding.content_media_type or "application/json")
    if binding.content_media_type:
        return name, (None, _scalar(value), binding.content_media_type)
    return name, (None, _scalar(value))


def _form_value(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_scalar(v) for v in value]
    return _scalar(value)


def _assemble_body(
    tool: ToolDefinition,
    body_args: Dict[str, Any],
    descriptor: HttpRequestDescriptor,
) -> None:
    mode = tool.body_mode
    if not body_args or mode is None:
        return

    single = "body" in body_args and tool.bindings["body"].location == "body"
    media_type = tool.body_media_type or "application/octet-stream"

    if mode == "json":
        descriptor.json_body = body_args["body"] if single else dict(body_args)
        _set_header(descriptor.headers, "Content-Type", media_type)
        return

    if mode == "form":
        fields = body_args["body"] if single else body_args
        if not isinstance(fields, Mapping):
            raise InvocationError(
                "Form request body must be an object",
                tool_name=tool.name,
            )
        descriptor.data = {k: _form_value(v) for k, v in fields.items() if v is not None}
        _set_header(descriptor.headers, "Content-Type", media_type)
        return

    if mode == "multipart":
        if single:
            fields = body_args["body"]
            if not isinstance(fields, Mapping):
                raise InvocationError("Multipart request body must be an object", tool_name=tool.name)
            default = ArgumentBinding(name="body", location="body")
            parts = [_multipart_part(k, v, default, tool) for k, v in fields.items() if v is not None]
        else:
            parts = [_multipart_part(k, v, tool.bindings[k], tool) for k, v in body_args.items()]
        descriptor.files = parts
        # httpx generates the boundary only when no Content-Type is set
        _drop_header(descriptor.headers, "Content-Type")
        return

    value = body_args.get("body")
    binding = tool.bindings["body"]
    if _is_base64(binding):
        descriptor.content = _decode_base64("body", value, tool)
    elif isinstance(value, (bytes, bytearray)):
        descriptor.content = bytes(value)
    elif isinstance(value, (dict, list)):
        descriptor.content = json.dumps(value).encode("utf-8")
    else:
        descriptor.content = _scalar(value).encode("utf-8")
    _set_header(descriptor.headers, "Content-Type", binding.content_media_type or media_type)


# -------- Routing --------


def route_arguments(
    tool: ToolDefinition,
    arguments: Optional[Mapping[str, Any]],
    *,
    base_url: Optional[str] = None,
    auth_headers: Optional[Mapping[str, str]] = None,
    context: Optional[RequestContext] = None,
    forward_headers: Iterable[str] = (),
) -> HttpRequestDescriptor:
    """Build the HTTP request for one call of ``tool``.

    Raises:
        MissingPathParameterError: a path variable has no value.
        InvocationError: no base URL is known, or a body value is malformed.
    """
    arguments = dict(arguments or {})
    url_base = (base_url or tool.base_url or "").rstrip("/")
    if not url_base:
        raise InvocationError(
            "No base URL configured for this API",
            tool_name=tool.name,
            hint="Set base_url (or API_BASE_URL) or add servers[] to the OpenAPI document.",
        )

    unknown = [key for key in arguments if key not in tool.bindings]
    if unknown:
        log.debug("Ignoring unknown arguments for %s: %s", tool.name, ", ".join(sorted(unknown)))

    path = tool.path
    params: List[Tuple[str, str]] = []
    header_args: Dict[str, str] = {}
    cookies: List[str] = []
    body_args: Dict[str, Any] = {}

    for name, binding in tool.bindings.items():
        value = arguments.get(name)
        if binding.location == "path":
            if value is None:
                raise MissingPathParameterError(name, tool_name=tool.name)
            path = path.replace("{" + name + "}", quote(_simple(value, binding.explode), safe=",="))
            continue
        if value is None:
            continue
        if binding.location == "query":
            params.extend(_query_pairs(name, value, binding))
        elif binding.location == "header":
            header_args[name] = _simple(value, binding.explode)
        elif binding.location == "cookie":
            cookies.append(f"{name}={_simple(value, False)}")
        else:
            body_args[name] = value

    headers: Dict[str, str] = {}
    for key, value in (auth_headers or {}).items():
        _set_header(headers, key, value)
    if context is not None:
        for key, value in context.forwarded_headers(forward_headers).items():
            _set_header(headers, key, value)
    for key, value in header_args.items():
        _set_header(headers, key, value)
    if cookies:
        _set_header(headers, "Cookie", "; ".join(cookies))

    descriptor = HttpRequestDescriptor(
        method=tool.method,
        url=f"{url_base}{path}",
        params=params,
        headers=headers,
    )
    _assemble_body(tool, body_args, descriptor)
    return descriptor


class InvocationRouter:
    """Sends routed requests and applies the auth provider's retry decision.

    Holds no per-call state; one instance serves concurrent invocations.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        auth_provider: Optional[AuthProvider] = None,
        base_url: Optional[str] = None,
        forward_headers: Iterable[str] = (),
        request_logger: Optional[RequestLogger] = None,
    ):
        self._client = client
        self._auth = auth_provider
        self._base_url = base_url
        self._forward_headers = tuple(forward_headers)
        self._requests = request_logger or RequestLogger()

    @property
    def auth_provider(self) -> Optional[AuthProvider]:
        return self._auth

    async def build_request(
        self,
        tool: ToolDefinition,
        arguments: Optional[Mapping[str, Any]],
        context: Optional[RequestContext] = None,
    ) -> HttpRequestDescriptor:
        auth_headers = await self._auth.get_auth_headers() if self._auth is not None else {}
        return route_arguments(
            tool,
            arguments,
            base_url=self._base_url,
            auth_headers=auth_headers,
            context=context,
            forward_headers=self._forward_headers,
        )

    async def _send(
        self,
        tool: ToolDefinition,
        arguments: Optional[Mapping[str, Any]],
        context: Optional[RequestContext],
        attempt: int,
    ) -> httpx.Response:
        descriptor = await self.build_request(tool, arguments, context)
        entry = self._requests.log_request(
            method=descriptor.method,
            url=descriptor.url,
            headers=descriptor.headers,
            tool=tool.name,
            session_id=context.session_id if context else None,
            attempt=attempt,
        )
        try:
            response = await self._client.request(**descriptor.to_httpx())
        except httpx.HTTPError as exc:
            self._requests.log_error(entry, exc)
            raise
        self._requests.log_response(entry, status_code=response.status_code, response_size=len(response.content))
        return response

    async def invoke(
        self,
        tool: ToolDefinition,
        arguments: Optional[Mapping[str, Any]],
        context: Optional[RequestContext] = None,
    ) -> httpx.Response:
        """Send the request for one call and return the successful response.

        Raises:
            MissingPathParameterError: never retried.
            httpx.HTTPStatusError: non-2xx response, unchanged, after at most
                one auth-driven retry.
        """
        response = await self._send(tool, arguments, context, attempt=1)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if self._auth is None or not is_auth_error(exc):
                raise
            if not await self._auth.handle_auth_error(exc):
                raise
            log.info("Retrying %s once after auth refresh", tool.name)
            response = await self._send(tool, arguments, context, attempt=2)
            response.raise_for_status()
        return response
