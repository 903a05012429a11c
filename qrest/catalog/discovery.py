# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Capability discovery from OpenAPI/Swagger documents.

Turns an API description into one ``Capability`` per (path, verb) pair:

    spec = load_openapi_spec(spec_url="https://petstore.swagger.io/v2/swagger.json")
    capabilities = parse_capabilities(spec, base_url="https://petstore.swagger.io/v2")

Supports OpenAPI 3.x and Swagger 2.0 in JSON or YAML.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urljoin

import httpx
import yaml

from qrest.catalog.operators import (
    infer_operators,
    is_limit_param,
    is_offset_param,
    is_sort_param,
)
from qrest.core.models import (
    SUPPORTED_VERBS,
    Capability,
    Parameter,
    verb_table_name,
)

logger = logging.getLogger(__name__)

# Path segments that never name a resource
_PREFIX_TOKENS = {"api", "rest"}
_VERSION_TOKEN = re.compile(r"^v\d+(\.\d+)*$", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"\{([^}/]+)\}")

_SUCCESS_CODES = ("200", "201", "202", "203", "206", "2XX", "2xx")


class DiscoveryError(Exception):
    """Raised when an API description cannot be loaded or parsed."""


def load_openapi_spec(
    spec_url: Optional[str] = None,
    spec_path: Optional[str] = None,
    spec_inline: Optional[Union[dict, str]] = None,
    headers: Optional[dict[str, str]] = None,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """
    Load an OpenAPI/Swagger document from a URL, a file, or an inline dict.

    Args:
        spec_url: URL to download the document from
        spec_path: Local file path to the document
        spec_inline: Document embedded in config, parsed or as JSON/YAML text
        headers: Headers to use when downloading (e.g., for auth)
        timeout: Request timeout in seconds

    Returns:
        The parsed document

    Raises:
        DiscoveryError: If the document cannot be read or is not an API description
    """
    if not spec_url and not spec_path and spec_inline is None:
        raise DiscoveryError("One of spec_url, spec_path, or spec_inline must be provided")

    if isinstance(spec_inline, str):
        spec = _parse_document(spec_inline, "inline document")
    elif spec_inline is not None:
        spec = spec_inline
    elif spec_url:
        try:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                response = client.get(spec_url, headers=headers or {})
                response.raise_for_status()
                content = response.text
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to fetch API description from {spec_url}: {e}") from e
        spec = _parse_document(content, spec_url)
    else:
        spec_file = Path(spec_path)
        if not spec_file.exists():
            raise DiscoveryError(f"API description not found: {spec_path}")
        try:
            content = spec_file.read_text()
        except OSError as e:
            raise DiscoveryError(f"Failed to read API description {spec_path}: {e}") from e
        spec = _parse_document(content, spec_path)

    if not isinstance(spec, dict) or not isinstance(spec.get("paths"), dict):
        source = spec_url or spec_path or "inline document"
        raise DiscoveryError(f"{source} is not an OpenAPI/Swagger document (no 'paths' section)")

    return spec


def _parse_document(content: str, source: str) -> Any:
    """Parse JSON, falling back to YAML (JSON is a subset of YAML anyway)."""
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise DiscoveryError(f"Failed to parse API description {source}: {e}") from e


def resolve_base_url(spec: dict, spec_url: Optional[str] = None) -> str:
    """Derive the API base address declared by the document."""
    openapi_version = str(spec.get("openapi", spec.get("swagger", "2.0")))
    if openapi_version.startswith("3"):
        servers = spec.get("servers") or []
        url = servers[0].get("url", "") if servers else ""
        if url and spec_url and not url.startswith(("http://", "https://")):
            url = urljoin(spec_url, url)
        return url.rstrip("/")

    host = spec.get("host", "")
    if not host:
        return spec.get("basePath", "").rstrip("/")
    base_path = spec.get("basePath", "")
    schemes = spec.get("schemes") or ["https"]
    return f"{schemes[0]}://{host}{base_path}".rstrip("/")


def extract_table_name(path: str) -> str:
    """
    Derive a table name from a path template.

    Scans segments from the end, skipping ``{placeholders}`` and
    version/prefix tokens: ``/api/v1/users/{id}`` -> ``users``.
    Returns an empty string if no segment qualifies.
    """
    parts = path.strip("/").split("/")
    for part in reversed(parts):
        if not part:
            continue
        if part.startswith("{") or part.endswith("}"):
            continue
        if part.lower() in _PREFIX_TOKENS or _VERSION_TOKEN.match(part):
            continue
        return part
    return ""


def parse_capabilities(spec: dict, base_url: str = "") -> list[Capability]:
    """
    Produce one Capability per (path, verb) pair in the document.

    Args:
        spec: Parsed OpenAPI/Swagger document
        base_url: Base address for requests; derived from the document if empty

    Returns:
        Capabilities in document order, verbs in GET/POST/PUT/PATCH/DELETE order
    """
    parser = _CapabilityParser(spec, base_url or resolve_base_url(spec))
    return parser.parse()


class _CapabilityParser:
    """Walks the ``paths`` section of one document."""

    def __init__(self, spec: dict, base_url: str):
        self.spec = spec
        self.base_url = base_url
        self.is_openapi3 = str(spec.get("openapi", spec.get("swagger", "2.0"))).startswith("3")
        self._taken: set[str] = set()

    def parse(self) -> list[Capability]:
        capabilities = []
        for path, path_item in (self.spec.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            if "$ref" in path_item:
                path_item = self.resolve_ref(path_item["$ref"])
            for verb in SUPPORTED_VERBS:
                operation = path_item.get(verb.lower())
                if not isinstance(operation, dict):
                    continue
                capability = self.parse_operation(path, verb, path_item, operation)
                if capability is not None:
                    capabilities.append(capability)
        return capabilities

    def parse_operation(self, path: str, verb: str, path_item: dict, operation: dict) -> Optional[Capability]:
        base = extract_table_name(path)
        if not base:
            logger.debug(f"No table name derivable from {verb} {path}, skipping")
            return None

        path_parameters = tuple(_PLACEHOLDER.findall(path))
        table_name = self._unique_table_name(base, verb, path_parameters)

        parameters: list[Parameter] = []
        limit_param = offset_param = sort_param = None
        max_results = 0

        for raw in self._merged_parameters(path_item, operation):
            if raw.get("in") != "query":
                continue
            parameter = self.parse_parameter(raw)
            parameters.append(parameter)

            if is_limit_param(parameter.name):
                if limit_param is None:
                    limit_param = parameter.name
                    if parameter.maximum:
                        max_results = parameter.maximum
            elif is_offset_param(parameter.name):
                if offset_param is None:
                    offset_param = parameter.name
            if sort_param is None and is_sort_param(parameter.name):
                sort_param = parameter.name

        body_columns: tuple[str, ...] = ()
        if verb in ("POST", "PUT", "PATCH"):
            body_columns = tuple(self.columns_from_schema(self._request_body_schema(operation)))

        return Capability(
            path=path,
            method=verb,
            table_name=table_name,
            base_url=self.base_url,
            parameters=tuple(parameters),
            response_columns=tuple(self.response_columns(operation)),
            max_results=max_results,
            has_paging=limit_param is not None or offset_param is not None,
            limit_param=limit_param,
            offset_param=offset_param,
            sort_param=sort_param,
            path_parameters=path_parameters,
            body_columns=body_columns,
            operation_id=operation.get("operationId", ""),
            summary=operation.get("summary", "") or "",
        )

    def _unique_table_name(self, base: str, verb: str, path_parameters: tuple[str, ...]) -> str:
        """Keep table names unique within one document.

        The first path in document order keeps the plain name; later
        collisions get ``_by_<placeholder>`` inserted before the verb suffix.
        """
        candidates = [verb_table_name(base, verb)]
        if path_parameters:
            qualified = f"{base}_by_{'_'.join(path_parameters)}"
            candidates.append(verb_table_name(qualified, verb))
        for name in candidates:
            if name not in self._taken:
                self._taken.add(name)
                return name

        counter = 2
        while True:
            name = verb_table_name(f"{base}{counter}", verb)
            if name not in self._taken:
                self._taken.add(name)
                return name
            counter += 1

    def _merged_parameters(self, path_item: dict, operation: dict) -> list[dict]:
        """Path-level parameters overridden by operation-level ones of the same name/location."""
        merged: dict[tuple[str, str], dict] = {}
        for raw in list(path_item.get("parameters", [])) + list(operation.get("parameters", [])):
            if not isinstance(raw, dict):
                continue
            if "$ref" in raw:
                raw = self.resolve_ref(raw["$ref"])
            key = (raw.get("name", ""), raw.get("in", ""))
            merged[key] = raw
        return list(merged.values())

    def parse_parameter(self, raw: dict) -> Parameter:
        """Build a Parameter, inferring its operators from name and type."""
        name = raw.get("name", "")
        if self.is_openapi3 or "schema" in raw:
            schema = raw.get("schema") or {}
            if "$ref" in schema:
                schema = self.resolve_ref(schema["$ref"])
        else:
            schema = raw

        param_type = schema.get("type", "string")
        enum = schema.get("enum") or (schema.get("items") or {}).get("enum") or []
        maximum = schema.get("maximum")

        return Parameter(
            name=name,
            type=param_type,
            location=raw.get("in", "query"),
            required=bool(raw.get("required", False)),
            enum=tuple(str(v) for v in enum),
            operators=infer_operators(name, param_type),
            maximum=int(maximum) if isinstance(maximum, (int, float)) else None,
        )

    def response_columns(self, operation: dict) -> list[str]:
        """Column names from the declared success-response schema."""
        responses = operation.get("responses") or {}
        for code in _SUCCESS_CODES:
            if code in responses:
                response = responses[code] or {}
                if "$ref" in response:
                    response = self.resolve_ref(response["$ref"])
                return self.columns_from_schema(self._response_schema(response))
        return []

    def _response_schema(self, response: dict) -> dict:
        if self.is_openapi3:
            return self._first_content_schema(response.get("content") or {})
        return response.get("schema") or {}

    def _request_body_schema(self, operation: dict) -> dict:
        if self.is_openapi3:
            request_body = operation.get("requestBody") or {}
            if "$ref" in request_body:
                request_body = self.resolve_ref(request_body["$ref"])
            return self._first_content_schema(request_body.get("content") or {})
        for raw in operation.get("parameters", []):
            if isinstance(raw, dict) and raw.get("in") == "body":
                return raw.get("schema") or {}
        return {}

    @staticmethod
    def _first_content_schema(content: dict) -> dict:
        """Prefer a JSON media type, else the first one declared."""
        for content_type, media_type in content.items():
            if "json" in content_type:
                return (media_type or {}).get("schema") or {}
        for media_type in content.values():
            return (media_type or {}).get("schema") or {}
        return {}

    def columns_from_schema(self, schema: dict, resolved: bool = False) -> list[str]:
        """
        Extract column names from a schema.

        Arrays recurse into their items, objects yield their property names.
        A ``$ref`` is resolved once; a reference reached through another
        reference is not expanded.
        """
        if not schema:
            return []

        if "$ref" in schema:
            if resolved:
                return []
            return self.columns_from_schema(self.resolve_ref(schema["$ref"]), resolved=True)

        if schema.get("type") == "array":
            return self.columns_from_schema(schema.get("items") or {}, resolved)

        if "allOf" in schema:
            columns: list[str] = []
            for part in schema["allOf"]:
                for column in self.columns_from_schema(part or {}, resolved):
                    if column not in columns:
                        columns.append(column)
            return columns

        properties = schema.get("properties")
        if isinstance(properties, dict) and schema.get("type", "object") == "object":
            return list(properties.keys())

        return []

    def resolve_ref(self, ref: str) -> dict:
        """Resolve a local ``#/...`` pointer; unresolvable pointers yield {}."""
        if not ref.startswith("#/"):
            return {}

        result: Any = self.spec
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(result, dict):
                return {}
            result = result.get(part, {})
        return result if isinstance(result, dict) else {}
