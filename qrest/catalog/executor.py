# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Execute parsed SQL queries as single REST calls.

This module turns one validated ParsedQuery into exactly one HTTP request
against the operation a Capability describes, then reshapes the response
into rows.

Usage:
    from qrest.catalog.executor import RESTExecutor

    with RESTExecutor(auth_type="bearer", auth_token="secret") as executor:
        result = executor.execute_query(capability, parsed_query)
        for row in result.rows:
            print(row)
"""

import base64
import logging
import re
import threading
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx

from qrest import __version__
from qrest.catalog.operators import param_matches_operator
from qrest.core.models import (
    Capability,
    Condition,
    ParsedQuery,
    QueryResult,
    StatementKind,
)

logger = logging.getLogger(__name__)

AUTH_TYPES = ("none", "bearer", "apikey", "basic")

# Probed in order when a response is a single object
WRAPPER_FIELDS = ("data", "results", "items", "records", "list")

_PLACEHOLDER = re.compile(r"\{([^}/]+)\}")
_MAX_ERROR_BODY = 500


class TranslationError(Exception):
    """Raised when a validated query cannot be expressed as a request to the API."""


def http_error_hint(status_code: int) -> str:
    """Remediation hint for a non-2xx status."""
    if status_code == 401:
        return "Authentication failed. Check the API credentials in config."
    if status_code == 403:
        return "Permission denied. The credentials may lack required permissions."
    if status_code == 400:
        return "Bad request - check filter values and column names."
    if status_code == 404:
        return "Resource not found - check the identifier or endpoint path."
    if status_code == 405:
        return "HTTP method not allowed for this endpoint."
    if status_code == 422:
        return "Validation error - check field types and required fields."
    if status_code == 429:
        return "Rate limited. Reduce request frequency."
    if status_code >= 500:
        return f"Server error {status_code}. The API may be unavailable."
    return f"Unexpected status {status_code}."


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(_format_value(v) for v in value)
    return str(value)


def _normalize_operator(operator: str) -> str:
    return "!=" if operator == "<>" else operator


def extract_rows(payload: Any) -> list[dict[str, Any]]:
    """
    Reshape a decoded response body into rows.

    A list keeps its object elements. An object is searched for the first
    conventional wrapper field holding a list, else it is a single row.
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for name in WRAPPER_FIELDS:
            value = payload.get(name)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
        return [payload]
    return []


def project_rows(rows: list[dict[str, Any]], columns: list[str]) -> list[dict[str, Any]]:
    """Keep only the named keys of each row; absent keys are omitted."""
    if not columns:
        return rows
    return [{column: row[column] for column in columns if column in row} for row in rows]


class RESTExecutor:
    """
    Executes parsed queries against REST endpoints.

    One instance holds one lazily created httpx client and the auth settings
    of one API. It keeps no per-query state and may serve many queries,
    including from several threads.
    """

    def __init__(
        self,
        auth_type: str = "none",
        auth_token: str = "",
        api_key_header: str = "X-API-Key",
        timeout: float = 30.0,
        strict_pagination: bool = False,
    ):
        """
        Initialize the executor.

        Args:
            auth_type: One of none, bearer, apikey, basic
            auth_token: Credential applied according to auth_type
            api_key_header: Header carrying the token for apikey auth
            timeout: Request timeout in seconds
            strict_pagination: Fail instead of dropping LIMIT/OFFSET the API cannot express
        """
        if auth_type not in AUTH_TYPES:
            raise ValueError(f"Unsupported auth type '{auth_type}'. Expected one of {AUTH_TYPES}")
        self.auth_type = auth_type
        self.auth_token = auth_token
        self.api_key_header = api_key_header
        self.timeout = timeout
        self.strict_pagination = strict_pagination
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self.timeout)
            return self._client

    def close(self):
        """Close the HTTP client."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def build_headers(self, with_body: bool = False) -> dict[str, str]:
        """Build request headers including authentication."""
        headers = {
            "Accept": "application/json",
            "User-Agent": f"qrest/{__version__}",
        }
        if with_body:
            headers["Content-Type"] = "application/json"

        if not self.auth_token:
            return headers
        if self.auth_type == "bearer":
            headers["Authorization"] = f"Bearer {self.auth_token}"
        elif self.auth_type == "apikey":
            headers[self.api_key_header] = self.auth_token
        elif self.auth_type == "basic":
            token = self.auth_token
            if ":" in token:
                token = base64.b64encode(token.encode()).decode()
            headers["Authorization"] = f"Basic {token}"
        return headers

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    @staticmethod
    def _match_parameter(capability: Capability, condition: Condition) -> Optional[str]:
        """Find the query parameter expressing ``condition``, exact name first."""
        operator = _normalize_operator(condition.operator)
        for param in capability.parameters:
            operators = {_normalize_operator(op) for op in param.operators}
            if param.name.lower() == condition.column.lower() and operator in operators:
                return param.name
        for param in capability.parameters:
            if param_matches_operator(param.name, condition.column, operator):
                return param.name
        return None

    @staticmethod
    def _between_parameter(capability: Capability, condition: Condition) -> Optional[str]:
        if condition.operator not in (">=", "<="):
            return None
        for param in capability.parameters:
            if param_matches_operator(param.name, condition.column, "BETWEEN"):
                return param.name
        return None

    def build_query_params(
        self,
        capability: Capability,
        query: ParsedQuery,
        warnings: Optional[list[str]] = None,
    ) -> dict[str, str]:
        """
        Map a SELECT onto the capability's query-string parameters.

        Raises:
            TranslationError: If a condition has no parameter to carry it, or
                pagination cannot be expressed under strict_pagination
        """
        if warnings is None:
            warnings = []
        params: dict[str, str] = {}
        ranges: dict[str, dict[str, Any]] = {}
        placeholders = set(_PLACEHOLDER.findall(capability.path))

        for condition in query.conditions:
            if condition.column in placeholders and condition.operator == "=":
                continue
            name = self._match_parameter(capability, condition)
            if name is not None:
                params[name] = _format_value(condition.value)
                continue
            name = self._between_parameter(capability, condition)
            if name is not None:
                ranges.setdefault(name, {})[condition.operator] = condition.value
                continue
            raise TranslationError(
                f"No API parameter supports filter '{condition.column} {condition.operator}' "
                f"on table '{capability.table_name}'"
            )

        for name, bounds in ranges.items():
            if ">=" not in bounds or "<=" not in bounds:
                raise TranslationError(
                    f"Parameter '{name}' needs both a lower and an upper bound"
                )
            params[name] = f"{_format_value(bounds['>='])},{_format_value(bounds['<='])}"

        if query.order_by:
            if capability.sort_param:
                params[capability.sort_param] = ",".join(
                    f"-{field.column}" if field.descending else field.column
                    for field in query.order_by
                )
            else:
                warnings.append("ORDER BY ignored: the API exposes no sort parameter")

        if query.limit > 0:
            if capability.limit_param:
                params[capability.limit_param] = str(query.limit)
            elif query.explicit_limit:
                self._pagination_gap("LIMIT", capability, warnings)

        if query.offset > 0:
            if capability.offset_param:
                params[capability.offset_param] = str(self._offset_value(capability, query))
            else:
                self._pagination_gap("OFFSET", capability, warnings)

        return params

    @staticmethod
    def _offset_value(capability: Capability, query: ParsedQuery) -> int:
        """Offsets are sent as-is; page-numbered APIs get a 1-based page number."""
        name = capability.offset_param.lower()
        if "offset" not in name and "page" in name and query.limit > 0:
            return query.offset // query.limit + 1
        return query.offset

    def _pagination_gap(self, clause: str, capability: Capability, warnings: list[str]) -> None:
        message = f"{clause} not sent: table '{capability.table_name}' has no pagination parameter"
        if self.strict_pagination:
            raise TranslationError(message)
        warnings.append(message)

    @staticmethod
    def build_read_url(capability: Capability, query: ParsedQuery) -> str:
        """Fill the path placeholders of a read from equality conditions of the same name."""
        equalities = {c.column: c.value for c in query.conditions if c.operator == "="}
        path = capability.path
        for name in _PLACEHOLDER.findall(path):
            if name not in equalities:
                raise TranslationError(
                    f"SELECT on '{capability.table_name}' requires a WHERE condition '{name} = <value>'"
                )
            path = path.replace(f"{{{name}}}", quote(_format_value(equalities[name]), safe=""))
        return capability.base_url.rstrip("/") + "/" + path.lstrip("/")

    @staticmethod
    def build_mutation_url(
        capability: Capability,
        query: ParsedQuery,
        warnings: Optional[list[str]] = None,
    ) -> str:
        """
        Substitute the target identifier into the capability's path.

        Placeholders are filled from equality conditions of the same name.
        An ``id`` condition then fills the last unfilled placeholder, or is
        appended as a trailing segment when the path has no placeholders.

        Raises:
            TranslationError: If no identifier condition is present
        """
        if warnings is None:
            warnings = []
        equalities: dict[str, Any] = {}
        for condition in query.conditions:
            if condition.operator == "=":
                equalities.setdefault(condition.column, condition.value)

        placeholders = _PLACEHOLDER.findall(capability.path)
        if "id" not in equalities and not any(name in equalities for name in placeholders):
            raise TranslationError(
                f"{query.kind.value} on '{capability.table_name}' requires a WHERE condition "
                f"'id = <value>' to identify the target resource"
            )

        path = capability.path
        used: set[str] = set()
        unfilled = []
        for name in placeholders:
            if name in equalities:
                path = path.replace(f"{{{name}}}", quote(_format_value(equalities[name]), safe=""))
                used.add(name)
            else:
                unfilled.append(name)

        if "id" in equalities and "id" not in used and (unfilled or not used):
            segment = quote(_format_value(equalities["id"]), safe="")
            if unfilled:
                path = path.replace(f"{{{unfilled.pop()}}}", segment)
            else:
                path = path.rstrip("/") + "/" + segment
            used.add("id")

        if unfilled:
            raise TranslationError(
                f"No value for path parameter(s) {', '.join(unfilled)} of {capability.method} {capability.path}"
            )

        for condition in query.conditions:
            if condition.column not in used:
                warnings.append(
                    f"Condition on '{condition.column}' ignored: {query.kind.value} targets a single resource"
                )

        return capability.base_url.rstrip("/") + "/" + path.lstrip("/")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_query(self, capability: Capability, query: ParsedQuery) -> QueryResult:
        """
        Issue one HTTP request for ``query`` and reshape the response.

        Returns:
            QueryResult with rows, or with an error string when the call failed

        Raises:
            TranslationError: If the query cannot be expressed against this API
        """
        warnings: list[str] = []
        body: Optional[dict[str, Any]] = None

        if query.kind is StatementKind.SELECT:
            method = "GET"
            url = self.build_read_url(capability, query)
            params = self.build_query_params(capability, query, warnings)
            if params:
                url = f"{url}?{urlencode(params)}"
        elif query.kind is StatementKind.INSERT:
            method = "POST"
            url = capability.url
            body = query.body
        elif query.kind is StatementKind.UPDATE:
            method = capability.method if capability.method in ("PUT", "PATCH") else "PUT"
            url = self.build_mutation_url(capability, query, warnings)
            body = dict(query.updates)
        else:
            method = "DELETE"
            url = self.build_mutation_url(capability, query, warnings)

        headers = self.build_headers(with_body=body is not None)
        logger.debug(f"{method} {url}")

        try:
            response = self._send(method, url, headers, body)
        except httpx.RequestError as e:
            logger.warning(f"Request to {url} failed: {e}")
            return QueryResult(error=f"Request to {url} failed: {e}", warnings=warnings)

        result = self._build_result(response, query)
        result.warnings = warnings + result.warnings
        return result

    def _send(self, method: str, url: str, headers: dict[str, str], body: Optional[dict[str, Any]]):
        if method == "GET":
            return self.client.get(url, headers=headers)
        if method == "POST":
            return self.client.post(url, headers=headers, json=body)
        if method == "PUT":
            return self.client.put(url, headers=headers, json=body)
        if method == "PATCH":
            return self.client.patch(url, headers=headers, json=body)
        if method == "DELETE":
            return self.client.delete(url, headers=headers)
        raise TranslationError(f"Unsupported HTTP method: {method}")

    def _build_result(self, response: Optional[httpx.Response], query: ParsedQuery) -> QueryResult:
        if response is None:
            return QueryResult.failure("No response received from API")

        status = response.status_code
        if not 200 <= status < 300:
            hint = http_error_hint(status)
            message = f"API request failed with status {status}. {hint}"
            snippet = response.text[:_MAX_ERROR_BODY].strip()
            if snippet:
                message = f"{message} Response: {snippet}"
            return QueryResult.failure(message, status_code=status)

        if not response.content or not response.content.strip():
            return QueryResult(status_code=status)

        try:
            payload = response.json()
        except ValueError:
            return QueryResult.failure("Invalid JSON response from API", status_code=status)

        rows = extract_rows(payload)
        if query.kind is StatementKind.SELECT:
            rows = project_rows(rows, query.columns)
        return QueryResult(rows=rows, total=len(rows), status_code=status)


def execute_query(capability: Capability, query: ParsedQuery, **kwargs) -> QueryResult:
    """Execute one query with a short-lived executor; kwargs go to RESTExecutor."""
    with RESTExecutor(**kwargs) as executor:
        return executor.execute_query(capability, query)
