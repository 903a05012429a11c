# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Core data structures shared by discovery, grammar, translation and execution.

Capabilities and grammars are built once per API and then shared read-only
across concurrent callers. Parsed queries and results are created per request.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class StatementKind(Enum):
    """Kind of SQL statement accepted by the translator."""
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# HTTP verbs that produce capabilities, in discovery order
READ_VERB = "GET"
WRITE_VERBS = ("POST", "PUT", "PATCH", "DELETE")
SUPPORTED_VERBS = (READ_VERB,) + WRITE_VERBS

# Verbs whose table names carry a verb suffix, and the suffix they carry
VERB_SUFFIXES = {verb: f"_{verb.lower()}" for verb in WRITE_VERBS}


def verb_table_name(base: str, verb: str) -> str:
    """Build the table name for a (resource, verb) pair: ``pet`` / ``pet_put``."""
    verb = verb.upper()
    if verb == READ_VERB:
        return base
    return f"{base}{VERB_SUFFIXES[verb]}"


def strip_verb_suffix(table_name: str, verbs: tuple[str, ...] = WRITE_VERBS) -> str:
    """Remove a trailing write-verb suffix (``pet_post`` -> ``pet``)."""
    for verb in verbs:
        suffix = VERB_SUFFIXES[verb]
        if table_name.endswith(suffix) and len(table_name) > len(suffix):
            return table_name[: -len(suffix)]
    return table_name


@dataclass(frozen=True)
class Parameter:
    """One query-string parameter of an operation."""
    name: str
    type: str = "string"
    location: str = "query"
    required: bool = False
    enum: tuple[str, ...] = ()
    operators: tuple[str, ...] = ("=",)
    maximum: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "in": self.location,
            "required": self.required,
            "enum": list(self.enum),
            "operators": list(self.operators),
        }


@dataclass(frozen=True)
class Capability:
    """One discovered (path, verb) operation of an API."""
    path: str
    method: str
    table_name: str
    base_url: str = ""
    parameters: tuple[Parameter, ...] = ()
    response_columns: tuple[str, ...] = ()
    max_results: int = 0  # 0 = unbounded/unknown
    has_paging: bool = False
    limit_param: Optional[str] = None
    offset_param: Optional[str] = None
    sort_param: Optional[str] = None
    path_parameters: tuple[str, ...] = ()
    body_columns: tuple[str, ...] = ()
    operation_id: str = ""
    summary: str = ""
    api_name: str = ""

    @property
    def url(self) -> str:
        """Base address joined with the path template."""
        return self.base_url.rstrip("/") + "/" + self.path.lstrip("/")

    @property
    def is_read(self) -> bool:
        return self.method == READ_VERB

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict for the front-ends."""
        return {
            "table": self.table_name,
            "api": self.api_name,
            "method": self.method,
            "path": self.path,
            "base_url": self.base_url,
            "operation_id": self.operation_id,
            "summary": self.summary,
            "parameters": [p.to_dict() for p in self.parameters],
            "response_columns": list(self.response_columns),
            "body_columns": list(self.body_columns),
            "path_parameters": list(self.path_parameters),
            "max_results": self.max_results,
            "has_paging": self.has_paging,
            "limit_param": self.limit_param,
            "offset_param": self.offset_param,
            "sort_param": self.sort_param,
        }


@dataclass(frozen=True)
class Grammar:
    """Per-table allow-list of columns, operators, ordering and limits.

    ``filters`` maps each filterable column to the tuple of operators legal on
    it. Every filterable column also appears in ``columns``.
    """
    table_name: str
    verb: str = READ_VERB
    columns: tuple[str, ...] = ()
    filters: dict[str, tuple[str, ...]] = field(default_factory=dict)
    orderable: tuple[str, ...] = ()
    max_limit: int = 1000
    default_limit: int = 100
    has_paging: bool = False
    writable_columns: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    def allows(self, column: str, operator: str) -> bool:
        """Check whether ``column <operator> value`` is legal."""
        allowed = self.filters.get(column)
        if allowed is None:
            return False
        if operator in ("!=", "<>"):
            return "!=" in allowed or "<>" in allowed
        return operator in allowed

    def to_dict(self) -> dict[str, Any]:
        """Render the allow-list for display."""
        return {
            "table": self.table_name,
            "method": self.verb,
            "columns": list(self.columns),
            "where": {column: list(ops) for column, ops in self.filters.items()},
            "order_by": list(self.orderable),
            "limit": {
                "max": self.max_limit,
                "default": self.default_limit,
                "paging": self.has_paging,
            },
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class Condition:
    """One atomic ``column <operator> value`` filter. Conditions are ANDed."""
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class SortField:
    """One ORDER BY entry."""
    column: str
    direction: str = "ASC"  # ASC or DESC

    @property
    def descending(self) -> bool:
        return self.direction == "DESC"


@dataclass
class ParsedQuery:
    """Validated intermediate form of one SQL statement."""
    kind: StatementKind
    table: str
    columns: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)  # INSERT, aligned with columns
    updates: dict[str, Any] = field(default_factory=dict)  # UPDATE SET map
    conditions: list[Condition] = field(default_factory=list)
    order_by: list[SortField] = field(default_factory=list)
    limit: int = 0
    offset: int = 0
    explicit_limit: bool = False

    @property
    def body(self) -> dict[str, Any]:
        """INSERT body built by zipping columns with values in order."""
        return dict(zip(self.columns, self.values))


@dataclass
class QueryResult:
    """Outcome of executing one query."""
    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, status_code: Optional[int] = None) -> "QueryResult":
        return cls(error=message, status_code=status_code)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"data": self.rows, "total": self.total}
        if self.error:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
