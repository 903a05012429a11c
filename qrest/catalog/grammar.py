# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Derive the SQL grammar a capability can legally express.

``generate_grammar`` is a pure function: the same capability always yields
an equal grammar.
"""

from qrest.catalog.operators import (
    RANGE_OPERATORS,
    NUMERIC_TYPES,
    is_pagination_param,
    is_sort_param,
    strip_operator_suffix,
)
from qrest.core.models import Capability, Grammar

DEFAULT_MAX_LIMIT = 1000
DEFAULT_LIMIT = 100

# Verbs that address an existing resource and so need an identifier
_TARGETED_VERBS = ("PUT", "PATCH", "DELETE")


def _append(items: list[str], item: str) -> None:
    if item not in items:
        items.append(item)


def generate_grammar(
    capability: Capability,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = DEFAULT_MAX_LIMIT,
) -> Grammar:
    """
    Build the allow-list for one capability.

    Args:
        capability: The discovered operation
        default_limit: Row limit applied when a query has no LIMIT
        max_limit: Limit bound used when the capability declares none

    Returns:
        Grammar with columns, per-column operators, ordering and limits
    """
    columns: list[str] = []
    orderable: list[str] = []
    for column in capability.response_columns:
        _append(columns, column)
        _append(orderable, column)

    filters: dict[str, list[str]] = {}
    for param in capability.parameters:
        if is_pagination_param(param.name) or param.name == capability.sort_param:
            continue
        column = strip_operator_suffix(param.name)
        if not column:
            continue
        operators = filters.setdefault(column, [])
        for op in param.operators or ("=",):
            _append(operators, op)
        if not capability.response_columns:
            _append(orderable, column)

    if capability.method in _TARGETED_VERBS:
        for column in ("id",) + capability.path_parameters:
            _append(filters.setdefault(column, []), "=")
    else:
        for column in capability.path_parameters:
            _append(filters.setdefault(column, []), "=")

    # Filterable columns share the projectable namespace
    for column in filters:
        _append(columns, column)

    writable: list[str] = []
    for column in capability.body_columns:
        _append(writable, column)
        if capability.method != "GET":
            _append(columns, column)

    effective_max = capability.max_results or max_limit
    return Grammar(
        table_name=capability.table_name,
        verb=capability.method,
        columns=tuple(columns),
        filters={column: tuple(ops) for column, ops in filters.items()},
        orderable=tuple(orderable),
        max_limit=effective_max,
        default_limit=min(default_limit, effective_max),
        has_paging=capability.has_paging,
        writable_columns=tuple(writable),
        suggestions=tuple(generate_suggestions(capability)),
    )


def generate_suggestions(capability: Capability) -> list[str]:
    """Advisory text describing API additions that would widen the grammar."""
    suggestions: list[str] = []

    for param in capability.parameters:
        if is_pagination_param(param.name) or param.name == capability.sort_param:
            continue
        column = strip_operator_suffix(param.name)
        operators = set(param.operators)

        is_numeric = param.type in NUMERIC_TYPES
        if is_numeric or "date" in param.name.lower():
            if not operators & set(RANGE_OPERATORS):
                _append(
                    suggestions,
                    f"Add range filtering for '{column}' (e.g., {column}_gt, {column}_lt parameters)",
                )

        if param.type == "string" and "LIKE" not in operators:
            _append(
                suggestions,
                f"Add partial text search for '{column}' (e.g., {column}_like parameter)",
            )

        if param.enum and "IN" not in operators:
            _append(
                suggestions,
                f"Add multiple value filtering for '{column}' (e.g., {column}_in parameter)",
            )

    if not capability.has_paging:
        _append(suggestions, "Add pagination support (e.g., 'limit' and 'offset' or 'page' parameters)")

    if capability.parameters and not any(is_sort_param(p.name) for p in capability.parameters):
        _append(suggestions, "Add sorting support (e.g., 'sort_by' and 'order' parameters)")

    return suggestions
