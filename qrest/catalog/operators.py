# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Naming-convention heuristics for REST query parameters.

All suffix-to-operator knowledge lives in ``OPERATOR_SUFFIXES`` so that
discovery, grammar derivation and execution agree on it. Everything here is
approximate by nature: ``age_gt`` is assumed to mean ``age > value``.
"""

from typing import Optional

# Parameter-name suffix token -> SQL operator it expresses
OPERATOR_SUFFIXES: dict[str, str] = {
    "gt": ">",
    "greater": ">",
    "gte": ">=",
    "min": ">=",
    "lt": "<",
    "less": "<",
    "lte": "<=",
    "max": "<=",
    "ne": "!=",
    "not": "!=",
    "like": "LIKE",
    "search": "LIKE",
    "contains": "LIKE",
    "in": "IN",
    "between": "BETWEEN",
}

RANGE_OPERATORS = (">", ">=", "<", "<=")
NUMERIC_TYPES = ("integer", "number")

# Substrings that make a string parameter look like a text search
SEARCH_HINTS = ("search", "query", "filter", "name")

# Checked in this order: limit-like names win over offset-like names
LIMIT_HINTS = ("limit", "size", "per_page")
OFFSET_HINTS = ("offset", "page")
SORT_HINTS = ("sort", "order")


def operator_suffix(name: str) -> Optional[str]:
    """Return the suffix token of ``name`` (``age_gte`` -> ``gte``), if known."""
    lowered = name.lower()
    head, sep, token = lowered.rpartition("_")
    if sep and head and token in OPERATOR_SUFFIXES:
        return token
    return None


def strip_operator_suffix(name: str) -> str:
    """Derive the column a parameter filters on (``age_gt`` -> ``age``).

    Case of the remaining name is preserved.
    """
    token = operator_suffix(name)
    if token is None:
        return name
    return name[: -(len(token) + 1)]


def _is_temporal(name: str) -> bool:
    lowered = name.lower()
    return "date" in lowered or "time" in lowered


def infer_operators(name: str, param_type: str) -> tuple[str, ...]:
    """Infer the comparison operators a parameter supports.

    Exact match ``=`` is always included. A recognised suffix implies its
    operator. Numeric and date-like parameters without a range suffix are
    assumed to accept every range comparison. String parameters whose name
    suggests searching accept LIKE/ILIKE.
    """
    operators = ["="]

    def add(*ops: str) -> None:
        for op in ops:
            if op not in operators:
                operators.append(op)

    token = operator_suffix(name)
    implied = OPERATOR_SUFFIXES.get(token) if token else None

    if param_type in NUMERIC_TYPES or _is_temporal(name):
        if implied in RANGE_OPERATORS or implied == "BETWEEN":
            add(implied)
        elif implied is None:
            add(*RANGE_OPERATORS)

    if param_type == "string":
        lowered = name.lower()
        if implied == "LIKE" or any(hint in lowered for hint in SEARCH_HINTS):
            add("LIKE", "ILIKE")

    if implied == "IN":
        add("IN")
    if implied == "!=":
        add("!=", "<>")
    if implied == "LIKE":
        add("LIKE", "ILIKE")

    return tuple(operators)


def is_limit_param(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in LIMIT_HINTS)


def is_offset_param(name: str) -> bool:
    lowered = name.lower()
    return not is_limit_param(name) and any(hint in lowered for hint in OFFSET_HINTS)


def is_pagination_param(name: str) -> bool:
    """Whether a parameter controls result size or offset rather than filtering."""
    return is_limit_param(name) or is_offset_param(name)


def is_sort_param(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in SORT_HINTS)


def param_matches_operator(param_name: str, column: str, operator: str) -> bool:
    """Whether ``param_name`` is ``<column>_<suffix>`` with a suffix for ``operator``.

    ``<>`` is treated as ``!=`` and ``ILIKE`` as ``LIKE``.
    """
    lowered = param_name.lower()
    prefix = column.lower() + "_"
    if not lowered.startswith(prefix):
        return False
    token = lowered[len(prefix):]
    wanted = {"<>": "!=", "ILIKE": "LIKE"}.get(operator, operator)
    return OPERATOR_SUFFIXES.get(token) == wanted
