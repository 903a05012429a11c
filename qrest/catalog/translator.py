# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Parse and validate SQL against a per-table grammar.

SQL text is parsed with SQLGlot; the resulting tree is then walked by a
straight-line validation pipeline per statement kind. Only the restricted
dialect a REST operation can express is accepted: one table, conjunctive
atomic conditions, ORDER BY over plain columns, LIMIT/OFFSET.

Usage:
    from qrest.catalog.translator import parse_sql

    query = parse_sql(grammar, "SELECT * FROM findByStatus WHERE status = 'sold' LIMIT 5")
"""

import re
from typing import Any, Iterable, Optional

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from qrest.core.models import (
    Condition,
    Grammar,
    ParsedQuery,
    SortField,
    StatementKind,
    strip_verb_suffix,
)

SUPPORTED_OPERATORS = ("=", ">", ">=", "<", "<=", "!=", "<>", "LIKE", "ILIKE", "BETWEEN", "IN")

_COMPARISONS: dict[type, str] = {
    exp.EQ: "=",
    exp.NEQ: "!=",
    exp.GT: ">",
    exp.GTE: ">=",
    exp.LT: "<",
    exp.LTE: "<=",
    exp.Like: "LIKE",
    exp.ILike: "ILIKE",
}

_STATEMENT_KINDS: dict[type, StatementKind] = {
    exp.Select: StatementKind.SELECT,
    exp.Insert: StatementKind.INSERT,
    exp.Update: StatementKind.UPDATE,
    exp.Delete: StatementKind.DELETE,
}

_UNSUPPORTED: tuple[tuple[type, str], ...] = (
    (exp.Join, "Joins across resources are"),
    (exp.Subquery, "Subqueries are"),
    (exp.With, "WITH clauses are"),
    (exp.Group, "GROUP BY is"),
    (exp.Having, "HAVING is"),
    (exp.Distinct, "DISTINCT is"),
)

_INTEGER = re.compile(r"^[+-]?\d+$")
_FLOAT = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


class ValidationError(Exception):
    """Raised when SQL text falls outside the derived grammar.

    Attributes:
        element: The offending token, column or operator
        allowed: The allow-listed alternatives, where known
    """

    def __init__(self, message: str, element: Optional[str] = None, allowed: Optional[Iterable[Any]] = None):
        if allowed is not None:
            allowed = list(allowed)
            message = f"{message}. Allowed: {', '.join(str(a) for a in allowed) or '(none)'}"
        super().__init__(message)
        self.element = element
        self.allowed = allowed


def coerce_value(text: str) -> Any:
    """Integer, then float, then the string itself."""
    if _INTEGER.match(text):
        return int(text)
    if _FLOAT.match(text):
        return float(text)
    return text


def _parse_statement(sql: str) -> exp.Expression:
    text = (sql or "").strip()
    if not text:
        raise ValidationError("Empty SQL statement")
    try:
        statements = [s for s in sqlglot.parse(text) if s is not None]
    except SqlglotError as e:
        raise ValidationError(f"Malformed SQL: {e}") from e
    if len(statements) != 1:
        raise ValidationError("Exactly one SQL statement is supported per query")
    return statements[0]


def _statement_kind(statement: exp.Expression) -> StatementKind:
    kind = _STATEMENT_KINDS.get(type(statement))
    if kind is None:
        raise ValidationError(
            "Unsupported SQL statement",
            element=statement.key.upper(),
            allowed=[k.value for k in StatementKind],
        )
    return kind


def _table_name(table: exp.Table) -> str:
    if table.args.get("db"):
        return f"{table.db}.{table.name}"
    return table.name


def _target_table(statement: exp.Expression) -> str:
    tables = list(statement.find_all(exp.Table))
    if not tables:
        raise ValidationError("No target table found in statement")
    if len(tables) > 1:
        raise ValidationError(
            "Joins across resources are not supported",
            element=", ".join(_table_name(t) for t in tables),
        )
    return _table_name(tables[0])


def peek_statement(sql: str) -> tuple[StatementKind, str]:
    """Return the statement kind and target table without validating further."""
    statement = _parse_statement(sql)
    return _statement_kind(statement), _target_table(statement)


def _literal_value(node: Optional[exp.Expression]) -> Any:
    if isinstance(node, exp.Literal):
        return coerce_value(node.this)
    if isinstance(node, exp.Neg) and isinstance(node.this, exp.Literal) and not node.this.is_string:
        value = coerce_value(node.this.this)
        if isinstance(value, (int, float)):
            return -value
    if isinstance(node, exp.Boolean):
        return bool(node.this)
    if isinstance(node, exp.Null):
        return None
    text = node.sql() if node is not None else ""
    # Double quotes parse as an identifier, not a string
    if isinstance(node, exp.Column) and isinstance(node.this, exp.Identifier) and node.this.quoted:
        raise ValidationError(f"String values need single quotes, got '{text}'", element=text)
    raise ValidationError(f"Only literal values are supported, got '{text}'", element=text)


def _split_conjunction(node: exp.Expression) -> list[exp.Expression]:
    if isinstance(node, exp.And):
        return _split_conjunction(node.this) + _split_conjunction(node.expression)
    if isinstance(node, exp.Or):
        raise ValidationError("OR conditions are not supported", element="OR")
    if isinstance(node, exp.Paren):
        raise ValidationError("Parenthesized conditions are not supported", element=node.sql())
    if isinstance(node, exp.Not):
        raise ValidationError("NOT conditions are not supported", element="NOT")
    return [node]


class SQLTranslator:
    """
    Validates SQL statements against one grammar.

    Each statement kind is a straight-line pipeline: table, then clause by
    clause, failing fast with a ValidationError that names the offending
    element and the allowed alternatives.
    """

    def __init__(self, grammar: Grammar):
        self.grammar = grammar

    def parse(self, sql: str) -> ParsedQuery:
        statement = _parse_statement(sql)
        kind = _statement_kind(statement)
        self._reject_unsupported(statement)
        table = _target_table(statement)

        if kind is StatementKind.SELECT:
            return self._parse_select(statement, table)
        if kind is StatementKind.INSERT:
            return self._parse_insert(statement, table)
        if kind is StatementKind.UPDATE:
            return self._parse_update(statement, table)
        return self._parse_delete(statement, table)

    # ------------------------------------------------------------------
    # Statement pipelines
    # ------------------------------------------------------------------

    def _parse_select(self, statement: exp.Select, table: str) -> ParsedQuery:
        if table != self.grammar.table_name:
            raise ValidationError(
                f"Table '{table}' not found", element=table, allowed=[self.grammar.table_name]
            )

        columns = self._parse_projection(statement, table)
        query = ParsedQuery(kind=StatementKind.SELECT, table=table, columns=columns)
        query.conditions = self._parse_where(statement, table)
        query.order_by = self._parse_order_by(statement, table)
        query.limit, query.offset, query.explicit_limit = self._parse_limit(statement)
        return query

    def _parse_insert(self, statement: exp.Insert, table: str) -> ParsedQuery:
        self._check_write_table(table, ("POST",), "INSERT")

        schema = statement.this
        if not isinstance(schema, exp.Schema):
            raise ValidationError("INSERT requires an explicit column list", element=table)
        columns = [ident.name for ident in schema.expressions]

        values_node = statement.expression
        if not isinstance(values_node, exp.Values):
            raise ValidationError("INSERT requires a VALUES list")
        rows = values_node.expressions
        if len(rows) != 1:
            raise ValidationError(f"INSERT supports exactly one row, got {len(rows)}")
        row = rows[0]
        items = row.expressions if isinstance(row, exp.Tuple) else [row]

        if len(items) != len(columns):
            raise ValidationError(
                f"Column count ({len(columns)}) doesn't match value count ({len(items)})"
            )
        for column in columns:
            self._check_writable(column)
        if len(set(columns)) != len(columns):
            raise ValidationError("Duplicate column in INSERT column list")

        return ParsedQuery(
            kind=StatementKind.INSERT,
            table=table,
            columns=columns,
            values=[_literal_value(item) for item in items],
        )

    def _parse_update(self, statement: exp.Update, table: str) -> ParsedQuery:
        self._check_write_table(table, ("PUT", "PATCH"), "UPDATE")

        updates: dict[str, Any] = {}
        for assignment in statement.expressions:
            if not isinstance(assignment, exp.EQ) or not isinstance(assignment.this, exp.Column):
                raise ValidationError(f"Invalid SET clause: {assignment.sql()}", element=assignment.sql())
            column = assignment.this.name
            self._check_writable(column)
            updates[column] = _literal_value(assignment.expression)
        if not updates:
            raise ValidationError("UPDATE requires at least one SET assignment")

        query = ParsedQuery(kind=StatementKind.UPDATE, table=table, updates=updates)
        query.conditions = self._parse_where(statement, table)
        return query

    def _parse_delete(self, statement: exp.Delete, table: str) -> ParsedQuery:
        self._check_write_table(table, ("DELETE",), "DELETE")

        conditions = self._parse_where(statement, table)
        if not conditions:
            raise ValidationError("DELETE without WHERE clause is not allowed for safety", element="WHERE")
        return ParsedQuery(kind=StatementKind.DELETE, table=table, conditions=conditions)

    # ------------------------------------------------------------------
    # Clauses
    # ------------------------------------------------------------------

    @staticmethod
    def _reject_unsupported(statement: exp.Expression) -> None:
        for node_type, label in _UNSUPPORTED:
            node = statement.find(node_type)
            if node is not None:
                raise ValidationError(f"{label} not supported", element=node.sql())
        for select in statement.find_all(exp.Select):
            if select is not statement:
                raise ValidationError("Subqueries are not supported", element=select.sql())

    def _check_write_table(self, table: str, verbs: tuple[str, ...], statement: str) -> None:
        expected = strip_verb_suffix(self.grammar.table_name, verbs)
        if table not in (expected, self.grammar.table_name):
            raise ValidationError(
                f"Table '{table}' not found for {statement}", element=table, allowed=[expected]
            )

    def _check_writable(self, column: str) -> None:
        if column not in self.grammar.columns:
            raise ValidationError(
                f"Column '{column}' not available",
                element=column,
                allowed=self.grammar.writable_columns or self.grammar.columns,
            )

    def _column(self, node: exp.Expression, table: str, role: str) -> str:
        if not isinstance(node, exp.Column) or isinstance(node.this, exp.Star):
            text = node.sql() if node is not None else ""
            raise ValidationError(f"Only plain column references are supported in {role}, got '{text}'", element=text)
        if node.table and node.table != table:
            raise ValidationError(f"Unknown table qualifier '{node.table}'", element=node.table, allowed=[table])
        return node.name

    def _parse_projection(self, statement: exp.Select, table: str) -> list[str]:
        projections = statement.expressions
        if any(isinstance(p, exp.Star) for p in projections):
            if len(projections) != 1:
                raise ValidationError("'*' cannot be combined with other columns", element="*")
            return list(self.grammar.columns)

        columns = []
        for projection in projections:
            column = self._column(projection, table, "SELECT")
            if column not in self.grammar.columns:
                raise ValidationError(
                    f"Column '{column}' not available", element=column, allowed=self.grammar.columns
                )
            columns.append(column)
        return columns

    def _parse_where(self, statement: exp.Expression, table: str) -> list[Condition]:
        where = statement.args.get("where")
        if where is None:
            return []
        conditions: list[Condition] = []
        for atom in _split_conjunction(where.this):
            conditions.extend(self._parse_condition(atom, table))
        return conditions

    def _filterable(self, node: exp.Expression, table: str) -> str:
        column = self._column(node, table, "WHERE")
        if column not in self.grammar.filters:
            raise ValidationError(
                f"Column '{column}' not available for filtering",
                element=column,
                allowed=list(self.grammar.filters),
            )
        return column

    def _check_operator(self, column: str, operator: str) -> None:
        if not self.grammar.allows(column, operator):
            raise ValidationError(
                f"Operator '{operator}' not supported for column '{column}'",
                element=operator,
                allowed=self.grammar.filters.get(column, ()),
            )

    def _parse_condition(self, node: exp.Expression, table: str) -> list[Condition]:
        if isinstance(node, exp.Between):
            column = self._filterable(node.this, table)
            allowed = self.grammar.allows(column, "BETWEEN") or (
                self.grammar.allows(column, ">=") and self.grammar.allows(column, "<=")
            )
            if not allowed:
                raise ValidationError(
                    f"BETWEEN not supported for column '{column}'",
                    element="BETWEEN",
                    allowed=self.grammar.filters.get(column, ()),
                )
            low = _literal_value(node.args.get("low"))
            high = _literal_value(node.args.get("high"))
            return [Condition(column, ">=", low), Condition(column, "<=", high)]

        if isinstance(node, exp.In):
            column = self._filterable(node.this, table)
            self._check_operator(column, "IN")
            return [Condition(column, "IN", [_literal_value(v) for v in node.expressions])]

        operator = _COMPARISONS.get(type(node))
        if operator is None:
            raise ValidationError(f"Unsupported condition: {node.sql()}", element=node.sql(), allowed=SUPPORTED_OPERATORS)

        column = self._filterable(node.this, table)
        self._check_operator(column, operator)
        return [Condition(column, operator, _literal_value(node.expression))]

    def _parse_order_by(self, statement: exp.Select, table: str) -> list[SortField]:
        order = statement.args.get("order")
        if order is None:
            return []

        fields = []
        for ordered in order.expressions:
            node = ordered.this if isinstance(ordered, exp.Ordered) else ordered
            column = self._column(node, table, "ORDER BY")
            if column not in self.grammar.orderable:
                raise ValidationError(
                    f"Column '{column}' not available for ordering",
                    element=column,
                    allowed=self.grammar.orderable,
                )
            direction = "DESC" if ordered.args.get("desc") else "ASC"
            fields.append(SortField(column, direction))
        return fields

    def _parse_limit(self, statement: exp.Select) -> tuple[int, int, bool]:
        limit = self.grammar.default_limit
        explicit = False

        limit_node = statement.args.get("limit")
        if limit_node is not None:
            value = limit_node.expression if limit_node.expression is not None else limit_node.this
            limit = self._non_negative(value, "LIMIT")
            explicit = True
            if limit > self.grammar.max_limit:
                raise ValidationError(
                    f"LIMIT {limit} exceeds maximum allowed limit of {self.grammar.max_limit}",
                    element=str(limit),
                )

        offset = 0
        offset_node = statement.args.get("offset")
        if offset_node is not None:
            value = offset_node.expression if offset_node.expression is not None else offset_node.this
            offset = self._non_negative(value, "OFFSET")

        return limit, offset, explicit

    @staticmethod
    def _non_negative(node: Optional[exp.Expression], clause: str) -> int:
        try:
            value = _literal_value(node)
        except ValidationError:
            value = None
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            text = node.sql() if node is not None else ""
            raise ValidationError(f"Invalid {clause} value: {text}", element=text)
        return value


def parse_sql(grammar: Grammar, sql: str) -> ParsedQuery:
    """Parse ``sql`` against ``grammar``; raise ValidationError if it falls outside."""
    return SQLTranslator(grammar).parse(sql)
