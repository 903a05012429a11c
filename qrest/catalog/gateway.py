# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Multi-API query context.

The gateway discovers every configured API once, derives a grammar per
table, and routes each SQL statement to the table whose verb matches the
statement kind.

Usage:
    from qrest.catalog.gateway import QueryGateway
    from qrest.core.config import Config

    with QueryGateway(Config.from_yaml("qrest.yaml")) as gateway:
        result = gateway.execute("SELECT * FROM findByStatus WHERE status = 'sold'")
"""

import dataclasses
import logging
from typing import Any, Optional

from qrest.catalog.discovery import (
    DiscoveryError,
    load_openapi_spec,
    parse_capabilities,
    resolve_base_url,
)
from qrest.catalog.executor import RESTExecutor
from qrest.catalog.grammar import generate_grammar
from qrest.catalog.translator import ValidationError, parse_sql, peek_statement
from qrest.core.config import APIConfig, Config
from qrest.core.models import (
    Capability,
    Grammar,
    ParsedQuery,
    QueryResult,
    StatementKind,
    verb_table_name,
)

logger = logging.getLogger(__name__)

# Table verbs each statement kind may be routed to, in preference order
_ROUTES: dict[StatementKind, tuple[str, ...]] = {
    StatementKind.SELECT: ("GET",),
    StatementKind.INSERT: ("POST",),
    StatementKind.UPDATE: ("PATCH", "PUT"),
    StatementKind.DELETE: ("DELETE",),
}


class QueryGateway:
    """
    Holds the capabilities, grammars and executors of all configured APIs.

    Discovery runs once, on ``load()`` or on first use. An API whose
    description cannot be loaded is recorded in ``failures`` and skipped;
    the others stay usable.
    """

    def __init__(self, config: Config):
        self.config = config
        self.capabilities: dict[str, Capability] = {}
        self.grammars: dict[str, Grammar] = {}
        self.failures: dict[str, str] = {}
        self._executors: dict[str, RESTExecutor] = {}
        self._loaded = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close every executor's HTTP client."""
        for executor in self._executors.values():
            executor.close()

    def _executor_for(self, api: APIConfig) -> RESTExecutor:
        executor = self._executors.get(api.name)
        if executor is None:
            executor = RESTExecutor(
                auth_type=api.auth.type,
                auth_token=api.auth.token,
                api_key_header=api.auth.header,
                timeout=self.config.timeout_for(api),
                strict_pagination=self.config.defaults.strict_pagination,
            )
            self._executors[api.name] = executor
        return executor

    def load(self) -> "QueryGateway":
        """Discover all APIs and derive their grammars."""
        if self._loaded:
            return self
        namespaced = len(self.config.apis) > 1

        for api in self.config.apis:
            try:
                capabilities = self._discover(api)
            except DiscoveryError as e:
                logger.warning(f"Discovery failed for API '{api.name}': {e}")
                self.failures[api.name] = str(e)
                continue

            for capability in capabilities:
                table = f"{api.name}_{capability.table_name}" if namespaced else capability.table_name
                capability = dataclasses.replace(capability, table_name=table, api_name=api.name)
                self.capabilities[table] = capability
                self.grammars[table] = generate_grammar(
                    capability,
                    default_limit=self.config.defaults.default_limit,
                    max_limit=self.config.defaults.max_limit,
                )
            logger.info(f"Loaded {len(capabilities)} tables from API '{api.name}'")

        self._loaded = True
        return self

    def _discover(self, api: APIConfig) -> list[Capability]:
        executor = self._executor_for(api)
        spec = load_openapi_spec(
            spec_url=api.spec_url,
            spec_path=api.spec_path,
            spec_inline=api.spec_inline,
            headers=executor.build_headers(),
            timeout=self.config.timeout_for(api),
        )
        base_url = api.base_url or resolve_base_url(spec, api.spec_url)
        return parse_capabilities(spec, base_url=base_url)

    @property
    def tables(self) -> list[str]:
        self.load()
        return list(self.capabilities)

    def resolve_table(self, sql: str) -> str:
        """
        Find the table a statement addresses.

        SELECT uses the name as written. Writes try the verb-suffixed names
        (UPDATE prefers PATCH over PUT), then the name as written when it
        already names a table of a matching verb.

        Raises:
            ValidationError: If the statement cannot be parsed
            LookupError: If no table of a matching verb exists
        """
        self.load()
        kind, table = peek_statement(sql)
        verbs = _ROUTES[kind]

        candidates = [verb_table_name(table, verb) for verb in verbs] + [table]
        for name in candidates:
            capability = self.capabilities.get(name)
            if capability is not None and capability.method in verbs:
                return name

        available = sorted(
            name for name, capability in self.capabilities.items() if capability.method in verbs
        )
        raise LookupError(
            f"No {kind.value} table '{table}'. Available tables: {', '.join(available) or '(none)'}"
        )

    def parse(self, sql: str) -> tuple[Capability, ParsedQuery]:
        """Route and validate a statement without executing it."""
        table = self.resolve_table(sql)
        return self.capabilities[table], parse_sql(self.grammars[table], sql)

    def execute(self, sql: str) -> QueryResult:
        """
        Route, validate and execute one statement.

        Raises:
            ValidationError, TranslationError, LookupError: Before any HTTP call
        """
        capability, query = self.parse(sql)
        api = self.config.get_api(capability.api_name)
        return self._executor_for(api).execute_query(capability, query)

    def suggestions_for(self, sql: str) -> list[str]:
        """Suggestions of the table a statement addresses, if it can be routed."""
        try:
            table = self.resolve_table(sql)
        except (LookupError, ValidationError):
            return []
        return list(self.grammars[table].suggestions)

    def grammar_overview(self, table: Optional[str] = None) -> dict[str, dict[str, Any]]:
        """Grammars of all tables, or of one table, keyed by table name."""
        self.load()
        if table is not None:
            if table not in self.grammars:
                raise LookupError(
                    f"Table '{table}' not found. Available tables: {', '.join(sorted(self.grammars))}"
                )
            return {table: self.grammars[table].to_dict()}
        return {name: grammar.to_dict() for name, grammar in self.grammars.items()}
