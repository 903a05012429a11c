# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""qrest - SQL over REST APIs described by OpenAPI documents.

An API description is turned into a set of virtual tables. SQL statements
against those tables are validated against a grammar derived from what each
operation can express, then executed as single HTTP calls.

Submodules:
- core: Data model and configuration
- catalog: Discovery, grammar derivation, SQL translation and execution
- server: HTTP front-end

Main entry points:
- parse_capabilities: OpenAPI document -> Capabilities
- generate_grammar: Capability -> Grammar
- parse_sql: Grammar + SQL text -> ParsedQuery
- execute_query: Capability + ParsedQuery -> QueryResult
- QueryGateway: all of the above for every configured API
"""

__version__ = "0.1.0"

from qrest.catalog.discovery import DiscoveryError, load_openapi_spec, parse_capabilities
from qrest.catalog.executor import RESTExecutor, TranslationError, execute_query
from qrest.catalog.gateway import QueryGateway
from qrest.catalog.grammar import generate_grammar
from qrest.catalog.translator import ValidationError, parse_sql
from qrest.core.config import Config
from qrest.core.models import (
    Capability,
    Condition,
    Grammar,
    Parameter,
    ParsedQuery,
    QueryResult,
    SortField,
    StatementKind,
)

__all__ = [
    "__version__",
    # Operations
    "load_openapi_spec",
    "parse_capabilities",
    "generate_grammar",
    "parse_sql",
    "execute_query",
    "QueryGateway",
    "RESTExecutor",
    "Config",
    # Errors
    "DiscoveryError",
    "TranslationError",
    "ValidationError",
    # Models
    "Capability",
    "Condition",
    "Grammar",
    "Parameter",
    "ParsedQuery",
    "QueryResult",
    "SortField",
    "StatementKind",
]
