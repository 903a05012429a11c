# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""API discovery, grammar derivation, SQL translation and execution."""

from .discovery import (
    DiscoveryError,
    extract_table_name,
    load_openapi_spec,
    parse_capabilities,
    resolve_base_url,
)
from .grammar import generate_grammar, generate_suggestions
from .translator import ValidationError, parse_sql, peek_statement
from .executor import (
    RESTExecutor,
    TranslationError,
    http_error_hint,
    execute_query,
)
from .gateway import QueryGateway

__all__ = [
    # Discovery
    "DiscoveryError",
    "extract_table_name",
    "load_openapi_spec",
    "parse_capabilities",
    "resolve_base_url",
    # Grammar
    "generate_grammar",
    "generate_suggestions",
    # Translator
    "ValidationError",
    "parse_sql",
    "peek_statement",
    # Executor
    "RESTExecutor",
    "TranslationError",
    "http_error_hint",
    "execute_query",
    # Gateway
    "QueryGateway",
]
