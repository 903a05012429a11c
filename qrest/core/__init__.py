# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Core models and configuration."""

from .config import (
    APIConfig,
    AuthConfig,
    Config,
    DefaultsConfig,
    LoggingConfig,
    ServerConfig,
)
from .models import (
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
    # Config
    "APIConfig",
    "AuthConfig",
    "Config",
    "DefaultsConfig",
    "LoggingConfig",
    "ServerConfig",
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
