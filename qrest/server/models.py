# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Pydantic models for API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /query."""

    sql: str = Field(..., min_length=1, description="One SQL statement")


class QueryResponse(BaseModel):
    """Rows of an executed query, or the reason it was rejected."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    element: Optional[str] = Field(
        default=None,
        description="Offending token, column or operator of a rejected query",
    )
    allowed: Optional[list[Any]] = Field(
        default=None,
        description="Allowed alternatives to the offending element",
    )


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    tables: int = 0
    failed_apis: dict[str, str] = Field(default_factory=dict)
