# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Grammar, capability and config endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from qrest.catalog.gateway import QueryGateway
from qrest.server.routes.queries import get_gateway

router = APIRouter()


@router.get("/grammar")
def get_grammar(
    table: Optional[str] = None,
    gateway: QueryGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Allowed columns, operators, ordering and limits, per table.

    Raises:
        404: Table not found
    """
    try:
        return gateway.grammar_overview(table)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/capabilities")
def get_capabilities(gateway: QueryGateway = Depends(get_gateway)) -> dict[str, Any]:
    """Discovered operations, keyed by table name."""
    gateway.load()
    return {table: capability.to_dict() for table, capability in gateway.capabilities.items()}


@router.get("/config")
def get_config(gateway: QueryGateway = Depends(get_gateway)) -> dict[str, Any]:
    """Active configuration without credentials."""
    return gateway.config.redacted()
