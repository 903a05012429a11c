# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""SQL query endpoint."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from qrest.catalog.executor import TranslationError
from qrest.catalog.gateway import QueryGateway
from qrest.catalog.translator import ValidationError
from qrest.server.models import QueryRequest, QueryResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway(request: Request) -> QueryGateway:
    """Dependency to get the query gateway from app state."""
    return request.app.state.gateway


@router.post("/query", response_model=QueryResponse)
def run_query(
    body: QueryRequest,
    gateway: QueryGateway = Depends(get_gateway),
):
    """Validate and execute one SQL statement.

    Rejected statements return 400 with the offending element, the allowed
    alternatives and the table's suggestions. Failures reported by the
    upstream API are returned with status 200 and an ``error`` field.
    """
    try:
        result = gateway.execute(body.sql)
    except ValidationError as e:
        logger.info(f"Rejected query: {e}")
        response = QueryResponse(
            error=str(e),
            element=e.element,
            allowed=e.allowed,
            suggestions=gateway.suggestions_for(body.sql),
        )
        return JSONResponse(status_code=400, content=response.model_dump(exclude_none=True))
    except (TranslationError, LookupError) as e:
        logger.info(f"Rejected query: {e}")
        response = QueryResponse(error=str(e), suggestions=gateway.suggestions_for(body.sql))
        return JSONResponse(status_code=400, content=response.model_dump(exclude_none=True))

    return QueryResponse(
        data=result.rows,
        total=result.total,
        error=result.error,
        warnings=result.warnings,
    )
