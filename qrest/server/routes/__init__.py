# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""API route modules."""

from qrest.server.routes.catalog import router as catalog_router
from qrest.server.routes.queries import router as queries_router

__all__ = ["catalog_router", "queries_router"]
