"""
API v1 router aggregation.
"""
from fastapi import APIRouter
from cadence.api.v1.endpoints import concepts, review, stats

api_router = APIRouter()

# Include all endpoint routers
# Note: Each router already defines its own prefix, so we don't add another one here
api_router.include_router(review.router)
api_router.include_router(concepts.router)
api_router.include_router(concepts.phrasings_router)
api_router.include_router(stats.router)
