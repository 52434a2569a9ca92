"""
API v1 router aggregation.
"""
from fastapi import APIRouter

from app.api.v1 import analysis, backup, items

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(items.router)
api_router.include_router(analysis.router)
api_router.include_router(backup.router)

__all__ = ["api_router"]
