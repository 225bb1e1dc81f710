"""
API routes package.
"""

from fastapi import APIRouter

from walle_e2e.api.routes import flows, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(flows.router, prefix="/flows", tags=["Flows"])
