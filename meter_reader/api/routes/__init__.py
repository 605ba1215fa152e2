"""API routes package."""

from fastapi import APIRouter

from meter_reader.api.routes import health, readings

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(readings.router)
