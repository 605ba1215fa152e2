"""Health check route."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy", "service": "meter-reader"}
