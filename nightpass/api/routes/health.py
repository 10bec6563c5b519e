from fastapi import APIRouter, Depends, Response

from nightpass.api.deps import get_engine
from nightpass.engine import EntitlementEngine


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, engine: EntitlementEngine = Depends(get_engine)) -> dict:
    """Readiness probe - returns 503 if the store is unreachable."""
    if not engine.access.store.ping():
        response.status_code = 503
        return {"status": "not_ready", "error": "store_unavailable"}
    return {"status": "ready", "mode": engine.runtime.get().mode}
