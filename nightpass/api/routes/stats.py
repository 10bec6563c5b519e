from fastapi import APIRouter, Depends, HTTPException

from nightpass.api.deps import get_engine
from nightpass.core.errors import StoreError
from nightpass.engine import EntitlementEngine


router = APIRouter()


@router.get("/stats")
def stats(engine: EntitlementEngine = Depends(get_engine)) -> dict:
    """User counts for the admin panel."""
    try:
        return engine.stats()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
