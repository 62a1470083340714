"""Destructive maintenance routes."""
from fastapi import APIRouter, HTTPException, Query

from delivery_ledger.services.record_store import record_store

router = APIRouter(prefix="/data", tags=["data"])


@router.delete("")
def clear_all_data(confirm: bool = Query(default=False)) -> dict:
    """Erase every record and occurrence. Irreversible; requires ``confirm=true``."""
    if not confirm:
        raise HTTPException(
            status_code=400,
            detail="Clearing all data is irreversible; repeat the request with confirm=true",
        )
    record_store.clear_all()
    return {"message": "All records and occurrences were deleted"}
