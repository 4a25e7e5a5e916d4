from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from .. import store

router = APIRouter(prefix="/api/summary", tags=["summary"])


@router.get("/customers", response_model=List[dict])
def summary_customers(
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
):
    """Per-customer hour totals; both date bounds are inclusive string comparisons."""
    return store.summarize_customers(db, date_from or None, date_to or None)
