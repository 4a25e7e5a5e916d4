from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from .. import store
from ..utils.schemas import MAX_ID, IdPath, TxIn, TxPatch

router = APIRouter(prefix="/api/tx", tags=["tx"])


def _parse_customer_id(raw: Optional[str]) -> Optional[int]:
    # 空字串視同未篩選
    if raw is None or not raw.strip():
        return None
    try:
        cid = int(raw.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid customer_id")
    if not 1 <= cid <= MAX_ID:
        raise HTTPException(status_code=400, detail="Invalid customer_id")
    return cid


@router.get("", response_model=List[dict])
def list_tx(
    customer_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return store.list_transactions(db, _parse_customer_id(customer_id))


@router.get("/{tid}", response_model=dict)
def get_tx(tid: IdPath, db: Session = Depends(get_db)):
    return store.get_transaction(db, tid)


@router.post("", response_model=dict)
def create_tx(payload: TxIn, db: Session = Depends(get_db)):
    tid = store.create_transaction(
        db,
        customer_id=payload.customer_id,
        date=payload.date,
        hours=payload.hours,
        kind=payload.kind,
        note=payload.note,
    )
    return {"ok": True, "id": tid}


@router.put("/{tid}", response_model=dict)
def update_tx(tid: IdPath, payload: TxPatch, db: Session = Depends(get_db)):
    store.update_transaction(db, tid, **payload.model_dump(exclude_none=True))
    return {"ok": True}


@router.delete("/{tid}", response_model=dict)
def delete_tx(tid: IdPath, db: Session = Depends(get_db)):
    store.delete_transaction(db, tid)
    return {"ok": True}
