from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from .. import store
from ..utils.schemas import IdPath, CustomerIn, CustomerPatch

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=List[dict])
def list_customers(db: Session = Depends(get_db)):
    return store.list_customers(db)


@router.get("/{cid}", response_model=dict)
def get_customer(cid: IdPath, db: Session = Depends(get_db)):
    return store.get_customer(db, cid)


@router.post("", response_model=dict)
def create_customer(payload: CustomerIn, db: Session = Depends(get_db)):
    cid = store.create_customer(db, payload.name, payload.contact)
    return {"ok": True, "id": cid}


@router.put("/{cid}", response_model=dict)
def update_customer(cid: IdPath, payload: CustomerPatch, db: Session = Depends(get_db)):
    store.update_customer(db, cid, **payload.model_dump(exclude_none=True))
    return {"ok": True}


@router.delete("/{cid}", response_model=dict)
def delete_customer(cid: IdPath, db: Session = Depends(get_db)):
    store.delete_customer(db, cid)
    return {"ok": True}
