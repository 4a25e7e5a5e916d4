"""Persistence operations for customers and hour transactions.

Every function takes an open ``Session`` and commits its own unit of work.
Lookups that miss raise ``NotFoundError``; transactions that name a customer
which does not exist raise ``InvalidReferenceError`` before anything is written.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, select, text
from sqlalchemy.orm import Session

from .models import Customer, Kind, Transaction

log = logging.getLogger("hoursbank.store")


class StoreError(Exception):
    pass


class NotFoundError(StoreError, LookupError):
    pass


class InvalidReferenceError(StoreError, ValueError):
    pass


# ---------- serializers ----------
def customer_to_dict(c: Customer) -> dict:
    return {"id": c.id, "name": c.name, "contact": c.contact}


def tx_to_dict(t: Transaction, customer_name: Optional[str] = None) -> dict:
    return {
        "id": t.id,
        "customer_id": t.customer_id,
        "customer_name": customer_name if customer_name is not None else (t.customer.name if t.customer else None),
        "date": t.date,
        "hours": float(t.hours) if t.hours is not None else 0.0,
        "kind": t.kind.value if isinstance(t.kind, Kind) else t.kind,
        "note": t.note,
        "created_at": t.created_at.isoformat(sep=" ", timespec="seconds") if t.created_at else None,
    }


def _tx_select():
    return select(Transaction, Customer.name).join(Customer, Customer.id == Transaction.customer_id)


def _require_customer(db: Session, customer_id: int) -> None:
    if db.get(Customer, customer_id) is None:
        raise InvalidReferenceError("customer_id does not exist")


def ping(db: Session) -> int:
    return db.execute(text("SELECT 1 AS ok")).scalar_one()


# ---------- customers ----------
def list_customers(db: Session) -> List[dict]:
    rows = db.execute(select(Customer).order_by(Customer.name, Customer.id)).scalars().all()
    return [customer_to_dict(c) for c in rows]


def get_customer(db: Session, customer_id: int) -> dict:
    tx_count = (
        select(func.count(Transaction.id))
        .where(Transaction.customer_id == Customer.id)
        .correlate(Customer)
        .scalar_subquery()
    )
    row = db.execute(select(Customer, tx_count.label("tx_count")).where(Customer.id == customer_id)).first()
    if row is None:
        raise NotFoundError("Customer not found")
    c, count = row
    return {**customer_to_dict(c), "tx_count": int(count or 0)}


def create_customer(db: Session, name: str, contact: Optional[str] = None) -> int:
    c = Customer(name=name.strip(), contact=contact)
    db.add(c)
    db.commit()
    db.refresh(c)
    log.info(f"customer created id={c.id} name={c.name!r}")
    return c.id


def update_customer(db: Session, customer_id: int, **fields: Any) -> None:
    c = db.get(Customer, customer_id)
    if c is None:
        raise NotFoundError("Customer not found")
    if fields.get("name") is not None:
        c.name = fields["name"].strip()
    if fields.get("contact") is not None:
        c.contact = fields["contact"]
    db.commit()


def delete_customer(db: Session, customer_id: int) -> int:
    c = db.get(Customer, customer_id)
    if c is None:
        raise NotFoundError("Customer not found")
    removed = db.scalar(select(func.count(Transaction.id)).where(Transaction.customer_id == customer_id)) or 0
    db.delete(c)
    db.commit()
    log.info(f"customer deleted id={customer_id} cascaded_tx={removed}")
    return int(removed)


# ---------- transactions ----------
def list_transactions(db: Session, customer_id: Optional[int] = None) -> List[dict]:
    stmt = _tx_select()
    if customer_id is not None:
        stmt = stmt.where(Transaction.customer_id == customer_id)
    stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
    return [tx_to_dict(t, name) for t, name in db.execute(stmt).all()]


def get_transaction(db: Session, tx_id: int) -> dict:
    row = db.execute(_tx_select().where(Transaction.id == tx_id)).first()
    if row is None:
        raise NotFoundError("Tx not found")
    t, name = row
    return tx_to_dict(t, name)


def create_transaction(
    db: Session,
    customer_id: int,
    date: str,
    hours: Decimal | float,
    kind: Kind | str = Kind.USAGE,
    note: Optional[str] = None,
) -> int:
    _require_customer(db, customer_id)
    t = Transaction(
        customer_id=customer_id,
        date=date.strip(),
        hours=Decimal(str(hours)),
        kind=Kind(kind),
        note=note,
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    log.info(f"tx created id={t.id} customer_id={customer_id} kind={t.kind.value} hours={t.hours}")
    return t.id


def update_transaction(db: Session, tx_id: int, **fields: Any) -> None:
    t = db.get(Transaction, tx_id)
    if t is None:
        raise NotFoundError("Tx not found")
    if fields.get("customer_id") is not None:
        _require_customer(db, fields["customer_id"])
        t.customer_id = fields["customer_id"]
    if fields.get("date") is not None:
        t.date = fields["date"].strip()
    if fields.get("hours") is not None:
        t.hours = Decimal(str(fields["hours"]))
    if fields.get("kind") is not None:
        t.kind = Kind(fields["kind"])
    if fields.get("note") is not None:
        t.note = fields["note"]
    db.commit()


def delete_transaction(db: Session, tx_id: int) -> None:
    t = db.get(Transaction, tx_id)
    if t is None:
        raise NotFoundError("Tx not found")
    db.delete(t)
    db.commit()
    log.info(f"tx deleted id={tx_id}")


# ---------- summary ----------
def summarize_customers(db: Session, date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[Dict[str, Any]]:
    # 日期條件放在 JOIN 上，沒有交易的客戶仍會以 0 出現
    on = [Transaction.customer_id == Customer.id]
    if date_from:
        on.append(Transaction.date >= date_from)
    if date_to:
        on.append(Transaction.date <= date_to)

    topup = func.coalesce(func.sum(case((Transaction.kind == Kind.TOPUP, Transaction.hours), else_=0)), 0)
    usage = func.coalesce(func.sum(case((Transaction.kind == Kind.USAGE, Transaction.hours), else_=0)), 0)
    stmt = (
        select(
            Customer.id, Customer.name, Customer.contact,
            func.coalesce(func.sum(Transaction.hours), 0).label("total_hours"),
            func.count(Transaction.id).label("tx_count"),
            topup.label("topup_hours"),
            usage.label("usage_hours"),
        )
        .select_from(Customer)
        .outerjoin(Transaction, and_(*on))
        .group_by(Customer.id, Customer.name, Customer.contact)
        .order_by(Customer.name, Customer.id)
    )
    out = []
    for r in db.execute(stmt).mappings():
        topup_hours, usage_hours = float(r["topup_hours"] or 0), float(r["usage_hours"] or 0)
        out.append({
            "id": r["id"],
            "name": r["name"],
            "contact": r["contact"],
            "total_hours": float(r["total_hours"] or 0),
            "tx_count": int(r["tx_count"] or 0),
            "topup_hours": topup_hours,
            "usage_hours": usage_hours,
            "balance": round(topup_hours - usage_hours, 2),
        })
    return out
