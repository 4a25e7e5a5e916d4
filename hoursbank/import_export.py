import io, csv
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Sequence

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .db import get_db
from . import store
from .ledger import balance_rows, compute_balances

router = APIRouter(prefix="/data", tags=["data"])

BALANCE_COLUMNS = ["customer", "balance_hours"]
TX_COLUMNS = ["id", "customer_id", "customer_name", "date", "hours", "kind", "note", "created_at"]


def rows_to_csv(rows: Iterable[Mapping], fieldnames: Optional[Sequence[str]] = None) -> str:
    """CSV text with a UTF-8 BOM so spreadsheets pick the encoding; header comes from the first row."""
    rows = list(rows)
    cols: List[str] = list(fieldnames) if fieldnames else (list(rows[0].keys()) if rows else [])
    buf = io.StringIO()
    buf.write("\ufeff")
    writer = csv.DictWriter(buf, fieldnames=cols, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for r in rows:
        writer.writerow({k: ("" if r.get(k) is None else r.get(k)) for k in cols})
    return buf.getvalue()


def csv_response(content: str, name: str) -> StreamingResponse:
    filename = f"{name}-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/balances")
def export_balances(db: Session = Depends(get_db)):
    customers = store.list_customers(db)
    balances = compute_balances(customers, store.list_transactions(db))
    return csv_response(rows_to_csv(balance_rows(customers, balances), BALANCE_COLUMNS), "balances")


@router.get("/export/transactions")
def export_transactions(db: Session = Depends(get_db)):
    return csv_response(rows_to_csv(store.list_transactions(db), TX_COLUMNS), "transactions")
