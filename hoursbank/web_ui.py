# hoursbank/web_ui.py
from __future__ import annotations
from pathlib import Path
from datetime import date
from typing import Any, Dict, Generator, Optional
from urllib.parse import urlencode
import os

from fastapi import Depends, FastAPI, Form, Request
from fastapi.templating import Jinja2Templates
from starlette.responses import RedirectResponse, Response

from .client import ApiError, HoursBankClient
from .dashboard import Dashboard, DashboardError, TxFilters
from .ledger import KINDS, TOPUP, USAGE

APP_DIR = Path(__file__).resolve().parent
ALL = "__all__"

app = FastAPI(title="Hours Bank Dashboard", root_path=os.getenv("ROOT_PATH", ""))

templates = Jinja2Templates(directory=str(APP_DIR / "templates"))
templates.env.filters["hours"] = lambda v: f"{float(v or 0):,.2f}"


def get_dashboard() -> Generator[Dashboard, None, None]:
    # 每次請求都從 API 重新載入狀態
    client = HoursBankClient()
    try:
        board = Dashboard(client)
        board.load()
        yield board
    finally:
        client.close()


# -------------- helpers --------------
def _today() -> str:
    return date.today().isoformat()

def _filters(customer_id: Optional[str], from_: Optional[str], to: Optional[str]) -> TxFilters:
    return TxFilters(
        customer_id=None if not customer_id or customer_id == ALL else customer_id,
        date_from=(from_ or "").strip(),
        date_to=(to or "").strip(),
    )

def _ctx(board: Dashboard, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    extra = extra or {}
    f: TxFilters = extra.pop("filters", None) or TxFilters()
    kind = extra.pop("kind", TOPUP)
    base = {
        "customers": board.customers_sorted,
        "balances": board.balances,
        "stats": board.stats(),
        "tx": board.filtered_transactions(f),
        "filter_customer_id": f.customer_id or ALL,
        "filter_from": f.date_from,
        "filter_to": f.date_to,
        "kinds": KINDS,
        "kind": kind if kind in KINDS else TOPUP,
        "kind_hint": "Usage: removes hours from the balance" if kind == USAGE else "Topup: adds hours to the balance",
        "today": _today(),
        "all": ALL,
        "error": None,
        "warning": None,
    }
    base.update(extra)
    return base

def _fail(request: Request, board: Dashboard, exc: Exception) -> Response:
    return templates.TemplateResponse(request, "dashboard.html", _ctx(board, {"error": str(exc)}), status_code=400)

def _negative_warning(board: Dashboard, customer_id: Optional[str]) -> Optional[str]:
    if not customer_id:
        return None
    b = board.balances.get(_int_or_none(customer_id))
    if b is None or b.balance >= 0:
        return None
    return f"Heads up: {board.customer_name(customer_id)} now has a negative balance ({b.balance:,.2f} h)."

def _int_or_none(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None

def _back() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)

def _csv(content: str, filename: str) -> Response:
    return Response(content, media_type="text/csv; charset=utf-8",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


# -------------- routes --------------
@app.get("/")
def dashboard_page(request: Request, customer_id: Optional[str] = None, from_: Optional[str] = None,
                   to: Optional[str] = None, kind: str = TOPUP, negative: Optional[str] = None,
                   board: Dashboard = Depends(get_dashboard)):
    return templates.TemplateResponse(request, "dashboard.html", _ctx(board, {
        "filters": _filters(customer_id, from_, to), "kind": kind, "warning": _negative_warning(board, negative),
    }))

# ---------- Customers ----------
@app.post("/customers/create")
def customers_create(request: Request, name: str = Form(""), contact: str = Form(""),
                     board: Dashboard = Depends(get_dashboard)):
    try:
        board.add_customer(name, contact)
    except (DashboardError, ApiError) as e:
        return _fail(request, board, e)
    return _back()

@app.post("/customers/{cid}/update")
def customers_update(request: Request, cid: int, name: Optional[str] = Form(None),
                     contact: Optional[str] = Form(None), board: Dashboard = Depends(get_dashboard)):
    try:
        board.update_customer(cid, name=name, contact=contact)
    except (DashboardError, ApiError) as e:
        return _fail(request, board, e)
    return _back()

@app.post("/customers/{cid}/delete")
def customers_delete(request: Request, cid: int, board: Dashboard = Depends(get_dashboard)):
    try:
        board.delete_customer(cid)
    except (DashboardError, ApiError) as e:
        return _fail(request, board, e)
    return _back()

# ---------- Transactions ----------
@app.post("/tx/create")
def tx_create(request: Request, customer_id: str = Form(""), tx_date: str = Form(""),
              hours: str = Form(""), kind: str = Form(TOPUP), note: str = Form(""),
              board: Dashboard = Depends(get_dashboard)):
    try:
        # 餘額預覽要在寫入前算
        negative = board.would_go_negative(customer_id, hours, kind)
        tx = board.add_transaction(customer_id, tx_date, hours, kind=kind, note=note)
    except (DashboardError, ApiError) as e:
        return _fail(request, board, e)
    params = {"kind": tx["kind"]}
    if negative:
        params["negative"] = tx["customer_id"]
    return RedirectResponse(f"/?{urlencode(params)}", status_code=303)

@app.post("/tx/{tid}/delete")
def tx_delete(request: Request, tid: int, board: Dashboard = Depends(get_dashboard)):
    try:
        board.delete_transaction(tid)
    except ApiError as e:
        return _fail(request, board, e)
    return _back()

@app.post("/reset")
def reset_all(request: Request, board: Dashboard = Depends(get_dashboard)):
    try:
        board.reset_all()
    except ApiError as e:
        return _fail(request, board, e)
    return _back()

# ---------- Export ----------
@app.get("/export/balances.csv")
def export_balances(request: Request, board: Dashboard = Depends(get_dashboard)):
    try:
        return _csv(board.export_balances_csv(), "balances.csv")
    except DashboardError as e:
        return _fail(request, board, e)

@app.get("/export/transactions.csv")
def export_transactions(request: Request, board: Dashboard = Depends(get_dashboard)):
    try:
        return _csv(board.export_transactions_csv(), "transactions.csv")
    except DashboardError as e:
        return _fail(request, board, e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("hoursbank.web_ui:app", host="127.0.0.1", port=int(os.getenv("UI_PORT", "8001")), reload=True)
