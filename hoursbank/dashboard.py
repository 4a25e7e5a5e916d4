from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .client import ApiError, HoursBankClient
from .import_export import BALANCE_COLUMNS, TX_COLUMNS, rows_to_csv
from .ledger import (
    KINDS, MAX_HOURS, USAGE, AppState, Balance, balance_rows, compute_balances, filter_transactions,
    round2, sort_customers, to_decimal, would_go_negative,
)

log = logging.getLogger("hoursbank.dashboard")

_TOO_MANY_HOURS = f"Hours must be below {MAX_HOURS:,}."


class DashboardError(ValueError):
    pass


@dataclass
class TxFilters:
    customer_id: Optional[str] = None    # None = 全部客戶
    date_from: str = ""
    date_to: str = ""


class Dashboard:
    """In-memory view of the ledger, kept in sync with the API one call at a time."""

    def __init__(self, client: HoursBankClient, state: Optional[AppState] = None):
        self.client = client
        self.state = state or AppState()
        self.hydrated = False

    # ---------- load ----------
    def load(self) -> AppState:
        try:
            self.state = self.client.load_state()
        except ApiError:
            log.exception("initial load failed")
            self.state = AppState()
        finally:
            self.hydrated = True
        return self.state

    # ---------- derived ----------
    @property
    def balances(self) -> Dict[Any, Balance]:
        return compute_balances(self.state.customers, self.state.tx)

    @property
    def customers_sorted(self) -> List[Mapping]:
        return sort_customers(self.state.customers)

    def customer_name(self, customer_id: Any) -> str:
        c = self.state.customer(customer_id)
        return c["name"] if c else "-"

    def filtered_transactions(self, filters: Optional[TxFilters] = None) -> List[Mapping]:
        f = filters or TxFilters()
        return filter_transactions(self.state.tx, f.customer_id, f.date_from or None, f.date_to or None)

    def would_go_negative(self, customer_id: Any, hours: Any, kind: str) -> bool:
        return would_go_negative(self.balances, customer_id, hours, kind)

    def stats(self) -> Dict[str, int]:
        return {"customers": len(self.state.customers), "tx": len(self.state.tx)}

    # ---------- customers ----------
    def add_customer(self, name: str, contact: str = "") -> Mapping:
        name, contact = (name or "").strip(), (contact or "").strip()
        if not name:
            raise DashboardError("Customer name is required.")
        if any(str(c["name"]).lower() == name.lower() for c in self.state.customers):
            raise DashboardError("A customer with the same name already exists.")
        created = self.client.create_customer(name, contact)
        self.state = self.state.with_customer(created)
        return created

    def update_customer(self, customer_id: Any, name: Optional[str] = None, contact: Optional[str] = None) -> None:
        fields = {k: v.strip() for k, v in (("name", name), ("contact", contact)) if v is not None}
        if "name" in fields and not fields["name"]:
            raise DashboardError("Customer name is required.")
        if not fields:
            return
        self.client.update_customer(customer_id, **fields)
        self.state = self.state.replace_customer(customer_id, **fields)

    def delete_customer(self, customer_id: Any) -> int:
        """Delete a customer; returns how many of its transactions went with it."""
        if self.state.customer(customer_id) is None:
            raise DashboardError("Unknown customer.")
        removed = len(self.state.transactions_of(customer_id))
        self.client.delete_customer(customer_id)
        self.state = self.state.without_customer(customer_id)
        return removed

    # ---------- transactions ----------
    def add_transaction(self, customer_id: Any, date: str, hours: Any, kind: str = USAGE, note: str = "") -> Mapping:
        h = to_decimal(hours)
        if customer_id in (None, "") or not (date or "").strip() or h <= 0:
            raise DashboardError("Please fill customer / date / hours (> 0).")
        if h >= MAX_HOURS:
            raise DashboardError(_TOO_MANY_HOURS)
        if kind not in KINDS:
            raise DashboardError(f"Unknown kind: {kind}")
        if self.state.customer(customer_id) is None:
            raise DashboardError("Unknown customer.")

        created = self.client.create_tx(
            customer_id=int(customer_id), date=date.strip(), hours=float(round2(h)),
            kind=kind, note=(note or "").strip(),
        )
        tx = {**created, "customer_name": self.customer_name(customer_id)}
        self.state = self.state.with_transaction(tx)
        return tx

    def update_transaction(self, tx_id: Any, **fields: Any) -> None:
        patch = {k: v for k, v in fields.items() if v is not None}
        if "kind" in patch and patch["kind"] not in KINDS:
            raise DashboardError(f"Unknown kind: {patch['kind']}")
        if "hours" in patch:
            if to_decimal(patch["hours"]) <= 0:
                raise DashboardError("Hours must be greater than 0.")
            if to_decimal(patch["hours"]) >= MAX_HOURS:
                raise DashboardError(_TOO_MANY_HOURS)
            patch["hours"] = float(round2(patch["hours"]))
        if not patch:
            return
        self.client.update_tx(tx_id, **patch)
        if "customer_id" in patch:
            patch["customer_name"] = self.customer_name(patch["customer_id"])
        self.state = self.state.replace_transaction(tx_id, **patch)

    def delete_transaction(self, tx_id: Any) -> None:
        self.client.delete_tx(tx_id)
        self.state = self.state.without_transaction(tx_id)

    def reset_all(self) -> None:
        # 沒有批次刪除端點；逐一刪客戶，交易由 CASCADE 帶走
        for c in list(self.state.customers):
            self.client.delete_customer(c["id"])
            self.state = self.state.without_customer(c["id"])

    # ---------- export ----------
    def export_balances_csv(self) -> str:
        rows = balance_rows(self.state.customers, self.balances)
        if not rows:
            raise DashboardError("Nothing to export.")
        return rows_to_csv(rows, BALANCE_COLUMNS)

    def export_transactions_csv(self) -> str:
        if not self.state.tx:
            raise DashboardError("Nothing to export.")
        return rows_to_csv(self.state.tx, TX_COLUMNS)
