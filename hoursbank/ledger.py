"""Balance and filtering logic over in-memory customer/transaction records.

Records are plain mappings shaped like the API's JSON (``id``, ``customer_id``,
``date``, ``hours``, ``kind`` ...). Nothing here touches the network or the
database, so the dashboard and the tests can share the same derivations.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

TOPUP = "topup"
USAGE = "usage"
KINDS = (TOPUP, USAGE)
# Numeric(12,2): ten integer digits
MAX_HOURS = Decimal("10000000000")

_LEGACY_PREFIX = re.compile(r"^\s*\[(topup|usage)\]\s?", re.IGNORECASE)


@dataclass
class Balance:
    topup_total: Decimal = Decimal("0")
    usage_total: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    def as_dict(self) -> Dict[str, float]:
        return {
            "topup_total": float(self.topup_total),
            "usage_total": float(self.usage_total),
            "balance": float(self.balance),
        }


def to_decimal(value: Any) -> Decimal:
    """Parse hours leniently; anything unusable counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return d if d.is_finite() else Decimal("0")


def round2(value: Any) -> Decimal:
    d = to_decimal(value)
    try:
        return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # too many digits to carry cents; nothing left to round
        return d


def _cid(value: Any) -> Any:
    # ids may arrive as "3" from form posts and 3 from JSON
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def compute_balances(customers: Iterable[Mapping], transactions: Iterable[Mapping]) -> Dict[Any, Balance]:
    balances: Dict[Any, Balance] = {_cid(c["id"]): Balance() for c in customers}

    for t in transactions:
        item = balances.setdefault(_cid(t.get("customer_id")), Balance())
        kind = t.get("kind") or USAGE
        if kind == TOPUP:
            item.topup_total += to_decimal(t.get("hours"))
        elif kind == USAGE:
            item.usage_total += to_decimal(t.get("hours"))

    for item in balances.values():
        item.balance = item.topup_total - item.usage_total
    return balances


def _int_id(rec: Mapping) -> int:
    try:
        return int(rec.get("id"))
    except (TypeError, ValueError):
        return 0


def _tx_sort_key(t: Mapping) -> Tuple[str, int]:
    return str(t.get("date") or ""), _int_id(t)


def sort_transactions(transactions: Iterable[Mapping]) -> List[Mapping]:
    return sorted(transactions, key=_tx_sort_key, reverse=True)


def filter_transactions(
    transactions: Iterable[Mapping],
    customer_id: Any = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[Mapping]:
    # ISO 字串直接比大小；格式寬度不一致時結果不可靠
    out = list(transactions)
    if customer_id not in (None, ""):
        wanted = _cid(customer_id)
        out = [t for t in out if _cid(t.get("customer_id")) == wanted]
    if date_from:
        out = [t for t in out if str(t.get("date") or "") >= date_from]
    if date_to:
        out = [t for t in out if str(t.get("date") or "") <= date_to]
    return sort_transactions(out)


def sort_customers(customers: Iterable[Mapping]) -> List[Mapping]:
    return sorted(customers, key=lambda c: (str(c.get("name") or "").casefold(), _int_id(c)))


def would_go_negative(balances: Mapping[Any, Balance], customer_id: Any, hours: Any, kind: str) -> bool:
    if kind != USAGE or customer_id in (None, ""):
        return False
    h = to_decimal(hours)
    if h <= 0:
        return False
    current = balances.get(_cid(customer_id))
    return ((current.balance if current else Decimal("0")) - h) < 0


def balance_rows(customers: Iterable[Mapping], balances: Mapping[Any, Balance]) -> List[Dict[str, Any]]:
    rows = []
    for c in sort_customers(customers):
        b = balances.get(_cid(c["id"])) or Balance()
        rows.append({"customer": c["name"], "balance_hours": float(round2(b.balance))})
    return rows


def split_legacy_note(note: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """``"[topup] paid in advance"`` -> ``("topup", "paid in advance")``."""
    if not note:
        return None, note
    m = _LEGACY_PREFIX.match(note)
    if not m:
        return None, note
    return m.group(1).lower(), note[m.end():]


@dataclass(frozen=True)
class AppState:
    customers: Tuple[Mapping, ...] = field(default_factory=tuple)
    tx: Tuple[Mapping, ...] = field(default_factory=tuple)

    @classmethod
    def from_lists(cls, customers: Any, tx: Any) -> "AppState":
        return cls(
            customers=tuple(customers) if isinstance(customers, (list, tuple)) else (),
            tx=tuple(tx) if isinstance(tx, (list, tuple)) else (),
        )

    def customer(self, customer_id: Any) -> Optional[Mapping]:
        wanted = _cid(customer_id)
        return next((c for c in self.customers if _cid(c["id"]) == wanted), None)

    def transactions_of(self, customer_id: Any) -> List[Mapping]:
        wanted = _cid(customer_id)
        return [t for t in self.tx if _cid(t.get("customer_id")) == wanted]

    def with_customer(self, customer: Mapping) -> "AppState":
        return replace(self, customers=self.customers + (dict(customer),))

    def replace_customer(self, customer_id: Any, **changes: Any) -> "AppState":
        wanted = _cid(customer_id)
        return replace(self, customers=tuple(
            {**c, **changes} if _cid(c["id"]) == wanted else c for c in self.customers
        ))

    def without_customer(self, customer_id: Any) -> "AppState":
        wanted = _cid(customer_id)
        return AppState(
            customers=tuple(c for c in self.customers if _cid(c["id"]) != wanted),
            tx=tuple(t for t in self.tx if _cid(t.get("customer_id")) != wanted),
        )

    def with_transaction(self, tx: Mapping) -> "AppState":
        return replace(self, tx=self.tx + (dict(tx),))

    def replace_transaction(self, tx_id: Any, **changes: Any) -> "AppState":
        wanted = _cid(tx_id)
        return replace(self, tx=tuple(
            {**t, **changes} if _cid(t["id"]) == wanted else t for t in self.tx
        ))

    def without_transaction(self, tx_id: Any) -> "AppState":
        wanted = _cid(tx_id)
        return replace(self, tx=tuple(t for t in self.tx if _cid(t["id"]) != wanted))
