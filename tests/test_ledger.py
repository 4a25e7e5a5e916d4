from __future__ import annotations

import random
from decimal import Decimal

from hoursbank.ledger import (
    AppState,
    balance_rows,
    compute_balances,
    filter_transactions,
    round2,
    sort_customers,
    split_legacy_note,
    would_go_negative,
)

CUSTOMERS = [{"id": 1, "name": "Acme"}, {"id": 2, "name": "beta"}, {"id": 3, "name": "Zed"}]
TX = [
    {"id": 1, "customer_id": 1, "date": "2026-01-01", "hours": 10, "kind": "topup"},
    {"id": 2, "customer_id": 1, "date": "2026-01-05", "hours": 3, "kind": "usage"},
    {"id": 3, "customer_id": 2, "date": "2026-01-05", "hours": 4.5, "kind": "topup"},
    {"id": 4, "customer_id": 2, "date": "2026-02-01", "hours": 1.25, "kind": "usage"},
    {"id": 5, "customer_id": 1, "date": "2026-01-31", "hours": "2", "kind": "usage"},
]


def test_customer_without_transactions_has_zero_balance():
    balances = compute_balances(CUSTOMERS, TX)
    assert balances[3].balance == 0
    assert balances[3].topup_total == 0
    assert balances[3].usage_total == 0


def test_acme_topup_then_usage_gives_seven():
    balances = compute_balances(
        [{"id": 1, "name": "Acme"}],
        [
            {"id": 1, "customer_id": 1, "date": "2026-01-01", "hours": 10, "kind": "topup"},
            {"id": 2, "customer_id": 1, "date": "2026-01-05", "hours": 3, "kind": "usage"},
        ],
    )
    assert balances[1].balance == Decimal("7")
    assert balances[1].as_dict() == {"topup_total": 10.0, "usage_total": 3.0, "balance": 7.0}


def test_aggregation_is_order_independent_and_preserves_totals():
    expected = compute_balances(CUSTOMERS, TX)
    shuffled = list(TX)
    random.Random(7).shuffle(shuffled)
    got = compute_balances(CUSTOMERS, shuffled)

    assert {k: v.as_dict() for k, v in got.items()} == {k: v.as_dict() for k, v in expected.items()}
    raw_topup = sum(Decimal(str(t["hours"])) for t in TX if t["kind"] == "topup")
    raw_usage = sum(Decimal(str(t["hours"])) for t in TX if t["kind"] == "usage")
    assert sum(b.topup_total for b in got.values()) == raw_topup
    assert sum(b.usage_total for b in got.values()) == raw_usage


def test_missing_kind_counts_as_usage_and_unknown_kind_is_ignored():
    balances = compute_balances(
        [{"id": 1, "name": "Acme"}],
        [
            {"id": 1, "customer_id": 1, "date": "2026-01-01", "hours": 5},
            {"id": 2, "customer_id": 1, "date": "2026-01-01", "hours": 8, "kind": "bonus"},
            {"id": 3, "customer_id": 1, "date": "2026-01-01", "hours": "n/a", "kind": "topup"},
        ],
    )
    assert balances[1].usage_total == 5
    assert balances[1].topup_total == 0
    assert balances[1].balance == -5


def test_transaction_for_unknown_customer_gets_its_own_entry():
    balances = compute_balances([], [{"id": 1, "customer_id": "9", "hours": 2, "kind": "topup"}])
    assert balances[9].balance == 2


def test_filter_bounds_are_inclusive_and_sorted_newest_first():
    out = filter_transactions(TX, date_from="2026-01-05", date_to="2026-01-31")
    assert [t["id"] for t in out] == [5, 3, 2]


def test_filter_by_customer_accepts_string_ids():
    out = filter_transactions(TX, customer_id="2")
    assert [t["id"] for t in out] == [4, 3]
    assert filter_transactions(TX, customer_id="") == filter_transactions(TX)


def test_sort_customers_is_case_insensitive():
    assert [c["name"] for c in sort_customers(reversed(CUSTOMERS))] == ["Acme", "beta", "Zed"]


def test_would_go_negative_only_for_usage():
    balances = compute_balances(CUSTOMERS, TX)  # Acme: 10 - 3 - 2 = 5
    assert would_go_negative(balances, 1, 6, "usage") is True
    assert would_go_negative(balances, "1", 5, "usage") is False
    assert would_go_negative(balances, 1, 60, "topup") is False
    assert would_go_negative(balances, 1, 0, "usage") is False
    assert would_go_negative(balances, 42, 1, "usage") is True


def test_balance_rows_are_rounded_and_sorted():
    balances = compute_balances(CUSTOMERS, TX + [{"id": 6, "customer_id": 3, "hours": 0.005, "kind": "topup"}])
    assert balance_rows(CUSTOMERS, balances) == [
        {"customer": "Acme", "balance_hours": 5.0},
        {"customer": "beta", "balance_hours": 3.25},
        {"customer": "Zed", "balance_hours": 0.01},
    ]


def test_round2_rounds_half_up():
    assert round2("1.005") == Decimal("1.01")
    assert round2(None) == Decimal("0.00")


def test_round2_and_balance_rows_survive_huge_values():
    assert round2("1e30") == Decimal("1e30")
    customers = [{"id": 1, "name": "Acme"}]
    tx = [{"customer_id": 1, "hours": "1e30", "kind": "topup"}]
    assert balance_rows(customers, compute_balances(customers, tx)) == [{"customer": "Acme", "balance_hours": 1e30}]


def test_split_legacy_note():
    assert split_legacy_note("[topup] paid in advance") == ("topup", "paid in advance")
    assert split_legacy_note("[USAGE] ") == ("usage", "")
    assert split_legacy_note("plain note") == (None, "plain note")
    assert split_legacy_note(None) == (None, None)


def test_app_state_transitions_are_pure_and_cascade():
    state = AppState.from_lists(CUSTOMERS, TX)
    after = state.without_customer(1)

    assert len(state.tx) == len(TX)
    assert [c["id"] for c in after.customers] == [2, 3]
    assert after.transactions_of(1) == []
    assert len(after.tx) == 2

    renamed = after.replace_customer("2", name="Beta Ltd")
    assert renamed.customer(2)["name"] == "Beta Ltd"
    assert after.customer(2)["name"] == "beta"

    added = renamed.with_transaction({"id": 9, "customer_id": 2, "hours": 1, "kind": "usage"})
    assert [t["id"] for t in added.without_transaction(9).tx] == [3, 4]


def test_app_state_from_lists_tolerates_bad_payloads():
    state = AppState.from_lists(None, {"oops": True})
    assert state.customers == () and state.tx == ()
