"""
HTTP client for the Hours Bank REST API.

Used by the dashboard to rehydrate its state and push mutations. Every
non-2xx response is turned into ``ApiError`` carrying the server's ``error``
message, so callers can show it to the user as-is.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import httpx

from .ledger import AppState
from .utils.settings import API_BASE, HTTP_TIMEOUT

logger = logging.getLogger("hoursbank.client")


class ApiError(Exception):
    """Error reported by the API (or the transport)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class HoursBankClient:
    """REST client for the customers / tx / summary endpoints"""

    def __init__(
        self,
        base_url: str = API_BASE,
        timeout: float = HTTP_TIMEOUT,
        http: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # An injected client (e.g. a TestClient) is used with relative URLs
        self._client = http if http is not None else httpx.Client(base_url=self.base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HoursBankClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(f"Connection failed: {e}") from e

        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = response.text

        if response.is_error:
            msg = data.get("error") if isinstance(data, dict) and data.get("error") else f"HTTP {response.status_code}"
            raise ApiError(msg, status_code=response.status_code)
        return data

    @staticmethod
    def _list(data: Any) -> List[Dict[str, Any]]:
        return data if isinstance(data, list) else []

    @staticmethod
    def _require_id(value: Any, what: str) -> None:
        if value is None or value == "":
            raise ApiError(f"{what} id is required")

    # ---------- health ----------
    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    # ---------- customers ----------
    def list_customers(self) -> List[Dict[str, Any]]:
        return self._list(self._request("GET", "/api/customers"))

    def get_customer(self, customer_id: Any) -> Dict[str, Any]:
        self._require_id(customer_id, "customer")
        return self._request("GET", f"/api/customers/{customer_id}")

    def create_customer(self, name: str, contact: Optional[str] = "") -> Dict[str, Any]:
        """Create and return the full customer record (the API only answers with the id)."""
        res = self._request("POST", "/api/customers", json={"name": name, "contact": contact})
        return {"id": (res or {}).get("id"), "name": name, "contact": contact}

    def update_customer(self, customer_id: Any, **fields: Any) -> Dict[str, Any]:
        self._require_id(customer_id, "customer")
        return self._request("PUT", f"/api/customers/{customer_id}", json=fields)

    def delete_customer(self, customer_id: Any) -> Dict[str, Any]:
        self._require_id(customer_id, "customer")
        return self._request("DELETE", f"/api/customers/{customer_id}")

    # ---------- tx ----------
    def list_tx(self, customer_id: Any = None) -> List[Dict[str, Any]]:
        params = {"customer_id": customer_id} if customer_id not in (None, "") else None
        return self._list(self._request("GET", "/api/tx", params=params))

    def get_tx(self, tx_id: Any) -> Dict[str, Any]:
        self._require_id(tx_id, "tx")
        return self._request("GET", f"/api/tx/{tx_id}")

    def create_tx(self, customer_id: Any, date: str, hours: Any, kind: str = "usage", note: Optional[str] = "") -> Dict[str, Any]:
        payload = {"customer_id": customer_id, "date": date, "hours": hours, "kind": kind, "note": note}
        res = self._request("POST", "/api/tx", json=payload)
        return {**payload, "id": (res or {}).get("id")}

    def update_tx(self, tx_id: Any, **fields: Any) -> Dict[str, Any]:
        self._require_id(tx_id, "tx")
        return self._request("PUT", f"/api/tx/{tx_id}", json=fields)

    def delete_tx(self, tx_id: Any) -> Dict[str, Any]:
        self._require_id(tx_id, "tx")
        return self._request("DELETE", f"/api/tx/{tx_id}")

    # ---------- summary ----------
    def summary(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("from", date_from), ("to", date_to)) if v}
        return self._list(self._request("GET", "/api/summary/customers", params=params or None))

    # ---------- state ----------
    def load_state(self) -> AppState:
        """Fetch customers and transactions in parallel and wrap them as an AppState."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            customers = pool.submit(self.list_customers)
            tx = pool.submit(self.list_tx)
            return AppState.from_lists(customers.result(), tx.result())
