"""
Pytest fixtures for the hours bank.

Each test gets its own SQLite file so the API, the store and the dashboard
see the same data without leaking state between tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hoursbank import models  # noqa: F401  (registers tables on Base.metadata)
from hoursbank.client import HoursBankClient
from hoursbank.dashboard import Dashboard
from hoursbank.db import Base, get_db, make_engine, make_sessionmaker
from hoursbank.main import app as api_app
from hoursbank.web_ui import app as web_app, get_dashboard


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    eng = make_engine(f"sqlite:///{(tmp_path / 'hoursbank-test.db').as_posix()}")
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return make_sessionmaker(engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def api(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    """TestClient for the REST API bound to the per-test database."""

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    api_app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(api_app)
    finally:
        api_app.dependency_overrides.clear()


@pytest.fixture
def hb_client(api: TestClient) -> HoursBankClient:
    return HoursBankClient(http=api)


@pytest.fixture
def board(hb_client: HoursBankClient) -> Dashboard:
    b = Dashboard(hb_client)
    b.load()
    return b


@pytest.fixture
def ui(hb_client: HoursBankClient) -> Generator[TestClient, None, None]:
    """TestClient for the web dashboard, talking to the API through hb_client."""

    def _board():
        b = Dashboard(hb_client)
        b.load()
        yield b

    web_app.dependency_overrides[get_dashboard] = _board
    try:
        yield TestClient(web_app)
    finally:
        web_app.dependency_overrides.clear()


@pytest.fixture
def acme(api: TestClient) -> int:
    res = api.post("/api/customers", json={"name": "Acme", "contact": "ops@acme.test"})
    assert res.status_code == 200
    return res.json()["id"]
