# hoursbank/main.py
from __future__ import annotations
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import get_db
from .import_export import router as data_router
from .models import ensure_tables
from .routers.customers import router as customers_router
from .routers.summary import router as summary_router
from .routers.tx import router as tx_router
from .store import InvalidReferenceError, NotFoundError, ping
from .utils.settings import APP_NAME, APP_VERSION, CORS_ORIGINS, LOG_LEVEL, PORT

logging.basicConfig(level=LOG_LEVEL, format="[hoursbank] %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("hoursbank.api")

app = FastAPI(title=APP_NAME, version=APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if CORS_ORIGINS == ["*"] else CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _create_tables():
    ensure_tables()


# ── errors → {ok:false, error} ─────────────────────────────────────
def _fail(status: int, msg: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": msg}, status_code=status)


def _describe(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = str(first.get("msg", "invalid")).removeprefix("Value error, ")
    if field in ("cid", "tid"):
        return f"Invalid {'customer' if field == 'cid' else 'tx'} id"
    return f"{field}: {msg}" if field else msg


@app.exception_handler(RequestValidationError)
async def _validation_error(_: Request, exc: RequestValidationError):
    return _fail(400, _describe(exc))


@app.exception_handler(StarletteHTTPException)
async def _http_error(_: Request, exc: StarletteHTTPException):
    return _fail(exc.status_code, str(exc.detail))


@app.exception_handler(NotFoundError)
async def _not_found(_: Request, exc: NotFoundError):
    return _fail(404, str(exc))


@app.exception_handler(InvalidReferenceError)
async def _bad_reference(_: Request, exc: InvalidReferenceError):
    return _fail(400, str(exc))


@app.exception_handler(SQLAlchemyError)
async def _db_error(request: Request, exc: SQLAlchemyError):
    log.error(f"storage failure on {request.method} {request.url.path}", exc_info=exc)
    return _fail(500, str(exc))


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception):
    log.error(f"unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return _fail(500, str(exc) or exc.__class__.__name__)


# ── health ─────────────────────────────────────────────────────────
@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    return {"ok": True, "db": ping(db)}


# ── API 路由 ───────────────────────────────────────────────────────
app.include_router(customers_router)
app.include_router(tx_router)
app.include_router(summary_router)
app.include_router(data_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("hoursbank.main:app", host="127.0.0.1", port=PORT, reload=True)
