"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.cl_account.api.router import router as account_router
from src.cl_admin.api.router import router as admin_router
from src.cl_common.errors import AppError
from src.cl_common.response import error_response
from src.cl_deposit.api.router import router as deposit_router
from src.cl_gateway.api.router import router as auth_router
from src.cl_gateway.auth.jwt_handler import REFRESH_EXPIRE
from src.cl_gateway.auth.sessions import SessionRegistry
from src.cl_gateway.middleware.request_log import RequestLogMiddleware
from src.cl_ledger.application.service import LedgerPolicy, LedgerService
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.store import KeyValueStore
from src.cl_store.infrastructure.factory import build_store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: seed the administrator. Shutdown: close the store."""
    result = await app.state.ledger.ensure_admin_account()
    if not result.success:
        # Nothing works without the store; fail startup loudly
        raise RuntimeError(f"Could not seed administrator account: {result.message}")
    yield
    await app.state.store.close()


def create_app(store: KeyValueStore | None = None) -> FastAPI:
    """Build the app over `store`, or over the backend named by STORE_BACKEND."""
    store = store if store is not None else build_store(settings)
    policy = LedgerPolicy.from_settings(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.ledger = LedgerService(store, policy)
    app.state.sessions = SessionRegistry(store, StoreKeys(policy.key_prefix), REFRESH_EXPIRE)

    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        resp = error_response(exc.code, exc.message)
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
        return JSONResponse(status_code=exc.http_status, content=resp.model_dump())

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(account_router, prefix="/api/v1")
    app.include_router(deposit_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": "0.1.0"}

    return app


app = create_app()
