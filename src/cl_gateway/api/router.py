"""Auth API router: register, login, refresh, logout, me.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.cl_common.errors import InvalidRefreshTokenError
from src.cl_common.response import ApiResponse, result_response, success_response
from src.cl_gateway.auth.dependencies import (
    get_current_account,
    get_ledger,
    get_session_id,
    get_sessions,
)
from src.cl_gateway.auth.jwt_handler import (
    ACCESS_EXPIRE,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.cl_gateway.auth.sessions import SessionRegistry
from src.cl_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
)
from src.cl_ledger.application.schemas import AccountView
from src.cl_ledger.application.service import LedgerService

router = APIRouter(prefix="/auth", tags=["auth"])


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "req_unknown")


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="User registration",
)
async def register(
    request: Request,
    body: RegisterRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> JSONResponse:
    result = await ledger.register(body.username, body.password)
    return result_response(result, request, success_status=status.HTTP_201_CREATED)


@router.post("/login", response_model=ApiResponse, summary="User login")
async def login(
    request: Request,
    body: LoginRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
    sessions: Annotated[SessionRegistry, Depends(get_sessions)],
) -> JSONResponse:
    result = await ledger.login(body.username, body.password)
    if not result.success:
        return result_response(result, request)

    account: AccountView = result.data
    session = await sessions.open(account.username)
    data = LoginResponse(
        access_token=create_access_token(account.username, session.session_id),
        refresh_token=create_refresh_token(account.username, session.session_id),
        expires_in=int(ACCESS_EXPIRE.total_seconds()),
        account=account,
    )
    resp = success_response(jsonable_encoder(data))
    resp.message = result.message
    resp.request_id = _get_request_id(request)
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.post("/refresh", response_model=ApiResponse, summary="Refresh access token")
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    sessions: Annotated[SessionRegistry, Depends(get_sessions)],
) -> ApiResponse:
    payload = decode_token(body.refresh_token, expected_type="refresh")
    session = await sessions.get(payload["jti"])
    if session is None or session.username != payload["sub"]:
        raise InvalidRefreshTokenError()

    data = RefreshResponse(
        access_token=create_access_token(session.username, session.session_id),
        expires_in=int(ACCESS_EXPIRE.total_seconds()),
    )
    resp = success_response(data.model_dump())
    resp.request_id = _get_request_id(request)
    resp.message = "Token refreshed"
    return resp


@router.post("/logout", response_model=ApiResponse, summary="End the current session")
async def logout(
    request: Request,
    auth: Annotated[tuple[str, str], Depends(get_session_id)],
    sessions: Annotated[SessionRegistry, Depends(get_sessions)],
) -> ApiResponse:
    _, session_id = auth
    await sessions.close(session_id)
    resp = success_response(None)
    resp.request_id = _get_request_id(request)
    resp.message = "Logged out"
    return resp


@router.get("/me", response_model=ApiResponse, summary="Current account")
async def me(
    request: Request,
    account: Annotated[AccountView, Depends(get_current_account)],
) -> ApiResponse:
    resp = success_response(jsonable_encoder(account))
    resp.request_id = _get_request_id(request)
    return resp
