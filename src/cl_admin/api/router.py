"""Admin REST API: account lifecycle, adjustments, deposit review, audits.

Every endpoint requires an approved admin session; LedgerService checks the
acting admin again, so the Python API is protected on its own.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.cl_common.enums import (
    AccountSortKey,
    AccountStatus,
    DepositSortKey,
    DepositStatus,
    SortDirection,
)
from src.cl_common.response import ApiResponse, result_response
from src.cl_gateway.auth.dependencies import get_ledger, require_admin
from src.cl_ledger.application.schemas import AccountView
from src.cl_ledger.application.service import LedgerService

router = APIRouter(prefix="/admin", tags=["admin"])

Admin = Annotated[AccountView, Depends(require_admin)]
Ledger = Annotated[LedgerService, Depends(get_ledger)]


class StatusUpdate(BaseModel):
    # "pending" is rejected by the ledger as an invalid transition
    status: AccountStatus


class BalanceAdjustment(BaseModel):
    delta: Decimal


class DepositFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# --- Accounts ---

@router.get("/accounts", response_model=ApiResponse)
async def list_accounts(
    request: Request,
    admin: Admin,
    ledger: Ledger,
    status: AccountStatus | None = Query(None, description="Filter by status"),
    sort_by: AccountSortKey = Query(AccountSortKey.USERNAME),
    direction: SortDirection = Query(SortDirection.ASC),
) -> JSONResponse:
    result = await ledger.list_accounts(admin.username, status, sort_by, direction)
    return result_response(result, request)


@router.post("/accounts/{username}/approve", response_model=ApiResponse)
async def approve_account(
    username: str, request: Request, admin: Admin, ledger: Ledger
) -> JSONResponse:
    result = await ledger.approve_account(admin.username, username)
    return result_response(result, request)


@router.put("/accounts/{username}/status", response_model=ApiResponse)
async def set_account_status(
    username: str,
    body: StatusUpdate,
    request: Request,
    admin: Admin,
    ledger: Ledger,
) -> JSONResponse:
    result = await ledger.set_account_status(admin.username, username, body.status)
    return result_response(result, request)


@router.post("/accounts/{username}/adjustments", response_model=ApiResponse)
async def admin_adjust_balance(
    username: str,
    body: BalanceAdjustment,
    request: Request,
    admin: Admin,
    ledger: Ledger,
) -> JSONResponse:
    result = await ledger.admin_adjust_balance(admin.username, username, body.delta)
    return result_response(result, request)


@router.get("/accounts/{username}/transactions", response_model=ApiResponse)
async def list_transactions(
    username: str,
    request: Request,
    admin: Admin,
    ledger: Ledger,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> JSONResponse:
    result = await ledger.list_transactions(admin.username, username, cursor, limit)
    return result_response(result, request)


# --- Deposit requests ---

@router.get("/deposits", response_model=ApiResponse)
async def list_deposit_requests(
    request: Request,
    admin: Admin,
    ledger: Ledger,
    status: DepositFilter = Query(
        DepositFilter.PENDING, description="Filter by status; 'all' lists every request"
    ),
    sort_by: DepositSortKey = Query(DepositSortKey.TIMESTAMP),
    direction: SortDirection = Query(SortDirection.DESC),
) -> JSONResponse:
    only = None if status == DepositFilter.ALL else DepositStatus(status.value)
    result = await ledger.list_deposit_requests(admin.username, only, sort_by, direction)
    return result_response(result, request)


@router.post("/deposits/{request_id}/approve", response_model=ApiResponse)
async def approve_deposit(
    request_id: str, request: Request, admin: Admin, ledger: Ledger
) -> JSONResponse:
    result = await ledger.approve_deposit(admin.username, request_id)
    return result_response(result, request)


@router.post("/deposits/{request_id}/reject", response_model=ApiResponse)
async def reject_deposit(
    request_id: str, request: Request, admin: Admin, ledger: Ledger
) -> JSONResponse:
    result = await ledger.reject_deposit(admin.username, request_id)
    return result_response(result, request)


# --- Audit ---

@router.get("/invariants", response_model=ApiResponse)
async def verify_invariants(request: Request, admin: Admin, ledger: Ledger) -> JSONResponse:
    result = await ledger.verify_invariants(admin.username)
    return result_response(result, request)
