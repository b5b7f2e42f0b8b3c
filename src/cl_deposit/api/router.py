"""cl_deposit REST API: users claim an off-band payment for admin review."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.cl_common.response import ApiResponse, result_response
from src.cl_gateway.auth.dependencies import get_current_account, get_ledger
from src.cl_ledger.application.schemas import AccountView
from src.cl_ledger.application.service import LedgerService

router = APIRouter(prefix="/deposits", tags=["deposits"])


class DepositSubmitRequest(BaseModel):
    # Positivity is checked by the ledger so it reports InvalidAmount (2002)
    amount: Decimal


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def submit_deposit_request(
    request: Request,
    body: DepositSubmitRequest,
    account: Annotated[AccountView, Depends(get_current_account)],
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> JSONResponse:
    result = await ledger.submit_deposit_request(account.username, body.amount)
    return result_response(result, request, success_status=status.HTTP_201_CREATED)
