"""cl_account REST API: the image-generation charge gate."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.cl_common.response import ApiResponse, result_response
from src.cl_gateway.auth.dependencies import get_current_account, get_ledger
from src.cl_ledger.application.schemas import AccountView
from src.cl_ledger.application.service import LedgerService

router = APIRouter(prefix="/account", tags=["account"])


@router.post("/charge", response_model=ApiResponse)
async def charge_for_generation(
    request: Request,
    account: Annotated[AccountView, Depends(get_current_account)],
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> JSONResponse:
    """Deduct GENERATION_COST before an image is generated; 422 when short of credits."""
    result = await ledger.charge_for_generation(account.username, settings.GENERATION_COST)
    return result_response(result, request)
