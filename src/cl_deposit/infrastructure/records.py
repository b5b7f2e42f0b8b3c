"""Stored schema for deposit requests (schema_version 1)."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from src.cl_common.enums import DepositStatus

DEPOSIT_KIND = "deposit_request"
DEPOSIT_INDEX_KIND = "deposit_index"


class DepositRequestRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    username: str
    amount: Decimal = Field(..., gt=0)
    timestamp: datetime
    status: DepositStatus
    resolved_at: datetime | None = None
    resolved_by: str | None = None


deposit_adapter: TypeAdapter[DepositRequestRecord] = TypeAdapter(DepositRequestRecord)
deposit_index_adapter: TypeAdapter[list[str]] = TypeAdapter(list[str])
