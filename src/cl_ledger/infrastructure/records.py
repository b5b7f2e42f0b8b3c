"""Stored schema for transaction records (schema_version 1).

`{prefix}:transactions:{username}` holds the full list for one user, newest
first. Records are append-only: nothing rewrites an existing element.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from src.cl_common.enums import TransactionType

TRANSACTION_LIST_KIND = "transaction_list"


class TransactionRecordModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    username: str
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: str
    timestamp: datetime


transaction_list_adapter: TypeAdapter[list[TransactionRecordModel]] = TypeAdapter(
    list[TransactionRecordModel]
)
