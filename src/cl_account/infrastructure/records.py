"""Stored schema for accounts (schema_version 1).

These models describe what is written under `{prefix}:account:*` and
`{prefix}:account_index`. DO NOT change a field without bumping
SCHEMA_VERSION in src.cl_store.domain.envelope.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, TypeAdapter

from src.cl_common.enums import AccountRole, AccountStatus

ACCOUNT_KIND = "account"
ACCOUNT_INDEX_KIND = "account_index"


class AccountRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str
    password_hash: str
    balance: Decimal
    role: AccountRole
    status: AccountStatus
    created_at: datetime
    updated_at: datetime


account_adapter: TypeAdapter[AccountRecord] = TypeAdapter(AccountRecord)
account_index_adapter: TypeAdapter[list[str]] = TypeAdapter(list[str])
