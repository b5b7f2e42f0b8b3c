"""Store key layout.

    {prefix}:account_index               usernames, registration order
    {prefix}:account:{username}          account
    {prefix}:transactions:{username}     that user's records, newest first
    {prefix}:deposit_index               request ids, newest first
    {prefix}:deposit_request:{id}        deposit request
    {prefix}:session:{session_id}        login session

Index keys use their own namespace so no username or id can collide with them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoreKeys:
    prefix: str = "app"

    @property
    def account_index(self) -> str:
        return f"{self.prefix}:account_index"

    def account(self, username: str) -> str:
        return f"{self.prefix}:account:{username}"

    def transactions(self, username: str) -> str:
        return f"{self.prefix}:transactions:{username}"

    @property
    def deposit_index(self) -> str:
        return f"{self.prefix}:deposit_index"

    def deposit(self, request_id: str) -> str:
        return f"{self.prefix}:deposit_request:{request_id}"

    def session(self, session_id: str) -> str:
        return f"{self.prefix}:session:{session_id}"
