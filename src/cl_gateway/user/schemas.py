"""Pydantic request/response schemas for the auth endpoints.

Request models only bound sizes; the lifecycle rules (reserved names,
password length, duplicates) live in AccountDirectory so the HTTP API and
the Python API fail the same way.
"""

from pydantic import BaseModel, Field

from src.cl_ledger.application.schemas import AccountView


class RegisterRequest(BaseModel):
    username: str = Field(..., max_length=64)
    password: str = Field(..., max_length=128)


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800  # 30 minutes in seconds
    account: AccountView


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int = 1800
