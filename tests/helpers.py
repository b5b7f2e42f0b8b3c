"""Helpers shared by unit and integration tests."""

from httpx import AsyncClient

from src.cl_ledger.application.service import LedgerService

ADMIN = "admin"
ADMIN_PASSWORD = "admin"


async def make_approved_user(
    ledger: LedgerService, username: str, password: str = "pass1234"
) -> None:
    """Register and approve a user; they start with the 10-credit welcome bonus."""
    assert (await ledger.register(username, password)).success
    assert (await ledger.approve_account(ADMIN, username)).success


async def login(client: AsyncClient, username: str, password: str) -> dict[str, str]:
    """Log in over HTTP and return the Authorization header."""
    resp = await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.json()
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}
