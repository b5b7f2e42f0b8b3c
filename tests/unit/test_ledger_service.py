"""LedgerService tests over the in-memory store.

Covers the balance invariant, atomicity of each operation, the account and
deposit lifecycles, admin checks and the two end-to-end scenarios.
"""

import asyncio
from decimal import Decimal

import pytest

from src.cl_common.enums import (
    AccountSortKey,
    AccountStatus,
    DepositSortKey,
    DepositStatus,
    SortDirection,
    TransactionType,
)
from src.cl_common.errors import StoreFailureError
from src.cl_ledger.application.schemas import cursor_encode
from src.cl_ledger.application.service import LedgerPolicy, LedgerService
from src.cl_store.infrastructure.memory_store import InMemoryKeyValueStore
from tests.helpers import ADMIN, make_approved_user


class _InterleavingStore(InMemoryKeyValueStore):
    """Yields to the event loop on every read so concurrent operations interleave."""

    async def get(self, key):  # type: ignore[no-untyped-def]
        await asyncio.sleep(0)
        return await super().get(key)

    async def get_many(self, keys):  # type: ignore[no-untyped-def]
        await asyncio.sleep(0)
        return await super().get_many(keys)


async def _balance(ledger: LedgerService, username: str) -> Decimal:
    return (await ledger.get_account(username)).data.balance


async def _history(ledger: LedgerService, username: str):  # type: ignore[no-untyped-def]
    return (await ledger.list_transactions(ADMIN, username)).data.items


async def _assert_invariant(ledger: LedgerService) -> None:
    report = (await ledger.verify_invariants(ADMIN)).data
    assert report.ok, report.violations


class TestBootstrap:
    async def test_admin_seeded_with_opening_balance(self, ledger: LedgerService) -> None:
        admin = (await ledger.get_account(ADMIN)).data
        assert admin.role == "admin"
        assert admin.status == AccountStatus.APPROVED
        assert admin.balance == Decimal("9999")
        history = await _history(ledger, ADMIN)
        assert len(history) == 1
        assert history[0].type == TransactionType.CREDIT
        await _assert_invariant(ledger)

    async def test_seeding_is_idempotent(self, ledger: LedgerService) -> None:
        assert (await ledger.ensure_admin_account()).success
        assert await _balance(ledger, ADMIN) == Decimal("9999")
        assert len(await _history(ledger, ADMIN)) == 1

    async def test_admin_can_log_in(self, ledger: LedgerService) -> None:
        result = await ledger.login(ADMIN, "admin")
        assert result.success
        assert result.message == "Login successful!"


class TestRegistration:
    async def test_register_pending(self, ledger: LedgerService) -> None:
        result = await ledger.register("alice", "pass1234")
        assert result.success
        assert result.message == "Registration successful! Your account is now pending approval."
        assert result.data.status == AccountStatus.PENDING
        assert result.data.balance == Decimal("0")

    async def test_duplicate_fails(self, ledger: LedgerService) -> None:
        await ledger.register("alice", "pass1234")
        result = await ledger.register("alice", "pass1234")
        assert not result.success
        assert result.code == 1002

    async def test_reserved_admin_name_fails(self, ledger: LedgerService) -> None:
        result = await ledger.register("admin", "pass1234")
        assert not result.success
        assert result.code == 1001

    async def test_weak_password_fails(self, ledger: LedgerService) -> None:
        result = await ledger.register("alice", "abc")
        assert not result.success
        assert result.code == 1003

    async def test_pending_cannot_log_in(self, ledger: LedgerService) -> None:
        await ledger.register("alice", "pass1234")
        result = await ledger.login("alice", "pass1234")
        assert result.code == 1005

    async def test_concurrent_registrations_of_one_name(self, ledger: LedgerService) -> None:
        results = await asyncio.gather(
            *(ledger.register("alice", "pass1234") for _ in range(5))
        )
        assert sum(r.success for r in results) == 1
        accounts = (await ledger.list_accounts(ADMIN)).data
        assert [a.username for a in accounts] == ["alice"]


class TestApproval:
    async def test_approve_credits_welcome_bonus_once(self, ledger: LedgerService) -> None:
        await ledger.register("alice", "pass1234")
        result = await ledger.approve_account(ADMIN, "alice")
        assert result.success
        assert result.data.balance == Decimal("10")
        history = await _history(ledger, "alice")
        assert len(history) == 1
        assert history[0].description == "Account approved - Welcome bonus"

        again = await ledger.approve_account(ADMIN, "alice")
        assert not again.success
        assert again.code == 1010
        assert await _balance(ledger, "alice") == Decimal("10")
        assert len(await _history(ledger, "alice")) == 1

    async def test_approve_unknown(self, ledger: LedgerService) -> None:
        result = await ledger.approve_account(ADMIN, "ghost")
        assert result.code == 1009

    async def test_blocked_account_cannot_be_approved(self, ledger: LedgerService) -> None:
        await ledger.register("alice", "pass1234")
        await ledger.set_account_status(ADMIN, "alice", AccountStatus.BLOCKED)
        result = await ledger.approve_account(ADMIN, "alice")
        assert result.code == 1010
        assert await _balance(ledger, "alice") == Decimal("0")

    async def test_non_admin_is_unauthorized(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        await ledger.register("bob", "pass1234")
        result = await ledger.approve_account("alice", "bob")
        assert not result.success
        assert result.code == 1008
        assert result.http_status == 403


class TestStatus:
    async def test_block_and_unblock_log_nothing(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        blocked = await ledger.set_account_status(ADMIN, "alice", AccountStatus.BLOCKED)
        assert blocked.data.status == AccountStatus.BLOCKED
        assert (await ledger.login("alice", "pass1234")).code == 1006
        await ledger.set_account_status(ADMIN, "alice", AccountStatus.APPROVED)
        assert (await ledger.login("alice", "pass1234")).success
        assert len(await _history(ledger, "alice")) == 1

    async def test_set_pending_is_rejected(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.set_account_status(ADMIN, "alice", AccountStatus.PENDING)
        assert result.code == 1010


class TestCharge:
    async def test_charge_deducts_and_logs(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.charge_for_generation("alice", Decimal("1"))
        assert result.success
        assert result.message == "Charge successful"
        assert result.data.balance == Decimal("9")
        assert result.data.transaction.type == TransactionType.DEBIT
        assert result.data.transaction.description == "Image Generation"
        await _assert_invariant(ledger)

    async def test_insufficient_balance_changes_nothing(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.charge_for_generation("alice", Decimal("11"))
        assert not result.success
        assert result.code == 2001
        assert "11.00" in result.message
        assert "10.00" in result.message
        assert await _balance(ledger, "alice") == Decimal("10")
        assert len(await _history(ledger, "alice")) == 1

    async def test_exact_balance_can_be_spent(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        assert (await ledger.charge_for_generation("alice", Decimal("10"))).success
        assert await _balance(ledger, "alice") == Decimal("0")

    async def test_pending_and_blocked_cannot_charge(self, ledger: LedgerService) -> None:
        await ledger.register("bob", "pass1234")
        assert (await ledger.charge_for_generation("bob", Decimal("1"))).code == 1005
        await make_approved_user(ledger, "carol")
        await ledger.set_account_status(ADMIN, "carol", AccountStatus.BLOCKED)
        assert (await ledger.charge_for_generation("carol", Decimal("1"))).code == 1006

    @pytest.mark.parametrize("cost", ["0", "-1"])
    async def test_non_positive_cost(self, ledger: LedgerService, cost: str) -> None:
        await make_approved_user(ledger, "alice")
        assert (await ledger.charge_for_generation("alice", Decimal(cost))).code == 2002

    async def test_concurrent_charges_never_overdraw(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        results = await asyncio.gather(
            *(ledger.charge_for_generation("alice", Decimal("1")) for _ in range(15))
        )
        assert sum(r.success for r in results) == 10
        assert all(r.code == 2001 for r in results if not r.success)
        assert await _balance(ledger, "alice") == Decimal("0")
        assert len(await _history(ledger, "alice")) == 11
        await _assert_invariant(ledger)


class TestAdminAdjust:
    async def test_credit_and_debit_below_zero(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        up = await ledger.admin_adjust_balance(ADMIN, "alice", Decimal("5"))
        assert up.data.balance == Decimal("15")
        assert up.data.transaction.description == "Manual credit by admin"
        down = await ledger.admin_adjust_balance(ADMIN, "alice", Decimal("-20"))
        assert down.success
        assert down.data.balance == Decimal("-5")
        assert down.data.transaction.type == TransactionType.DEBIT
        assert down.data.transaction.amount == Decimal("20")
        await _assert_invariant(ledger)

    async def test_zero_delta_rejected(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.admin_adjust_balance(ADMIN, "alice", Decimal("0"))
        assert result.code == 2002
        assert len(await _history(ledger, "alice")) == 1

    async def test_unknown_account(self, ledger: LedgerService) -> None:
        assert (await ledger.admin_adjust_balance(ADMIN, "ghost", Decimal("1"))).code == 1009

    async def test_oversized_delta_rejected(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.admin_adjust_balance(ADMIN, "alice", Decimal("1e30"))
        assert not result.success
        assert result.code == 2002
        assert await _balance(ledger, "alice") == Decimal("10")

    async def test_mutate_balance_primitive(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.mutate_balance("alice", Decimal("2.5"), "Refund")
        assert result.data.balance == Decimal("12.50")
        assert result.data.transaction.description == "Refund"
        await _assert_invariant(ledger)


class TestDeposits:
    async def test_submit_has_no_balance_effect(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.submit_deposit_request("alice", Decimal("50"))
        assert result.success
        assert result.message == (
            "Your deposit request has been submitted and is pending admin approval."
        )
        assert result.data.status == DepositStatus.PENDING
        assert await _balance(ledger, "alice") == Decimal("10")

    async def test_submit_invalid_amount(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        assert (await ledger.submit_deposit_request("alice", Decimal("0"))).code == 2002

    async def test_submit_unknown_account(self, ledger: LedgerService) -> None:
        assert (await ledger.submit_deposit_request("ghost", Decimal("5"))).code == 1009

    @pytest.mark.parametrize("amount", [Decimal("1e26"), Decimal("1e30")])
    async def test_submit_oversized_amount(self, ledger: LedgerService, amount: Decimal) -> None:
        await make_approved_user(ledger, "alice")
        result = await ledger.submit_deposit_request("alice", amount)
        assert not result.success
        assert result.code == 2002
        assert (await ledger.list_deposit_requests(ADMIN)).data == []

    @pytest.mark.parametrize(
        "first,second",
        [("approve", "approve"), ("approve", "reject"), ("reject", "approve")],
    )
    async def test_double_resolution_applies_once(
        self, ledger: LedgerService, first: str, second: str
    ) -> None:
        await make_approved_user(ledger, "alice")
        request_id = (await ledger.submit_deposit_request("alice", Decimal("50"))).data.id
        ops = {"approve": ledger.approve_deposit, "reject": ledger.reject_deposit}

        assert (await ops[first](ADMIN, request_id)).success
        again = await ops[second](ADMIN, request_id)
        assert not again.success
        assert again.code == 3002

        expected = Decimal("60") if first == "approve" else Decimal("10")
        assert await _balance(ledger, "alice") == expected
        await _assert_invariant(ledger)

    async def test_concurrent_approvals_credit_once(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        request_id = (await ledger.submit_deposit_request("alice", Decimal("50"))).data.id
        results = await asyncio.gather(
            *(ledger.approve_deposit(ADMIN, request_id) for _ in range(5))
        )
        assert sum(r.success for r in results) == 1
        assert await _balance(ledger, "alice") == Decimal("60")

    async def test_two_workers_approving_credit_once(self) -> None:
        # Two services over one store share no locks, like two server processes
        shared = _InterleavingStore()
        worker_a = LedgerService(shared, LedgerPolicy())
        worker_b = LedgerService(shared, LedgerPolicy())
        await worker_a.ensure_admin_account()
        await make_approved_user(worker_a, "alice")
        request_id = (await worker_a.submit_deposit_request("alice", Decimal("50"))).data.id

        results = await asyncio.gather(
            worker_a.approve_deposit(ADMIN, request_id),
            worker_b.approve_deposit(ADMIN, request_id),
        )
        assert sum(r.success for r in results) == 1
        loser = next(r for r in results if not r.success)
        assert loser.code in (3002, 9004)
        assert await _balance(worker_a, "alice") == Decimal("60")
        await _assert_invariant(worker_a)

    async def test_two_workers_charging_never_overdraw(self) -> None:
        shared = _InterleavingStore()
        worker_a = LedgerService(shared, LedgerPolicy())
        worker_b = LedgerService(shared, LedgerPolicy())
        await worker_a.ensure_admin_account()
        await make_approved_user(worker_a, "alice")

        results = await asyncio.gather(
            *(w.charge_for_generation("alice", Decimal("7")) for w in (worker_a, worker_b))
        )
        assert sum(r.success for r in results) == 1
        assert await _balance(worker_a, "alice") == Decimal("3")
        await _assert_invariant(worker_a)

    async def test_unknown_request(self, ledger: LedgerService) -> None:
        assert (await ledger.approve_deposit(ADMIN, "404")).code == 3001
        assert (await ledger.reject_deposit(ADMIN, "404")).code == 3001

    async def test_approval_records_resolver(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        request_id = (await ledger.submit_deposit_request("alice", Decimal("5"))).data.id
        resolution = (await ledger.approve_deposit(ADMIN, request_id)).data
        assert resolution.request.status == DepositStatus.APPROVED
        assert resolution.request.resolved_by == ADMIN
        assert resolution.balance_change.transaction.description == "Deposit approved by admin"


class TestListing:
    async def test_accounts_exclude_admin_and_filter(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "carol")
        await ledger.register("alice", "pass1234")
        await make_approved_user(ledger, "bob")
        result = await ledger.list_accounts(ADMIN)
        assert [a.username for a in result.data] == ["alice", "bob", "carol"]

        pending = await ledger.list_accounts(ADMIN, status=AccountStatus.PENDING)
        assert [a.username for a in pending.data] == ["alice"]

        by_balance = await ledger.list_accounts(
            ADMIN, sort_by=AccountSortKey.BALANCE, direction=SortDirection.DESC
        )
        assert [a.username for a in by_balance.data] == ["carol", "bob", "alice"]

    async def test_deposits_default_newest_first(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        first = (await ledger.submit_deposit_request("alice", Decimal("5"))).data.id
        second = (await ledger.submit_deposit_request("alice", Decimal("7"))).data.id
        await ledger.reject_deposit(ADMIN, first)

        result = await ledger.list_deposit_requests(ADMIN)
        assert [r.id for r in result.data] == [second, first]

        rejected = await ledger.list_deposit_requests(ADMIN, status=DepositStatus.REJECTED)
        assert [r.id for r in rejected.data] == [first]

        by_amount = await ledger.list_deposit_requests(
            ADMIN, sort_by=DepositSortKey.AMOUNT, direction=SortDirection.ASC
        )
        assert [r.amount for r in by_amount.data] == [Decimal("5"), Decimal("7")]

    async def test_listing_requires_admin(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        assert (await ledger.list_accounts("alice")).code == 1008
        assert (await ledger.list_deposit_requests("alice")).code == 1008
        assert (await ledger.verify_invariants("alice")).code == 1008

    async def test_transaction_paging(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        for _ in range(4):
            await ledger.charge_for_generation("alice", Decimal("1"))

        page1 = (await ledger.list_transactions(ADMIN, "alice", limit=2)).data
        assert len(page1.items) == 2
        assert page1.has_more
        page2 = (
            await ledger.list_transactions(ADMIN, "alice", cursor=page1.next_cursor, limit=2)
        ).data
        page3 = (
            await ledger.list_transactions(ADMIN, "alice", cursor=page2.next_cursor, limit=2)
        ).data
        assert not page3.has_more
        assert page3.next_cursor is None
        ids = [t.id for t in page1.items + page2.items + page3.items]
        everything = [t.id for t in await _history(ledger, "alice")]
        assert ids == everything
        assert len(ids) == 5
        assert page3.items[-1].description == "Account approved - Welcome bonus"

    async def test_cursor_past_the_end(self, ledger: LedgerService) -> None:
        await make_approved_user(ledger, "alice")
        oldest = (await _history(ledger, "alice"))[-1].id
        page = (
            await ledger.list_transactions(ADMIN, "alice", cursor=cursor_encode(oldest))
        ).data
        assert page.items == []
        assert not page.has_more

    async def test_transactions_of_unknown_account(self, ledger: LedgerService) -> None:
        assert (await ledger.list_transactions(ADMIN, "ghost")).code == 1009


class TestStoreFailures:
    async def test_corrupt_account_surfaces_as_store_failure(
        self, ledger: LedgerService, store: InMemoryKeyValueStore
    ) -> None:
        await make_approved_user(ledger, "alice")
        store.put_raw("app:account:alice", '{"username": "alice", "balance": 10}')
        result = await ledger.charge_for_generation("alice", Decimal("1"))
        assert not result.success
        assert result.code == 9003
        assert result.http_status == 503

    async def test_corrupt_deposit_index_degrades_list_to_empty(
        self, ledger: LedgerService, store: InMemoryKeyValueStore
    ) -> None:
        store.put_raw("app:deposit_index", '"not a list"')
        result = await ledger.list_deposit_requests(ADMIN)
        assert result.success
        assert result.data == []

    async def test_failed_commit_leaves_store_untouched(
        self, store: InMemoryKeyValueStore
    ) -> None:
        ledger = LedgerService(store, LedgerPolicy())
        await ledger.ensure_admin_account()
        await make_approved_user(ledger, "alice")
        before = {k: await store.get(k) for k in store.keys()}

        async def broken_set_many(items, expected=None):  # type: ignore[no-untyped-def]
            raise StoreFailureError("write failed")

        store.set_many = broken_set_many  # type: ignore[method-assign]
        result = await ledger.charge_for_generation("alice", Decimal("1"))
        assert result.code == 9003
        assert {k: await store.get(k) for k in store.keys()} == before


class TestScenarios:
    async def test_alice_end_to_end(self, ledger: LedgerService) -> None:
        registered = await ledger.register("alice", "pass1234")
        assert registered.data.status == AccountStatus.PENDING
        assert registered.data.balance == Decimal("0")

        await ledger.approve_account(ADMIN, "alice")
        assert await _balance(ledger, "alice") == Decimal("10")
        history = await _history(ledger, "alice")
        assert [(t.type, t.amount) for t in history] == [(TransactionType.CREDIT, Decimal("10"))]

        request = (await ledger.submit_deposit_request("alice", Decimal("50"))).data
        assert request.status == DepositStatus.PENDING

        assert (await ledger.approve_deposit(ADMIN, request.id)).success
        assert await _balance(ledger, "alice") == Decimal("60")
        assert len(await _history(ledger, "alice")) == 2

        assert (await ledger.charge_for_generation("alice", Decimal("1"))).success
        assert await _balance(ledger, "alice") == Decimal("59")
        assert len(await _history(ledger, "alice")) == 3
        await _assert_invariant(ledger)

    async def test_bob_rejected_deposit(self, ledger: LedgerService) -> None:
        await ledger.register("bob", "pass1234")
        request = (await ledger.submit_deposit_request("bob", Decimal("20"))).data

        rejected = await ledger.reject_deposit(ADMIN, request.id)
        assert rejected.success
        assert rejected.data.request.status == DepositStatus.REJECTED
        assert rejected.data.balance_change is None

        assert await _balance(ledger, "bob") == Decimal("0")
        assert await _history(ledger, "bob") == []
        again = await ledger.reject_deposit(ADMIN, request.id)
        assert not again.success
        assert again.code == 3002


class TestInvariantReport:
    async def test_detects_drift(
        self, ledger: LedgerService, store: InMemoryKeyValueStore
    ) -> None:
        await make_approved_user(ledger, "alice")
        raw = await store.get("app:account:alice")
        raw["data"]["balance"] = "99.00"
        await store.set("app:account:alice", raw)
        report = (await ledger.verify_invariants(ADMIN)).data
        assert not report.ok
        assert report.checked_accounts == 2
        assert any("alice" in v for v in report.violations)
