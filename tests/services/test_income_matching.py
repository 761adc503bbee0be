"""Tests for salary income matching."""

from datetime import date
from uuid import uuid4

import pytest

from recurring_match.services.matching import (
    TransactionEvent,
    income_source_matches,
    match_transaction_to_income_sources,
    step_pay_date,
)
from tests.factories import (
    AccountFactory,
    IncomeSourceFactory,
    TransactionFactory,
    create_household,
    noon_utc,
)


async def _payday(db, account_id, *, description="ACME PAYROLL PTY LTD", amount_cents=430000, on=date(2025, 1, 10)):
    txn = await TransactionFactory.create_async(
        db, account_id=account_id, description=description, amount_cents=amount_cents, created_at=noon_utc(on)
    )
    event = TransactionEvent(
        transaction_id=txn.id,
        description=description,
        account_id=account_id,
        effective_date=noon_utc(on),
        amount_cents=amount_cents,
    )
    return txn, event


@pytest.mark.parametrize(
    ("frequency", "expected"),
    [
        ("weekly", date(2025, 1, 17)),
        ("fortnightly", date(2025, 1, 24)),
        ("monthly", date(2025, 2, 10)),
        ("bi-monthly", date(2025, 3, 10)),
        ("quarterly", date(2025, 4, 10)),
        ("yearly", date(2026, 1, 10)),
        ("whenever", None),
        (None, None),
    ],
)
def test_step_pay_date(frequency, expected):
    assert step_pay_date(date(2025, 1, 10), frequency) == expected


class TestIncomeSourceMatches:
    def test_pattern_wildcards_are_stripped(self):
        source = IncomeSourceFactory.build(name="Salary", match_pattern="%ACME PAYROLL%")
        assert income_source_matches(source, "Acme Payroll Pty Ltd")

    def test_name_fallback(self):
        source = IncomeSourceFactory.build(name="Acme", match_pattern="%GLOBEX%")
        assert income_source_matches(source, "ACME PTY LTD PAY")

    def test_no_overlap(self):
        source = IncomeSourceFactory.build(name="Salary", match_pattern="%ACME%")
        assert not income_source_matches(source, "GLOBEX PAYROLL")


class TestIncomeMatching:
    async def test_updates_source_and_flags_transaction(self, db):
        household = await create_household(db)
        source = await IncomeSourceFactory.create_async(
            db, partnership_id=household.partnership.id, user_id=household.user_id
        )
        txn, event = await _payday(db, household.account.id)

        result = await match_transaction_to_income_sources(db, event)

        assert result.matched == ["Acme Salary"]
        assert result.error is None
        assert source.last_pay_date == date(2025, 1, 10)
        assert source.next_pay_date == date(2025, 1, 24)
        assert source.amount_cents == 430000
        await db.refresh(txn)
        assert txn.is_income is True
        assert txn.income_type == "salary"

    async def test_unknown_frequency_keeps_next_pay_date(self, db):
        household = await create_household(db)
        source = await IncomeSourceFactory.create_async(
            db,
            partnership_id=household.partnership.id,
            user_id=household.user_id,
            frequency="whenever",
            next_pay_date=date(2025, 1, 31),
        )
        _, event = await _payday(db, household.account.id)

        await match_transaction_to_income_sources(db, event)

        assert source.last_pay_date == date(2025, 1, 10)
        assert source.next_pay_date == date(2025, 1, 31)

    async def test_user_without_partnership_uses_own_sources(self, db):
        account = await AccountFactory.create_async(db)
        source = await IncomeSourceFactory.create_async(db, partnership_id=None, user_id=account.user_id)
        _, event = await _payday(db, account.id)

        result = await match_transaction_to_income_sources(db, event)

        assert result.matched == ["Acme Salary"]
        assert source.last_pay_date == date(2025, 1, 10)

    async def test_non_salary_and_inactive_sources_are_ignored(self, db):
        household = await create_household(db)
        await IncomeSourceFactory.create_async(
            db, partnership_id=household.partnership.id, user_id=household.user_id, source_type="one-off"
        )
        await IncomeSourceFactory.create_async(
            db, partnership_id=household.partnership.id, user_id=household.user_id, is_active=False
        )
        txn, event = await _payday(db, household.account.id)

        result = await match_transaction_to_income_sources(db, event)

        assert result.matched == []
        await db.refresh(txn)
        assert txn.is_income is False

    async def test_expenses_are_ignored(self, db):
        household = await create_household(db)
        await IncomeSourceFactory.create_async(
            db, partnership_id=household.partnership.id, user_id=household.user_id
        )
        _, event = await _payday(db, household.account.id, amount_cents=-430000)

        result = await match_transaction_to_income_sources(db, event)

        assert result.matched == []

    async def test_unknown_account(self, db):
        orphan = TransactionEvent(
            transaction_id=uuid4(),
            description="ACME PAYROLL PTY LTD",
            account_id=uuid4(),
            effective_date=noon_utc(date(2025, 1, 10)),
            amount_cents=430000,
        )

        result = await match_transaction_to_income_sources(db, orphan)

        assert result.error == "Account not found"
