"""
Tests for occurrence materialization
"""
import pytest
from dataclasses import replace
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.repositories.transaction_repository import TransactionRepository
from budget_backend.services.recurring_materializer import OccurrenceMaterializer
from budget_backend.services.recurring_run_service import RuleSnapshot


@pytest.mark.asyncio
class TestOccurrenceMaterializer:
    async def test_creates_pending_snapshot_transaction(self, test_db: AsyncSession, make_rule):
        rule = await make_rule(name="Gym", amount_minor=1250, currency="EUR", kind="expense", merchant_id=4)
        result = await OccurrenceMaterializer(test_db).materialize(rule, date(2024, 1, 1))

        assert result.created is True
        tx = await TransactionRepository(test_db).get_by_id(result.transaction_id)
        assert tx.recurring_rule_id == rule.id
        assert tx.occurrence_date == date(2024, 1, 1)
        assert tx.tx_date == date(2024, 1, 1)
        assert tx.amount_minor == 1250
        assert tx.currency == "EUR"
        assert tx.kind == "expense"
        assert tx.category_id == 7
        assert tx.merchant_id == 4
        assert tx.is_pending is True
        assert tx.note == "Recurring: Gym"

    async def test_second_call_is_a_no_op(self, test_db: AsyncSession, make_rule, count_transactions):
        rule = await make_rule()
        materializer = OccurrenceMaterializer(test_db)

        first = await materializer.materialize(rule, date(2024, 2, 1))
        second = await materializer.materialize(rule, date(2024, 2, 1))

        assert first.created is True
        assert second.created is False
        assert second.transaction_id == first.transaction_id
        assert await count_transactions(recurring_rule_id=rule.id) == 1

    async def test_distinct_occurrences_get_distinct_transactions(self, test_db: AsyncSession, make_rule, count_transactions):
        rule = await make_rule()
        materializer = OccurrenceMaterializer(test_db)

        await materializer.materialize(rule, date(2024, 2, 1))
        await materializer.materialize(rule, date(2024, 3, 1))

        assert await count_transactions(recurring_rule_id=rule.id) == 2

    async def test_racing_duplicate_is_treated_as_existing(
        self, test_db: AsyncSession, make_rule, count_transactions, monkeypatch
    ):
        rule = RuleSnapshot.from_model(await make_rule())
        materializer = OccurrenceMaterializer(test_db)
        # Another run got there first
        winner = await materializer.transaction_repo.create(
            OccurrenceMaterializer.build_transaction(rule, date(2024, 2, 1))
        )
        winner_id = winner.id

        real_lookup = materializer.transaction_repo.get_by_occurrence
        calls = []

        async def stale_then_real(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await real_lookup(*args)

        monkeypatch.setattr(materializer.transaction_repo, "get_by_occurrence", stale_then_real)

        result = await materializer.materialize(rule, date(2024, 2, 1))

        assert result.created is False
        assert result.transaction_id == winner_id
        assert await count_transactions(recurring_rule_id=rule.id) == 1

    async def test_rule_edits_do_not_touch_materialized_transactions(self, test_db: AsyncSession, make_rule):
        from budget_backend.repositories.recurring_rule_repository import RecurringRuleRepository

        rule = await make_rule(amount_minor=5000)
        result = await OccurrenceMaterializer(test_db).materialize(rule, date(2024, 1, 1))
        await RecurringRuleRepository(test_db).update(rule, {"amount_minor": 9900, "name": "New rent"})

        tx = await TransactionRepository(test_db).get_by_id(result.transaction_id)
        await test_db.refresh(tx)
        assert tx.amount_minor == 5000
        assert tx.note == "Recurring: Rent"

    async def test_same_rule_id_in_other_workspace_is_independent(self, test_db: AsyncSession, make_rule, count_transactions):
        rule = RuleSnapshot.from_model(await make_rule())
        other = replace(rule, workspace_id=2)
        materializer = OccurrenceMaterializer(test_db)

        assert (await materializer.materialize(rule, date(2024, 1, 1))).created is True
        assert (await materializer.materialize(other, date(2024, 1, 1))).created is True
        assert await count_transactions(recurring_rule_id=rule.id) == 2
