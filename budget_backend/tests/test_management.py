"""
Tests for the recurring transactions management command
"""
import sys
import pytest
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.management import recurring_transactions as command
from budget_backend.services.recurring_calendar import today_in_zone


@pytest.fixture
def command_session(test_db: AsyncSession, monkeypatch):
    """Point the command's session factory at the test database"""
    @asynccontextmanager
    async def session_factory():
        yield test_db

    monkeypatch.setattr(command, "AsyncSessionLocal", session_factory)
    return test_db


def set_argv(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["recurring_transactions", *args])


@pytest.mark.asyncio
class TestRecurringCommand:
    async def test_run_for_given_date(self, command_session, make_rule, count_transactions, capsys):
        await make_rule(next_run_on=date(2024, 3, 1))
        exit_code = await command.run("2024-04-01")

        assert exit_code == 0
        assert "Created 2 recurring transactions for 2024-04-01" in capsys.readouterr().out
        assert await count_transactions() == 2

    async def test_run_reports_failed_rules(self, command_session, make_rule, capsys):
        broken = await make_rule(frequency="yearly")
        exit_code = await command.run("2024-04-01")

        assert exit_code == 1
        out = capsys.readouterr().out
        assert "1 recurring rules failed" in out
        assert f"rule {broken.id}: Invalid schedule" in out

    async def test_main_rejects_malformed_date(self, command_session, monkeypatch, capsys):
        set_argv(monkeypatch, "--run", "--date", "2024-4-1")

        assert await command.main() == 2
        assert "Invalid date format" in capsys.readouterr().out

    async def test_main_run_uses_date_argument(self, command_session, make_rule, monkeypatch):
        await make_rule(next_run_on=date(2024, 1, 1))
        set_argv(monkeypatch, "--run", "--date", "2024-02-01")

        assert await command.main() == 0

    async def test_preview(self, command_session, make_rule, capsys):
        rule = await make_rule(day_of_month=31, start_date=date(2024, 1, 31), next_run_on=date(2024, 1, 31))

        exit_code = await command.preview(rule.id, rule.workspace_id, 3)

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "  - 2024-01-31\n  - 2024-02-29\n  - 2024-03-31\n" in out

    async def test_preview_unknown_rule(self, command_session, capsys):
        assert await command.preview(999, 1, 3) == 1
        assert "Recurring rule 999 not found in workspace 1" in capsys.readouterr().out

    async def test_preview_requires_workspace(self, command_session, monkeypatch):
        set_argv(monkeypatch, "--preview", "3")

        with pytest.raises(SystemExit) as exc_info:
            await command.main()
        assert exc_info.value.code == 2

    async def test_no_arguments_prints_help(self, monkeypatch, capsys):
        set_argv(monkeypatch)

        assert await command.main() == 0
        assert "--run" in capsys.readouterr().out


class TestTodayInZone:
    def test_utc_matches_clock(self):
        before = datetime.now(timezone.utc).date()
        today = today_in_zone("UTC")
        after = datetime.now(timezone.utc).date()
        assert today in (before, after)

    def test_zones_on_either_side_of_date_line_differ(self):
        # UTC+14 and UTC-11 are 25 hours apart, so their civil dates always differ
        ahead = today_in_zone("Pacific/Kiritimati")
        behind = today_in_zone("Pacific/Pago_Pago")
        assert 1 <= (ahead - behind).days <= 2

    def test_unknown_zone_raises(self):
        with pytest.raises(ZoneInfoNotFoundError):
            today_in_zone("Mars/Olympus_Mons")
