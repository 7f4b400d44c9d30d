#!/usr/bin/env python3
"""
Management command for recurring transactions.
Usage:
    python -m budget_backend.management.recurring_transactions --help
    python -m budget_backend.management.recurring_transactions --run
    python -m budget_backend.management.recurring_transactions --run --date 2024-04-01
    python -m budget_backend.management.recurring_transactions --preview 12 --workspace 3 --count 6
"""

import asyncio
import argparse
import logging
import sys

from budget_backend.core.config import settings
from budget_backend.db.session import AsyncSessionLocal
from budget_backend.services.recurring_calendar import DateOnlyError, parse_date_only, today_in_zone
from budget_backend.services.recurring_rule_service import RecurringRuleService
from budget_backend.services.recurring_run_service import RecurringRunCoordinator


async def run(date_arg: str | None) -> int:
    """Run one scheduler pass; exit code 1 if any rule failed"""
    today = parse_date_only(date_arg) if date_arg else today_in_zone(settings.RECURRING_TIMEZONE)
    async with AsyncSessionLocal() as db:
        result = await RecurringRunCoordinator(db).run_once(today)

    print(f"Created {len(result.created_ids)} recurring transactions for {today.isoformat()}")
    for tx_id in result.created_ids:
        print(f"  - transaction {tx_id}")
    if result.errors:
        print(f"{len(result.errors)} recurring rules failed:")
        for error in result.errors:
            print(f"  - rule {error.rule_id}: {error.message}")
        return 1
    return 0


async def preview(rule_id: int, workspace_id: int, count: int) -> int:
    """Print the next occurrence dates of a rule"""
    async with AsyncSessionLocal() as db:
        dates = await RecurringRuleService(db).preview_occurrences(workspace_id, rule_id, count)

    if dates is None:
        print(f"Recurring rule {rule_id} not found in workspace {workspace_id}")
        return 1
    print(f"Next {len(dates)} occurrences of rule {rule_id}:")
    for occurrence in dates:
        print(f"  - {occurrence.isoformat()}")
    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(description='Recurring transaction scheduler')
    parser.add_argument('--run', action='store_true', help='Materialize every due occurrence now')
    parser.add_argument('--date', type=str, help='Treat this day as today (YYYY-MM-DD)')
    parser.add_argument('--preview', type=int, metavar='RULE_ID', help='Show upcoming occurrences of a rule')
    parser.add_argument('--workspace', type=int, help='Workspace of the rule to preview')
    parser.add_argument('--count', type=int, default=12, help='Number of occurrences to preview')

    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    if args.run:
        try:
            return await run(args.date)
        except DateOnlyError:
            print("Invalid date format. Use YYYY-MM-DD (e.g., 2024-01-31)")
            return 2
    elif args.preview is not None:
        if args.workspace is None:
            parser.error("--preview requires --workspace")
        return await preview(args.preview, args.workspace, args.count)
    else:
        parser.print_help()
        return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
