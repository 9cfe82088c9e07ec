"""
Cron and operator entry point: periodic jobs plus the admin bootstrap.

    python -m ticketpro.jobs sweep
    python -m ticketpro.jobs backup --type daily
    python -m ticketpro.jobs create-admin --email admin@agency.com --full-name "Office Admin"
"""

import argparse
import asyncio
import getpass
import sys

from fastapi import HTTPException
from pydantic import ValidationError

from ticketpro.core.logging import get_logger, setup_logging
from ticketpro.core.permissions import Role
from ticketpro.db.session import AsyncSessionLocal, engine
from ticketpro.schemas.user import UserCreate
from ticketpro.services.auth_service import register_user
from ticketpro.services.backup_service import BACKUP_TYPES, create_backup
from ticketpro.services.expiry_service import run_maintenance
from ticketpro.services.strategy_factory import close_capabilities, get_exporter, get_mailer

logger = get_logger(__name__)


async def cmd_sweep(args: argparse.Namespace) -> int:
    async with AsyncSessionLocal() as db:
        report = await run_maintenance(db, get_mailer())
    print(f"expired={len(report.expired)} notifications={report.notifications_delivered} "
          f"emails_sent={report.emails.sent} emails_failed={report.emails.failed}")
    return 0


async def cmd_backup(args: argparse.Namespace) -> int:
    async with AsyncSessionLocal() as db:
        log = await create_backup(db, get_exporter(), backup_type=args.type)
    print(f"{log.status} {log.file_name} records={log.record_count}")
    return 0 if log.status == "completed" else 1


async def cmd_create_admin(args: argparse.Namespace) -> int:
    """Bootstrap the first admin; everyone else is added through /agents."""
    password = args.password or getpass.getpass("Password: ")
    try:
        data = UserCreate(email=args.email, full_name=args.full_name, password=password)
    except ValidationError as e:
        print(e, file=sys.stderr)
        return 2

    async with AsyncSessionLocal() as db:
        try:
            user = await register_user(db, data, role=Role.ADMIN)
        except HTTPException as e:
            await db.rollback()
            print(e.detail, file=sys.stderr)
            return 1
        await db.commit()
    print(f"admin id={user.id} email={user.email}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ticketpro.jobs", description="TicketPro periodic jobs")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_sweep = sub.add_parser("sweep", help="Expire lapsed holds, deliver due warnings, retry emails")
    p_sweep.set_defaults(func=cmd_sweep)

    p_backup = sub.add_parser("backup", help="Export bookings, tickets and agents")
    p_backup.add_argument("--type", choices=BACKUP_TYPES, default="daily")
    p_backup.set_defaults(func=cmd_backup)

    p_admin = sub.add_parser("create-admin", help="Create an admin account")
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--full-name", required=True)
    p_admin.add_argument("--password", help="Prompted for when omitted")
    p_admin.set_defaults(func=cmd_create_admin)

    return parser


async def _run(args: argparse.Namespace) -> int:
    try:
        return await args.func(args)
    finally:
        await close_capabilities()
        await engine.dispose()


def main(argv=None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
