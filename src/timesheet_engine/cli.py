"""Timesheet engine command line interface.

Provides operational tools for:
- Schema creation
- Demo data seeding

Usage:
    python -m timesheet_engine init-db
    python -m timesheet_engine seed-demo --org-name "Acme"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from typing import Callable

from sqlalchemy import select

from timesheet_engine import database
from timesheet_engine.config import configure_logging
from timesheet_engine.errors import ConflictError, describe_error
from timesheet_engine.models import Organisation, OrgSettings, User, UserRole
from timesheet_engine.schemas import ProjectCreate, UserCreate
from timesheet_engine.services.project_service import ProjectService
from timesheet_engine.services.scope import Actor
from timesheet_engine.services.user_service import UserService

logger = logging.getLogger(__name__)


async def init_db() -> None:
    await database.create_all()
    await database.dispose()


async def seed_demo(org_name: str, domain: str) -> dict[str, str]:
    """Create a demo organisation with an admin, a manager, two employees and two projects."""
    async with database.get_session() as session:
        admin_email = f"admin@{domain}"
        if await session.scalar(select(User.id).where(User.email == admin_email)) is not None:
            raise ConflictError(f"Demo data for {domain} already exists")

        org = Organisation(name=org_name)
        session.add(org)
        await session.flush()
        session.add(OrgSettings(organisation_id=org.id))

        admin = User(
            organisation_id=org.id,
            name="Admin User",
            email=admin_email,
            role=UserRole.ADMIN.value,
        )
        session.add(admin)
        await session.flush()

        users = UserService(session)
        projects = ProjectService(session)
        admin_actor = Actor(user_id=admin.id, org_id=org.id, role=UserRole.ADMIN)

        manager = await users.create_user(
            admin_actor,
            UserCreate(name="Maria Manager", email=f"manager@{domain}", role=UserRole.MANAGER),
        )
        manager_actor = Actor(user_id=manager.id, org_id=org.id, role=UserRole.MANAGER)

        alice = await users.create_user(
            manager_actor, UserCreate(name="Alice Employee", email=f"alice@{domain}")
        )
        bob = await users.create_user(
            manager_actor, UserCreate(name="Bob Employee", email=f"bob@{domain}")
        )

        await projects.create_project(
            manager_actor,
            ProjectCreate(
                code="WEB",
                name="Website Redesign",
                client="Acme Corp",
                budget_hours=Decimal("500"),
                employee_ids=[alice.id, bob.id],
            ),
        )
        await projects.create_project(
            admin_actor,
            ProjectCreate(
                code="LEAVE",
                name="Annual Leave",
                budget_hours=Decimal("0"),
                employee_ids=[alice.id, bob.id],
            ),
        )

        return {
            "organisation": str(org.id),
            "admin": str(admin.id),
            "manager": str(manager.id),
            "alice": str(alice.id),
            "bob": str(bob.id),
        }


class TimesheetCli:
    """Timesheet engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m timesheet_engine",
            description="Timesheet engine operational tools",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            help="Override LOG_LEVEL for this run",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser(
            "init-db",
            help="Create all tables in DATABASE_URL",
        )

        seed = subparsers.add_parser(
            "seed-demo",
            help="Create a demo organisation with users and projects",
        )
        seed.add_argument(
            "--org-name",
            type=str,
            default="Demo Organisation",
            help="Name of the organisation to create",
        )
        seed.add_argument(
            "--domain",
            type=str,
            default="demo.example.com",
            help="Email domain for the demo users",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)
        configure_logging(parsed.log_level)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "seed-demo": self._cmd_seed_demo,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except Exception as exc:
            error = describe_error(exc)
            print(f"{error['code']}: {error['message']}", file=sys.stderr)
            return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""
        asyncio.run(init_db())
        print("Schema created.")
        return 0

    def _cmd_seed_demo(self, args: argparse.Namespace) -> int:
        """Seed demo data."""

        async def _seed() -> dict[str, str]:
            try:
                return await seed_demo(args.org_name, args.domain)
            finally:
                await database.dispose()

        ids = asyncio.run(_seed())
        print(f"Seeded organisation '{args.org_name}':")
        for name, value in ids.items():
            print(f"  {name}: {value}")
        return 0


def main() -> int:
    """CLI entry point."""
    cli = TimesheetCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
