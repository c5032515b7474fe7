"""ComitySpace admin CLI — bootstrap and operate tenants from a shell.

Usage:
    comityspace init-db                                    # Create tables (dev only; use alembic elsewhere)
    comityspace create-super-admin ops@example.org         # Prompts for a password
    comityspace create-organization "Food Bank" --admin-email lead@foodbank.org
    comityspace set-org-password 3                         # Rotate a shared password
    comityspace whitelist-add 3 sam@example.org "Sam Lee" --role volunteer

Commands talk to the database directly through the service layer,
so they work before any super admin exists to log in with.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from typing import Optional

import click
from sqlalchemy import select

from comityspace import __version__
from comityspace.auth.password import hash_password
from comityspace.auth.resolvers import normalize_email
from comityspace.db.engine import async_session_factory, engine
from comityspace.db.models import WHITELIST_ROLES, Base, SuperAdmin
from comityspace.errors import ComityError, ConflictError
from comityspace.services.auth_service import AuthService
from comityspace.services.organization_service import (
    MIN_PASSWORD_LENGTH,
    OrganizationService,
)
from comityspace.services.whitelist_service import WhitelistService

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    When a loop is already running (CliRunner inside an async test),
    the coroutine runs on a worker thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        _fail(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="comityspace")
def main():
    """ComitySpace: manage super admins, organizations, and whitelists."""


# ---------------------------------------------------------------------------
# comityspace init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create all tables from the ORM metadata."""
    _run(_init_db_impl())
    click.secho("Database tables created.", fg="green")


async def _init_db_impl():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


# ---------------------------------------------------------------------------
# comityspace create-super-admin
# ---------------------------------------------------------------------------


@main.command("create-super-admin")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--first-name", default=None)
@click.option("--last-name", default=None)
def create_super_admin(email: str, password: str,
                       first_name: Optional[str], last_name: Optional[str]):
    """Provision a platform operator account."""
    _check_password(password)
    try:
        admin_id = _run(_create_super_admin_impl(email, password, first_name, last_name))
    except ComityError as e:
        _fail(e.message)
    click.secho(f"Super admin #{admin_id} created for {normalize_email(email)}", fg="green")


async def _create_super_admin_impl(email, password, first_name, last_name) -> int:
    async with async_session_factory() as db:
        email = normalize_email(email)
        existing = await db.execute(select(SuperAdmin.id).where(SuperAdmin.email == email))
        if existing.first() is not None:
            raise ConflictError(f"A super admin with email {email} already exists")
        admin = SuperAdmin(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(admin)
        await db.commit()
        return admin.id


# ---------------------------------------------------------------------------
# comityspace create-organization
# ---------------------------------------------------------------------------


@main.command("create-organization")
@click.argument("name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True,
              help="Shared password for every member")
@click.option("--description", default=None)
@click.option("--admin-email", default=None, help="Whitelist this email as nonprofit_admin")
def create_organization(name: str, password: str, description: Optional[str],
                        admin_email: Optional[str]):
    """Create an organization with its shared password."""
    _check_password(password)
    try:
        org_id = _run(_create_organization_impl(name, password, description, admin_email))
    except ComityError as e:
        _fail(e.message)
    click.secho(f"Organization #{org_id} created: {name}", fg="green")


async def _create_organization_impl(name, password, description, admin_email) -> int:
    async with async_session_factory() as db:
        org = await OrganizationService(db).create(
            name=name,
            password=password,
            description=description,
            admin_email=admin_email,
        )
        return org.id


# ---------------------------------------------------------------------------
# comityspace set-org-password
# ---------------------------------------------------------------------------


@main.command("set-org-password")
@click.argument("organization_id", type=int)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def set_org_password(organization_id: int, password: str):
    """Rotate an organization's shared password."""
    _check_password(password)
    try:
        _run(_set_org_password_impl(organization_id, password))
    except ComityError as e:
        _fail(e.message)
    click.secho(f"Password updated for organization #{organization_id}", fg="green")


async def _set_org_password_impl(organization_id: int, password: str):
    async with async_session_factory() as db:
        await AuthService(db).update_organization_password(organization_id, password)


# ---------------------------------------------------------------------------
# comityspace whitelist-add
# ---------------------------------------------------------------------------


@main.command("whitelist-add")
@click.argument("organization_id", type=int)
@click.argument("email")
@click.argument("name")
@click.option("--role", type=click.Choice(WHITELIST_ROLES), default="volunteer",
              show_default=True)
@click.option("--notes", default="", help="Admin notes stored on the entry")
def whitelist_add(organization_id: int, email: str, name: str, role: str, notes: str):
    """Whitelist EMAIL for an organization under NAME."""
    try:
        entry_id = _run(_whitelist_add_impl(organization_id, email, name, role, notes))
    except ComityError as e:
        _fail(e.message)
    click.secho(f"Whitelisted {normalize_email(email)} as {role} (entry #{entry_id})",
                fg="green")


async def _whitelist_add_impl(organization_id, email, name, role, notes) -> int:
    async with async_session_factory() as db:
        entry, _ = await WhitelistService(db).add_member(
            organization_id=organization_id,
            email=email,
            name=name,
            role=role,
            admin_notes=notes,
        )
        return entry.id


if __name__ == "__main__":
    main()
