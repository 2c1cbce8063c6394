"""Flask CLI commands provisioning local (password) accounts."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from authgate.services._shared.errors import ServiceError
from authgate.services.accounts.dto import LocalUserIn, PasswordSetIn
from authgate.services.accounts.service import AccountService


@click.group("users")
def users_cli() -> None:
    """Manage local accounts (there is no registration endpoint)."""


@users_cli.command("create")
@click.argument("userid")
@click.option("--name", "usernm", required=True, help="Display name.")
@click.option("--email", required=True, help="Email address.")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Password; prompted for when omitted.",
)
@click.option("--role", default=None, help="Optional role hint returned to clients.")
@with_appcontext
def create_user(userid: str, usernm: str, email: str, password: str, role: str | None) -> None:
    """Create the local account USERID."""
    dto = LocalUserIn(userid=userid, usernm=usernm, email=email, password=password, role=role)
    try:
        user = AccountService().create_local_user(dto)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created user {user.userid} <{user.email}>")


@users_cli.command("set-password")
@click.argument("userid")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="New password; prompted for when omitted.",
)
@with_appcontext
def set_password(userid: str, password: str) -> None:
    """Replace the password of USERID."""
    try:
        AccountService().set_password(PasswordSetIn(userid=userid, password=password))
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Password updated for {userid}")
