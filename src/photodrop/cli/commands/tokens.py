"""Magic-link and session maintenance commands."""

import sys
import uuid
from typing import Optional

import click

from photodrop.auth.errors import NoSuchMembership
from photodrop.auth.magic_links import build_magic_link_url, issue_login_token, purge_expired_tokens
from photodrop.auth.sessions import purge_expired_sessions
from photodrop.cli.base import CliCommand


@click.command(name='issue-login-link')
@click.argument('email')
@click.option('--group-id', default=None, help='Group to sign in to (defaults to the oldest membership)')
def issue_login_link_command(email: str, group_id: Optional[str]):
    """Print a login link for EMAIL without sending any email."""
    cmd = IssueLoginLinkCommand(email, uuid.UUID(group_id) if group_id else None)
    cmd.run()


@click.command(name='purge-tokens')
def purge_tokens_command():
    """Delete expired magic links and refresh sessions."""
    cmd = PurgeTokensCommand()
    cmd.run()


class IssueLoginLinkCommand(CliCommand):
    """Command to mint a login link for support and local development."""

    def __init__(self, email: str, group_id: Optional[uuid.UUID]):
        super().__init__()
        self.email = email
        self.group_id = group_id

    def run(self):
        """Execute issue login link command."""
        self.setup_db()
        try:
            token = issue_login_token(self.db, email=self.email, group_id=self.group_id)
            link = build_magic_link_url(token.token)
        except NoSuchMembership:
            click.echo(f"No membership found for {self.email}", err=True)
            sys.exit(1)
        finally:
            self.cleanup_db()
        click.echo(link)


class PurgeTokensCommand(CliCommand):
    """Command to remove expired auth state."""

    def run(self):
        """Execute purge command."""
        self.setup_db()
        try:
            tokens = purge_expired_tokens(self.db)
            sessions = purge_expired_sessions(self.db)
        finally:
            self.cleanup_db()
        click.echo(f"Removed {tokens} expired magic links and {sessions} expired refresh sessions")
