"""Photodrop command line interface."""

import click

from photodrop.cli.commands import groups, tokens


@click.group()
def cli():
    """Photodrop administration commands."""


cli.add_command(groups.create_group_command)
cli.add_command(tokens.issue_login_link_command)
cli.add_command(tokens.purge_tokens_command)
