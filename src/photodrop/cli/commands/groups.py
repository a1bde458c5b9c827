"""Group provisioning commands."""

import click

from photodrop.cli.base import CliCommand
from photodrop.groups import create_group


@click.command(name='create-group')
@click.argument('name')
@click.option('--owner-email', required=True, help='Email of the group owner')
@click.option('--owner-name', required=True, help='Display name for a new owner account')
def create_group_command(name: str, owner_email: str, owner_name: str):
    """Create a group and make OWNER_EMAIL its owner and first admin."""
    cmd = CreateGroupCommand(name, owner_email, owner_name)
    cmd.run()


class CreateGroupCommand(CliCommand):
    """Command to seed a group with its owner."""

    def __init__(self, name: str, owner_email: str, owner_name: str):
        super().__init__()
        self.name = name
        self.owner_email = owner_email
        self.owner_name = owner_name

    def run(self):
        """Execute create group command."""
        self.setup_db()
        try:
            group = create_group(
                self.db,
                name=self.name,
                owner_email=self.owner_email,
                owner_name=self.owner_name,
            )
            click.echo(f"Created group {group.name} ({group.id})")
            click.echo(f"  Owner: {self.owner_email} ({group.owner_id})")
        finally:
            self.cleanup_db()
