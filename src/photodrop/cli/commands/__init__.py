"""CLI commands package."""

from . import groups, tokens

__all__ = [
    'groups',
    'tokens',
]
