"""Passwordless authentication, sessions and group-scoped authorization."""
