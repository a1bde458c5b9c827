"""Photodrop: private group photo sharing with passwordless sign-in."""

__version__ = "0.1.0"
