"""Influencerium access layer: role-based access control and session management."""

__version__ = "0.1.0"
