"""
Reports blueprint package.

Exposes reports_bp; routes live in routes.py.
"""

from .routes import reports_bp  # noqa: F401
