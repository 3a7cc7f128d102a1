"""
quoteflow/blueprints/quotes/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import quotes_bp  # noqa: F401
