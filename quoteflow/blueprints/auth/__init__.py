"""
Auth blueprint package.

This file just exposes the Blueprint object (and the demo-mode hook) to be imported in quoteflow.__init__.
The actual routes and logic are in routes.py.
"""

from .routes import auth_bp, demo_login_hook  # noqa: F401
