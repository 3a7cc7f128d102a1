from .routes import protocol_bp  # noqa: F401
