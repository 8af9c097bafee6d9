"""Adapter layer: SQLAlchemy repositories and request authentication."""
