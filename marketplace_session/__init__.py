"""Authenticated session and push device registration layer for the marketplace backend."""

from marketplace_session.context import SessionContext

__all__ = ["SessionContext"]
