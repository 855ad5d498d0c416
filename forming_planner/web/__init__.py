"""HTTP interface for the production planner."""

from .app import create_app

__all__ = ["create_app"]
