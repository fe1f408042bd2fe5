"""HTTP surface over the provisioning engine."""

from .app import create_app

__all__ = ["create_app"]
