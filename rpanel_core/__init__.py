"""Hosting-account provisioning core for the rpanel server panel."""

__version__ = "0.1.0"
