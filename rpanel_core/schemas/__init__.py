"""Pydantic schemas for credentials, hosting profiles, quotas and accounts."""
