"""
Column types and mixins shared by the credential, profile and quota tables.

Server pools and template lists are stored as JSON: natively on PostgreSQL
and MySQL, as serialized text on SQLite.
"""

import json
import uuid
from datetime import UTC, datetime

from pydantic_core import to_jsonable_python
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.mysql import JSON as MYSQL_JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

_NATIVE_JSON = {"postgresql": JSONB, "mysql": MYSQL_JSON}


def utc_now():
    """Return current UTC time with timezone info attached."""
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


class JSON(TypeDecorator):
    """JSON column for lists of pool names and template ids."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        native = _NATIVE_JSON.get(dialect.name)
        return dialect.type_descriptor(native() if native else Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Tuples and sets from callers are stored as plain lists
        value = to_jsonable_python(value)
        if dialect.name in _NATIVE_JSON:
            return value
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name in _NATIVE_JSON:
            return value
        return json.loads(value)


class TimestampMixin:
    """Row creation and last-modification times, in UTC."""

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class UUIDMixin:
    """String UUID primary key, generated client-side so it is known after flush."""

    id = Column(String(36), primary_key=True, default=new_id)
