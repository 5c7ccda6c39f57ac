"""
Column types shared by every model so the same schema runs on PostgreSQL
(production) and SQLite (local dev and tests).
"""
import json
import uuid
from typing import Union

from sqlalchemy import TypeDecorator, CHAR, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB


def as_uuid(value: Union[str, uuid.UUID, None]) -> Union[uuid.UUID, None]:
    """Normalize ids arriving as strings (path params, cookies) to UUID."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


class GUID(TypeDecorator):
    """
    UUID column.

    Native UUID on PostgreSQL, CHAR(36) text everywhere else. Values are
    always returned as uuid.UUID.
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        value = as_uuid(value)
        if dialect.name == 'postgresql':
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return as_uuid(value)


class JSON(TypeDecorator):
    """
    JSON document column.

    JSONB on PostgreSQL; serialized TEXT on SQLite. Dates inside payloads
    must already be ISO strings.
    """
    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        return json.loads(value)
