from sqlalchemy import String, Text, TypeDecorator
from sqlalchemy.dialects import postgresql
import json
import uuid


class GUID(TypeDecorator):
    """
    Platform-independent GUID type.

    Native UUID on PostgreSQL, String(36) elsewhere. Always hands
    ``uuid.UUID`` objects back to the application.
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        if dialect.name == 'postgresql':
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return value if isinstance(value, uuid.UUID) else uuid.UUID(value)


class StringList(TypeDecorator):
    """
    Ordered list of strings stored as a JSON array in a TEXT column.

    Works the same on SQLite and PostgreSQL; values are compared as whole
    documents, so query on this column only for equality.
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps([str(v) for v in value])

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        return list(json.loads(value))
