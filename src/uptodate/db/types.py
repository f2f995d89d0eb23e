"""Custom SQLAlchemy column types."""

import json

from sqlalchemy import Text, TypeDecorator


class JSONType(TypeDecorator):
    """JSON document stored as TEXT.

    Snapshots and run details are written and read whole, never queried
    by path, so a text column keeps SQLite and PostgreSQL identical.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return json.loads(value)
