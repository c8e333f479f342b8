"""Database column type helpers."""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON, TypeDecorator


class JSONBCompat(TypeDecorator):
    """JSONB on Postgres, plain JSON on SQLite."""

    impl = JSONB
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":  # pragma: no cover - dialect specific
            return dialect.type_descriptor(JSON())
        return dialect.type_descriptor(JSONB())


class WeekdayList(JSONBCompat):
    """A JSON array of weekday names, stored lowercased and de-duplicated in input order."""

    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        seen: list[str] = []
        for item in value:
            key = str(item).strip().lower()
            if key and key not in seen:
                seen.append(key)
        return seen

    def process_result_value(self, value, dialect):
        return list(value or [])
