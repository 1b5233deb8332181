import enum
from typing import Optional, Type

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class LowercaseEnum(TypeDecorator):
    """Store a ``str`` enum as its lowercase value in a plain string column.

    Accepts enum members or any casing of their values on the way in, so
    query-string filters like ``status=eq.PENDING`` match. Unknown strings are
    passed through lowercased and simply match no row.
    """

    impl = String(32)
    cache_ok = True

    def __init__(self, enum_cls: Type[enum.Enum], **kwargs):
        super().__init__(**kwargs)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, self.enum_cls):
            return value.value
        return str(value).lower()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return self.enum_cls(value.lower())
        except ValueError:
            return value
