"""
SQLAlchemy type decorators.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, TypeDecorator

from core.clock import ensure_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime on every backend.

    PostgreSQL keeps the offset natively; SQLite drops it, so values are
    normalised to UTC on the way in and re-tagged as UTC on the way out.
    Comparisons inside SQL therefore always happen between UTC values.

    Usage in models:
        created_at: Mapped[datetime] = mapped_column(UTCDateTime())
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        """Convert to UTC before storing."""
        value = ensure_utc(value)
        if value is not None and dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        """Always hand back an aware UTC datetime."""
        return ensure_utc(value)
